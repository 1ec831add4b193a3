from foureyes.policy.approval import ApprovalVerdict, approved_by_non_author
from foureyes.policy.extract import (
    PullRequestReference,
    extract_pull_request_references,
)
from foureyes.policy.pipeline import check_push_event
from foureyes.policy.refs import is_relevant_ref
from foureyes.policy.status import (
    StatusReport,
    StatusState,
    build_status_report,
    failure_report,
    publish_status,
)

__all__ = [
    "ApprovalVerdict",
    "PullRequestReference",
    "StatusReport",
    "StatusState",
    "approved_by_non_author",
    "build_status_report",
    "check_push_event",
    "extract_pull_request_references",
    "failure_report",
    "is_relevant_ref",
    "publish_status",
]
