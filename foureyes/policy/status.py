import logging
from dataclasses import dataclass
from enum import Enum
from typing import Sequence

from foureyes.hosting.base import HostingBaseAdapter
from foureyes.metrics import STATUS_PUBLISHED_COUNTER, inc_counter
from foureyes.policy.approval import ApprovalVerdict
from foureyes.policy.extract import PullRequestReference

log = logging.getLogger(__name__)

DEFAULT_STATUS_CONTEXT = "four-eyes"

# GitHub rejects commit statuses with longer descriptions
MAX_DESCRIPTION_LENGTH = 140

SUCCESS_DESCRIPTION = "All pull requests were reviewed by a peer other than the author."
ERROR_DESCRIPTION_PREFIX = (
    "The following pull requests were not approved by a second peer: "
)
FAILURE_DESCRIPTION = "Something went wrong when checking who approved the PRs."


class StatusState(Enum):
    success = "success"
    error = "error"
    failure = "failure"


@dataclass(frozen=True)
class StatusReport:
    state: StatusState
    description: str


def truncate_description(description: str) -> str:
    if len(description) <= MAX_DESCRIPTION_LENGTH:
        return description
    return description[: MAX_DESCRIPTION_LENGTH - 1] + "…"


def build_status_report(
    references: Sequence[PullRequestReference],
    verdicts: Sequence[ApprovalVerdict],
) -> StatusReport:
    approved = {v.pr_number for v in verdicts if v.approved}
    rejected = []
    for reference in references:
        label = f"#{reference.number}"
        if reference.number not in approved and label not in rejected:
            rejected.append(label)
    if not rejected:
        return StatusReport(state=StatusState.success, description=SUCCESS_DESCRIPTION)
    return StatusReport(
        state=StatusState.error,
        description=truncate_description(ERROR_DESCRIPTION_PREFIX + ",".join(rejected)),
    )


def failure_report() -> StatusReport:
    return StatusReport(state=StatusState.failure, description=FAILURE_DESCRIPTION)


async def publish_status(
    adapter: HostingBaseAdapter,
    commit: str,
    report: StatusReport,
    context: str = DEFAULT_STATUS_CONTEXT,
):
    log.info(
        "Publishing four-eyes status",
        extra=dict(
            commit=commit,
            repo_slug=adapter.slug,
            state=report.state.value,
            description=report.description,
        ),
    )
    res = await adapter.set_commit_status(
        commit,
        report.state.value,
        context,
        report.description,
    )
    inc_counter(STATUS_PUBLISHED_COUNTER, labels=dict(state=report.state.value))
    return res
