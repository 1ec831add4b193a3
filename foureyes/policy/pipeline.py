import asyncio
import logging
from typing import List

import sentry_sdk

from foureyes.config import FourEyesSettings
from foureyes.hosting.base import HostingBaseAdapter
from foureyes.hosting.exceptions import UpstreamAPIError
from foureyes.policy.approval import ApprovalVerdict, approved_by_non_author
from foureyes.policy.extract import extract_pull_request_references
from foureyes.policy.status import (
    StatusReport,
    build_status_report,
    failure_report,
    publish_status,
)
from foureyes.webhooks.events import PushEvent

log = logging.getLogger(__name__)


async def check_pull_requests(
    adapter: HostingBaseAdapter, numbers: List[int], settings: FourEyesSettings
) -> List[ApprovalVerdict]:
    semaphore = asyncio.Semaphore(settings.max_concurrent_checks)

    async def check(number):
        async with semaphore:
            return await approved_by_non_author(
                adapter,
                number,
                approval_comment=settings.approval_comment,
                page_size=settings.comments_page_size,
            )

    return list(await asyncio.gather(*(check(number) for number in numbers)))


async def evaluate_push_event(
    adapter: HostingBaseAdapter, event: PushEvent, settings: FourEyesSettings
) -> StatusReport:
    commit = await adapter.get_commit(event.head_commit_sha)
    references = extract_pull_request_references(commit["message"])
    log.info(
        "Found pull requests in merge commit",
        extra=dict(
            commit=event.head_commit_sha,
            repo_slug=adapter.slug,
            pullids=[r.number for r in references],
            hints=[(r.reviewer_hint, r.author_hint) for r in references],
        ),
    )
    numbers = list(dict.fromkeys(r.number for r in references))
    verdicts = await check_pull_requests(adapter, numbers, settings)
    if any(v.rate_limited for v in verdicts):
        log.warning(
            "Rate limited while checking pull requests",
            extra=dict(commit=event.head_commit_sha, repo_slug=adapter.slug),
        )
        return failure_report()
    return build_status_report(references, verdicts)


@sentry_sdk.trace
async def check_push_event(
    adapter: HostingBaseAdapter, event: PushEvent, settings: FourEyesSettings
) -> StatusReport:
    """Runs the four-eyes check for one relevant push and publishes its status.

    Exactly one status is published: success/error from the pull requests'
    verdicts, or failure when the check could not be completed for any reason.
    """
    log_extra = dict(commit=event.head_commit_sha, repo_slug=adapter.slug)
    try:
        async with asyncio.timeout(settings.deadline_seconds):
            report = await evaluate_push_event(adapter, event, settings)
    except UpstreamAPIError:
        log.exception("Unable to check pull request approvals", extra=log_extra)
        report = failure_report()
    except TimeoutError:
        log.warning(
            "Timed out checking pull request approvals",
            extra=dict(deadline_seconds=settings.deadline_seconds, **log_extra),
        )
        report = failure_report()
    except Exception:
        # Every relevant push gets exactly one status
        log.exception(
            "Unexpected error checking pull request approvals", extra=log_extra
        )
        report = failure_report()
    try:
        await publish_status(
            adapter, event.head_commit_sha, report, settings.status_context
        )
    except UpstreamAPIError:
        log.exception(
            "Unable to publish four-eyes status",
            extra=dict(state=report.state.value, **log_extra),
        )
    return report
