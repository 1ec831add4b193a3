import logging
from contextlib import aclosing
from dataclasses import dataclass

import sentry_sdk

from foureyes.hosting.base import HostingBaseAdapter
from foureyes.hosting.exceptions import HostingRateLimitError, UpstreamAPIError

log = logging.getLogger(__name__)

DEFAULT_APPROVAL_COMMENT = "bors r+"


@dataclass(frozen=True)
class ApprovalVerdict:
    pr_number: int
    approved: bool
    # The check was cut short by the provider's rate limit
    rate_limited: bool = False


def normalize_comment(body: str) -> str:
    return (body or "").strip().casefold()


def is_qualifying_comment(comment, approval_comment: str, author_id) -> bool:
    commenter_id = comment["author"]["id"]
    return (
        commenter_id is not None
        and commenter_id != author_id
        and normalize_comment(comment["body"]) == normalize_comment(approval_comment)
    )


@sentry_sdk.trace
async def approved_by_non_author(
    adapter: HostingBaseAdapter,
    pr_number: int,
    approval_comment: str = DEFAULT_APPROVAL_COMMENT,
    page_size: int = 10,
) -> ApprovalVerdict:
    """Decides whether someone other than the author approved pull request `pr_number`.

    The pull request counts as approved once any comment, from anyone but its
    author, reads exactly `approval_comment` (ignoring case and surrounding
    whitespace). Comments are read oldest first and pages are only fetched
    until such a comment shows up.

    Any error talking to the provider makes the pull request not approved.
    """
    log_extra = dict(pullid=pr_number, repo_slug=adapter.slug)
    try:
        pull = await adapter.get_pull_request(pr_number)
        author_id = pull["author"]["id"]
        if author_id is None:
            log.warning("Pull request has no author", extra=log_extra)
            return ApprovalVerdict(pr_number=pr_number, approved=False)
        async with aclosing(
            adapter.list_issue_comments(pr_number, per_page=page_size)
        ) as pages:
            async for page in pages:
                for comment in page:
                    if is_qualifying_comment(comment, approval_comment, author_id):
                        log.info(
                            "Pull request approved by someone other than the author",
                            extra=dict(
                                approver=comment["author"]["username"],
                                author=pull["author"]["username"],
                                **log_extra,
                            ),
                        )
                        return ApprovalVerdict(pr_number=pr_number, approved=True)
    except HostingRateLimitError:
        log.warning(
            "Rate limited while checking pull request approval",
            extra=log_extra,
            exc_info=True,
        )
        return ApprovalVerdict(pr_number=pr_number, approved=False, rate_limited=True)
    except UpstreamAPIError:
        log.warning(
            "Could not verify pull request approval", extra=log_extra, exc_info=True
        )
        return ApprovalVerdict(pr_number=pr_number, approved=False)
    log.info("Pull request not approved by a second peer", extra=log_extra)
    return ApprovalVerdict(pr_number=pr_number, approved=False)
