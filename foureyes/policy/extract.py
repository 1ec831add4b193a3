import logging
import re
from dataclasses import dataclass
from typing import List

log = logging.getLogger(__name__)

# "<number>: <title> r=<reviewer> a=<author>", one per line of a merge queue commit
merge_annotation = re.compile(r"(\d+): .* r=(\S+) a=(\S+)")


@dataclass(frozen=True)
class PullRequestReference:
    number: int
    reviewer_hint: str
    author_hint: str


def extract_pull_request_references(message: str) -> List[PullRequestReference]:
    """Finds the pull requests a merge queue commit says it merged.

    The reviewer and author hints come from the commit message and cannot be
    trusted to decide anything. They are kept for logging only.
    """
    references = []
    for match in merge_annotation.finditer(message or ""):
        raw_number, reviewer_hint, author_hint = match.groups()
        try:
            number = int(raw_number)
        except ValueError:
            log.warning(
                "Skipping merge annotation with invalid pull request number",
                extra=dict(raw_number=raw_number),
            )
            continue
        if reviewer_hint == author_hint:
            log.warning(
                "Merge annotation claims the author reviewed their own pull request",
                extra=dict(pullid=number, hint=author_hint),
            )
        references.append(
            PullRequestReference(
                number=number, reviewer_hint=reviewer_hint, author_hint=author_hint
            )
        )
    return references
