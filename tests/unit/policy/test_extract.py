import logging

from foureyes.policy.extract import (
    PullRequestReference,
    extract_pull_request_references,
)

MERGE_COMMIT_MESSAGE = """Merge #12 #15

12: Fix the frobnicator r=bob a=alice
15: Bump dependencies r=carol a=dave

Co-authored-by: alice <alice@example.com>
Co-authored-by: dave <dave@example.com>
"""


class TestExtractPullRequestReferences(object):
    def test_merge_commit(self):
        assert extract_pull_request_references(MERGE_COMMIT_MESSAGE) == [
            PullRequestReference(number=12, reviewer_hint="bob", author_hint="alice"),
            PullRequestReference(number=15, reviewer_hint="carol", author_hint="dave"),
        ]

    def test_single_pull_request(self):
        message = "Try #3:\n3: Make it faster r=bob a=alice"
        assert extract_pull_request_references(message) == [
            PullRequestReference(number=3, reviewer_hint="bob", author_hint="alice")
        ]

    def test_keeps_order_and_duplicates(self):
        message = "\n".join(
            [
                "9: Second thing r=bob a=alice",
                "4: First thing r=carol a=alice",
                "9: Second thing again r=bob a=alice",
            ]
        )
        assert [r.number for r in extract_pull_request_references(message)] == [
            9,
            4,
            9,
        ]

    def test_reviewer_list_hint(self):
        message = "21: Refactor r=bob,carol a=alice"
        assert extract_pull_request_references(message) == [
            PullRequestReference(
                number=21, reviewer_hint="bob,carol", author_hint="alice"
            )
        ]

    def test_not_a_merge_commit(self):
        assert extract_pull_request_references("Fix typo in README") == []

    def test_empty_message(self):
        assert extract_pull_request_references("") == []
        assert extract_pull_request_references(None) == []

    def test_line_without_author_hint(self):
        assert extract_pull_request_references("12: Fix the thing r=bob") == []

    def test_line_without_title(self):
        assert extract_pull_request_references("12: r=bob a=alice") == []

    def test_self_review_hint_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            references = extract_pull_request_references(
                "5: Sneaky change r=alice a=alice"
            )
        assert references == [
            PullRequestReference(number=5, reviewer_hint="alice", author_hint="alice")
        ]
        assert (
            "Merge annotation claims the author reviewed their own pull request"
            in caplog.text
        )

    def test_minimal_annotation(self):
        assert extract_pull_request_references("42: merge r=alice a=bob") == [
            PullRequestReference(number=42, reviewer_hint="alice", author_hint="bob")
        ]
