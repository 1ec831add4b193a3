import orjson
import pytest

from foureyes.webhooks import (
    DecodeError,
    MissingSignature,
    PushEvent,
    SignatureMismatch,
    decode_ping_event,
    decode_push_event,
    verify_and_decode,
)
from foureyes.webhooks.signature import compute_signature

SECRET = "It's a Secret to Everybody"


def push_payload(**overrides):
    payload = {
        "ref": "refs/heads/staging",
        "before": "0000000000000000000000000000000000000000",
        "after": "1a2b3c4d5e6f7a8b9c0d1a2b3c4d5e6f7a8b9c0d",
        "head_commit": {
            "id": "1a2b3c4d5e6f7a8b9c0d1a2b3c4d5e6f7a8b9c0d",
            "message": "Merge #7\n\n7: Add a thing r=bob a=alice\n",
        },
        "repository": {
            "name": "example-repo",
            "owner": {"name": "example-org", "login": "example-org"},
        },
        "pusher": {"name": "bors[bot]"},
    }
    payload.update(overrides)
    return payload


class TestDecodePushEvent(object):
    def test_decode_push_event(self):
        event = decode_push_event(orjson.dumps(push_payload()))
        assert event == PushEvent(
            ref="refs/heads/staging",
            head_commit_sha="1a2b3c4d5e6f7a8b9c0d1a2b3c4d5e6f7a8b9c0d",
            head_commit_message="Merge #7\n\n7: Add a thing r=bob a=alice\n",
            repository_owner="example-org",
            repository_name="example-repo",
        )
        assert event.slug == "example-org/example-repo"

    def test_decode_push_event_owner_login_only(self):
        body = orjson.dumps(
            push_payload(
                repository={"name": "example-repo", "owner": {"login": "someone"}}
            )
        )
        assert decode_push_event(body).repository_owner == "someone"

    def test_decode_push_event_without_head_commit(self):
        # Branch deletions have no head commit
        body = orjson.dumps(push_payload(head_commit=None))
        event = decode_push_event(body)
        assert event.head_commit_sha == "1a2b3c4d5e6f7a8b9c0d1a2b3c4d5e6f7a8b9c0d"
        assert event.head_commit_message == ""

    def test_decode_push_event_missing_fields(self):
        assert decode_push_event(b"{}") == PushEvent()

    def test_decode_push_event_wrong_types(self):
        body = orjson.dumps({"ref": 12, "repository": ["not", "a", "dict"]})
        event = decode_push_event(body)
        assert event.ref == ""
        assert event.repository_name == ""

    @pytest.mark.parametrize("body", [b"", b"not json", b"{", b"[1, 2]", b'"push"'])
    def test_decode_push_event_invalid(self, body):
        with pytest.raises(DecodeError):
            decode_push_event(body)

    def test_decode_ping_event(self):
        body = orjson.dumps({"zen": "Keep it logically awesome.", "hook_id": 1})
        assert decode_ping_event(body)["zen"] == "Keep it logically awesome."


class TestVerifyAndDecode(object):
    def test_verify_and_decode(self):
        body = orjson.dumps(push_payload())
        event = verify_and_decode(body, SECRET, compute_signature(body, SECRET))
        assert event.ref == "refs/heads/staging"

    def test_verify_and_decode_sha256(self):
        body = orjson.dumps(push_payload())
        event = verify_and_decode(
            body, SECRET, compute_signature(body, SECRET, "sha256")
        )
        assert event.repository_name == "example-repo"

    def test_bad_signature_is_never_decoded(self, mocker):
        decoder = mocker.MagicMock()
        body = orjson.dumps(push_payload())
        with pytest.raises(SignatureMismatch):
            verify_and_decode(
                body, SECRET, compute_signature(body, "wrong"), decoder=decoder
            )
        assert not decoder.called

    def test_missing_signature_is_never_decoded(self, mocker):
        decoder = mocker.MagicMock()
        with pytest.raises(MissingSignature):
            verify_and_decode(b"not json", SECRET, None, decoder=decoder)
        assert not decoder.called

    def test_authenticated_garbage(self):
        body = b"definitely not json"
        with pytest.raises(DecodeError):
            verify_and_decode(body, SECRET, compute_signature(body, SECRET))
