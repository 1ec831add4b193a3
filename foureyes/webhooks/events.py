import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, TypeVar

import orjson

from foureyes.webhooks.exceptions import DecodeError
from foureyes.webhooks.signature import DEFAULT_ALGORITHMS, verify_signature

log = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PushEvent:
    """The parts of a GitHub push payload the four-eyes check needs.

    https://docs.github.com/en/webhooks/webhook-events-and-payloads#push
    Every field defaults to an empty string when absent from the payload.
    """

    ref: str = ""
    head_commit_sha: str = ""
    head_commit_message: str = ""
    repository_owner: str = ""
    repository_name: str = ""

    @property
    def slug(self) -> str:
        return f"{self.repository_owner}/{self.repository_name}"


def _dig(data, *path) -> str:
    current = data
    for key in path:
        if not isinstance(current, dict):
            return ""
        current = current.get(key)
    return current if isinstance(current, str) else ""


def _load_object(body: bytes) -> dict:
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as exc:
        raise DecodeError(f"Body is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise DecodeError("Body is not a JSON object")
    return data


def decode_ping_event(body: bytes) -> dict:
    return _load_object(body)


def decode_push_event(body: bytes) -> PushEvent:
    data = _load_object(body)
    return PushEvent(
        ref=_dig(data, "ref"),
        head_commit_sha=_dig(data, "head_commit", "id") or _dig(data, "after"),
        head_commit_message=_dig(data, "head_commit", "message"),
        repository_owner=(
            _dig(data, "repository", "owner", "name")
            or _dig(data, "repository", "owner", "login")
        ),
        repository_name=_dig(data, "repository", "name"),
    )


def verify_and_decode(
    body: bytes,
    secret,
    signature_header: Optional[str],
    decoder: Callable[[bytes], T] = decode_push_event,
    supported_algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
) -> T:
    """Authenticates `body` and only then parses that very same `body`.

    Raises:
        AuthenticationError: If the signature does not check out. Nothing is parsed then.
        DecodeError: If the authenticated body is not a JSON object
    """
    verify_signature(body, secret, signature_header, supported_algorithms)
    return decoder(body)
