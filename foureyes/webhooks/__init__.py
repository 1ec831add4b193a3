from foureyes.webhooks.events import (
    PushEvent,
    decode_ping_event,
    decode_push_event,
    verify_and_decode,
)
from foureyes.webhooks.exceptions import (
    AuthenticationError,
    DecodeError,
    MalformedSignature,
    MissingSignature,
    SignatureMismatch,
    UnsupportedAlgorithm,
    WebhookError,
)
from foureyes.webhooks.signature import get_signature_header, verify_signature

__all__ = [
    "AuthenticationError",
    "DecodeError",
    "MalformedSignature",
    "MissingSignature",
    "PushEvent",
    "SignatureMismatch",
    "UnsupportedAlgorithm",
    "WebhookError",
    "decode_ping_event",
    "decode_push_event",
    "get_signature_header",
    "verify_and_decode",
    "verify_signature",
]
