"""HMAC verification of webhook deliveries.

GitHub signs every delivery with the webhook secret and sends the digest in
``X-Hub-Signature`` (``sha1=<hex>``) and, for newer hooks, in
``X-Hub-Signature-256`` (``sha256=<hex>``).
"""

import hashlib
import hmac
import logging
from typing import Iterable, Mapping, Optional

from foureyes.webhooks.exceptions import (
    MalformedSignature,
    MissingSignature,
    SignatureMismatch,
    UnsupportedAlgorithm,
)

log = logging.getLogger(__name__)

DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
}

DEFAULT_ALGORITHMS = ("sha1", "sha256")

SIGNATURE_HEADERS = ("X-Hub-Signature-256", "X-Hub-Signature")


def get_signature_header(
    headers: Mapping[str, str],
    supported_algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
) -> Optional[str]:
    """Picks the strongest signature header present on the request"""
    sha256_value = headers.get(SIGNATURE_HEADERS[0])
    if sha256_value and "sha256" in supported_algorithms:
        return sha256_value
    return headers.get(SIGNATURE_HEADERS[1]) or sha256_value or None


def compute_signature(body: bytes, secret, algorithm: str = "sha1") -> str:
    """Signs `body` the way GitHub does, as `<algorithm>=<hex digest>`"""
    if isinstance(secret, str):
        secret = secret.encode()
    digest = hmac.new(secret, body, DIGESTS[algorithm]).hexdigest()
    return f"{algorithm}={digest}"


def verify_signature(
    body: bytes,
    secret,
    signature_header: Optional[str],
    supported_algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
) -> None:
    """Checks `signature_header` against the HMAC of `body` keyed with `secret`.

    Args:
        body (bytes): The raw request body, exactly as received
        secret (str | bytes): The shared webhook secret
        signature_header (str, optional): Header value in the form `<algorithm>=<hex digest>`
        supported_algorithms (Iterable[str]): Algorithm tokens accepted. Matching is exact.

    Raises:
        MissingSignature: If there is no signature at all
        MalformedSignature: If the value is not `<algorithm>=<hex digest>`
        UnsupportedAlgorithm: If the algorithm is not one of `supported_algorithms`
        SignatureMismatch: If the digests differ
    """
    if not signature_header:
        raise MissingSignature("No signature header in the request")

    algorithm, sep, given_digest = signature_header.partition("=")
    if not sep or not algorithm or not given_digest:
        raise MalformedSignature("Signature is not in the form algorithm=digest")
    if algorithm not in supported_algorithms or algorithm not in DIGESTS:
        raise UnsupportedAlgorithm(algorithm)

    try:
        given_mac = bytes.fromhex(given_digest)
    except ValueError:
        raise MalformedSignature("Signature digest is not valid hex")

    # Re-rendered as lowercase hex so uppercase digests compare equal
    given_signature = f"{algorithm}={given_mac.hex()}"
    expected_signature = compute_signature(body, secret, algorithm)
    if not hmac.compare_digest(
        given_signature.encode(), expected_signature.encode()
    ):
        raise SignatureMismatch("Signature does not match the request body")
