"""HMAC-SHA256 signing and verification of webhook payloads."""

import hashlib
import hmac
import time
from typing import Mapping, Optional, Union

from async_dispatch.errors import SignatureInvalidError

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
ID_HEADER = "X-Webhook-Id"

DEFAULT_TOLERANCE_SECONDS = 300

Payload = Union[bytes, str]


def _as_bytes(value: Payload) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Expected str or bytes, got {type(value).__name__}")


def sign(payload: Payload, secret: Payload, timestamp: int) -> str:
    """Return the hex HMAC-SHA256 digest of ``"{timestamp}.{payload}"``."""
    message = f"{int(timestamp)}.".encode("utf-8") + _as_bytes(payload)
    return hmac.new(_as_bytes(secret), message, hashlib.sha256).hexdigest()


def verify(
    payload: Optional[Payload],
    signature: Optional[Payload],
    secret: Optional[Payload],
    timestamp: Optional[int],
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[int] = None,
) -> bool:
    """
    Verify a webhook signature.

    Rejects stale or future-dated timestamps outside the tolerance window,
    then compares digests in constant time. Any missing or malformed input
    returns False.
    """
    if payload is None or not signature or not secret or timestamp is None:
        return False
    if isinstance(timestamp, bool) or not isinstance(timestamp, int):
        return False

    if now is None:
        now = int(time.time())

    try:
        if abs(now - timestamp) > tolerance_seconds:
            return False
        expected = sign(payload, secret, timestamp).encode("ascii")
        provided = _as_bytes(signature)
    except (AttributeError, TypeError, ValueError):
        return False
    return hmac.compare_digest(expected, provided)


def signature_headers(
    payload: Payload, secret: str, envelope_id: str, timestamp: Optional[int] = None
) -> dict:
    """Headers carrying the signature, timestamp and envelope id of a delivery."""
    if timestamp is None:
        timestamp = int(time.time())
    return {
        SIGNATURE_HEADER: sign(payload, secret, timestamp),
        TIMESTAMP_HEADER: str(timestamp),
        ID_HEADER: envelope_id,
    }


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def verify_headers(
    payload: Payload,
    headers: Mapping[str, str],
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[int] = None,
) -> bool:
    """Verify a received request using its signature and timestamp headers."""
    signature = _header(headers, SIGNATURE_HEADER)
    raw_timestamp = _header(headers, TIMESTAMP_HEADER)
    if signature is None or raw_timestamp is None:
        return False
    try:
        timestamp = int(raw_timestamp)
    except ValueError:
        return False
    return verify(payload, signature, secret, timestamp, tolerance_seconds, now)


def ensure_valid_signature(
    payload: Payload,
    headers: Mapping[str, str],
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[int] = None,
) -> None:
    """Like verify_headers(), but raise SignatureInvalidError on failure."""
    if not verify_headers(payload, headers, secret, tolerance_seconds, now):
        raise SignatureInvalidError("Webhook signature verification failed")
