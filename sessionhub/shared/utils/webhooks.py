"""Verification helpers for Zoom webhook deliveries."""

import hashlib
import hmac
import time
from typing import Optional

SIGNATURE_VERSION = "v0"
MAX_TIMESTAMP_SKEW_SECONDS = 300


def sign_webhook(secret: str, timestamp: str, body: bytes) -> str:
    """Signature Zoom puts in ``x-zm-signature`` for a delivery."""
    message = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_webhook_signature(
    secret: str,
    timestamp: Optional[str],
    body: bytes,
    signature: Optional[str],
    now: Optional[float] = None,
) -> bool:
    """Check a delivery's signature and reject stale timestamps."""
    if not timestamp or not signature:
        return False
    try:
        sent_at = int(timestamp)
    except ValueError:
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > MAX_TIMESTAMP_SKEW_SECONDS:
        return False
    return hmac.compare_digest(sign_webhook(secret, timestamp, body), signature)


def url_validation_response(secret: str, plain_token: str) -> dict:
    """Answer to Zoom's ``endpoint.url_validation`` challenge."""
    encrypted = hmac.new(secret.encode(), plain_token.encode(), hashlib.sha256).hexdigest()
    return {"plainToken": plain_token, "encryptedToken": encrypted}
