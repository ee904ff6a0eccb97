"""
Module: signature.py
Description: Webhook signature generation and verification.

The relay signs each webhook body with HMAC-SHA256 using the shared
secret and sends ``x-clawtell-signature: sha256=<hex>``. Verification runs
over the raw, unparsed body bytes and compares in constant time.

Key Components:
- generate_webhook_secret(): 32 random bytes, hex encoded
- compute_signature(): Header value for a body
- verify_signature(): Constant-time check of a received header

Dependencies: hmac, hashlib, secrets
"""

import hashlib
import hmac
import secrets
from typing import Optional, Union

from clawtell.utils.logger import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "x-clawtell-signature"
SIGNATURE_SCHEME = "sha256"
SECRET_BYTES = 32


def generate_webhook_secret() -> str:
    """
    Generate a new webhook secret.

    Returns:
        64 hex characters (256 bits of randomness)
    """
    return secrets.token_hex(SECRET_BYTES)


def _as_bytes(value: Union[str, bytes]) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8")


def compute_signature(body: Union[str, bytes], secret: str) -> str:
    """
    Compute the signature header value for a webhook body.

    Args:
        body: Raw request body
        secret: Shared webhook secret

    Returns:
        Header value in the form ``sha256=<hex>``

    Raises:
        ValueError: If secret is empty
    """
    if not secret:
        raise ValueError("secret must be a non-empty string")
    digest = hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_SCHEME}={digest}"


def verify_signature(signature: Optional[str], body: Union[str, bytes], secret: str) -> bool:
    """
    Verify a webhook signature header against the raw body.

    Args:
        signature: Received header value, e.g. ``sha256=ab12...``
        body: Raw request body exactly as received
        secret: Shared webhook secret

    Returns:
        True if the signature matches, False otherwise (including when the
        header is missing or malformed)
    """
    if not signature or not secret:
        return False

    scheme, sep, provided = signature.strip().partition("=")
    if not sep or scheme.lower() != SIGNATURE_SCHEME or not provided:
        logger.warning("Malformed webhook signature header")
        return False

    expected = compute_signature(body, secret).partition("=")[2]
    return hmac.compare_digest(provided.lower().encode("ascii", "replace"), expected.encode("ascii"))
