from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from typing import Optional, Union

from .errors import AuthenticationError

logger = logging.getLogger(__name__)


def _digest(raw_body: bytes, shared_key: bytes) -> bytes:
    return hmac.new(shared_key, raw_body, hashlib.sha256).digest()


def sign(raw_body: bytes, shared_key: bytes) -> str:
    """Base64 HMAC-SHA256 of ``raw_body``, as DigiLocker puts it in the auth header."""
    return base64.b64encode(_digest(raw_body, shared_key)).decode("ascii")


def verify(
    raw_body: bytes,
    provided_mac: Optional[Union[bytes, str]],
    shared_key: bytes,
) -> bool:
    """Check a base64 HMAC-SHA256 of the exact request bytes.

    Anything that cannot be decoded counts as a mismatch; the comparison is
    constant time.
    """
    if not provided_mac:
        logger.info("Request carries no HMAC digest")
        return False
    try:
        provided = base64.b64decode(provided_mac, validate=True)
    except (binascii.Error, ValueError):
        logger.info("Request HMAC digest is not valid base64")
        return False

    expected = _digest(raw_body, shared_key)
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "Expected mac %s but got %s",
            base64.b64encode(expected).decode("ascii"),
            base64.b64encode(provided).decode("ascii"),
        )
    return hmac.compare_digest(expected, provided)


def authenticate(raw_body: bytes, provided_mac: Optional[Union[bytes, str]], shared_key: str) -> None:
    """Raise AuthenticationError unless ``provided_mac`` signs ``raw_body`` with ``shared_key``."""
    if not shared_key:
        raise AuthenticationError("No HMAC key is configured, every request is rejected")
    if not verify(raw_body, provided_mac, shared_key.encode("utf-8")):
        raise AuthenticationError("Request HMAC does not match the body")
