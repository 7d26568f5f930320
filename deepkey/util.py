"""
Utility functions for Deepkey.

Provides base64 encoding helpers for keys and signatures on the wire.
"""

import base64
import binascii
from typing import Optional


def b64e(b: bytes) -> str:
    """Base64 encode bytes to string."""
    return base64.b64encode(b).decode('ascii')


def b64d(s: str) -> bytes:
    """Base64 decode string to bytes (strict alphabet)."""
    return base64.b64decode(s.encode('ascii'), validate=True)


def try_b64d(s: str, expected_length: Optional[int] = None) -> Optional[bytes]:
    """
    Decode base64 text, returning None instead of raising.

    Useful where a malformed key or signature is a validation outcome
    rather than a programming error. Only the canonical encoding of the
    decoded bytes is accepted.
    """
    if not isinstance(s, str):
        return None
    try:
        raw = b64d(s)
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None
    if expected_length is not None and len(raw) != expected_length:
        return None
    # Unused trailing bits would let several strings name the same bytes.
    if b64e(raw) != s:
        return None
    return raw


def short(address: str, visible_chars: int = 12) -> str:
    """Abbreviate an address or key for log lines."""
    if not isinstance(address, str) or len(address) <= visible_chars:
        return str(address)
    return address[:visible_chars] + "..."
