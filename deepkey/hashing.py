"""
Deepkey Content Addressing

Headers and entries are addressed by the SHA-256 of their canonical JSON,
rendered as lowercase hex with an algorithm prefix.
"""

import hashlib
import re
from typing import Any, Dict, Union

from .canonicalization import canonicalize


ADDRESS_PATTERN = re.compile(r'^sha256:[0-9a-f]{64}$')


def sha256_hash(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 hash in address format.

    Returns:
        Hash string in format "sha256:abcdef..."
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    digest = hashlib.sha256(data).hexdigest().lower()
    return f"sha256:{digest}"


def header_hash(header: Dict[str, Any]) -> str:
    """
    Compute the address of a header.

    header_address = SHA-256(CJE(header))
    """
    return sha256_hash(canonicalize(header))


def entry_hash(entry: Dict[str, Any]) -> str:
    """
    Compute the address of an entry payload.

    entry_address = SHA-256(CJE(entry))
    """
    return sha256_hash(canonicalize(entry))


def is_address(value: Any) -> bool:
    """Check that a value looks like a content address."""
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))
