"""Pubkey validation and small helpers shared across the package."""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from typing import TypeVar

from .exceptions import ValidationException

T = TypeVar("T")

_PUBKEY_RE = re.compile(r"[0-9a-fA-F]{64}")


def is_valid_pubkey(pubkey: object) -> bool:
    """Check that *pubkey* is a 64 character hex string (any case)."""
    return isinstance(pubkey, str) and _PUBKEY_RE.fullmatch(pubkey) is not None


def normalize_pubkey(pubkey: str) -> str:
    """Canonicalize a pubkey to lowercase hex."""
    return pubkey.lower()


def validate_pubkey(pubkey: str, field: str = "pubkey") -> str:
    """Validate and canonicalize a pubkey.

    Raises:
        ValidationException: If the pubkey is missing or malformed
    """
    if not pubkey:
        raise ValidationException(f"{field} is required", field)
    if not is_valid_pubkey(pubkey):
        raise ValidationException(f"{field} must be a valid 64-character hex string", field)
    return normalize_pubkey(pubkey)


def validate_pubkeys(pubkeys: Iterable[str], field: str = "pubkeys") -> list[str]:
    """Validate a non-empty collection of pubkeys, dropping duplicates."""
    if isinstance(pubkeys, str):
        raise ValidationException(f"{field} must be a list of pubkeys", field)
    result: list[str] = []
    seen: set[str] = set()
    for i, pubkey in enumerate(pubkeys):
        normalized = validate_pubkey(pubkey, f"{field}[{i}]")
        if normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    if not result:
        raise ValidationException(f"{field} must be a non-empty list", field)
    return result


def chunk(items: Sequence[T], size: int) -> list[list[T]]:
    """Split *items* into consecutive lists of at most *size* elements."""
    if size <= 0:
        raise ValidationException("chunk size must be positive", "size")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
