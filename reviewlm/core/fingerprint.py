"""
reviewlm.core.fingerprint — Short, deterministic prompt hashes.

Used only to correlate provider-side prompt-cache hits and misses in the
logs.  Not a security primitive and never consulted for control flow.
"""

from __future__ import annotations

import hashlib
from typing import Iterable

SEGMENT_SEPARATOR = "\n---SEG---\n"
DEFAULT_HASH_LENGTH = 16
_ALLOWED_LENGTHS = (8, 16)


def short_hash(payload: str, length: int = DEFAULT_HASH_LENGTH) -> str:
    """First *length* hex characters of the SHA-256 of *payload*."""
    if length not in _ALLOWED_LENGTHS:
        raise ValueError(f"hash length must be one of {_ALLOWED_LENGTHS}, got {length}")
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:length]


def _with_model(payload: str, model: str | None) -> str:
    return f"{payload}\n\nmodel:{model}" if model else payload


def compute_segments_prefix_hash(
    stable_parts: Iterable[str],
    model: str | None = None,
    length: int = DEFAULT_HASH_LENGTH,
) -> str:
    """
    Hash the stable prompt prefix.  Dynamic segments are deliberately not
    accepted here so they can never leak into the fingerprint.
    """
    prefix = SEGMENT_SEPARATOR.join(part or "" for part in stable_parts)
    return short_hash(_with_model(prefix, model), length)


def compute_prompt_hash(
    prompt: str,
    model: str | None = None,
    length: int = DEFAULT_HASH_LENGTH,
) -> str:
    """Hash an entire prompt string, e.g. a full line-comments review prompt."""
    return short_hash(_with_model(prompt, model), length)
