"""
Tests for prompt fingerprint hashing.
"""

import hashlib

import pytest

from reviewlm.core.fingerprint import (
    SEGMENT_SEPARATOR,
    compute_prompt_hash,
    compute_segments_prefix_hash,
    short_hash,
)


def test_segments_hash_matches_documented_layout():
    parts = ["system rules", "repository context"]
    payload = "system rules\n---SEG---\nrepository context\n\nmodel:gpt-5"
    expected = hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]

    assert compute_segments_prefix_hash(parts, "gpt-5") == expected


def test_hash_is_deterministic_and_sized():
    first = compute_segments_prefix_hash(["a", "b"], "m", length=8)
    second = compute_segments_prefix_hash(["a", "b"], "m", length=8)
    assert first == second
    assert len(first) == 8
    assert len(compute_prompt_hash("prompt")) == 16


def test_model_changes_the_hash():
    assert compute_segments_prefix_hash(["a"], "gpt-5") != compute_segments_prefix_hash(["a"], "o3")


def test_no_model_means_no_suffix():
    assert compute_prompt_hash("abc") == short_hash("abc")


def test_segment_boundaries_matter():
    assert SEGMENT_SEPARATOR == "\n---SEG---\n"
    assert compute_segments_prefix_hash(["ab", "c"]) != compute_segments_prefix_hash(["a", "bc"])


@pytest.mark.parametrize("length", [0, 12, 64])
def test_unsupported_length_rejected(length):
    with pytest.raises(ValueError):
        short_hash("x", length)
