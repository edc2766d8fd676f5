"""Tests for pubkey validation helpers."""

from __future__ import annotations

import pytest

from nostr_wot.core.exceptions import ValidationException, WoTException
from nostr_wot.core.identity import (
    chunk,
    is_valid_pubkey,
    normalize_pubkey,
    validate_pubkey,
    validate_pubkeys,
)


VALID = "ab" * 32


class TestIsValidPubkey:
    def test_lowercase_hex(self):
        assert is_valid_pubkey(VALID)

    def test_uppercase_hex(self):
        assert is_valid_pubkey(VALID.upper())

    @pytest.mark.parametrize(
        "value",
        ["", "ab" * 31, "ab" * 33, "zz" * 32, "ab" * 32 + "\n", "\n" + "ab" * 32, " " + "ab" * 32, None, 123, b"ab" * 32],
    )
    def test_invalid(self, value):
        assert not is_valid_pubkey(value)


class TestValidatePubkey:
    def test_normalizes_case(self):
        assert validate_pubkey(VALID.upper()) == VALID
        assert normalize_pubkey("ABCD") == "abcd"

    def test_missing(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_pubkey("", "target")
        assert exc_info.value.field == "target"
        assert "target is required" in str(exc_info.value)

    def test_malformed(self):
        with pytest.raises(ValidationException, match="64-character hex"):
            validate_pubkey("not-a-key")

    def test_trailing_newline(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_pubkey(VALID + "\n", "target")
        assert exc_info.value.field == "target"

    def test_is_wot_exception(self):
        with pytest.raises(WoTException):
            validate_pubkey("xyz")


class TestValidatePubkeys:
    def test_dedupes_keeping_order(self):
        a, b = "a" * 64, "b" * 64
        assert validate_pubkeys([b, a.upper(), a, b]) == [b, a]

    def test_empty(self):
        with pytest.raises(ValidationException, match="non-empty"):
            validate_pubkeys([], "targets")

    def test_bare_string_rejected(self):
        with pytest.raises(ValidationException, match="list of pubkeys"):
            validate_pubkeys(VALID, "targets")

    def test_names_bad_entry(self):
        with pytest.raises(ValidationException) as exc_info:
            validate_pubkeys([VALID, "bad"], "targets")
        assert exc_info.value.field == "targets[1]"


class TestChunk:
    def test_splits(self):
        assert chunk([1, 2, 3, 4, 5], 2) == [[1, 2], [3, 4], [5]]

    def test_exact_multiple(self):
        assert chunk(list(range(4)), 4) == [[0, 1, 2, 3]]

    def test_empty(self):
        assert chunk([], 3) == []

    def test_non_positive_size(self):
        with pytest.raises(ValidationException):
            chunk([1], 0)
