"""
test_license_plate.py — Tests for utils/license_plate.py

Covers: normalization, display formatting, validation messages, input
sanitizing, masking, hashing, and state code extraction.

Called by: pytest
Depends on: app/utils/license_plate.py
"""

import hashlib

import pytest

from app.utils.license_plate import (
    are_license_plates_equal,
    extract_state_code,
    format_license_plate,
    hash_license_plate,
    mask_license_plate,
    normalize_license_plate,
    sanitize_license_plate_input,
    validate_license_plate,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("abc 123", "ABC123"),
        ("  abc-123 ", "ABC123"),
        ("A.B*C 1_2#3", "ABC123"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize(raw, expected):
    assert normalize_license_plate(raw) == expected


def test_format_letters_then_digits():
    assert format_license_plate("abc123") == "ABC 123"
    assert format_license_plate("ABCD12") == "ABCD 12"


def test_format_mixed_splits_at_midpoint():
    assert format_license_plate("7XYZ123") == "7XY Z123"


def test_format_short_plate_unchanged():
    assert format_license_plate("ab1") == "AB1"


class TestValidate:
    def test_valid(self):
        assert validate_license_plate("ABC 123") == (True, None)

    def test_blank(self):
        assert validate_license_plate("   ") == (False, "License plate is required")

    def test_too_short(self):
        ok, error = validate_license_plate("A-")
        assert ok is False
        assert "at least 2" in error

    def test_too_long(self):
        ok, error = validate_license_plate("ABCDEFGHIJK")
        assert ok is False
        assert "not exceed 10" in error

    def test_punctuation_is_stripped_before_checking(self):
        assert validate_license_plate("AB-12") == (True, None)


def test_sanitize_keeps_spaces_and_dashes():
    assert sanitize_license_plate_input("abc-12 3!") == "ABC-12 3"


def test_sanitize_truncates():
    assert len(sanitize_license_plate_input("A" * 30)) == 12


def test_plates_equal_ignores_formatting():
    assert are_license_plates_equal("abc 123", "ABC-123")
    assert not are_license_plates_equal("ABC123", "ABC124")


def test_hash_is_sha256_of_normalized():
    expected = hashlib.sha256(b"ABC123").hexdigest()
    assert hash_license_plate("abc 123") == expected
    assert hash_license_plate("ABC-123") == expected


class TestMask:
    def test_masks_digits(self):
        assert mask_license_plate("ABC123") == "ABC ***"

    def test_short_plate_shown_in_full(self):
        assert mask_license_plate("AB1") == "AB1"

    def test_custom_reveal(self):
        assert mask_license_plate("ABC123", reveal_chars=1) == "A** ***"


class TestStateCode:
    def test_prefix(self):
        assert extract_state_code("CA1234567") == "CA"

    def test_suffix(self):
        assert extract_state_code("1234567NY") == "NY"

    def test_none(self):
        assert extract_state_code("1234567") is None
