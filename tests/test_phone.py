"""
Tests for phone normalization and validation
"""
import pytest

from netlife_auth.utils.phone import (
    COUNTRY_RULES,
    FALLBACK_NATIONAL_LENGTH,
    REASON_INVALID_FORMAT,
    REASON_INVALID_LENGTH,
    REASON_MISSING,
    calling_code,
    format_phone,
    get_phone_last4,
    is_valid_phone,
    match_country_code,
    normalize_phone,
    phones_equal,
    validate_phone,
)


class TestNormalize:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("+1 (415) 555-2671", "+14155552671"),
            ("00256 701 234 567", "+256701234567"),
            ("256701234567", "+256701234567"),
            ("+44.20.7946.0958", "+442079460958"),
            ("  +256-701-234-567  ", "+256701234567"),
        ],
    )
    def test_normalize_phone(self, raw, expected):
        assert normalize_phone(raw) == expected

    @pytest.mark.parametrize(
        "raw",
        ["+1 (415) 555-2671", "00256701234567", "256 701 234 567", "+33 6 12 34 56 78"],
    )
    def test_normalization_is_idempotent(self, raw):
        once = normalize_phone(raw)
        assert normalize_phone(once) == once

    def test_match_country_code_prefers_known_prefix(self):
        assert match_country_code("+14155552671") == "1"
        assert match_country_code("+447911123456") == "44"
        assert match_country_code("+256701234567") is None


class TestValidate:
    def test_valid_number_is_normalized(self):
        result = validate_phone("+256 701 234 567")
        assert result.valid is True
        assert result.normalized == "+256701234567"
        assert result.error is None

    @pytest.mark.parametrize("value", [None, "", "   ", 12345])
    def test_missing_or_non_string(self, value):
        result = validate_phone(value)
        assert result.valid is False
        assert result.reason == REASON_MISSING

    def test_non_digit_input_is_invalid_format(self):
        result = validate_phone("+1abc5552671")
        assert result.valid is False
        assert result.reason == REASON_INVALID_FORMAT

    def test_short_input_without_plus_is_invalid(self):
        """'12345' becomes +12345, which is too short for any country"""
        result = validate_phone("12345")
        assert result.valid is False
        assert result.reason == REASON_INVALID_FORMAT

    def test_leading_zero_country_code_is_invalid(self):
        result = validate_phone("+0123456789")
        assert result.valid is False
        assert result.reason == REASON_INVALID_FORMAT

    @pytest.mark.parametrize("country_code", sorted(COUNTRY_RULES))
    def test_country_length_boundaries(self, country_code):
        """Min and max national lengths validate; one digit outside fails"""
        min_len, max_len = COUNTRY_RULES[country_code]

        def number(length):
            return f"+{country_code}" + "5" * length

        assert is_valid_phone(number(min_len))
        assert is_valid_phone(number(max_len))

        too_short = validate_phone(number(min_len - 1))
        assert too_short.valid is False
        assert too_short.reason in (REASON_INVALID_LENGTH, REASON_INVALID_FORMAT)

        too_long = validate_phone(number(max_len + 1))
        assert too_long.valid is False
        assert too_long.reason in (REASON_INVALID_LENGTH, REASON_INVALID_FORMAT)

    def test_length_error_message_for_fixed_length_country(self):
        result = validate_phone("+1415555267")
        assert result.reason == REASON_INVALID_LENGTH
        assert "+1" in result.error
        assert "Expected 10 digits, got 9" in result.error

    def test_length_error_message_for_range_country(self):
        result = validate_phone("+3912345678")
        assert result.reason == REASON_INVALID_LENGTH
        assert "Expected 9-11 digits, got 8" in result.error

    @pytest.mark.parametrize("country_code", ["20", "256", "880"])
    def test_unknown_country_code_national_boundaries(self, country_code):
        """Codes outside COUNTRY_RULES need at least 6 national digits"""
        min_len = FALLBACK_NATIONAL_LENGTH[0]
        # The format check caps the whole number at 15 digits
        longest = 15 - len(country_code)

        assert is_valid_phone(f"+{country_code}" + "7" * min_len)
        assert is_valid_phone(f"+{country_code}" + "7" * longest)

        too_short = validate_phone(f"+{country_code}" + "7" * (min_len - 1))
        assert too_short.valid is False
        assert too_short.reason == REASON_INVALID_LENGTH
        assert f"+{country_code}." in too_short.error
        assert "Expected 6-14 digits, got 5" in too_short.error

        too_long = validate_phone(f"+{country_code}" + "7" * (longest + 1))
        assert too_long.valid is False
        assert too_long.reason == REASON_INVALID_FORMAT

    def test_four_digit_national_part_is_rejected(self):
        result = validate_phone("+2567012")
        assert result.valid is False
        assert result.reason == REASON_INVALID_LENGTH
        assert "got 4" in result.error

    def test_calling_code_uses_itu_assignments(self):
        assert calling_code("+256701234567") == "256"
        assert calling_code("+201001234567") == "20"
        assert calling_code("+14155552671") == "1"
        # Unassigned prefixes are treated as three-digit codes
        assert calling_code("+999123456") == "999"
        assert not is_valid_phone("+99912345")
        assert is_valid_phone("+999123456")

    def test_ten_digit_us_style_number_is_short_for_country_code_one(self):
        """+1234567890 has only nine national digits after the +1 prefix"""
        assert not is_valid_phone("+1234567890")
        assert is_valid_phone("+12345678901")


class TestHelpers:
    def test_phones_equal_uses_canonical_form(self):
        assert phones_equal("+1 (415) 555-2671", "0014155552671")
        assert not phones_equal("+14155552671", "+14155552672")
        assert not phones_equal(None, "+14155552671")

    def test_format_phone_uses_international_format(self):
        assert format_phone("+14155552671") == "+1 415-555-2671"

    def test_format_phone_groups_unparseable_numbers(self):
        assert format_phone("+999123456") == "+999 123 456"

    def test_get_phone_last4(self):
        assert get_phone_last4("+256 701 234 567") == "4567"
        assert get_phone_last4("12") == "12"
        assert get_phone_last4(None) == ""
