"""
Phone number normalization and validation utilities.

Everything here is pure: no I/O, no settings. The canonical form produced by
normalize_phone() is the storage key for login codes, so changing it changes
which record a phone maps to.
"""
import re
from dataclasses import dataclass
from typing import Optional

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

_STRIP_CHARS = re.compile(r"[\s\-().]")
_INTERNATIONAL_FORMAT = re.compile(r"^\+[1-9]\d{6,14}$")

# Calling code -> (min, max) digits in the national significant number
COUNTRY_RULES = {
    "1": (10, 10),   # US / Canada
    "7": (10, 10),   # Russia / Kazakhstan
    "33": (9, 9),    # France
    "34": (9, 9),    # Spain
    "39": (9, 11),   # Italy
    "44": (10, 10),  # UK
    "49": (10, 12),  # Germany
    "52": (10, 10),  # Mexico
    "55": (10, 11),  # Brazil
    "61": (9, 9),    # Australia
    "81": (10, 11),  # Japan
    "86": (11, 11),  # China
    "91": (10, 10),  # India
}

# National digits allowed when the calling code is not in COUNTRY_RULES
FALLBACK_NATIONAL_LENGTH = (6, 14)

REASON_MISSING = "missing"
REASON_INVALID_FORMAT = "invalid_format"
REASON_INVALID_LENGTH = "invalid_length"


@dataclass(frozen=True)
class PhoneValidationResult:
    valid: bool
    normalized: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None


def clean_phone(phone: str) -> str:
    """Strip whitespace, hyphens, parentheses and periods."""
    return _STRIP_CHARS.sub("", phone)


def normalize_phone(phone: str) -> str:
    """
    Convert free-form input to the canonical +<digits> form.

    A leading 00 becomes +. Input with neither gets a + prepended. This does
    not check validity; use validate_phone() for that.

    Examples:
        "+1 (415) 555-2671" -> "+14155552671"
        "00256 701 234 567" -> "+256701234567"
        "256701234567"      -> "+256701234567"
    """
    cleaned = clean_phone(phone)
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]
    return "+" + cleaned


def match_country_code(normalized: str) -> Optional[str]:
    """Return the known calling code that prefixes a normalized number, if any."""
    digits = normalized.lstrip("+")
    for length in (1, 2, 3):
        prefix = digits[:length]
        if prefix in COUNTRY_RULES:
            return prefix
    return None


def calling_code(normalized: str) -> str:
    """
    Return the ITU calling code of a normalized number.

    Calling codes are prefix-free, so the first 1-3 digit prefix assigned in
    phonenumbers' metadata is the code. Unassigned prefixes are taken as
    three digits, the longest a calling code can be.
    """
    digits = normalized.lstrip("+")
    for length in (1, 2, 3):
        prefix = digits[:length]
        if prefix.isdigit() and int(prefix) in phonenumbers.COUNTRY_CODE_TO_REGION_CODE:
            return prefix
    return digits[:3]


def validate_phone(phone) -> PhoneValidationResult:
    """
    Validate a raw phone number.

    Args:
        phone: Raw user input

    Returns:
        PhoneValidationResult with the normalized number when valid, or an
        error message plus a machine-readable reason when not
    """
    if not isinstance(phone, str) or not phone.strip():
        return PhoneValidationResult(
            valid=False,
            error="Phone number is required and must be a string",
            reason=REASON_MISSING,
        )

    normalized = normalize_phone(phone)

    if not _INTERNATIONAL_FORMAT.match(normalized):
        return PhoneValidationResult(
            valid=False,
            normalized=normalized,
            error="Phone number must be in international format (+country code followed by 7-15 digits)",
            reason=REASON_INVALID_FORMAT,
        )

    digits = normalized[1:]
    country_code = match_country_code(normalized) or calling_code(normalized)
    min_len, max_len = COUNTRY_RULES.get(country_code, FALLBACK_NATIONAL_LENGTH)
    national_len = len(digits) - len(country_code)

    if not min_len <= national_len <= max_len:
        expected = f"{min_len}" if min_len == max_len else f"{min_len}-{max_len}"
        return PhoneValidationResult(
            valid=False,
            normalized=normalized,
            error=(
                f"Invalid phone number length for country code +{country_code}. "
                f"Expected {expected} digits, got {national_len}"
            ),
            reason=REASON_INVALID_LENGTH,
        )

    return PhoneValidationResult(valid=True, normalized=normalized)


def is_valid_phone(phone) -> bool:
    return validate_phone(phone).valid


def phones_equal(a, b) -> bool:
    """Two inputs refer to the same phone iff their canonical forms match."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return normalize_phone(a) == normalize_phone(b)


def format_phone(phone: str) -> str:
    """
    Format a phone number for display, e.g. "+1 415-555-2671".

    Falls back to grouping digits in threes when phonenumbers cannot parse
    the input.
    """
    normalized = normalize_phone(phone)
    try:
        parsed = phonenumbers.parse(normalized, None)
        if phonenumbers.is_possible_number(parsed):
            return phonenumbers.format_number(parsed, PhoneNumberFormat.INTERNATIONAL)
    except NumberParseException:
        pass

    digits = normalized[1:]
    groups = [digits[i:i + 3] for i in range(0, len(digits), 3)]
    return "+" + " ".join(groups)


def get_phone_last4(phone: str) -> str:
    """
    Get last 4 digits of phone number for safe logging.

    Args:
        phone: Phone number (can be in any format)

    Returns:
        Last 4 digits as string, or all digits if fewer than 4
    """
    digits = "".join(filter(str.isdigit, phone or ""))
    if len(digits) >= 4:
        return digits[-4:]
    return digits
