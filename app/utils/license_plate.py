"""License plate normalization, formatting, and validation.

Every plate comparison in the system goes through normalize_license_plate:
Vehicle.normalized_plate is the lookup key, Vehicle.license_plate is only
for display.
"""

import hashlib
import re

from ..constants import (
    PLATE_MAX_LENGTH,
    PLATE_MIN_LENGTH,
    PLATE_VALID_PATTERN,
    VALIDATION_MESSAGES,
)

_NON_ALNUM = re.compile(r"[^A-Z0-9]")
_INPUT_DISALLOWED = re.compile(r"[^A-Z0-9\s-]")
_LETTERS_THEN_DIGITS = re.compile(r"^([A-Z]{2,4})([0-9]{2,6})$")
_STATE_PATTERN = re.compile(r"^([A-Z]{2})[0-9]|[0-9]([A-Z]{2})$")


def normalize_license_plate(plate: str) -> str:
    """Uppercase and strip everything except A-Z / 0-9."""
    return _NON_ALNUM.sub("", (plate or "").strip().upper())


def format_license_plate(plate: str) -> str:
    """Display form: ABC123 -> "ABC 123"; otherwise split at the midpoint."""
    normalized = normalize_license_plate(plate)
    if len(normalized) <= 3:
        return normalized

    match = _LETTERS_THEN_DIGITS.match(normalized)
    if match:
        return f"{match.group(1)} {match.group(2)}"

    mid = len(normalized) // 2
    return f"{normalized[:mid]} {normalized[mid:]}"


def validate_license_plate(plate: str) -> tuple[bool, str | None]:
    """Return (is_valid, error_message)."""
    if not plate or not plate.strip():
        return False, VALIDATION_MESSAGES["plate_required"]

    normalized = normalize_license_plate(plate)
    if len(normalized) < PLATE_MIN_LENGTH:
        return False, VALIDATION_MESSAGES["plate_min_length"]
    if len(normalized) > PLATE_MAX_LENGTH:
        return False, VALIDATION_MESSAGES["plate_max_length"]
    if not PLATE_VALID_PATTERN.match(normalized):
        return False, VALIDATION_MESSAGES["plate_invalid"]
    return True, None


def sanitize_license_plate_input(value: str) -> str:
    """Clean raw form input while keeping the user's spacing and dashes."""
    cleaned = _INPUT_DISALLOWED.sub("", (value or "").upper())
    return cleaned[: PLATE_MAX_LENGTH + 2]


def are_license_plates_equal(plate1: str, plate2: str) -> bool:
    return normalize_license_plate(plate1) == normalize_license_plate(plate2)


def hash_license_plate(plate: str) -> str:
    """SHA-256 hex of the normalized plate, for anonymized reporting."""
    return hashlib.sha256(normalize_license_plate(plate).encode("utf-8")).hexdigest()


def mask_license_plate(plate: str, reveal_chars: int = 3) -> str:
    """Hide all but the first characters: "ABC 123" -> "ABC ***"."""
    normalized = normalize_license_plate(plate)
    if len(normalized) <= reveal_chars:
        return format_license_plate(normalized)

    masked = normalized[:reveal_chars] + "*" * (len(normalized) - reveal_chars)
    if len(masked) <= 3:
        return masked
    # Keep the same split point the unmasked display form would use
    match = _LETTERS_THEN_DIGITS.match(normalized)
    mid = match.end(1) if match else len(masked) // 2
    return f"{masked[:mid]} {masked[mid:]}"


def extract_state_code(plate: str) -> str | None:
    """Two-letter state prefix (CA1234567) or suffix (1234567NY), if present."""
    match = _STATE_PATTERN.search(normalize_license_plate(plate))
    if not match:
        return None
    return match.group(1) or match.group(2)
