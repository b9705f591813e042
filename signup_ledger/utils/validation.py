"""Data validation utilities."""
import re
from typing import Iterable, Optional

from signup_ledger.utils.exceptions import ValidationError

DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def normalize_name(name: str) -> str:
    """
    Normalize name for duplicate comparison.

    Args:
        name: Name to normalize

    Returns:
        Normalized name (trimmed, lowercased)

    Behavior:
        - Trims leading/trailing whitespace
        - Case-insensitive (casefold), so "ALICE" == "alice"
        - Preserves internal spacing
    """
    return name.strip().casefold()


def is_blank(value: Optional[str]) -> bool:
    """Return True for None, non-strings and whitespace-only strings."""
    return not isinstance(value, str) or not value.strip()


def require_fields(**fields: Optional[str]) -> None:
    """
    Ensure every keyword argument holds a non-empty string.

    Raises:
        ValidationError: listing the missing field names
    """
    missing = [field for field, value in fields.items() if is_blank(value)]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")


def is_date_key_format(date_key: str) -> bool:
    """Check that a date key looks like YYYY-MM-DD."""
    return isinstance(date_key, str) and bool(DATE_KEY_PATTERN.match(date_key))


def validate_slot_preference(slot_preference: str, allowed: Optional[Iterable[str]]) -> None:
    """
    Check a slot preference against the allowed labels.

    Args:
        slot_preference: Submitted label
        allowed: Allowed labels, or None to accept free-form text

    Raises:
        ValidationError: If the label is not one of the allowed ones
    """
    if allowed is None:
        return
    options = list(allowed)
    if slot_preference.strip() not in options:
        raise ValidationError(
            f"Slot preference must be one of: {', '.join(options)}"
        )
