"""Unit tests for validation utilities."""
import pytest

from signup_ledger.utils.exceptions import ValidationError
from signup_ledger.utils.validation import (
    is_blank,
    is_date_key_format,
    normalize_name,
    require_fields,
    validate_slot_preference,
)


class TestNormalizeName:
    """Test name normalization for duplicate checks."""

    def test_trims_whitespace(self):
        assert normalize_name("  Alice  ") == "alice"

    def test_case_insensitive(self):
        """Test "ALICE" and "alice" normalize the same."""
        assert normalize_name("ALICE") == normalize_name("alice")

    def test_preserves_internal_spacing(self):
        assert normalize_name("Mary  Jo") == "mary  jo"

    def test_casefold_handles_special_characters(self):
        assert normalize_name("STRASSE") == normalize_name("straße")


class TestRequireFields:
    """Test required field checks."""

    def test_all_present(self):
        require_fields(name="Alice", contact="555-0001")

    def test_missing_field_raises_error(self):
        """Test a blank field is reported by name."""
        with pytest.raises(ValidationError, match="Missing required fields: contact"):
            require_fields(name="Alice", contact="")

    def test_whitespace_only_is_missing(self):
        with pytest.raises(ValidationError, match="name"):
            require_fields(name="   ", contact="555-0001")

    def test_none_is_missing(self):
        with pytest.raises(ValidationError, match="name, contact"):
            require_fields(name=None, contact=None)

    def test_is_blank_rejects_non_strings(self):
        assert is_blank(42) is True
        assert is_blank("x") is False


class TestDateKeyFormat:
    """Test date key shape check."""

    def test_valid_key(self):
        assert is_date_key_format("2025-11-27") is True

    def test_other_formats_rejected(self):
        assert is_date_key_format("11/27/2025") is False
        assert is_date_key_format("2025-11-27T00:00") is False
        assert is_date_key_format(20251127) is False


class TestValidateSlotPreference:
    """Test slot preference checks."""

    def test_free_form_when_no_allowed_list(self):
        validate_slot_preference("Any time works", None)

    def test_allowed_label_accepted(self):
        validate_slot_preference(" 8:00 AM ", ["8:00 AM", "10:30 AM"])

    def test_unknown_label_rejected(self):
        with pytest.raises(ValidationError, match="must be one of: 8:00 AM, 10:30 AM"):
            validate_slot_preference("Noon", ["8:00 AM", "10:30 AM"])
