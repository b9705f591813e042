"""Unit tests for attendee models."""
import pytest

from signup_ledger.models.attendee import AttendeeRecord, PublicAttendee


class TestAttendeeRecord:
    """Test AttendeeRecord dataclass."""

    def test_from_dict_uses_persisted_field_names(self):
        record = AttendeeRecord.from_dict(
            {"name": "Bob", "phone": "555-1234", "mass": "8:00 AM", "addedAt": "2025-01-01T00:00:00Z"}
        )

        assert record.name == "Bob"
        assert record.contact == "555-1234"
        assert record.slot_preference == "8:00 AM"
        assert record.recorded_at == "2025-01-01T00:00:00Z"

    def test_to_dict_round_trips(self):
        data = {"name": "Bob", "phone": "555-1234", "mass": "8:00 AM", "addedAt": "2025-01-01T00:00:00.000Z"}
        assert AttendeeRecord.from_dict(data).to_dict() == data

    def test_missing_optional_fields_default_to_empty(self):
        """Test legacy records without addedAt still load."""
        record = AttendeeRecord.from_dict({"name": "Bob"})

        assert record.contact == ""
        assert record.recorded_at == ""

    def test_missing_name_raises_key_error(self):
        with pytest.raises(KeyError):
            AttendeeRecord.from_dict({"phone": "555-1234"})

    def test_empty_name_raises_error(self):
        with pytest.raises(ValueError, match="Name cannot be empty"):
            AttendeeRecord(name="  ", contact="1", slot_preference="8:00 AM", recorded_at="")

    def test_non_iso_timestamp_is_kept_as_stored(self):
        """Test hand-edited timestamps do not make a record invalid."""
        record = AttendeeRecord.from_dict({"name": "Bob", "addedAt": "Sun Nov 30 2025"})

        assert record.to_dict()["addedAt"] == "Sun Nov 30 2025"

    def test_record_is_immutable(self):
        record = AttendeeRecord(name="Bob", contact="1", slot_preference="8:00 AM", recorded_at="")
        with pytest.raises(AttributeError):
            record.name = "Alice"


class TestPublicAttendee:
    """Test the public projection."""

    def test_to_public_drops_contact_and_timestamp(self):
        record = AttendeeRecord(
            name="Bob", contact="555-1234", slot_preference="8:00 AM", recorded_at="2025-01-01T00:00:00Z"
        )

        public = record.to_public()

        assert public == PublicAttendee(name="Bob", slot_preference="8:00 AM")
        assert public.to_dict() == {"name": "Bob", "mass": "8:00 AM"}
