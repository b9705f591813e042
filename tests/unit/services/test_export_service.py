"""Unit tests for ledger export."""
import json
from datetime import date

import pytest

from signup_ledger.models.attendee import AttendeeRecord
from signup_ledger.services.export_service import (
    ExportVariant,
    export_filename,
    ledger_to_csv,
    ledger_to_dict,
    ledger_to_json,
)


@pytest.fixture
def ledger():
    return {
        "2025-11-27": [
            AttendeeRecord(name="Bob", contact="555-1234", slot_preference="8:00 AM", recorded_at="2025-01-01T00:00:00Z"),
        ]
    }


class TestExportVariant:
    """Test variant labels."""

    def test_labels(self):
        assert ExportVariant.from_label("backend") is ExportVariant.FULL
        assert ExportVariant.from_label("full") is ExportVariant.FULL
        assert ExportVariant.from_label(" PUBLIC ") is ExportVariant.PUBLIC

    def test_unknown_label_raises_error(self):
        with pytest.raises(ValueError):
            ExportVariant.from_label("secret")

    def test_filename_uses_generation_date(self):
        name = export_filename(ExportVariant.PUBLIC, "csv", date(2025, 11, 20))

        assert name == "thanksgiving-calendar-public-2025-11-20.csv"


class TestLedgerToCsv:
    """Test CSV rendering."""

    def test_full_csv(self, ledger):
        assert ledger_to_csv(ledger, ExportVariant.FULL) == (
            'Date,Name,Contact,SlotPreference,RecordedAt\n'
            '"Thursday, November 27, 2025","Bob","555-1234","8:00 AM","2025-01-01T00:00:00Z"'
        )

    def test_public_csv_omits_contact(self, ledger):
        assert ledger_to_csv(ledger, ExportVariant.PUBLIC) == (
            'Date,Name,SlotPreference\n'
            '"Thursday, November 27, 2025","Bob","8:00 AM"'
        )

    def test_empty_ledger_is_header_only(self):
        assert ledger_to_csv({}, ExportVariant.FULL) == "Date,Name,Contact,SlotPreference,RecordedAt"
        assert ledger_to_csv({"2025-11-30": []}, ExportVariant.PUBLIC) == "Date,Name,SlotPreference"

    def test_row_order_follows_keys_then_signups(self):
        ledger = {
            "2025-12-07": [
                AttendeeRecord(name="Carol", contact="3", slot_preference="A", recorded_at=""),
                AttendeeRecord(name="Ann", contact="1", slot_preference="B", recorded_at=""),
            ],
            "2025-11-30": [AttendeeRecord(name="Dan", contact="4", slot_preference="C", recorded_at="")],
        }

        rows = ledger_to_csv(ledger, ExportVariant.PUBLIC).split("\n")[1:]

        assert [row.split('","')[1] for row in rows] == ["Carol", "Ann", "Dan"]

    def test_embedded_quotes_are_doubled(self):
        ledger = {"2025-11-30": [AttendeeRecord(name='Bob "B"', contact="1", slot_preference="x", recorded_at="")]}

        assert '"Bob ""B"""' in ledger_to_csv(ledger, ExportVariant.PUBLIC)


class TestLedgerToJson:
    """Test JSON rendering."""

    def test_full_json_uses_persisted_field_names(self, ledger):
        assert ledger_to_dict(ledger) == {
            "2025-11-27": [{"name": "Bob", "phone": "555-1234", "mass": "8:00 AM", "addedAt": "2025-01-01T00:00:00Z"}]
        }

    def test_public_json_has_name_and_slot_only(self, ledger):
        assert json.loads(ledger_to_json(ledger, ExportVariant.PUBLIC)) == {
            "2025-11-27": [{"name": "Bob", "mass": "8:00 AM"}]
        }
