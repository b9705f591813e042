"""CSV and JSON export of the ledger."""
import csv
import io
import json
from datetime import date
from enum import Enum
from typing import Dict, List, Mapping, Optional, Sequence

from signup_ledger.models.attendee import AttendeeRecord
from signup_ledger.utils.date_utils import format_date_key, format_long_date

EXPORT_PREFIX = "thanksgiving-calendar"

FULL_CSV_HEADER = ("Date", "Name", "Contact", "SlotPreference", "RecordedAt")
PUBLIC_CSV_HEADER = ("Date", "Name", "SlotPreference")


class ExportVariant(Enum):
    """Export mode: with contact numbers (full) or without (public)."""

    FULL = "backend"
    PUBLIC = "public"

    @classmethod
    def from_label(cls, label: str) -> "ExportVariant":
        """Accept "backend"/"full" and "public" (case-insensitive)."""
        normalized = (label or "").strip().lower()
        if normalized == "full":
            return cls.FULL
        return cls(normalized)


Ledger = Mapping[str, Sequence[AttendeeRecord]]


def export_filename(variant: ExportVariant, extension: str, today: Optional[date] = None) -> str:
    """
    Build an export file name.

    Returns:
        e.g. "thanksgiving-calendar-public-2025-11-20.csv"; the date is the
        generation date, not a slot date
    """
    today = today or date.today()
    return f"{EXPORT_PREFIX}-{variant.value}-{format_date_key(today)}.{extension}"


def ledger_to_dict(ledger: Ledger, variant: ExportVariant = ExportVariant.FULL) -> Dict[str, List[Dict[str, str]]]:
    """Serialize a ledger to its JSON document shape."""
    if variant is ExportVariant.PUBLIC:
        return {
            date_key: [record.to_public().to_dict() for record in records]
            for date_key, records in ledger.items()
        }
    return {
        date_key: [record.to_dict() for record in records]
        for date_key, records in ledger.items()
    }


def ledger_to_json(ledger: Ledger, variant: ExportVariant = ExportVariant.FULL) -> str:
    """Render a ledger as indented JSON text."""
    return json.dumps(ledger_to_dict(ledger, variant), ensure_ascii=False, indent=2)


def ledger_to_csv(ledger: Ledger, variant: ExportVariant = ExportVariant.FULL) -> str:
    """
    Render a ledger as CSV text.

    One row per attendee, in the ledger's key order then signup order. The header
    is plain; every data field is double-quoted. Dates are shown in long
    form ("Thursday, November 27, 2025"). No trailing newline.
    """
    include_contact = variant is ExportVariant.FULL
    header = FULL_CSV_HEADER if include_contact else PUBLIC_CSV_HEADER

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")

    for date_key, records in ledger.items():
        long_date = format_long_date(date_key)
        for record in records:
            if include_contact:
                writer.writerow([long_date, record.name, record.contact, record.slot_preference, record.recorded_at])
            else:
                writer.writerow([long_date, record.name, record.slot_preference])

    rows = buffer.getvalue()
    if not rows:
        return ",".join(header)
    return ",".join(header) + "\n" + rows[:-1]
