"""Signup ledger: the authoritative mapping from date key to attendees."""
import logging
import threading
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from signup_ledger.models.attendee import AttendeeRecord, PublicAttendee
from signup_ledger.services.backends import ArtifactInfo, PersistenceBackend
from signup_ledger.services.calendar_service import generate_slot_dates
from signup_ledger.services.export_service import (
    ExportVariant,
    export_filename,
    ledger_to_csv,
    ledger_to_dict,
    ledger_to_json,
)
from signup_ledger.utils.date_utils import utc_timestamp
from signup_ledger.utils.exceptions import (
    ConflictError,
    StorageUnavailable,
    ValidationError,
)
from signup_ledger.utils.validation import (
    is_date_key_format,
    normalize_name,
    require_fields,
    validate_slot_preference,
)

logger = logging.getLogger(__name__)

Ledger = Dict[str, List[AttendeeRecord]]
CommitHook = Callable[[Ledger], None]


def parse_ledger(raw: Dict[str, Any]) -> Ledger:
    """
    Convert a persisted JSON document into attendee records.

    Raises:
        StorageUnavailable: If the document is malformed
    """
    try:
        return {
            date_key: [AttendeeRecord.from_dict(item) for item in records]
            for date_key, records in raw.items()
        }
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        logger.error("Persisted calendar data is malformed: %s", e)
        raise StorageUnavailable("Persisted calendar data is malformed") from e


class SignupLedger:
    """
    Reads, signups and exports over one persistence backend.

    Every signup reloads the persisted document, checks it, appends and
    writes the whole document back while holding both an in-process lock
    and the backend's lock, so concurrent signups never lose each other.
    """

    def __init__(
        self,
        backend: PersistenceBackend,
        *,
        clock: Optional[Callable[[], datetime]] = None,
        enforce_slot_dates: bool = False,
        allowed_slot_preferences: Optional[Iterable[str]] = None,
        on_commit: Iterable[CommitHook] = (),
    ) -> None:
        self._backend = backend
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._enforce_slot_dates = enforce_slot_dates
        self._allowed_slot_preferences = (
            list(allowed_slot_preferences) if allowed_slot_preferences is not None else None
        )
        self._on_commit: List[CommitHook] = list(on_commit)
        self._write_lock = threading.Lock()
        self._data: Optional[Ledger] = None
        # Set by load_or_empty: the next signup replaces an unreadable document
        self._replace_unreadable = False

    @property
    def backend(self) -> PersistenceBackend:
        return self._backend

    def add_commit_hook(self, hook: CommitHook) -> None:
        """Register a callback run with the ledger after every signup."""
        self._on_commit.append(hook)

    # ---------------- Reads ----------------
    def load(self) -> Ledger:
        """
        Fetch persisted state from the backend.

        Raises:
            StorageUnavailable: If the backend cannot be read
        """
        self._data = parse_ledger(self._backend.read())
        self._replace_unreadable = False
        return self.get_all()

    def load_or_empty(self) -> Ledger:
        """
        Load, falling back to an empty in-memory ledger on storage failure.

        After a fallback the next signup replaces the unreadable document
        instead of failing on it again.
        """
        try:
            return self.load()
        except StorageUnavailable:
            logger.warning("Calendar data unavailable, starting with an empty ledger", exc_info=True)
            self._data = {}
            self._replace_unreadable = True
            return {}

    def _snapshot(self) -> Ledger:
        if self._data is None:
            self.load()
        return self._data

    def get_all(self) -> Ledger:
        """Return the full ledger, including contact numbers."""
        return {date_key: list(records) for date_key, records in self._snapshot().items()}

    def get_public_view(self) -> Dict[str, List[PublicAttendee]]:
        """Return names and slot preferences only."""
        return {
            date_key: [record.to_public() for record in records]
            for date_key, records in self._snapshot().items()
        }

    def get_by_date(self, date_key: str) -> List[AttendeeRecord]:
        """Return the records for a date, or [] if none (never raises)."""
        try:
            return list(self._snapshot().get(date_key, []))
        except StorageUnavailable:
            logger.warning("Could not read attendees for %s", date_key, exc_info=True)
            return []

    # ---------------- Writes ----------------
    def _validate_signup(self, date_key: str, name: str, contact: str, slot_preference: str) -> None:
        require_fields(
            date_key=date_key,
            name=name,
            contact=contact,
            slot_preference=slot_preference,
        )
        validate_slot_preference(slot_preference, self._allowed_slot_preferences)

        if not self._enforce_slot_dates:
            return
        if not is_date_key_format(date_key):
            raise ValidationError(f"Date must be in YYYY-MM-DD format: {date_key}")
        if date_key not in generate_slot_dates(self._clock()):
            raise ValidationError(f"Date is not an available slot: {date_key}")

    def add_attendee(self, date_key: str, name: str, contact: str, slot_preference: str) -> AttendeeRecord:
        """
        Sign a person up for a date.

        Args:
            date_key: Slot date (YYYY-MM-DD)
            name: Attendee name, unique per date ignoring case and
                surrounding whitespace
            contact: Contact (phone) number
            slot_preference: Preferred slot label

        Returns:
            The stored AttendeeRecord

        Raises:
            ValidationError: If a field is missing or not allowed
            ConflictError: If the name is already signed up for the date
            StorageUnavailable: If the ledger cannot be read or written
        """
        self._validate_signup(date_key, name, contact, slot_preference)

        with self._write_lock, self._backend.lock():
            # Reload to check against the latest persisted state
            data = self._reload_for_update()
            self._data = data
            records = data.get(date_key, [])

            normalized = normalize_name(name)
            if any(normalize_name(record.name) == normalized for record in records):
                logger.info("Rejected duplicate signup for %s", date_key)
                raise ConflictError()

            record = AttendeeRecord(
                name=name.strip(),
                contact=contact.strip(),
                slot_preference=slot_preference.strip(),
                recorded_at=utc_timestamp(self._clock()),
            )
            updated = dict(data)
            updated[date_key] = records + [record]
            self._backend.write(ledger_to_dict(updated))
            self._data = updated
            self._replace_unreadable = False

        logger.info("Added %s to %s", record.name, date_key)
        self._run_commit_hooks()
        return record

    def _reload_for_update(self) -> Ledger:
        try:
            return parse_ledger(self._backend.read())
        except StorageUnavailable:
            if not self._replace_unreadable:
                raise
            logger.warning("Overwriting unreadable calendar data with the in-memory ledger")
            return dict(self._data or {})

    def clear_all(self) -> None:
        """
        Delete every signup and written artifact (operator reset).

        Raises:
            NotImplementedError: If the backend cannot be cleared
        """
        with self._write_lock, self._backend.lock():
            self._backend.clear()
            self._data = {}
            self._replace_unreadable = False
        logger.warning("Cleared all calendar data on the %s backend", self._backend.name)

    def _run_commit_hooks(self) -> None:
        snapshot = self.get_all()
        for hook in self._on_commit:
            try:
                hook(snapshot)
            except Exception:
                # The signup is already durable; follow-up work must not undo it
                logger.exception("Post-signup hook %r failed", hook)

    # ---------------- Exports ----------------
    def export_csv(self, variant: ExportVariant = ExportVariant.FULL) -> str:
        """Render the ledger (or its public projection) as CSV text."""
        return ledger_to_csv(self._snapshot(), variant)

    def export_json(self, variant: ExportVariant = ExportVariant.FULL) -> str:
        """Render the ledger (or its public projection) as JSON text."""
        return ledger_to_json(self._snapshot(), variant)

    def write_csv(self, variant: ExportVariant, today: Optional[date] = None) -> str:
        """
        Write a CSV export to the backend as an artifact.

        Returns:
            The artifact file name
        """
        filename = export_filename(variant, "csv", today)
        location = self._backend.write_artifact(filename, self.export_csv(variant))
        logger.info("Wrote %s CSV to %s", variant.value, location)
        return filename

    def write_csv_files(self, today: Optional[date] = None) -> List[str]:
        """Write both CSV variants; returns their file names."""
        return [self.write_csv(variant, today) for variant in ExportVariant]

    def list_csv_files(self) -> List[ArtifactInfo]:
        """List previously written CSV artifacts, newest first."""
        return self._backend.list_artifacts()

    def read_csv_file(self, filename: str) -> Optional[str]:
        """Return a written CSV artifact, or None if it does not exist."""
        return self._backend.read_artifact(filename)
