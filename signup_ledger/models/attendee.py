"""Attendee data models for the signup ledger."""
from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class AttendeeRecord:
    """One person's signup for a date."""

    name: str
    contact: str
    slot_preference: str
    recorded_at: str  # ISO 8601 for new signups; stored text is kept as-is

    def __post_init__(self):
        """Validate attendee data."""
        if not self.name or not self.name.strip():
            raise ValueError("Name cannot be empty")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendeeRecord":
        """
        Build a record from its persisted JSON object.

        Args:
            data: {"name", "phone", "mass", "addedAt"}; extra keys are ignored

        Raises:
            KeyError: If "name" is missing
            ValueError: If the record is invalid
        """
        return cls(
            name=data["name"],
            contact=data.get("phone", ""),
            slot_preference=data.get("mass", ""),
            recorded_at=data.get("addedAt", ""),
        )

    def to_dict(self) -> Dict[str, str]:
        """Return the persisted JSON object for this record."""
        return {
            "name": self.name,
            "phone": self.contact,
            "mass": self.slot_preference,
            "addedAt": self.recorded_at,
        }

    def to_public(self) -> "PublicAttendee":
        """Project away the contact number and timestamp."""
        return PublicAttendee(name=self.name, slot_preference=self.slot_preference)


@dataclass(frozen=True)
class PublicAttendee:
    """Publicly visible part of a signup."""

    name: str
    slot_preference: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "mass": self.slot_preference}
