"""Slot calendar generation: the weekly dates users can sign up for."""
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Iterator, List, Optional, Union

from signup_ledger.utils.date_utils import format_date_key

# datetime.weekday() numbering: Monday == 0, Sunday == 6
SUNDAY = 6
SLOT_WEEKDAY = SUNDAY


def _as_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(frozen=True)
class SlotCalendar:
    """
    Weekly slot dates from a reference day through the end of the season.

    Iterating yields `date` objects; each iteration starts over, so the
    same calendar can be walked any number of times.
    """

    reference: date
    weekday: int = SLOT_WEEKDAY
    season_end: Optional[date] = None

    @property
    def end(self) -> date:
        """Last day of the season (December 31 of the reference year by default)."""
        return self.season_end or date(self.reference.year, 12, 31)

    @property
    def start(self) -> date:
        """First slot date on or after the reference day."""
        days_ahead = (self.weekday - self.reference.weekday()) % 7
        return self.reference + timedelta(days=days_ahead)

    def __iter__(self) -> Iterator[date]:
        current = self.start
        end = self.end
        while current <= end:
            yield current
            current += timedelta(days=7)

    def date_keys(self) -> List[str]:
        """Return the slot dates as YYYY-MM-DD keys."""
        return [format_date_key(day) for day in self]

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return item in self.date_keys()
        if isinstance(item, (date, datetime)):
            return _as_date(item) in list(self)
        return False


def generate_slot_dates(
    reference: Optional[Union[date, datetime]] = None,
    weekday: int = SLOT_WEEKDAY,
    season_end: Optional[date] = None,
) -> SlotCalendar:
    """
    Build the selectable slot dates for the current season.

    Args:
        reference: Reference instant (defaults to now); only its calendar
            date is used
        weekday: Slot weekday, Monday=0 .. Sunday=6 (default Sunday)
        season_end: Last eligible day (default December 31 of the
            reference year)

    Returns:
        SlotCalendar yielding every `weekday` from the first one on or
        after the reference date through `season_end`, inclusive. Empty
        when no such weekday is left in the season.
    """
    if not 0 <= weekday <= 6:
        raise ValueError(f"weekday must be between 0 and 6, got: {weekday}")
    reference_day = _as_date(reference or datetime.now())
    return SlotCalendar(reference=reference_day, weekday=weekday, season_end=season_end)
