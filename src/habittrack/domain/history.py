"""Per-habit completion log keyed by calendar day."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import MutableSequence, Optional

from ..errors import DuplicateEntryError, NotFoundError, ValidationError
from ..models.habit import CompletionEntry, EntryStatus, HonestyStatus

NOT_DONE = "not-done"


def calendar_day(value: date | datetime) -> date:
    """Drop the time of day so entries compare by server-local calendar day."""

    if isinstance(value, datetime):
        return value.date()
    return value


def week_start(day: date) -> date:
    """Return the Monday of the week containing ``day``."""

    return day - timedelta(days=day.weekday())


@dataclass(slots=True)
class DayStatus:
    """One cell of the Monday-Sunday weekly grid."""

    date: date
    day_name: str
    status: str
    is_today: bool
    is_future: bool

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "day_name": self.day_name,
            "status": self.status,
            "is_today": self.is_today,
            "is_future": self.is_future,
        }


class CompletionHistory:
    """Append-only view over a habit's entries with point removal for undo.

    Wraps the mutable ``entries`` sequence (normally the ORM relationship
    list) so appends and removals flow straight through to persistence.
    """

    def __init__(self, entries: MutableSequence[CompletionEntry]) -> None:
        self._entries = entries

    def __iter__(self):
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list[CompletionEntry]:
        return list(self._entries)

    def find_entry_for_date(self, day: date | datetime) -> Optional[CompletionEntry]:
        target = calendar_day(day)
        for entry in self._entries:
            if calendar_day(entry.occurred_on) == target:
                return entry
        return None

    def append(self, entry: CompletionEntry) -> CompletionEntry:
        entry.occurred_on = calendar_day(entry.occurred_on)
        existing = self.find_entry_for_date(entry.occurred_on)
        if existing is not None:
            raise DuplicateEntryError(
                f"Day {entry.occurred_on.isoformat()} is already marked as {existing.status}."
            )
        self._entries.append(entry)
        return entry

    def remove_for_date(self, day: date | datetime) -> CompletionEntry:
        entry = self.find_entry_for_date(day)
        if entry is None:
            raise NotFoundError(f"No entry recorded for {calendar_day(day).isoformat()}.")
        self._entries.remove(entry)
        return entry

    def update_honesty(self, day: date | datetime, honesty_status: str) -> CompletionEntry:
        """Annotate an entry in place.

        A ``not-really`` answer downgrades the entry to ``incomplete``. The
        cached streak on the habit is left alone until the next recompute.
        """

        try:
            normalized = HonestyStatus(honesty_status).value
        except ValueError as exc:
            raise ValidationError(f"Unknown honesty status: {honesty_status!r}") from exc
        entry = self.find_entry_for_date(day)
        if entry is None:
            raise NotFoundError(f"No entry recorded for {calendar_day(day).isoformat()}.")
        entry.honesty_status = normalized
        if normalized == HonestyStatus.NOT_REALLY.value:
            entry.status = EntryStatus.INCOMPLETE.value
        return entry

    def skipped_in_week(self, day: date | datetime) -> list[CompletionEntry]:
        monday = week_start(calendar_day(day))
        sunday = monday + timedelta(days=6)
        return [
            entry
            for entry in self._entries
            if entry.status == EntryStatus.SKIPPED.value
            and monday <= calendar_day(entry.occurred_on) <= sunday
        ]

    def week_status(self, reference: date | datetime, *, today: date) -> list[DayStatus]:
        """Return the 7-day Monday-Sunday grid around ``reference``."""

        monday = week_start(calendar_day(reference))
        week: list[DayStatus] = []
        for offset in range(7):
            current = monday + timedelta(days=offset)
            entry = self.find_entry_for_date(current)
            week.append(
                DayStatus(
                    date=current,
                    day_name=current.strftime("%a"),
                    status=entry.status if entry else NOT_DONE,
                    is_today=current == today,
                    is_future=current > today,
                )
            )
        return week


__all__ = ["CompletionHistory", "DayStatus", "NOT_DONE", "calendar_day", "week_start"]
