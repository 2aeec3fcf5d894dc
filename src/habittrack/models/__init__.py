"""SQLModel table exports."""

from .habit import (
    ACTIVE_STATUSES,
    CompletionEntry,
    EntryStatus,
    Habit,
    HabitFrequency,
    HabitStatus,
    HonestyStatus,
)

__all__ = [
    "ACTIVE_STATUSES",
    "CompletionEntry",
    "EntryStatus",
    "Habit",
    "HabitFrequency",
    "HabitStatus",
    "HonestyStatus",
]
