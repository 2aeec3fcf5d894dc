"""Streak derivation from a habit's completion history."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Optional

from ..domain.history import calendar_day
from ..models.habit import ACTIVE_STATUSES, CompletionEntry


def active_days(entries: Iterable[CompletionEntry]) -> list[date]:
    """Return the sorted calendar days holding a completed or skipped entry."""

    return sorted({calendar_day(e.occurred_on) for e in entries if e.status in ACTIVE_STATUSES})


def recompute_from_history(entries: Iterable[CompletionEntry]) -> tuple[int, Optional[date]]:
    """Return (streak, last_completed) rebuilt from the full history.

    Walks active days oldest first; the run grows while each day follows the
    previous one. Missing days and ``incomplete`` entries both break it.
    """

    days = active_days(entries)
    if not days:
        return 0, None

    run = 0
    previous: date | None = None
    for day in days:
        if previous is not None and day == previous + timedelta(days=1):
            run += 1
        else:
            run = 1
        previous = day

    return run, days[-1]


def longest_streak(entries: Iterable[CompletionEntry]) -> int:
    """Return the longest run of consecutive active days ever recorded."""

    longest = 0
    run = 0
    last_day: date | None = None
    for day in active_days(entries):
        if last_day is not None and day == last_day + timedelta(days=1):
            run += 1
        else:
            run = 1
        longest = max(longest, run)
        last_day = day
    return longest


def continues_streak(entries: Iterable[CompletionEntry], day: date) -> bool:
    """True when the calendar day before ``day`` is active."""

    previous = calendar_day(day) - timedelta(days=1)
    return any(
        calendar_day(e.occurred_on) == previous and e.status in ACTIVE_STATUSES for e in entries
    )


@dataclass(slots=True, frozen=True)
class Badge:
    """Streak milestone."""

    level: int
    name: str
    days: int
    unlocked: bool = False

    def to_dict(self) -> dict:
        return {"level": self.level, "name": self.name, "days": self.days, "unlocked": self.unlocked}


BADGE_MILESTONES: tuple[tuple[int, str, int], ...] = (
    (1, "Day One", 1),
    (2, "Week Warrior", 7),
    (3, "Habit Former", 21),
    (4, "Month Master", 30),
    (5, "Halfway Hero", 50),
    (6, "Century Champion", 100),
    (7, "Double Century", 200),
    (8, "Triple Century", 300),
    (9, "Year Master", 365),
)


def badges_for_streak(streak: int) -> list[Badge]:
    return [
        Badge(level=level, name=name, days=days, unlocked=streak >= days)
        for level, name, days in BADGE_MILESTONES
    ]


def highest_badge(streak: int) -> Optional[Badge]:
    unlocked = [badge for badge in badges_for_streak(streak) if badge.unlocked]
    return unlocked[-1] if unlocked else None


__all__ = [
    "BADGE_MILESTONES",
    "Badge",
    "active_days",
    "badges_for_streak",
    "continues_streak",
    "highest_badge",
    "longest_streak",
    "recompute_from_history",
]
