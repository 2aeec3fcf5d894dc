"""Timer and daily completion transitions for a single habit.

Every transition takes the current time explicitly so callers (and tests)
decide what "today" means. Calendar days are server-local.

    idle --start--> in-progress --pause--> idle
      \\                 |
       `----complete----'--> idle (entry for today appended)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Optional

from ..errors import (
    ConflictError,
    ConsecutiveSkipError,
    DuplicateEntryError,
    ValidationError,
    WeeklySkipLimitError,
)
from ..models.habit import CompletionEntry, EntryStatus, Habit, HabitStatus
from ..services.streaks import continues_streak, recompute_from_history
from .history import CompletionHistory, calendar_day

MIN_REFLECTION_LENGTH = 5
QUICK_COMPLETION_SECONDS = 60

FLAG_COMPLETED_QUICKLY = "completed very quickly"
FLAG_NO_TIMER = "completed without timer"


@dataclass(slots=True)
class CompletionResult:
    """Outcome of ``complete``: the appended entry plus advisory flags."""

    entry: CompletionEntry
    pattern_flags: list[str] = field(default_factory=list)


def history_of(habit: Habit) -> CompletionHistory:
    return CompletionHistory(habit.entries)


def elapsed_seconds(habit: Habit, now: datetime) -> int:
    """Seconds on the running timer, 0 when idle."""

    if not habit.in_progress or habit.started_at is None:
        return 0
    return max(0, int((now - habit.started_at).total_seconds()))


def tracked_seconds(habit: Habit, now: datetime) -> int:
    """Paused time accumulated today plus the running session."""

    return (habit.paused_duration or 0) + elapsed_seconds(habit, now)


def meets_minimum_duration(habit: Habit, now: datetime) -> bool:
    if not habit.minimum_duration:
        return True
    return tracked_seconds(habit, now) >= habit.minimum_duration * 60


def was_started(habit: Habit) -> bool:
    return habit.started_at is not None or (habit.paused_duration or 0) > 0


def detect_patterns(habit: Habit, duration: Optional[int]) -> list[str]:
    """Soft accountability heuristics; evaluated before the habit is mutated."""

    flags: list[str] = []
    started = was_started(habit)
    if not started and duration is not None and duration < QUICK_COMPLETION_SECONDS:
        flags.append(FLAG_COMPLETED_QUICKLY)
    if not started and not habit.in_progress:
        flags.append(FLAG_NO_TIMER)
    return flags


def start(habit: Habit, *, other_in_progress: Optional[Habit], now: datetime) -> Habit:
    if habit.in_progress:
        raise ConflictError(f'"{habit.name}" is already in progress.')
    if other_in_progress is not None and other_in_progress is not habit:
        raise ConflictError(
            f'Please complete or pause "{other_in_progress.name}" first. '
            "Only one habit can be in progress at a time."
        )
    if history_of(habit).find_entry_for_date(now) is not None:
        raise DuplicateEntryError(f'"{habit.name}" already has an entry for today.')

    habit.status = HabitStatus.IN_PROGRESS.value
    habit.started_at = now
    return habit


def pause(habit: Habit, now: datetime) -> Habit:
    """Bank the running session into ``paused_duration``; no-op when idle."""

    if not habit.in_progress:
        return habit
    habit.paused_duration = tracked_seconds(habit, now)
    habit.status = HabitStatus.IDLE.value
    habit.started_at = None
    return habit


def _apply_continuation(habit: Habit, day: date) -> None:
    if continues_streak(habit.entries, day):
        habit.streak = (habit.streak or 0) + 1
    else:
        habit.streak = 1


def complete(
    habit: Habit,
    *,
    duration: Optional[int] = None,
    reflection: Optional[str] = None,
    now: datetime,
) -> CompletionResult:
    today = calendar_day(now)
    history = history_of(habit)

    existing = history.find_entry_for_date(today)
    if existing is not None:
        if existing.status == EntryStatus.SKIPPED.value:
            raise DuplicateEntryError("Cannot complete a day already marked as skipped.")
        raise DuplicateEntryError("Habit already completed today.")

    if reflection is not None:
        reflection = reflection.strip()
        if len(reflection) < MIN_REFLECTION_LENGTH:
            raise ValidationError(
                f"Please provide a meaningful reflection (at least {MIN_REFLECTION_LENGTH} characters)."
            )
    if duration is not None and duration < 0:
        raise ValidationError("Duration cannot be negative.")

    flags = detect_patterns(habit, duration)
    if duration is None and was_started(habit):
        duration = tracked_seconds(habit, now)

    # streak continuation must be read before today's entry exists
    _apply_continuation(habit, today)
    entry = history.append(
        CompletionEntry(
            occurred_on=today,
            status=EntryStatus.COMPLETED.value,
            duration=duration,
            reflection=reflection or None,
            recorded_at=now,
        )
    )

    habit.status = HabitStatus.IDLE.value
    habit.started_at = None
    habit.paused_duration = 0
    habit.completed_at = now
    habit.last_completed = today
    return CompletionResult(entry=entry, pattern_flags=flags)


def skip_day(habit: Habit, day: Optional[date | datetime] = None, *, now: datetime) -> CompletionEntry:
    today = calendar_day(now)
    target = calendar_day(day) if day is not None else today
    if target > today:
        raise ValidationError("Cannot skip a day in the future.")

    history = history_of(habit)
    existing = history.find_entry_for_date(target)
    if existing is not None:
        raise DuplicateEntryError(
            f"Day already marked as {existing.status}. Remove it first to change."
        )

    for neighbour, label in ((target - timedelta(days=1), "previous"), (target + timedelta(days=1), "next")):
        entry = history.find_entry_for_date(neighbour)
        if entry is not None and entry.status == EntryStatus.SKIPPED.value:
            raise ConsecutiveSkipError(f"Cannot skip consecutive days. The {label} day is already skipped.")

    if history.skipped_in_week(target):
        raise WeeklySkipLimitError("Maximum 1 skip per week allowed.")

    backdated = habit.last_completed is not None and target < habit.last_completed
    if not backdated:
        _apply_continuation(habit, target)

    entry = history.append(
        CompletionEntry(occurred_on=target, status=EntryStatus.SKIPPED.value, recorded_at=now)
    )

    if backdated:
        # a skip behind the tail can bridge a gap in the middle of a run
        recompute(habit)
    else:
        habit.last_completed = target

    if target == today:
        # skipping today stops the timer and drops time tracked so far
        habit.status = HabitStatus.IDLE.value
        habit.started_at = None
        habit.paused_duration = 0
    return entry


def uncomplete(habit: Habit, *, now: datetime) -> CompletionEntry:
    removed = history_of(habit).remove_for_date(now)
    habit.status = HabitStatus.IDLE.value
    habit.started_at = None
    habit.completed_at = None
    recompute(habit)
    return removed


def reset_streak(habit: Habit) -> Habit:
    """Administrative override; history is left as-is until the next recompute."""

    habit.streak = 0
    habit.last_completed = None
    return habit


def recompute(habit: Habit) -> Habit:
    habit.streak, habit.last_completed = recompute_from_history(habit.entries)
    return habit


__all__ = [
    "CompletionResult",
    "FLAG_COMPLETED_QUICKLY",
    "FLAG_NO_TIMER",
    "MIN_REFLECTION_LENGTH",
    "complete",
    "detect_patterns",
    "elapsed_seconds",
    "history_of",
    "meets_minimum_duration",
    "pause",
    "recompute",
    "reset_streak",
    "skip_day",
    "start",
    "tracked_seconds",
    "uncomplete",
    "was_started",
]
