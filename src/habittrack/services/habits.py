"""Habit service: the façade the web layer and CLI call into.

Each public operation runs in one session. The ownership check, invariant
checks, mutation and commit therefore share a transaction. Persistence
failures are translated into the domain error taxonomy here and nowhere else.
"""

from __future__ import annotations

import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..domain import state_machine
from ..domain.history import CompletionHistory, calendar_day
from ..domain.repositories import HabitRepository
from ..errors import DependencyError, DuplicateEntryError, NotFoundError
from ..forms import (
    DEFAULT_CATEGORY,
    CompletionForm,
    HabitForm,
    HabitUpdateForm,
    HonestyReviewForm,
    SkipForm,
    parse_form,
)
from ..infra.database import SessionFactory
from ..infra.repositories.habit import SQLModelHabitRepository
from ..logging_config import get_logger
from ..models.habit import CompletionEntry, EntryStatus, Habit

logger = get_logger(__name__)

Clock = Callable[[], datetime]


class KeyedLocks:
    """Process-wide registry of one mutex per key (here: per user).

    Locks are held weakly, so a user's lock is dropped once no caller
    references it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def for_key(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock


_USER_LOCKS = KeyedLocks()


@dataclass(slots=True)
class CompletionOutcome:
    """Result of a completion: the updated habit plus advisory pattern flags."""

    habit: Habit
    entry: CompletionEntry
    pattern_flags: list[str] = field(default_factory=list)


def _percent(part: int, total: int) -> int:
    return round(part / total * 100) if total > 0 else 0


class HabitService:
    """Orchestrates validation, the state machine and persistence."""

    def __init__(
        self,
        session_factory: SessionFactory,
        *,
        clock: Optional[Clock] = None,
        locks: Optional[KeyedLocks] = None,
    ) -> None:
        self.session_factory = session_factory
        self.clock: Clock = clock or datetime.now
        self.locks = locks or _USER_LOCKS

    # ------------------------------------------------------------------
    # plumbing

    def today(self) -> date:
        return calendar_day(self.clock())

    @contextmanager
    def _unit_of_work(self, action: str) -> Iterator[SQLModelHabitRepository]:
        try:
            with self.session_factory() as session:
                yield SQLModelHabitRepository(session)
                session.commit()
        except IntegrityError as exc:
            logger.warning(f"Integrity violation during {action}: {exc.orig}")
            raise DuplicateEntryError("That day already has an entry for this habit.") from exc
        except SQLAlchemyError as exc:
            logger.error(f"Persistence failure during {action}", exc_info=True)
            raise DependencyError("The habit store is unavailable. Please try again.") from exc

    @contextmanager
    def _user_scope(self, user_id: str, action: str) -> Iterator[SQLModelHabitRepository]:
        with self.locks.for_key(user_id):
            with self._unit_of_work(action) as repo:
                yield repo

    @staticmethod
    def _load(
        repo: HabitRepository, user_id: str, habit_id: int, *, active_only: bool = False
    ) -> Habit:
        habit = repo.get_by_id(habit_id, user_id=user_id)
        # other users' habits look exactly like missing ones
        if habit is None or (active_only and not habit.is_active):
            raise NotFoundError("Habit not found")
        return habit

    # ------------------------------------------------------------------
    # CRUD

    def create_habit(self, user_id: str, payload: Any) -> Habit:
        form = parse_form(HabitForm, payload)
        with self._unit_of_work("create_habit") as repo:
            habit = repo.add(Habit(owner_id=user_id, entries=[], **form.model_dump()))
            repo.session.flush()
        logger.info(f"Habit created: {habit.name}", extra={"habit_id": habit.id, "user_id": user_id})
        return habit

    def get_habit(self, user_id: str, habit_id: int) -> Habit:
        with self._unit_of_work("get_habit") as repo:
            return self._load(repo, user_id, habit_id)

    def list_habits(
        self, user_id: str, *, category: Optional[str] = None, include_inactive: bool = False
    ) -> list[Habit]:
        with self._unit_of_work("list_habits") as repo:
            return repo.list_all(user_id=user_id, include_inactive=include_inactive, category=category)

    def update_habit(self, user_id: str, habit_id: int, payload: Any) -> Habit:
        form = parse_form(HabitUpdateForm, payload)
        # minimum_duration is the only setting that may be cleared
        changes = {
            key: value
            for key, value in form.model_dump(exclude_unset=True).items()
            if value is not None or key == "minimum_duration"
        }
        with self._unit_of_work("update_habit") as repo:
            habit = self._load(repo, user_id, habit_id)
            for key, value in changes.items():
                setattr(habit, key, value)
            repo.add(habit)
        logger.info(f"Habit updated: {habit.name}", extra={"habit_id": habit_id, "fields": sorted(changes)})
        return habit

    def archive_habit(self, user_id: str, habit_id: int) -> Habit:
        """Soft delete; a running timer is banked so it cannot block other habits."""

        with self._user_scope(user_id, "archive_habit") as repo:
            habit = self._load(repo, user_id, habit_id)
            state_machine.pause(habit, self.clock())
            habit.is_active = False
            repo.add(habit)
        logger.info("Habit archived", extra={"habit_id": habit_id, "user_id": user_id})
        return habit

    def delete_habit(self, user_id: str, habit_id: int) -> None:
        with self._user_scope(user_id, "delete_habit") as repo:
            habit = self._load(repo, user_id, habit_id)
            repo.delete(habit)
        logger.info("Habit deleted", extra={"habit_id": habit_id, "user_id": user_id})

    # ------------------------------------------------------------------
    # state machine

    def start(self, user_id: str, habit_id: int) -> Habit:
        with self._user_scope(user_id, "start") as repo:
            habit = self._load(repo, user_id, habit_id, active_only=True)
            running = repo.find_in_progress(user_id=user_id, exclude_id=habit.id)
            state_machine.start(habit, other_in_progress=running, now=self.clock())
            repo.add(habit)
        logger.info("Timer started", extra={"habit_id": habit_id, "user_id": user_id})
        return habit

    def pause(self, user_id: str, habit_id: int) -> Habit:
        with self._user_scope(user_id, "pause") as repo:
            habit = self._load(repo, user_id, habit_id, active_only=True)
            state_machine.pause(habit, self.clock())
            repo.add(habit)
        logger.info(
            "Timer paused",
            extra={"habit_id": habit_id, "paused_duration": habit.paused_duration},
        )
        return habit

    def complete(self, user_id: str, habit_id: int, payload: Any = None) -> CompletionOutcome:
        form = parse_form(CompletionForm, payload)
        with self._user_scope(user_id, "complete") as repo:
            habit = self._load(repo, user_id, habit_id, active_only=True)
            result = state_machine.complete(
                habit, duration=form.duration, reflection=form.reflection, now=self.clock()
            )
            repo.add(habit)
        if result.pattern_flags:
            logger.info(
                "Completion pattern flags raised",
                extra={"habit_id": habit_id, "flags": result.pattern_flags},
            )
        logger.info(f"Habit completed: {habit.name}", extra={"habit_id": habit_id, "streak": habit.streak})
        return CompletionOutcome(habit=habit, entry=result.entry, pattern_flags=result.pattern_flags)

    def skip_day(self, user_id: str, habit_id: int, payload: Any = None) -> Habit:
        form = parse_form(SkipForm, payload)
        with self._user_scope(user_id, "skip_day") as repo:
            habit = self._load(repo, user_id, habit_id, active_only=True)
            entry = state_machine.skip_day(habit, form.date, now=self.clock())
            repo.add(habit)
        logger.info(
            "Day skipped",
            extra={"habit_id": habit_id, "day": entry.occurred_on.isoformat(), "streak": habit.streak},
        )
        return habit

    def uncomplete(self, user_id: str, habit_id: int) -> Habit:
        with self._user_scope(user_id, "uncomplete") as repo:
            habit = self._load(repo, user_id, habit_id, active_only=True)
            state_machine.uncomplete(habit, now=self.clock())
            repo.add(habit)
        logger.info("Habit unmarked for today", extra={"habit_id": habit_id, "streak": habit.streak})
        return habit

    def reset_streak(self, user_id: str, habit_id: int) -> Habit:
        with self._user_scope(user_id, "reset_streak") as repo:
            habit = self._load(repo, user_id, habit_id)
            state_machine.reset_streak(habit)
            repo.add(habit)
        logger.info("Streak reset", extra={"habit_id": habit_id, "user_id": user_id})
        return habit

    def recompute_streak(self, user_id: str, habit_id: int) -> Habit:
        """Rebuild the cached streak from history (repairs a manual reset)."""

        with self._user_scope(user_id, "recompute_streak") as repo:
            habit = self._load(repo, user_id, habit_id)
            state_machine.recompute(habit)
            repo.add(habit)
        return habit

    def recompute_all(self, user_id: Optional[str] = None) -> int:
        """Recompute every habit of ``user_id`` (or of every owner); returns the count changed."""

        with self._unit_of_work("recompute_all") as repo:
            owners = [user_id] if user_id else repo.list_owners()
        changed = 0
        for owner in owners:
            with self._user_scope(owner, "recompute_all") as repo:
                for habit in repo.list_all(user_id=owner, include_inactive=True):
                    before = (habit.streak, habit.last_completed)
                    state_machine.recompute(habit)
                    if (habit.streak, habit.last_completed) != before:
                        repo.add(habit)
                        changed += 1
        logger.info("Streaks recomputed", extra={"owners": len(owners), "changed": changed})
        return changed

    def submit_honesty_review(self, user_id: str, payload: Any) -> list[dict]:
        """Annotate today's entries; unmatched reviews are skipped one by one."""

        form = parse_form(HonestyReviewForm, payload)
        now = self.clock()
        results: list[dict] = []
        with self._user_scope(user_id, "honesty_review") as repo:
            for review in form.reviews:
                habit = repo.get_by_id(review.habit_id, user_id=user_id)
                if habit is None:
                    results.append({"habit_id": review.habit_id, "success": False, "reason": "not_found"})
                    continue
                try:
                    CompletionHistory(habit.entries).update_honesty(now, review.honesty_status.value)
                except NotFoundError:
                    results.append({"habit_id": review.habit_id, "success": False, "reason": "no_entry"})
                    continue
                habit.last_honesty_check = now
                repo.add(habit)
                results.append({"habit_id": review.habit_id, "success": True})
        skipped = sum(1 for item in results if not item["success"])
        if skipped:
            logger.info("Honesty review skipped unmatched items", extra={"skipped": skipped})
        return results

    # ------------------------------------------------------------------
    # analytics

    def daily_analytics(self, user_id: str) -> dict:
        today = self.today()
        habits = self.list_habits(user_id)

        completed = skipped = not_done = 0
        category_stats: dict[str, dict[str, int]] = {}
        for habit in habits:
            entry = CompletionHistory(habit.entries).find_entry_for_date(today)
            status = entry.status if entry else None
            if status == EntryStatus.COMPLETED.value:
                completed += 1
            elif status == EntryStatus.SKIPPED.value:
                skipped += 1
            else:
                not_done += 1

            bucket = category_stats.setdefault(habit.category or DEFAULT_CATEGORY, {"completed": 0, "total": 0})
            bucket["total"] += 1
            if entry is not None and entry.is_active:
                bucket["completed"] += 1

        total = len(habits)
        return {
            "date": today.isoformat(),
            "total": total,
            "completed": completed,
            "skipped": skipped,
            "not_done": not_done,
            "completion_rate": _percent(completed + skipped, total),
            "category_stats": category_stats,
        }

    def weekly_analytics(self, user_id: str) -> list[dict]:
        today = self.today()
        rows: list[dict] = []
        for habit in self.list_habits(user_id):
            week = CompletionHistory(habit.entries).week_status(today, today=today)
            completed = sum(1 for day in week if day.status == EntryStatus.COMPLETED.value)
            skipped = sum(1 for day in week if day.status == EntryStatus.SKIPPED.value)
            rows.append(
                {
                    "habit_id": habit.id,
                    "habit_name": habit.name,
                    "category": habit.category,
                    "week_status": [day.to_dict() for day in week],
                    "completed": completed,
                    "skipped": skipped,
                    "completion_rate": _percent(completed + skipped, len(week)),
                    "streak": habit.streak,
                }
            )
        return rows


__all__ = ["CompletionOutcome", "HabitService", "KeyedLocks"]
