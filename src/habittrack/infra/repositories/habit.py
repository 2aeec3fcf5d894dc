"""SQLModel implementation of Habit repository."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from ...models.habit import Habit, HabitStatus


class SQLModelHabitRepository:
    """SQLModel-based habit repository bound to one unit-of-work session.

    Callers own the session and its commit so a read-check-write sequence
    stays inside a single transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, habit_id: int, *, user_id: str) -> Optional[Habit]:
        statement = select(Habit).where(Habit.id == habit_id, Habit.owner_id == user_id)
        return self.session.exec(statement).first()

    def list_all(
        self, *, user_id: str, include_inactive: bool = False, category: Optional[str] = None
    ) -> list[Habit]:
        statement = (
            select(Habit)
            .where(Habit.owner_id == user_id)
            .order_by(Habit.created_at.desc(), Habit.id.desc())  # type: ignore[union-attr]
        )
        if not include_inactive:
            statement = statement.where(Habit.is_active == True)  # noqa: E712
        if category:
            statement = statement.where(Habit.category == category)
        return list(self.session.exec(statement).all())

    def list_owners(self) -> list[str]:
        statement = select(Habit.owner_id).distinct().order_by(Habit.owner_id)
        return list(self.session.exec(statement).all())

    def find_in_progress(self, *, user_id: str, exclude_id: Optional[int] = None) -> Optional[Habit]:
        statement = select(Habit).where(
            Habit.owner_id == user_id,
            Habit.status == HabitStatus.IN_PROGRESS.value,
        )
        if exclude_id is not None:
            statement = statement.where(Habit.id != exclude_id)
        return self.session.exec(statement).first()

    def add(self, habit: Habit) -> Habit:
        habit.updated_at = datetime.now()
        self.session.add(habit)
        return habit

    def delete(self, habit: Habit) -> None:
        self.session.delete(habit)
