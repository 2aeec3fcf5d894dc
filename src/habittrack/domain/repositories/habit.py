"""Habit repository protocol."""

from __future__ import annotations

from typing import Optional, Protocol

from ...models.habit import Habit


class HabitRepository(Protocol):
    """Repository for managing habit entities and their completion history."""

    def get_by_id(self, habit_id: int, *, user_id: str) -> Optional[Habit]:
        """Retrieve a habit owned by ``user_id``."""
        ...

    def list_all(
        self, *, user_id: str, include_inactive: bool = False, category: Optional[str] = None
    ) -> list[Habit]:
        """List a user's habits, newest first."""
        ...

    def list_owners(self) -> list[str]:
        """Return every owner id that has at least one habit."""
        ...

    def find_in_progress(self, *, user_id: str, exclude_id: Optional[int] = None) -> Optional[Habit]:
        """Return the user's running habit, if any."""
        ...

    def add(self, habit: Habit) -> Habit:
        """Stage a new or changed habit for the next flush."""
        ...

    def delete(self, habit: Habit) -> None:
        """Delete a habit and its history."""
        ...
