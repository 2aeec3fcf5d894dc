"""Habit tracking data structures."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import ClassVar, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlalchemy.orm import relationship
from sqlmodel import Field, Relationship, SQLModel


class HabitStatus(str, Enum):
    """Operational timer state of a habit."""

    IDLE = "idle"
    IN_PROGRESS = "in-progress"


class HabitFrequency(str, Enum):
    """Target cadence; informational, streaks are always counted per day."""

    DAILY = "daily"
    WEEKLY = "weekly"
    CUSTOM = "custom"


class EntryStatus(str, Enum):
    """Outcome recorded for a habit on one calendar day."""

    COMPLETED = "completed"
    SKIPPED = "skipped"
    INCOMPLETE = "incomplete"


class HonestyStatus(str, Enum):
    """Post-hoc self assessment attached to an entry."""

    HONEST = "honest"
    NOT_REALLY = "not-really"


ACTIVE_STATUSES = frozenset({EntryStatus.COMPLETED.value, EntryStatus.SKIPPED.value})

# timestamps are server-local wall-clock times, stored without an offset
NAIVE_DATETIME = DateTime(timezone=False)


class Habit(SQLModel, table=True):
    """A user-defined habit tracked once per calendar day."""

    __tablename__: ClassVar[str] = "habit"

    id: Optional[int] = Field(default=None, primary_key=True)
    owner_id: str = Field(nullable=False, max_length=128, index=True)
    name: str = Field(nullable=False, max_length=100, index=True)
    description: str = Field(default="", max_length=500)
    category: str = Field(default="general", max_length=64, index=True)

    status: str = Field(default=HabitStatus.IDLE.value, max_length=16, index=True)
    started_at: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)
    paused_duration: int = Field(default=0, nullable=False)
    completed_at: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)

    streak: int = Field(default=0, nullable=False)
    last_completed: Optional[date] = Field(default=None)

    frequency: str = Field(default=HabitFrequency.DAILY.value, max_length=16)
    days_per_week: int = Field(default=7, nullable=False)
    skip_days: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    minimum_duration: Optional[int] = Field(default=None)
    accountability_mode: bool = Field(default=False, nullable=False)

    is_active: bool = Field(default=True, nullable=False, index=True)
    last_honesty_check: Optional[datetime] = Field(default=None, sa_type=NAIVE_DATETIME)
    created_at: datetime = Field(default_factory=datetime.now, nullable=False, sa_type=NAIVE_DATETIME)
    updated_at: datetime = Field(default_factory=datetime.now, nullable=False, sa_type=NAIVE_DATETIME)

    entries: list["CompletionEntry"] = Relationship(
        back_populates="habit",
        sa_relationship=relationship(
            "CompletionEntry",
            back_populates="habit",
            cascade="all, delete-orphan",
            lazy="selectin",
            order_by="CompletionEntry.recorded_at",
        ),
    )

    @property
    def in_progress(self) -> bool:
        return self.status == HabitStatus.IN_PROGRESS.value


class CompletionEntry(SQLModel, table=True):
    """Completion record for a habit on a calendar day.

    The (habit_id, occurred_on) primary key is the store-level guarantee that
    a habit never holds two entries for the same day.
    """

    __tablename__: ClassVar[str] = "completion_entry"

    habit_id: int = Field(foreign_key="habit.id", primary_key=True, ondelete="CASCADE")
    occurred_on: date = Field(primary_key=True, index=True)
    status: str = Field(default=EntryStatus.COMPLETED.value, max_length=16, nullable=False)
    duration: Optional[int] = Field(default=None)
    reflection: Optional[str] = Field(default=None, max_length=2000)
    honesty_status: Optional[str] = Field(default=None, max_length=16)
    recorded_at: datetime = Field(default_factory=datetime.now, nullable=False, sa_type=NAIVE_DATETIME)

    habit: Optional["Habit"] = Relationship(
        back_populates="entries",
        sa_relationship=relationship("Habit", back_populates="entries"),
    )

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
