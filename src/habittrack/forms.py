"""Input models for habit operations."""

from __future__ import annotations

import datetime as dt
from typing import Any, Iterable, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .models.habit import HabitFrequency, HonestyStatus

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
DEFAULT_CATEGORY = "general"

FormT = TypeVar("FormT", bound=BaseModel)


def _split_days(value: Any) -> Any:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


def _check_days(days: Iterable[str]) -> list[str]:
    normalized = [day.strip().lower() for day in days]
    invalid = [day for day in normalized if day not in WEEKDAYS]
    if invalid:
        raise ValueError(f"Invalid day name in skip_days: {', '.join(invalid)}")
    return list(dict.fromkeys(normalized))


class HabitForm(BaseModel):
    """Payload for creating a habit."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", use_enum_values=True)

    name: str = Field(min_length=1, max_length=100, description="Short label for the habit")
    description: str = Field(default="", max_length=500)
    category: str = Field(default=DEFAULT_CATEGORY, max_length=64)
    frequency: HabitFrequency = Field(default=HabitFrequency.DAILY, validate_default=True)
    days_per_week: int = Field(default=7, ge=1, le=7)
    skip_days: list[str] = Field(default_factory=list)
    minimum_duration: Optional[int] = Field(
        default=None, ge=1, le=480, description="Minimum minutes per session"
    )
    accountability_mode: bool = False

    @field_validator("name", mode="before")
    @classmethod
    def require_name(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            raise ValueError("Habit name is required")
        return value

    @field_validator("description", mode="before")
    @classmethod
    def blank_description(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_CATEGORY
        return value

    @field_validator("skip_days", mode="before")
    @classmethod
    def split_skip_days(cls, value: Any) -> Any:
        return [] if value is None else _split_days(value)

    @field_validator("skip_days")
    @classmethod
    def validate_skip_days(cls, value: list[str]) -> list[str]:
        return _check_days(value)


class HabitUpdateForm(BaseModel):
    """Partial update; only fields present in the payload are applied."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore", use_enum_values=True)

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=64)
    frequency: Optional[HabitFrequency] = None
    days_per_week: Optional[int] = Field(default=None, ge=1, le=7)
    skip_days: Optional[list[str]] = None
    minimum_duration: Optional[int] = Field(default=None, ge=1, le=480)
    accountability_mode: Optional[bool] = None

    @field_validator("category", mode="before")
    @classmethod
    def default_category(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return DEFAULT_CATEGORY
        return value

    @field_validator("skip_days", mode="before")
    @classmethod
    def split_skip_days(cls, value: Any) -> Any:
        return _split_days(value)

    @field_validator("skip_days")
    @classmethod
    def validate_skip_days(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        return None if value is None else _check_days(value)


class CompletionForm(BaseModel):
    """Payload for completing a habit; duration is in seconds."""

    model_config = ConfigDict(extra="ignore")

    duration: Optional[int] = Field(default=None, ge=0)
    reflection: Optional[str] = Field(default=None, max_length=2000)


class SkipForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    date: Optional[dt.date] = None


class HonestyReviewItem(BaseModel):
    model_config = ConfigDict(extra="ignore")

    habit_id: int
    honesty_status: HonestyStatus


class HonestyReviewForm(BaseModel):
    model_config = ConfigDict(extra="ignore")

    reviews: list[HonestyReviewItem] = Field(default_factory=list)


def structured_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    """Group pydantic errors by top-level field name."""

    structured: dict[str, list[str]] = {}
    for error in exc.errors(include_url=False):
        loc = error.get("loc", ())
        key = str(loc[0]) if loc else "__root__"
        structured.setdefault(key, []).append(error.get("msg", "Invalid value"))
    return structured


def parse_form(form_cls: Type[FormT], payload: Any) -> FormT:
    """Validate ``payload`` against ``form_cls`` raising the domain ValidationError."""

    if isinstance(payload, form_cls):
        return payload
    try:
        return form_cls.model_validate(payload or {})
    except PydanticValidationError as exc:
        fields = structured_errors(exc)
        first = next(iter(fields.values()), ["Invalid input"])[0]
        raise ValidationError(first, fields=fields) from exc


__all__ = [
    "CompletionForm",
    "DEFAULT_CATEGORY",
    "HabitForm",
    "HabitUpdateForm",
    "HonestyReviewForm",
    "HonestyReviewItem",
    "SkipForm",
    "WEEKDAYS",
    "parse_form",
    "structured_errors",
]
