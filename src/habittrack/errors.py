"""Error taxonomy shared by the streak engine, the service and the web layer."""

from __future__ import annotations


class HabitTrackError(Exception):
    """Base class for every error the habit engine reports to callers."""

    status_code = 500
    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "error": self.category, "message": self.message}


class ValidationError(HabitTrackError):
    """Bad input shape or range; the user can correct it."""

    status_code = 400
    category = "validation"

    def __init__(self, message: str, fields: dict[str, list[str]] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.fields:
            payload["fields"] = self.fields
        return payload


class ConflictError(HabitTrackError):
    """An operation would violate a habit invariant."""

    status_code = 409
    category = "conflict"


class DuplicateEntryError(ConflictError):
    """The calendar day already carries a completion entry."""


class ConsecutiveSkipError(ConflictError):
    """Two consecutive calendar days cannot both be skipped."""


class WeeklySkipLimitError(ConflictError):
    """Only one skip is allowed per Monday-Sunday week."""


class NotFoundError(HabitTrackError):
    """Missing habit or entry (also used for ownership mismatches)."""

    status_code = 404
    category = "not_found"


class DependencyError(HabitTrackError):
    """Persistence or another external collaborator failed; retryable."""

    status_code = 503
    category = "dependency"


__all__ = [
    "ConflictError",
    "ConsecutiveSkipError",
    "DependencyError",
    "DuplicateEntryError",
    "HabitTrackError",
    "NotFoundError",
    "ValidationError",
    "WeeklySkipLimitError",
]
