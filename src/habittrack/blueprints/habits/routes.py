"""Habit JSON routes.

Identity comes from the upstream auth layer: either ``session["user_id"]`` or
the configured trusted header. It is not re-verified here.
"""

from __future__ import annotations

from datetime import date

from flask import current_app, g, jsonify, request, session

from ...domain import state_machine
from ...domain.history import CompletionHistory
from ...errors import HabitTrackError
from ...extensions import get_service
from ...logging_config import get_logger
from ...models.habit import CompletionEntry, Habit
from ...services.streaks import badges_for_streak, highest_badge, longest_streak
from . import bp

logger = get_logger(__name__)


def _entry_to_dict(entry: CompletionEntry) -> dict:
    return {
        "date": entry.occurred_on.isoformat(),
        "status": entry.status,
        "duration": entry.duration,
        "reflection": entry.reflection,
        "honesty_status": entry.honesty_status,
    }


def habit_to_dict(habit: Habit, *, today: date) -> dict:
    """Serialize a habit with its history and derived read-only stats."""

    history = CompletionHistory(habit.entries)
    today_entry = history.find_entry_for_date(today)
    best = highest_badge(habit.streak)
    return {
        "id": habit.id,
        "name": habit.name,
        "description": habit.description,
        "category": habit.category,
        "status": habit.status,
        "started_at": habit.started_at.isoformat() if habit.started_at else None,
        "paused_duration": habit.paused_duration,
        "completed_at": habit.completed_at.isoformat() if habit.completed_at else None,
        "streak": habit.streak,
        "longest_streak": longest_streak(habit.entries),
        "last_completed": habit.last_completed.isoformat() if habit.last_completed else None,
        "today_status": today_entry.status if today_entry else None,
        "frequency": habit.frequency,
        "days_per_week": habit.days_per_week,
        "skip_days": list(habit.skip_days or []),
        "minimum_duration": habit.minimum_duration,
        "meets_minimum_duration": state_machine.meets_minimum_duration(habit, get_service().clock()),
        "accountability_mode": habit.accountability_mode,
        "is_active": habit.is_active,
        "badges": [badge.to_dict() for badge in badges_for_streak(habit.streak)],
        "highest_badge": best.to_dict() if best else None,
        "completion_history": [_entry_to_dict(entry) for entry in history],
    }


def _habit_response(habit: Habit, message: str, status: int = 200, **extra):
    today = get_service().today()
    payload = {"success": True, "message": message, "habit": habit_to_dict(habit, today=today)}
    payload.update(extra)
    return jsonify(payload), status


def _payload() -> dict:
    return request.get_json(silent=True) or request.form.to_dict() or {}


@bp.before_request
def _require_user():
    """Resolve the caller's opaque user id supplied by the auth layer."""

    header = current_app.config["HABITTRACK_CONFIG"].USER_HEADER
    user_id = session.get("user_id") or request.headers.get(header)
    if not user_id:
        return jsonify({"success": False, "error": "unauthenticated", "message": "Authentication required"}), 401
    g.user_id = str(user_id)
    return None


@bp.errorhandler(HabitTrackError)
def _handle_habit_error(exc: HabitTrackError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.path} failed: {exc.message}")
    return jsonify(exc.to_dict()), exc.status_code


# ========== analytics ==========


@bp.get("/analytics/daily")
def daily_analytics():
    return jsonify({"success": True, "data": get_service().daily_analytics(g.user_id)})


@bp.get("/analytics/weekly")
def weekly_analytics():
    return jsonify({"success": True, "data": get_service().weekly_analytics(g.user_id)})


# ========== CRUD ==========


@bp.get("/")
def list_habits():
    service = get_service()
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    habits = service.list_habits(
        g.user_id, category=request.args.get("category") or None, include_inactive=include_inactive
    )
    today = service.today()
    return jsonify(
        {"success": True, "habits": [habit_to_dict(h, today=today) for h in habits], "count": len(habits)}
    )


@bp.get("/<int:habit_id>")
def get_habit(habit_id: int):
    return _habit_response(get_service().get_habit(g.user_id, habit_id), "OK")


@bp.post("/")
def create_habit():
    habit = get_service().create_habit(g.user_id, _payload())
    return _habit_response(habit, "Habit created successfully!", 201)


@bp.put("/<int:habit_id>")
def update_habit(habit_id: int):
    habit = get_service().update_habit(g.user_id, habit_id, _payload())
    return _habit_response(habit, "Habit updated successfully")


@bp.delete("/<int:habit_id>")
def delete_habit(habit_id: int):
    get_service().delete_habit(g.user_id, habit_id)
    return jsonify({"success": True, "message": "Habit deleted successfully"})


@bp.post("/<int:habit_id>/archive")
def archive_habit(habit_id: int):
    return _habit_response(get_service().archive_habit(g.user_id, habit_id), "Habit archived")


# ========== state transitions ==========


@bp.post("/<int:habit_id>/start")
def start_habit(habit_id: int):
    return _habit_response(get_service().start(g.user_id, habit_id), "Timer started! Good luck!")


@bp.post("/<int:habit_id>/pause")
def pause_habit(habit_id: int):
    return _habit_response(get_service().pause(g.user_id, habit_id), "Timer paused")


@bp.post("/<int:habit_id>/complete")
def complete_habit(habit_id: int):
    outcome = get_service().complete(g.user_id, habit_id, _payload())
    message = f"Great job! Your streak is now {outcome.habit.streak} days!"
    if outcome.pattern_flags:
        message += " Reminder: taking time to be present with your habit makes it more meaningful."
    return _habit_response(outcome.habit, message, pattern_flags=outcome.pattern_flags)


@bp.post("/<int:habit_id>/uncomplete")
@bp.post("/<int:habit_id>/uncomplete-today")
def uncomplete_habit(habit_id: int):
    return _habit_response(get_service().uncomplete(g.user_id, habit_id), "Habit unmarked for today")


@bp.post("/<int:habit_id>/skip")
def skip_habit(habit_id: int):
    return _habit_response(get_service().skip_day(g.user_id, habit_id, _payload()), "Day marked as skipped")


@bp.post("/<int:habit_id>/reset-streak")
def reset_streak(habit_id: int):
    return _habit_response(get_service().reset_streak(g.user_id, habit_id), "Streak reset successfully")


@bp.post("/<int:habit_id>/recompute")
def recompute_streak(habit_id: int):
    return _habit_response(get_service().recompute_streak(g.user_id, habit_id), "Streak recomputed")


@bp.post("/honesty-review")
def honesty_review():
    results = get_service().submit_honesty_review(g.user_id, _payload())
    return jsonify({"success": True, "message": "Thank you for your honesty!", "results": results})
