"""Database and service wiring for the Flask app."""

from __future__ import annotations

from flask import Flask, current_app

from .config import BaseConfig
from .infra.database import bootstrap_database
from .services.habits import HabitService

EXTENSION_KEY = "habittrack"


def init_db(app: Flask) -> None:
    """Create the engine, ensure the schema and attach a HabitService to the app."""

    config: BaseConfig = app.config["HABITTRACK_CONFIG"]
    engine, session_factory = bootstrap_database(config)
    app.extensions[EXTENSION_KEY] = {
        "engine": engine,
        "session_factory": session_factory,
        "service": HabitService(session_factory),
    }


def get_service() -> HabitService:
    """Return the HabitService bound to the current app."""

    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:  # pragma: no cover - exercised in integration tests
        raise RuntimeError("Database engine not initialized")
    return state["service"]


def get_session_factory():
    state = current_app.extensions.get(EXTENSION_KEY)
    if state is None:  # pragma: no cover
        raise RuntimeError("Database engine not initialized")
    return state["session_factory"]
