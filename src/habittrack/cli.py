"""Flask CLI commands for HabitTrack."""

from __future__ import annotations

import json

import click


def init_app(app) -> None:
    """Register CLI commands on the Flask app."""

    @app.cli.command("habittrack-recompute")
    @click.option("--user", "user_id", default=None, help="Only recompute this owner's habits")
    def habittrack_recompute(user_id: str | None) -> None:
        """Rebuild cached streaks from completion history."""

        from .extensions import get_service

        click.echo("Recomputing streaks...")
        changed = get_service().recompute_all(user_id)
        click.echo(f"Streaks recomputed; {changed} habit(s) updated.")

    @app.cli.command("habittrack-analytics")
    @click.argument("user_id")
    @click.option("--weekly", is_flag=True, default=False, help="Print the 7-day grid instead")
    def habittrack_analytics(user_id: str, weekly: bool) -> None:
        """Print today's (or this week's) analytics for a user as JSON."""

        from .extensions import get_service

        service = get_service()
        data = service.weekly_analytics(user_id) if weekly else service.daily_analytics(user_id)
        click.echo(json.dumps(data, indent=2, default=str))
