"""Configuration check command."""

import sys

from . import cli
from .shared import _load_config_or_exit, _settings, console


@cli.command(name="check-config")
def check_config():
    """Validate the bot configuration file."""
    settings = _settings()
    result = _load_config_or_exit(settings)
    config = result.config

    console.print(f"[bold]{settings.config_path}[/bold]")
    console.print(f"  Bot user:       {config.bot_user_id}")
    console.print(f"  Reporting room: {config.reporting_room_id}")
    console.print(f"  Admin room:     {config.admin_room_id}")
    console.print(f"  Editors:        {len(config.editors)}")
    console.print(f"  Sections:       {len(config.sections)}")
    console.print(f"  Projects:       {len(config.projects)}")

    for warning in result.warnings:
        console.print(f"[yellow]⚠️ {warning}[/yellow]", highlight=False)
    for note in result.notes:
        console.print(f"[dim]ℹ️ {note}[/dim]", highlight=False)

    if result.warnings:
        sys.exit(1)
    console.print("[green]Configuration OK[/green]")
