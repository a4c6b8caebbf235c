"""Shared utilities for Hebbot CLI commands."""

import sys

from rich.console import Console

from hebbot.config import ConfigResult, HebbotSettings, load_config, load_settings
from hebbot.errors import ConfigError

console = Console()


def _load_config_or_exit(settings: HebbotSettings) -> ConfigResult:
    """Load the bot configuration, printing the error and exiting on failure."""
    try:
        return load_config(settings.config_path)
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)


def _settings() -> HebbotSettings:
    return load_settings()
