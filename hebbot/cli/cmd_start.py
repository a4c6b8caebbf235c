"""Start command."""

import asyncio
import logging
import sys

import click

from . import cli
from .shared import _settings, console


@cli.command()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def start(debug):
    """Start Hebbot."""
    from hebbot.errors import ConfigError, StoreWriteError
    from hebbot.main import run, setup_logging

    settings = _settings()
    if debug:
        settings.debug = True
    setup_logging(settings)

    console.print("[bold blue]Starting Hebbot...[/bold blue]")
    try:
        asyncio.run(run(settings))
    except ConfigError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
    except StoreWriteError as e:
        logging.getLogger("hebbot").critical(f"Stopping: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
