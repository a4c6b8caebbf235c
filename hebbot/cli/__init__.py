"""Hebbot CLI — command line interface."""

import click
from hebbot import __version__
from .shared import console


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="hebbot")
@click.pass_context
def cli(ctx):
    """Hebbot — weekly news aggregation bot for Matrix"""
    if ctx.invoked_subcommand is None:
        _show_help()


def _show_help():
    """Show all available commands."""
    console.print(f"[bold]Hebbot v{__version__}[/bold] — weekly news aggregation bot for Matrix\n")

    commands = [
        ("start", "Connect to the homeserver and start processing events"),
        ("status", "Show stored news entries"),
        ("render", "Render the report from the current store"),
        ("check-config", "Validate the bot configuration file"),
        ("clear", "Remove all stored news entries"),
    ]
    for name, desc in commands:
        console.print(f"    [bold]hebbot {name:14s}[/bold] {desc}")
    console.print()

    console.print("[dim]Run 'hebbot <command> --help' for details on a specific command.[/dim]")


# Import all command modules (registers commands onto cli group)
from . import cmd_start  # noqa: E402, F401
from . import cmd_status  # noqa: E402, F401
from . import cmd_render  # noqa: E402, F401
from . import cmd_config  # noqa: E402, F401


@cli.command(name="help", hidden=True)
def help_cmd():
    """Show all available commands."""
    _show_help()
