"""Render command."""

import sys

import click
import jinja2

from . import cli
from .shared import _load_config_or_exit, _settings, console


@cli.command()
@click.option("--editor", required=True, help="Display name used as the report author")
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write the report to FILE instead of stdout")
def render(editor, output):
    """Render the report from the current store."""
    from hebbot.main import load_template
    from hebbot.render import render as render_report
    from hebbot.store import NewsStore

    settings = _settings()
    config = _load_config_or_exit(settings).config
    store = NewsStore.read(settings.store_path)

    try:
        result = render_report(store.list(), config, editor, template=load_template(settings.template_path))
    except jinja2.TemplateError as e:
        console.print(f"[red]Could not render template: {e}[/red]")
        sys.exit(1)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result.document)
        console.print(f"[green]Report written to {output}[/green]")
    else:
        click.echo(result.document)

    for warning in result.warnings:
        console.print(f"[yellow]⚠️ {warning}[/yellow]", highlight=False)
    for note in result.notes:
        console.print(f"[dim]ℹ️ {note}[/dim]", highlight=False)
