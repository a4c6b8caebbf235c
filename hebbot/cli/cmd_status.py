"""Store commands: status and clear."""

import click
from rich.table import Table

from . import cli
from .shared import _load_config_or_exit, _settings, console


@cli.command()
def status():
    """Show stored news entries."""
    from hebbot import __version__
    from hebbot.store import NewsStore

    settings = _settings()
    config = _load_config_or_exit(settings).config
    store = NewsStore.read(settings.store_path)
    news_list = store.list()

    table = Table(title=f"Hebbot Status v{__version__}", padding=(0, 2))
    table.add_column("Reporter", style="bold")
    table.add_column("Sections")
    table.add_column("Projects")
    table.add_column("Media", justify="right")
    table.add_column("Message")

    for news in news_list:
        sections = ", ".join(news.section_names()) or "[dim]-[/dim]"
        projects = ", ".join(news.project_names()) or "[dim]-[/dim]"
        media = str(len(news.images()) + len(news.videos()))
        table.add_row(news.reporter_id, sections, projects, media, news.summary())

    assigned = sum(1 for n in news_list if n.is_assigned())
    console.print(table)
    console.print(
        f"{len(news_list)} news entries in total, "
        f"[green]{assigned} assigned[/green], "
        f"[yellow]{len(news_list) - assigned} unassigned[/yellow] "
        f"[dim](reporting room {config.reporting_room_id})[/dim]"
    )


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
def clear(yes):
    """Remove all stored news entries."""
    from hebbot.store import NewsStore

    settings = _settings()
    store = NewsStore.read(settings.store_path)
    if not yes and not click.confirm(f"Remove all {len(store)} news entries?"):
        console.print("[dim]Aborted.[/dim]")
        return

    count = store.clear()
    console.print(f"[green]✅ Cleared {count} news entries![/green]")
