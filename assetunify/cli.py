"""AssetUnify CLI.

Commands:
- init: Initialize database schema
- rebuild: Rebuild unified assets from uploaded sources
- pool: Show the projected asset pool
- manipulators run: Re-apply every manipulator
- coverage: Generate and print the group coverage report
"""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from assetunify.config import get_config
from assetunify.core.logging import configure_logging
from assetunify.db.connection import close_db, get_session_factory, init_db
from assetunify.manipulators.engine import ManipulatorEngine
from assetunify.pool.projector import project_asset_pool
from assetunify.reporting.coverage import generate_coverage_report
from assetunify.repository.sql import SqlRepository
from assetunify.unification.rebuild import rebuild_unified

app = typer.Typer(
    name="assetunify",
    help="AssetUnify - Asset inventory unification and rule evaluation",
    no_args_is_help=True,
)
manipulators_cli = typer.Typer(help="Manipulator tooling")
app.add_typer(manipulators_cli, name="manipulators")

console = Console()


@app.callback()
def main() -> None:
    configure_logging(get_config().log_level)


def _repository() -> SqlRepository:
    return SqlRepository(get_session_factory())


@app.command()
def init(
    drop: bool = typer.Option(False, "--drop", help="Drop existing tables"),
):
    """Initialize database schema."""
    config = get_config()
    console.print(f"[bold]Initializing database:[/bold] {config.db.url}")

    async def _init():
        try:
            if drop:
                console.print("[yellow]Dropping existing tables...[/yellow]")
            await init_db(drop=drop)
        finally:
            await close_db()

    asyncio.run(_init())
    console.print("[bold green]✓[/bold green] Database initialized")


@app.command()
def rebuild():
    """Rebuild unified assets from every uploaded source."""

    async def _rebuild():
        try:
            return await rebuild_unified(_repository())
        finally:
            await close_db()

    assets = asyncio.run(_rebuild())

    table = Table(title="Unified Assets")
    table.add_column("Canonical key", style="cyan")
    table.add_column("Sources", justify="right")
    table.add_column("Fields", justify="right")
    for asset in assets:
        table.add_row(asset.canonical_name or "-", str(len(asset.source_ids)), str(len(asset.fields)))

    console.print(table)
    console.print(f"[bold green]✓[/bold green] {len(assets)} unified assets")


@app.command()
def pool(
    limit: int = typer.Option(20, "--limit", help="Rows to display"),
):
    """Show the projected asset pool."""

    async def _pool():
        try:
            return await project_asset_pool(_repository())
        finally:
            await close_db()

    view = asyncio.run(_pool())

    table = Table(title=f"Asset Pool ({len(view.rows)} rows)")
    table.add_column("Row", style="cyan")
    for column in view.columns:
        table.add_column(column)
    for row in view.rows[:limit]:
        table.add_row(row.id, *(str(row.values.get(column, "")) for column in view.columns))

    console.print(table)
    if len(view.rows) > limit:
        console.print(f"[dim]... {len(view.rows) - limit} more rows[/dim]")


@manipulators_cli.command("run")
def run_manipulators():
    """Re-apply every manipulator against the current pool."""

    async def _run():
        try:
            return await ManipulatorEngine(_repository()).run_all()
        finally:
            await close_db()

    results = asyncio.run(_run())

    table = Table(title="Manipulators")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Field")
    table.add_column("Value")
    table.add_column("Assets", justify="right")
    for item in results:
        table.add_row(str(item.id), item.title, item.field_name, item.field_value, str(item.asset_count))

    console.print(table)


@app.command()
def coverage():
    """Generate the group coverage report and print it."""

    async def _coverage():
        try:
            return await generate_coverage_report(_repository())
        finally:
            await close_db()

    report = asyncio.run(_coverage())

    table = Table(title="Group Coverage")
    table.add_column("Group", style="cyan")
    table.add_column("Slug")
    table.add_column("Assets", justify="right")
    for group in report.groups:
        table.add_row(group.title, group.slug, str(group.asset_count))

    console.print(table)
    console.print(f"Total assets: [bold]{report.total_assets}[/bold]")
    style = "red" if report.unmatched_count else "green"
    console.print(f"Unmatched: [{style}]{report.unmatched_count}[/{style}]")


if __name__ == "__main__":
    app()
