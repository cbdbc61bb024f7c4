"""Cache inspection and backup commands."""

from __future__ import annotations

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from vinylsync.errors import CacheError

from .context import CLIContext


@click.command(name="status")
@click.pass_obj
def status(ctx: CLIContext) -> None:
    """Show the state of the local collection cache."""
    console = Console()

    async def _work(orchestrator):
        return await orchestrator.get_cache_status(), await orchestrator.recent_runs(5)

    cache_status, runs = ctx.run(_work)
    if not cache_status.has_cache:
        console.print("No cached collection.")
        return

    table = Table(title="Collection cache", show_header=False)
    table.add_row("Valid", "yes" if cache_status.is_valid else "[yellow]expired[/yellow]")
    table.add_row("Records", str(cache_status.total_records))
    table.add_row("Size", cache_status.cache_size or "-")
    table.add_row(
        "Last sync",
        f"{cache_status.last_sync:%Y-%m-%d %H:%M:%S} UTC ({cache_status.age})"
        if cache_status.last_sync
        else "-",
    )
    console.print(table)

    if runs:
        history = Table(title="Recent syncs")
        for column in ("Started", "Type", "Status", "Records", "+", "~", "-", "Errors"):
            history.add_column(column)
        for run in runs:
            history.add_row(
                str(run["started_at"] or "-"),
                str(run["sync_type"]),
                str(run["status"]),
                str(run["records_processed"]),
                str(run["records_added"]),
                str(run["records_updated"]),
                str(run["records_removed"]),
                str(run["error_count"]),
            )
        console.print(history)


@click.command(name="clear")
@click.confirmation_option(prompt="Remove the cached collection?")
@click.pass_obj
def clear(ctx: CLIContext) -> None:
    """Remove the cached collection and its metadata."""
    ctx.run(lambda orchestrator: orchestrator.clear_cache())
    Console().print("Cache cleared.")


@click.command(name="export")
@click.argument("path", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
def export(ctx: CLIContext, path: Path) -> None:
    """Write the cached collection and its metadata to PATH as JSON."""
    console = Console()
    snapshot = ctx.run(lambda orchestrator: orchestrator.export_collection())
    if snapshot is None:
        console.print("[red]No cached collection to export.[/red]")
        raise SystemExit(1)
    path.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
    console.print(f"Exported {len(snapshot.records)} records to {path}")


@click.command(name="import")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def import_(ctx: CLIContext, path: Path) -> None:
    """Replace the cached collection with the backup at PATH."""
    console = Console()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        metadata = ctx.run(lambda orchestrator: orchestrator.import_collection(data))
    except (ValueError, CacheError) as exc:
        console.print(f"[red]Import failed: {exc}[/red]")
        raise SystemExit(1) from exc
    console.print(f"Imported {metadata.total_records} records from {path}")
