"""Synchronization CLI for vinylsync."""

from __future__ import annotations

import click
from rich.console import Console

from vinylsync.errors import SyncInProgressError
from vinylsync.services.sync import SyncProgress, SyncResult

from .context import CLIContext, require_credentials


@click.command(name="sync")
@click.option(
    "--force",
    "force_refresh",
    is_flag=True,
    default=False,
    help="Ignore a valid cache and always fetch the collection from Discogs.",
)
@click.option(
    "--skip-master-data",
    is_flag=True,
    default=False,
    help="Do not fetch master releases (faster, less complete metadata).",
)
@click.pass_obj
def sync(ctx: CLIContext, force_refresh: bool, skip_master_data: bool) -> None:
    """Synchronize the Discogs collection into the local cache.

    A valid cache is reused unless ``--force`` is given. When the remote sync
    fails, the previously cached collection is kept and reported.
    """
    console = Console()
    require_credentials(ctx.settings)

    with console.status("Starting sync...") as status:

        def _on_progress(event: SyncProgress) -> None:
            status.update(f"[{event.progress:>3}%] {event.message}")

        try:
            result: SyncResult = ctx.run(
                lambda orchestrator: orchestrator.sync(
                    force_refresh,
                    on_progress=_on_progress,
                    skip_master_data=skip_master_data,
                ),
                skip_master_data=skip_master_data,
            )
        except SyncInProgressError as exc:
            console.print(f"[red]{exc}[/red]")
            raise SystemExit(1) from exc

    if result.success:
        source = "cache" if result.from_cache else "Discogs"
        console.print(
            f"[green]Sync complete[/green]: {result.records_processed} records from {source} "
            f"in {result.duration_ms}ms"
        )
        session = result.session
        if session is not None:
            console.print(
                f"added={session.added}, updated={session.updated}, removed={session.removed}"
            )
    elif result.from_cache:
        console.print(
            f"[yellow]Sync failed; using {result.records_processed} cached records[/yellow]"
        )
    else:
        console.print("[red]Sync failed and no cached collection is available.[/red]")

    if result.errors:
        console.print("[yellow]Errors:[/yellow]")
        for err in result.errors:
            console.print(f"  - {err}")
    if not result.success:
        raise SystemExit(1)
