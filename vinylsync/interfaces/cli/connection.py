"""Connectivity check against the Discogs API."""

from __future__ import annotations

import click
from rich.console import Console

from .context import CLIContext


@click.command(name="test-connection")
@click.pass_obj
def test_connection(ctx: CLIContext) -> None:
    """Verify the configured token and username."""
    console = Console()
    with console.status("Connecting to Discogs API..."):
        check = ctx.run(lambda orchestrator: orchestrator.test_connection(), persist_runs=False)
    if check.success:
        console.print(f"[green]{check.message}[/green]")
        if check.user_info is not None and check.user_info.num_collection is not None:
            console.print(f"Collection size: {check.user_info.num_collection}")
        return
    console.print(f"[red]{check.message}[/red]")
    raise SystemExit(1)
