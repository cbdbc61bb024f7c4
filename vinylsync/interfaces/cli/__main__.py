"""Entry point for running the vinylsync CLI.

Executing ``python -m vinylsync.interfaces.cli`` (or the ``vinylsync``
console script) invokes the :func:`cli` group below.
"""

from __future__ import annotations

import logging

import click

from vinylsync.app.config import SyncSettings, load_config
from vinylsync.infrastructure.observability import configure_logging

from .cache import clear, export, import_, status
from .connection import test_connection
from .context import CLIContext
from .sync import sync


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default="vinylsync.json",
    show_default=True,
    help="JSON configuration file. Missing files are ignored.",
)
@click.option("--db", "db_path", default=None, help="Path to the SQLite cache database.")
@click.option("--token", envvar="DISCOGS_TOKEN", default=None, help="Discogs personal access token.")
@click.option("--username", envvar="DISCOGS_USERNAME", default=None, help="Discogs username.")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Also append log lines to this file.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config_path: str,
    db_path: str | None,
    token: str | None,
    username: str | None,
    log_level: str,
    log_file: str | None,
) -> None:
    """vinylsync command-line interface."""
    configure_logging(level=getattr(logging, log_level.upper()), log_file=log_file)
    settings = SyncSettings.from_config(
        load_config(config_path), token=token, username=username, db_path=db_path
    )
    ctx.obj = CLIContext(settings=settings)


cli.add_command(sync)
cli.add_command(status)
cli.add_command(clear)
cli.add_command(export)
cli.add_command(import_, name="import")
cli.add_command(test_connection)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
