"""Shared helpers for composing CLI command contexts.

Commands receive a :class:`CLIContext` through ``click.pass_obj`` and use it
to build a wired orchestrator and to run coroutines to completion.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import click

from vinylsync.app.config import SyncSettings
from vinylsync.app.factory import build_orchestrator
from vinylsync.services.sync import SyncOrchestrator

T = TypeVar("T")


@dataclass(frozen=True)
class CLIContext:
    """Container for CLI settings."""

    settings: SyncSettings

    def orchestrator(self, **kwargs) -> SyncOrchestrator:
        return build_orchestrator(self.settings, **kwargs)

    def run(self, work: Callable[[SyncOrchestrator], Awaitable[T]], **kwargs) -> T:
        """Build an orchestrator, run ``work`` with it and close it afterwards."""

        async def _main() -> T:
            orchestrator = self.orchestrator(**kwargs)
            try:
                return await work(orchestrator)
            finally:
                await orchestrator.close()

        return asyncio.run(_main())


def require_credentials(settings: SyncSettings) -> None:
    missing = settings.missing_credentials()
    if missing:
        raise click.UsageError(
            "Missing Discogs settings: "
            + ", ".join(missing)
            + " (use --token/--username, DISCOGS_TOKEN/DISCOGS_USERNAME or the config file)"
        )


__all__ = ["CLIContext", "require_credentials"]
