"""Log setup and sync-scoped log fields.

Library modules only call :func:`get_logger`. Handlers are installed by the
CLI through :func:`configure_logging`; embedding applications keep their own.

While a sync runs, the orchestrator binds fields such as ``sync_kind`` with
:func:`log_context`. :class:`SyncContextFormatter` renders those fields after
each message, e.g. ``Cached 40 records [sync_kind=full]``.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Iterator, Mapping

from vinylsync.errors import VinylSyncError

_sync_fields: ContextVar[Mapping[str, Any]] = ContextVar("vinylsync_log_fields", default={})

# Chatty transport loggers held back to ``library_level``.
LIBRARY_LOGGERS = ("aiohttp", "aiohttp.access", "aiohttp.client", "asyncio")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def _render_fields(fields: Mapping[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


class SyncContextFormatter(logging.Formatter):
    """Appends the bound sync fields to the formatted message."""

    def format(self, record: logging.LogRecord) -> str:
        fields = _sync_fields.get()
        if not fields:
            return super().format(record)
        # Format a copy so other handlers see the record unchanged.
        tagged = logging.makeLogRecord(record.__dict__)
        tagged.msg = f"{record.getMessage()} [{_render_fields(fields)}]"
        tagged.args = None
        return super().format(tagged)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every log line emitted inside the block.

    Nested blocks extend the outer fields; on exit the outer set is restored.
    The binding follows the asyncio task, so concurrent syncs keep their own.
    """
    token = _sync_fields.set({**_sync_fields.get(), **fields})
    try:
        yield
    finally:
        _sync_fields.reset(token)


def current_log_context() -> dict[str, Any]:
    return dict(_sync_fields.get())


_configured = False


def configure_logging(
    level: int = logging.INFO,
    *,
    log_file: str | Path | None = None,
    library_level: int = logging.WARNING,
) -> None:
    """Send vinylsync logs to stderr and, optionally, to ``log_file``.

    Only the first call has an effect.
    """
    global _configured
    if _configured:
        return
    _configured = True

    formatter = SyncContextFormatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_sync_failure(
    logger: logging.Logger,
    stage: str,
    exc: BaseException,
    **fields: Any,
) -> None:
    """Log that a sync ``stage`` failed with ``exc``.

    Expected pipeline errors (:class:`VinylSyncError`) are logged as one line;
    a traceback is attached for anything else, or when DEBUG is enabled.
    """
    with_traceback = not isinstance(exc, VinylSyncError) or logger.isEnabledFor(logging.DEBUG)
    with log_context(stage=stage, error=type(exc).__name__, **fields):
        logger.error("%s failed: %s", stage, exc, exc_info=exc if with_traceback else None)


__all__ = [
    "LIBRARY_LOGGERS",
    "LOG_FORMAT",
    "SyncContextFormatter",
    "configure_logging",
    "current_log_context",
    "get_logger",
    "log_context",
    "log_sync_failure",
]
