"""Configuration utilities for vinylsync.

Provides helpers for loading configuration from JSON files and turning it
into an explicit :class:`SyncSettings` instance. Nothing in here reads the
process environment; callers (the CLI, tests, embedding applications) pass
values in directly.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict

DEFAULT_BASE_URL = "https://api.discogs.com"
DEFAULT_USER_AGENT = "VinylSync/1.0"


def load_config(path: str | Path | None) -> Dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        path: Path to the JSON configuration file. A missing file yields an
            empty dictionary.

    Returns:
        A dictionary of configuration values.
    """
    if path is None:
        return {}
    config_path = Path(path)
    if not config_path.exists():
        return {}
    with open(config_path, "r", encoding="utf-8") as f:
        return json.load(f)


@dataclass(frozen=True)
class SyncSettings:
    """Settings for talking to the catalog service and caching the result."""

    token: str = ""
    username: str = ""
    base_url: str = DEFAULT_BASE_URL
    user_agent: str = DEFAULT_USER_AGENT
    per_page: int = 100
    rate_limit: int = 55
    rate_interval_seconds: float = 60.0
    max_concurrent_requests: int = 8
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 5.0
    timeout_seconds: float = 30.0
    batch_size: int = 10
    cache_ttl_hours: float = 24.0
    db_path: str = "vinylsync.db"

    @classmethod
    def from_config(cls, cfg: Dict[str, Any], **overrides: Any) -> "SyncSettings":
        """Build settings from a config mapping plus explicit overrides.

        Unknown keys are ignored. ``None`` overrides are skipped so CLI options
        left unset fall back to the file (or the defaults).
        """
        known = {f.name for f in fields(cls)}
        section = cfg.get("discogs", cfg) if isinstance(cfg, dict) else {}
        values = {k: v for k, v in section.items() if k in known}
        values.update({k: v for k, v in overrides.items() if k in known and v is not None})
        return cls(**values)

    def missing_credentials(self) -> list[str]:
        """Return human readable names of missing required settings."""
        missing: list[str] = []
        if not self.token:
            missing.append("token")
        if not self.username:
            missing.append("username")
        if not self.user_agent:
            missing.append("user_agent")
        return missing


__all__ = ["DEFAULT_BASE_URL", "DEFAULT_USER_AGENT", "SyncSettings", "load_config"]
