import json
import random

import pytest
from click.testing import CliRunner

from discogs_fakes import FakeDiscogsApi, ManualClock, collection_entry
from vinylsync.infrastructure.db import MemoryKeyValueStore, SqliteSyncRunLog
from vinylsync.interfaces.cli import cli
from vinylsync.interfaces.cli import context as cli_context
from vinylsync.services.cache import CollectionCache
from vinylsync.services.sync import RecordTransformer, SyncOrchestrator


class Backend:
    """Builds orchestrators over one fake account and one shared store."""

    def __init__(self, tmp_path, api: FakeDiscogsApi) -> None:
        self.api = api
        self.store = MemoryKeyValueStore()
        self.clock = ManualClock()
        self.run_log = SqliteSyncRunLog(tmp_path / "runs.db")
        self.built: list[dict] = []

    def __call__(self, settings, **kwargs) -> SyncOrchestrator:
        self.built.append({"settings": settings, **kwargs})
        return SyncOrchestrator(
            self.api,
            CollectionCache(self.store, clock=self.clock),
            transformer=RecordTransformer(random.Random(3)),
            run_log=self.run_log,
        )


@pytest.fixture
def backend(tmp_path, monkeypatch) -> Backend:
    fake = Backend(tmp_path, FakeDiscogsApi([collection_entry(i, master_id=7) for i in (1, 2, 3)]))
    monkeypatch.setattr(cli_context, "build_orchestrator", fake)
    monkeypatch.chdir(tmp_path)
    return fake


ENV = {"DISCOGS_TOKEN": "secret", "DISCOGS_USERNAME": "digger"}


def test_sync_reads_credentials_from_environment(backend) -> None:
    runner = CliRunner()

    result = runner.invoke(cli, ["sync"], env=ENV)

    assert result.exit_code == 0, result.output
    assert "3 records from Discogs" in result.output
    assert "added=3" in result.output
    settings = backend.built[0]["settings"]
    assert (settings.token, settings.username) == ("secret", "digger")


def test_second_sync_uses_cache_and_force_refetches(backend) -> None:
    runner = CliRunner()
    runner.invoke(cli, ["sync"], env=ENV)

    cached = runner.invoke(cli, ["sync"], env=ENV)
    forced = runner.invoke(cli, ["sync", "--force", "--skip-master-data"], env=ENV)

    assert "records from cache" in cached.output
    assert forced.exit_code == 0, forced.output
    assert backend.api.calls["collection"] == 2
    assert backend.built[-1]["skip_master_data"] is True


def test_sync_without_credentials_is_usage_error(backend) -> None:
    result = CliRunner().invoke(cli, ["sync"], env={"DISCOGS_TOKEN": "", "DISCOGS_USERNAME": ""})

    assert result.exit_code == 2
    assert "Missing Discogs settings: token, username" in result.output
    assert backend.built == []


def test_failed_sync_exits_non_zero(backend) -> None:
    backend.api.failing_pages = {1}

    result = CliRunner().invoke(cli, ["sync"], env=ENV)

    assert result.exit_code == 1
    assert "no cached collection is available" in result.output


def test_status_shows_cache_and_history(backend) -> None:
    runner = CliRunner()
    empty = runner.invoke(cli, ["status"], env=ENV)
    runner.invoke(cli, ["sync"], env=ENV)

    result = runner.invoke(cli, ["status"], env=ENV)

    assert "No cached collection." in empty.output
    assert result.exit_code == 0, result.output
    assert "Collection cache" in result.output
    assert "Recent syncs" in result.output


def test_export_clear_and_import(backend, tmp_path) -> None:
    runner = CliRunner()
    backup = tmp_path / "backup.json"

    missing = runner.invoke(cli, ["export", str(backup)], env=ENV)
    runner.invoke(cli, ["sync"], env=ENV)
    exported = runner.invoke(cli, ["export", str(backup)], env=ENV)
    cleared = runner.invoke(cli, ["clear", "--yes"], env=ENV)
    store_after_clear = dict(backend.store.data)
    imported = runner.invoke(cli, ["import", str(backup)], env=ENV)

    assert missing.exit_code == 1
    assert exported.exit_code == 0, exported.output
    assert len(json.loads(backup.read_text(encoding="utf-8"))["records"]) == 3
    assert cleared.exit_code == 0
    assert store_after_clear == {}
    assert imported.exit_code == 0, imported.output
    assert "Imported 3 records" in imported.output


def test_import_rejects_invalid_backup(backend, tmp_path) -> None:
    broken = tmp_path / "broken.json"
    broken.write_text('{"records": 5}', encoding="utf-8")
    not_json = tmp_path / "not.json"
    not_json.write_text("{", encoding="utf-8")

    runner = CliRunner()
    assert runner.invoke(cli, ["import", str(broken)], env=ENV).exit_code == 1
    assert runner.invoke(cli, ["import", str(not_json)], env=ENV).exit_code == 1


def test_test_connection_reports_result(backend) -> None:
    runner = CliRunner()
    ok = runner.invoke(cli, ["test-connection"], env=ENV)
    backend.api.connection_ok = False
    failed = runner.invoke(cli, ["test-connection"], env=ENV)

    assert ok.exit_code == 0
    assert "Successfully connected" in ok.output
    assert backend.built[0]["persist_runs"] is False
    assert failed.exit_code == 1
    assert "bad token" in failed.output
