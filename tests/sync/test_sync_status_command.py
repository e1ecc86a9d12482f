from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

from datasync_api.checkpoint import FileCheckpointStore
from datasync_data.management.commands import sync_status as sync_status_module


def _status_manager(status_row: object) -> SimpleNamespace:
    return SimpleNamespace(
        filter=lambda **_kwargs: SimpleNamespace(first=lambda: status_row)
    )


@pytest.fixture
def file_checkpoints(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> FileCheckpointStore:
    monkeypatch.setenv("CHECKPOINT_BACKEND", str(tmp_path / "checkpoints"))
    return FileCheckpointStore(tmp_path / "checkpoints")


def _run(monkeypatch: pytest.MonkeyPatch, **options) -> dict:
    command = sync_status_module.Command()
    output_lines: list[str] = []
    monkeypatch.setattr(command.stdout, "write", output_lines.append)
    command.handle(**options)
    assert len(output_lines) == 1
    return json.loads(output_lines[0])


def test_sync_status_outputs_single_line_json(
    monkeypatch: pytest.MonkeyPatch, file_checkpoints: FileCheckpointStore
) -> None:
    current_time = datetime(2026, 2, 12, 18, tzinfo=timezone.utc)
    status_row = SimpleNamespace(
        status="running",
        run_id="run-123",
        cursor="c55",
        pages_processed=55,
        records_processed=4321,
        records_failed=2,
        run_started_at=current_time - timedelta(minutes=4),
        run_finished_at=None,
        last_heartbeat=current_time - timedelta(seconds=20),
        last_error=None,
        updated_at=current_time - timedelta(seconds=4),
    )
    file_checkpoints.commit("orders", "c55", run_id="run-123")

    monkeypatch.setattr(sync_status_module, "now", lambda: current_time)
    monkeypatch.setattr(
        sync_status_module,
        "SyncStatus",
        SimpleNamespace(objects=_status_manager(status_row)),
    )

    payload = _run(monkeypatch, target="orders", stale_threshold_seconds=60, fail_on_stale=False)

    assert payload["target_id"] == "orders"
    assert payload["status"] == "running"
    assert payload["pages_processed"] == 55
    assert payload["run_age_seconds"] == 240
    assert payload["heartbeat_age_seconds"] == 20
    assert payload["is_stale"] is False
    assert payload["checkpoint"]["cursor"] == "c55"
    assert payload["checkpoint"]["run_id"] == "run-123"


def test_sync_status_reports_unknown_without_history(
    monkeypatch: pytest.MonkeyPatch, file_checkpoints: FileCheckpointStore
) -> None:
    monkeypatch.setattr(
        sync_status_module,
        "SyncStatus",
        SimpleNamespace(objects=_status_manager(None)),
    )

    payload = _run(monkeypatch, target="orders", stale_threshold_seconds=0, fail_on_stale=True)

    assert payload["status"] == "unknown"
    assert payload["checkpoint"] is None
    assert payload["is_stale"] is False


def test_sync_status_exits_when_fail_on_stale(
    monkeypatch: pytest.MonkeyPatch, file_checkpoints: FileCheckpointStore
) -> None:
    current_time = datetime(2026, 2, 12, 18, tzinfo=timezone.utc)
    status_row = SimpleNamespace(
        status="running",
        run_id="run-456",
        cursor="c12",
        pages_processed=12,
        records_processed=99,
        records_failed=0,
        run_started_at=current_time - timedelta(minutes=6),
        run_finished_at=None,
        last_heartbeat=current_time - timedelta(minutes=3),
        last_error=None,
        updated_at=current_time,
    )

    monkeypatch.setattr(sync_status_module, "now", lambda: current_time)
    monkeypatch.setattr(
        sync_status_module,
        "SyncStatus",
        SimpleNamespace(objects=_status_manager(status_row)),
    )

    command = sync_status_module.Command()
    monkeypatch.setattr(command.stdout, "write", lambda _line: None)

    with pytest.raises(SystemExit) as exit_info:
        command.handle(target="orders", stale_threshold_seconds=30, fail_on_stale=True)

    assert exit_info.value.code == 2
