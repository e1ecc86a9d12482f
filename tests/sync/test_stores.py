from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from django.db import IntegrityError, OperationalError

from datasync_api.checkpoint import FileCheckpointStore
from datasync_api.errors import CheckpointConflictError, SinkTransientError
from datasync_api.normalizer import normalize
from datasync_api.orchestrator import RunState, SyncRun
from datasync_api.reconciler import reconcile
from datasync_data import stores
from datasync_data.models import SyncedRecord, SyncStatus
from datasync_data.stores import (
    DjangoCheckpointStore,
    DjangoSinkWriter,
    SyncStatusReporter,
    build_checkpoint_store,
)

pytestmark = pytest.mark.django_db


def test_checkpoint_store_commits_and_loads() -> None:
    store = DjangoCheckpointStore()
    watermark = datetime(2026, 4, 1, tzinfo=timezone.utc)

    assert store.load("orders") is None
    store.commit("orders", "c2", run_id="run-1", cycle_started_at=watermark, expected_cursor=None)
    store.commit("orders", None, run_id="run-1", watermark=watermark, expected_cursor="c2")

    checkpoint = store.load("orders")
    assert checkpoint is not None
    assert checkpoint.cursor is None
    assert checkpoint.watermark == watermark
    assert checkpoint.cycle_started_at is None
    assert not checkpoint.in_progress


def test_checkpoint_store_detects_conflicts() -> None:
    store = DjangoCheckpointStore()
    store.commit("orders", "c5", run_id="run-1")

    with pytest.raises(CheckpointConflictError):
        store.commit("orders", "c6", run_id="run-2", expected_cursor="c4")

    checkpoint = store.load("orders")
    assert checkpoint is not None
    assert checkpoint.cursor == "c5"


def test_checkpoint_store_clear_is_per_target() -> None:
    store = DjangoCheckpointStore()
    store.commit("orders", "c1", run_id="run-1")
    store.commit("customers", "c1", run_id="run-1")

    store.clear("orders")

    assert store.load("orders") is None
    assert store.load("customers") is not None


def test_build_checkpoint_store_selects_backend(tmp_path) -> None:
    assert isinstance(build_checkpoint_store("django"), DjangoCheckpointStore)
    assert isinstance(build_checkpoint_store(""), DjangoCheckpointStore)
    file_store = build_checkpoint_store(str(tmp_path))
    assert isinstance(file_store, FileCheckpointStore)
    assert file_store.directory == tmp_path


def test_sink_writer_upserts_idempotently() -> None:
    sink = DjangoSinkWriter("orders")
    ops = reconcile(
        [
            normalize({"id": 1, "total": 10, "updated_at": "2026-01-01T00:00:00Z"}),
            normalize({"id": 2, "total": 20}),
        ]
    )

    first = sink.apply(ops)
    second = sink.apply(ops)

    assert (first.written, first.unchanged) == (2, 0)
    assert (second.written, second.unchanged) == (0, 2)
    stored = SyncedRecord.objects.get(target_id="orders", record_id="1")
    assert stored.payload == {"id": 1, "total": 10, "updated_at": "2026-01-01T00:00:00Z"}
    assert stored.source_updated_at == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert SyncedRecord.objects.count() == 2


def test_sink_writer_updates_changed_rows_and_skips_older_versions() -> None:
    sink = DjangoSinkWriter("orders")
    sink.apply(reconcile([normalize({"id": 1, "total": 10, "updated_at": "2026-01-02T00:00:00Z"})]))

    newer = sink.apply(
        reconcile([normalize({"id": 1, "total": 11, "updated_at": "2026-01-03T00:00:00Z"})])
    )
    older = sink.apply(
        reconcile([normalize({"id": 1, "total": 9, "updated_at": "2026-01-01T00:00:00Z"})])
    )

    assert newer.written == 1
    assert older.unchanged == 1
    assert SyncedRecord.objects.get(record_id="1").payload["total"] == 11


def test_sink_writer_applies_deletes_and_scopes_by_target() -> None:
    DjangoSinkWriter("customers").apply(reconcile([normalize({"id": 1})]))
    sink = DjangoSinkWriter("orders")
    sink.apply(reconcile([normalize({"id": 1})]))

    result = sink.apply(reconcile([normalize({"id": 1, "deleted": True})], apply_deletes=True))
    repeat = sink.apply(reconcile([normalize({"id": 1, "deleted": True})], apply_deletes=True))

    assert result.deleted == 1
    assert repeat.unchanged == 1
    assert list(SyncedRecord.objects.values_list("target_id", flat=True)) == ["customers"]


def test_sink_writer_rejects_one_op_and_keeps_the_rest(monkeypatch: pytest.MonkeyPatch) -> None:
    sink = DjangoSinkWriter("orders")
    apply_one = sink._apply_one

    def refuse_record_two(op, result):
        if op.record_id == "2":
            SyncedRecord.objects.create(
                target_id="orders", record_id="2", payload={}, content_hash="partial"
            )
            raise IntegrityError("NOT NULL constraint failed: payload")
        apply_one(op, result)

    monkeypatch.setattr(sink, "_apply_one", refuse_record_two)

    result = sink.apply(reconcile([normalize({"id": i}) for i in (1, 2, 3)]))

    assert result.written == 2
    assert [failure.record_id for failure in result.rejected] == ["2"]
    assert "IntegrityError" in result.rejected[0].reason
    assert sorted(SyncedRecord.objects.values_list("record_id", flat=True)) == ["1", "3"]


def test_sink_writer_maps_operational_errors_to_transient(monkeypatch: pytest.MonkeyPatch) -> None:
    sink = DjangoSinkWriter("orders")

    def locked(*_args, **_kwargs):
        raise OperationalError("database is locked")

    monkeypatch.setattr(sink, "_apply_one", locked)

    with pytest.raises(SinkTransientError):
        sink.apply(reconcile([normalize({"id": 1})]))


def test_status_reporter_writes_final_state() -> None:
    reporter = SyncStatusReporter("orders")
    run = SyncRun(target_id="orders")
    reporter(run)

    run.state = RunState.DONE
    run.pages_processed = 2
    run.records_written = 6
    run.finished_at = run.started_at + timedelta(seconds=5)
    reporter(run)

    status_row = SyncStatus.objects.get(target_id="orders")
    assert status_row.status == "done"
    assert status_row.run_id == run.run_id
    assert status_row.pages_processed == 2
    assert status_row.records_processed == 6
    assert status_row.run_finished_at == run.finished_at


def test_status_reporter_throttles_heartbeats(monkeypatch: pytest.MonkeyPatch) -> None:
    current_time = datetime(2026, 2, 12, 18, tzinfo=timezone.utc)
    monkeypatch.setattr(stores, "now", lambda: current_time)
    reporter = SyncStatusReporter("orders")
    run = SyncRun(target_id="orders")
    reporter(run)

    run.state = RunState.COMMITTING
    run.pages_processed = 1
    reporter(run)
    assert SyncStatus.objects.get(target_id="orders").pages_processed == 0

    run.pages_processed = stores.HEARTBEAT_PAGE_INTERVAL
    reporter(run)
    assert SyncStatus.objects.get(target_id="orders").pages_processed == stores.HEARTBEAT_PAGE_INTERVAL
