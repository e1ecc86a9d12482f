import logging
from collections.abc import Sequence
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import (
    DatabaseError,
    DataError as DatabaseDataError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    transaction,
)
from django.utils.timezone import now

from datasync_api.checkpoint import (
    UNSET,
    Checkpoint as CheckpointValue,
    CheckpointStore,
    FileCheckpointStore,
)
from datasync_api.errors import CheckpointConflictError, SinkTransientError, StoreError
from datasync_api.orchestrator import RunState, SyncRun
from datasync_api.records import Action, WriteOp
from datasync_api.sink import ApplyResult, is_unchanged
from datasync_api.type_defs import Cursor
from datasync_data.models import Checkpoint, SyncedRecord, SyncStatus

logger = logging.getLogger(__name__)

DJANGO_BACKEND = "django"
HEARTBEAT_PAGE_INTERVAL = 10
HEARTBEAT_SECONDS_INTERVAL = 30


class DjangoCheckpointStore:
    """Checkpoints stored as one ``Checkpoint`` row per target."""

    def load(self, target_id: str) -> CheckpointValue | None:
        try:
            row = Checkpoint.objects.filter(target_id=target_id).first()
        except DatabaseError as error:
            raise StoreError(f"Unable to read checkpoint for {target_id!r}: {error}") from error
        return row.to_value() if row is not None else None

    def commit(
        self,
        target_id: str,
        cursor: Cursor | None,
        *,
        run_id: str,
        watermark: datetime | None = None,
        cycle_started_at: datetime | None = None,
        expected_cursor: object = UNSET,
    ) -> CheckpointValue:
        values = {
            "cursor": cursor,
            "run_id": run_id,
            "committed_at": now(),
            "watermark": watermark,
            "cycle_started_at": cycle_started_at,
        }
        try:
            with transaction.atomic():
                row = (
                    Checkpoint.objects.select_for_update()
                    .filter(target_id=target_id)
                    .first()
                )
                if expected_cursor is not UNSET:
                    current_cursor = row.cursor if row is not None else None
                    if current_cursor != expected_cursor:
                        raise CheckpointConflictError(target_id, expected_cursor, current_cursor)  # type: ignore[arg-type]
                if row is None:
                    row = Checkpoint.objects.create(target_id=target_id, **values)
                else:
                    for key, value in values.items():
                        setattr(row, key, value)
                    row.save()
        except DatabaseError as error:
            raise StoreError(f"Unable to commit checkpoint for {target_id!r}: {error}") from error
        return row.to_value()

    def clear(self, target_id: str) -> None:
        try:
            Checkpoint.objects.filter(target_id=target_id).delete()
        except DatabaseError as error:
            raise StoreError(f"Unable to clear checkpoint for {target_id!r}: {error}") from error


def build_checkpoint_store(backend: str) -> CheckpointStore:
    if not backend or backend.strip().lower() == DJANGO_BACKEND:
        return DjangoCheckpointStore()
    return FileCheckpointStore(backend.strip())


class DjangoSinkWriter:
    """Upserts ``SyncedRecord`` rows keyed by ``(target_id, record_id)``.

    The whole batch runs in one transaction so the page is durable before the
    orchestrator commits its checkpoint. Each op gets its own savepoint, so an
    op the database refuses is rolled back alone and reported as rejected.
    """

    def __init__(self, target_id: str) -> None:
        self.target_id = target_id

    def apply(self, ops: Sequence[WriteOp]) -> ApplyResult:
        result = ApplyResult()
        try:
            with transaction.atomic():
                for op in ops:
                    try:
                        with transaction.atomic():
                            self._apply_one(op, result)
                    except (IntegrityError, DatabaseDataError, ValidationError) as error:
                        result.reject(op, f"{type(error).__name__}: {error}")
        except (OperationalError, InterfaceError) as error:
            raise SinkTransientError(f"Destination unavailable: {error}") from error
        return result

    def _apply_one(self, op: WriteOp, result: ApplyResult) -> None:
        rows = SyncedRecord.objects.filter(target_id=self.target_id, record_id=op.record_id)
        if op.action is Action.DELETE:
            deleted_count, _ = rows.delete()
            if deleted_count:
                result.deleted += 1
            else:
                result.unchanged += 1
            return

        stored = rows.values_list("content_hash", "source_updated_at").first()
        if stored is not None and is_unchanged(op, *stored):
            result.unchanged += 1
            return

        SyncedRecord.objects.update_or_create(
            target_id=self.target_id,
            record_id=op.record_id,
            defaults={
                "payload": op.payload,
                "content_hash": op.content_hash,
                "source_updated_at": op.updated_at,
            },
        )
        result.written += 1


class SyncStatusReporter:
    """Progress callback that keeps the ``SyncStatus`` row for a target current."""

    def __init__(self, target_id: str) -> None:
        self.target_id = target_id
        self._last_written_at: datetime | None = None
        self._last_written_page = 0

    def __call__(self, run: SyncRun) -> None:
        current_time = now()
        if not self._should_write(run, current_time):
            return
        payload: dict[str, object] = {
            "run_id": run.run_id,
            "status": "running" if run.state not in {RunState.DONE, RunState.FAILED} else run.state.value,
            "cursor": run.current_cursor,
            "pages_processed": run.pages_processed,
            "records_processed": run.records_processed,
            "records_failed": run.records_failed,
            "run_started_at": run.started_at,
            "run_finished_at": run.finished_at,
            "last_heartbeat": current_time,
            "last_error": str(run.error) if run.error else None,
        }
        try:
            SyncStatus.objects.update_or_create(target_id=self.target_id, defaults=payload)
        except DatabaseError as error:
            logger.warning("Unable to record sync status for %s: %s", self.target_id, error)
            return
        self._last_written_at = current_time
        self._last_written_page = run.pages_processed

    def _should_write(self, run: SyncRun, current_time: datetime) -> bool:
        if run.state in {RunState.IDLE, RunState.DONE, RunState.FAILED}:
            return True
        if self._last_written_at is None:
            return True
        enough_pages = run.pages_processed - self._last_written_page >= HEARTBEAT_PAGE_INTERVAL
        enough_time = (
            current_time - self._last_written_at
        ).total_seconds() >= HEARTBEAT_SECONDS_INTERVAL
        return enough_pages or enough_time
