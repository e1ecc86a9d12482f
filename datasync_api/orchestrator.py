"""Drives fetch -> normalize -> reconcile -> write -> commit, one page at a time.

The checkpoint for a page is committed only after every write for that page
has been confirmed by the sink. A page that fails anywhere before the commit
is simply fetched again by the next run; sink writes are idempotent, so the
redelivery converges on the same destination state.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, cast
from uuid import uuid4

from datasync_api.checkpoint import Checkpoint, CheckpointStore
from datasync_api.errors import (
    NormalizeError,
    RejectedWritesError,
    SyncCancelledError,
    SyncError,
)
from datasync_api.normalizer import Normalizer
from datasync_api.reconciler import reconcile
from datasync_api.records import Page, Record, RecordFailure, WriteOp
from datasync_api.retry import RetryPolicy, call_with_retry
from datasync_api.sink import ApplyResult, SinkWriter
from datasync_api.type_defs import Cursor
from datasync_api.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    NORMALIZING = "normalizing"
    RECONCILING = "reconciling"
    WRITING = "writing"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


ALLOWED_TRANSITIONS: dict[RunState, frozenset[RunState]] = {
    RunState.IDLE: frozenset({RunState.FETCHING, RunState.DONE}),
    RunState.FETCHING: frozenset({RunState.NORMALIZING}),
    RunState.NORMALIZING: frozenset({RunState.RECONCILING}),
    RunState.RECONCILING: frozenset({RunState.WRITING}),
    RunState.WRITING: frozenset({RunState.COMMITTING}),
    RunState.COMMITTING: frozenset({RunState.FETCHING, RunState.DONE}),
    RunState.DONE: frozenset(),
    RunState.FAILED: frozenset(),
}


class PageSource(Protocol):
    def fetch_page(
        self, cursor: Cursor | None, *, updated_since: datetime | None = None
    ) -> Page:
        ...


@dataclass
class SyncRun:
    target_id: str
    run_id: str = field(default_factory=lambda: uuid4().hex)
    started_at: datetime = field(default_factory=utc_now)
    finished_at: datetime | None = None
    state: RunState = RunState.IDLE
    current_cursor: Cursor | None = None
    pages_processed: int = 0
    records_written: int = 0
    records_unchanged: int = 0
    records_deleted: int = 0
    records_failed: int = 0
    failures: list[RecordFailure] = field(default_factory=list)
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.DONE

    @property
    def records_processed(self) -> int:
        return (
            self.records_written
            + self.records_unchanged
            + self.records_deleted
            + self.records_failed
        )

    @property
    def elapsed_seconds(self) -> int:
        end = self.finished_at or utc_now()
        return max(0, int((end - self.started_at).total_seconds()))

    def record_failure(self, failure: RecordFailure) -> None:
        self.failures.append(failure)
        self.records_failed += 1

    def to_dict(self) -> dict[str, object]:
        return {
            "target_id": self.target_id,
            "run_id": self.run_id,
            "state": self.state.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "elapsed_seconds": self.elapsed_seconds,
            "pages_processed": self.pages_processed,
            "records_written": self.records_written,
            "records_unchanged": self.records_unchanged,
            "records_deleted": self.records_deleted,
            "records_failed": self.records_failed,
            "failures": [failure.to_dict() for failure in self.failures[:50]],
            "error": str(self.error) if self.error else None,
        }


ProgressCallback = Callable[[SyncRun], None]


def _is_transient(error: BaseException) -> bool:
    return isinstance(error, SyncError) and error.transient


class SyncOrchestrator:
    def __init__(
        self,
        source: PageSource,
        sink: SinkWriter,
        checkpoints: CheckpointStore,
        *,
        target_id: str,
        normalizer: Normalizer | None = None,
        retry_policy: RetryPolicy | None = None,
        apply_deletes: bool = False,
        max_pages: int | None = None,
        progress_callback: ProgressCallback | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.source = source
        self.sink = sink
        self.checkpoints = checkpoints
        self.target_id = target_id
        self.normalizer = normalizer or Normalizer()
        self.retry_policy = retry_policy or RetryPolicy()
        self.apply_deletes = apply_deletes
        self.max_pages = max_pages
        self.progress_callback = progress_callback
        self.sleep = sleep
        self._stop_requested = False

    def request_stop(self) -> None:
        """Finish the page in flight, then stop without starting another."""
        if not self._stop_requested:
            logger.warning("Stop requested for %s; finishing the current page.", self.target_id)
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def run(self) -> SyncRun:
        run = SyncRun(target_id=self.target_id)
        logger.info(
            "SYNC_RUN start=%s target=%s run_id=%s",
            run.started_at.isoformat(),
            run.target_id,
            run.run_id,
        )
        self._notify(run)

        try:
            self._run_pages(run)
        except SyncError as error:
            self._fail(run, error)
        except Exception as error:
            self._fail(run, error)
            raise
        finally:
            run.finished_at = utc_now()
            self._log_summary(run)
            self._notify(run)
        return run

    def _run_pages(self, run: SyncRun) -> None:
        checkpoint = self.checkpoints.load(self.target_id)
        cursor = checkpoint.cursor if checkpoint else None
        watermark = checkpoint.watermark if checkpoint else None
        cycle_started_at = None
        if checkpoint is not None and checkpoint.in_progress:
            cycle_started_at = checkpoint.cycle_started_at
            logger.info("Resuming %s from cursor %r", self.target_id, cursor)
        if cycle_started_at is None:
            cycle_started_at = run.started_at
        run.current_cursor = cursor

        while True:
            if self._stop_requested:
                raise SyncCancelledError(
                    f"Stopped after {run.pages_processed} page(s); checkpoint is at {cursor!r}"
                )
            if self.max_pages is not None and run.pages_processed >= self.max_pages:
                logger.info(
                    "Reached page limit (%s) for %s; resuming from %r next run.",
                    self.max_pages,
                    self.target_id,
                    cursor,
                )
                break

            page = self._fetch(run, cursor, watermark)
            records = self._normalize(run, page)
            ops = self._reconcile(run, records)
            self._write(run, ops)

            is_last_page = page.next_cursor is None
            committed = self._commit(
                run,
                page.next_cursor,
                expected_cursor=cursor,
                watermark=cycle_started_at if is_last_page else watermark,
                cycle_started_at=None if is_last_page else cycle_started_at,
            )
            run.pages_processed += 1
            cursor = committed.cursor
            run.current_cursor = cursor
            logger.info(
                "Committed page %s for %s: %s ops, cursor=%r",
                run.pages_processed,
                self.target_id,
                len(ops),
                cursor,
            )
            self._notify(run)

            if is_last_page:
                break

        self._transition(run, RunState.DONE)

    def _fetch(self, run: SyncRun, cursor: Cursor | None, watermark: datetime | None) -> Page:
        self._transition(run, RunState.FETCHING)
        attempt = call_with_retry(
            lambda: self.source.fetch_page(cursor, updated_since=watermark),
            self.retry_policy,
            retry_on=_is_transient,
            should_stop=lambda: self._stop_requested,
            on_retry=self._log_retry("fetch"),
            sleep=self.sleep,
        )
        if attempt.error is not None:
            raise attempt.error
        return cast(Page, attempt.value)

    def _normalize(self, run: SyncRun, page: Page) -> list[Record]:
        self._transition(run, RunState.NORMALIZING)
        records: list[Record] = []
        for raw in page.records:
            try:
                records.append(self.normalizer.normalize(raw))
            except NormalizeError as error:
                logger.warning("Skipping record: %s", error)
                run.record_failure(
                    RecordFailure(
                        record_id=error.record_id,
                        stage="normalize",
                        reason=f"{type(error).__name__}: {error}",
                    )
                )
        return records

    def _reconcile(self, run: SyncRun, records: Sequence[Record]) -> list[WriteOp]:
        self._transition(run, RunState.RECONCILING)
        return reconcile(records, apply_deletes=self.apply_deletes)

    def _write(self, run: SyncRun, ops: Sequence[WriteOp]) -> ApplyResult:
        self._transition(run, RunState.WRITING)
        attempt = call_with_retry(
            lambda: self.sink.apply(ops),
            self.retry_policy,
            retry_on=_is_transient,
            should_stop=lambda: self._stop_requested,
            on_retry=self._log_retry("write"),
            sleep=self.sleep,
        )
        if attempt.error is not None:
            raise attempt.error
        result = cast(ApplyResult, attempt.value)

        run.records_written += result.written
        run.records_unchanged += result.unchanged
        run.records_deleted += result.deleted
        for failure in result.rejected:
            run.record_failure(failure)
        if result.rejected:
            raise RejectedWritesError(result.rejected)
        return result

    def _commit(
        self,
        run: SyncRun,
        cursor: Cursor | None,
        *,
        expected_cursor: Cursor | None,
        watermark: datetime | None,
        cycle_started_at: datetime | None,
    ) -> Checkpoint:
        self._transition(run, RunState.COMMITTING)
        return self.checkpoints.commit(
            self.target_id,
            cursor,
            run_id=run.run_id,
            watermark=watermark,
            cycle_started_at=cycle_started_at,
            expected_cursor=expected_cursor,
        )

    def _transition(self, run: SyncRun, state: RunState) -> None:
        if state not in ALLOWED_TRANSITIONS[run.state]:
            raise RuntimeError(f"Invalid sync state transition {run.state.value} -> {state.value}")
        logger.debug("%s: %s -> %s", self.target_id, run.state.value, state.value)
        run.state = state

    def _fail(self, run: SyncRun, error: BaseException) -> None:
        logger.error(
            "Sync of %s failed while %s: %s: %s",
            self.target_id,
            run.state.value,
            type(error).__name__,
            error,
        )
        run.state = RunState.FAILED
        run.error = error

    def _log_retry(self, stage: str) -> Callable[[int, BaseException, float], None]:
        def log(attempt_number: int, error: BaseException, delay: float) -> None:
            logger.warning(
                "%s attempt %s/%s for %s failed: %s. Retrying in %.1fs...",
                stage,
                attempt_number,
                self.retry_policy.max_attempts,
                self.target_id,
                error,
                delay,
            )

        return log

    def _notify(self, run: SyncRun) -> None:
        if self.progress_callback is not None:
            self.progress_callback(run)

    @staticmethod
    def _log_summary(run: SyncRun) -> None:
        hours, remainder = divmod(run.elapsed_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        logger.info(
            "SYNC_RUN done target=%s run_id=%s state=%s pages=%s written=%s unchanged=%s "
            "deleted=%s failed=%s elapsed_hms=%02d:%02d:%02d",
            run.target_id,
            run.run_id,
            run.state.value,
            run.pages_processed,
            run.records_written,
            run.records_unchanged,
            run.records_deleted,
            run.records_failed,
            hours,
            minutes,
            seconds,
        )
