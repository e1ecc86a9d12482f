from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from datasync_api.errors import RejectedWriteError
from datasync_api.records import Action, RecordFailure, WriteOp
from datasync_api.type_defs import JsonObject

logger = logging.getLogger(__name__)


@dataclass
class ApplyResult:
    written: int = 0
    unchanged: int = 0
    deleted: int = 0
    rejected: list[RecordFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.rejected

    def reject(self, op: WriteOp, reason: str) -> None:
        logger.warning("Destination rejected %s %s: %s", op.action.value, op.record_id, reason)
        self.rejected.append(RecordFailure(record_id=op.record_id, stage="write", reason=reason))


class SinkWriter(Protocol):
    def apply(self, ops: Sequence[WriteOp]) -> ApplyResult:
        """Apply ops in order. Idempotent per record id.

        Raises ``SinkTransientError`` when the destination is unavailable; the
        caller retries the whole batch. Ops the destination refuses are
        reported in ``ApplyResult.rejected`` and do not stop the batch.
        """
        ...


def is_unchanged(
    op: WriteOp, stored_hash: str | None, stored_updated_at: datetime | None
) -> bool:
    """True when an upsert would not change the stored row.

    Covers both an identical payload and an incoming version older than the
    stored one (last write wins by ``updated_at``).
    """
    if stored_hash is not None and stored_hash == op.content_hash:
        return True
    if stored_updated_at is not None and op.updated_at is not None:
        return op.updated_at < stored_updated_at
    return False


@dataclass
class StoredRecord:
    payload: JsonObject
    updated_at: datetime | None
    content_hash: str


class MemorySinkWriter:
    """Dictionary-backed destination used for dry runs and tests."""

    def __init__(self, validator: Callable[[WriteOp], None] | None = None) -> None:
        self.records: dict[str, StoredRecord] = {}
        self.validator = validator

    def apply(self, ops: Sequence[WriteOp]) -> ApplyResult:
        result = ApplyResult()
        for op in ops:
            if self.validator is not None:
                try:
                    self.validator(op)
                except RejectedWriteError as error:
                    result.reject(op, str(error))
                    continue

            if op.action is Action.DELETE:
                if self.records.pop(op.record_id, None) is not None:
                    result.deleted += 1
                else:
                    result.unchanged += 1
                continue

            stored = self.records.get(op.record_id)
            if stored is not None and is_unchanged(op, stored.content_hash, stored.updated_at):
                result.unchanged += 1
                continue
            self.records[op.record_id] = StoredRecord(
                payload=op.payload,
                updated_at=op.updated_at,
                content_hash=op.content_hash,
            )
            result.written += 1
        return result

    def snapshot(self) -> dict[str, JsonObject]:
        return {record_id: stored.payload for record_id, stored in self.records.items()}
