from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from datasync_api.type_defs import Cursor, JsonObject, RawRecord


@dataclass(frozen=True)
class Record:
    id: str
    payload: JsonObject
    updated_at: datetime | None
    content_hash: str
    deleted: bool = False


@dataclass(frozen=True)
class Page:
    records: list[RawRecord]
    next_cursor: Cursor | None

    @property
    def is_last(self) -> bool:
        return self.next_cursor is None


class Action(str, Enum):
    UPSERT = "upsert"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteOp:
    record_id: str
    action: Action
    payload: JsonObject = field(default_factory=dict)
    updated_at: datetime | None = None
    content_hash: str = ""

    @classmethod
    def upsert(cls, record: Record) -> WriteOp:
        return cls(
            record_id=record.id,
            action=Action.UPSERT,
            payload=record.payload,
            updated_at=record.updated_at,
            content_hash=record.content_hash,
        )

    @classmethod
    def delete(cls, record: Record) -> WriteOp:
        return cls(
            record_id=record.id,
            action=Action.DELETE,
            updated_at=record.updated_at,
        )


@dataclass(frozen=True)
class RecordFailure:
    record_id: str | None
    stage: str
    reason: str

    def to_dict(self) -> dict[str, str | None]:
        return {"record_id": self.record_id, "stage": self.stage, "reason": self.reason}
