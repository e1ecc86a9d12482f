"""Durable record of the last synced position per target.

A checkpoint is only ever replaced whole. Backends must make ``commit`` atomic
so that a crash mid-commit leaves the previous checkpoint readable.
"""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Protocol

from datasync_api.errors import CheckpointConflictError, StoreError
from datasync_api.type_defs import Cursor, JsonObject, is_json_object
from datasync_api.utils.datetime import ensure_utc, parse_datetime, utc_now

logger = logging.getLogger(__name__)

UNSET = object()
_TARGET_FILENAME_RE = re.compile(r"[^A-Za-z0-9_.-]")


@dataclass(frozen=True)
class Checkpoint:
    target_id: str
    cursor: Cursor | None
    run_id: str
    committed_at: datetime
    watermark: datetime | None = None
    cycle_started_at: datetime | None = None

    @property
    def in_progress(self) -> bool:
        return self.cursor is not None

    def to_dict(self) -> JsonObject:
        return {
            "target_id": self.target_id,
            "cursor": self.cursor,
            "run_id": self.run_id,
            "committed_at": self.committed_at.isoformat(),
            "watermark": self.watermark.isoformat() if self.watermark else None,
            "cycle_started_at": (
                self.cycle_started_at.isoformat() if self.cycle_started_at else None
            ),
        }

    @classmethod
    def from_dict(cls, data: JsonObject) -> Checkpoint:
        target_id = data.get("target_id")
        cursor = data.get("cursor")
        run_id = data.get("run_id")
        committed_at = _optional_datetime(data.get("committed_at"))
        if not isinstance(target_id, str) or not isinstance(run_id, str):
            raise ValueError("checkpoint is missing target_id or run_id")
        if cursor is not None and not isinstance(cursor, str):
            raise ValueError(f"checkpoint cursor must be a string, got {type(cursor)}")
        if committed_at is None:
            raise ValueError("checkpoint is missing committed_at")
        return cls(
            target_id=target_id,
            cursor=cursor,
            run_id=run_id,
            committed_at=committed_at,
            watermark=_optional_datetime(data.get("watermark")),
            cycle_started_at=_optional_datetime(data.get("cycle_started_at")),
        )


def _optional_datetime(value: object) -> datetime | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"expected an ISO timestamp, got {value!r}")
    parsed = parse_datetime(value)
    if parsed is None:
        raise ValueError(f"unparseable timestamp {value!r}")
    return ensure_utc(parsed)


def _fsync_directory(directory: Path) -> None:
    # The rename is only durable once the directory entry reaches disk.
    directory_fd = os.open(directory, os.O_RDONLY)
    try:
        os.fsync(directory_fd)
    finally:
        os.close(directory_fd)


class CheckpointStore(Protocol):
    def load(self, target_id: str) -> Checkpoint | None:
        ...

    def commit(
        self,
        target_id: str,
        cursor: Cursor | None,
        *,
        run_id: str,
        watermark: datetime | None = None,
        cycle_started_at: datetime | None = None,
        expected_cursor: object = UNSET,
    ) -> Checkpoint:
        ...

    def clear(self, target_id: str) -> None:
        ...


class FileCheckpointStore:
    """One JSON document per target inside ``directory``.

    Commits go through a temporary file in the same directory that is fsynced
    and then renamed over the previous checkpoint with ``os.replace``.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory).expanduser()

    def path_for(self, target_id: str) -> Path:
        safe_name = _TARGET_FILENAME_RE.sub("_", target_id) or "_"
        return self.directory / f"{safe_name}.checkpoint.json"

    def load(self, target_id: str) -> Checkpoint | None:
        path = self.path_for(target_id)
        try:
            with path.open(encoding="utf-8") as file:
                data = json.load(file)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as error:
            raise StoreError(f"Unable to read checkpoint {path}: {error}") from error

        if not is_json_object(data):
            raise StoreError(f"Checkpoint {path} does not contain a JSON object")
        try:
            checkpoint = Checkpoint.from_dict(data)
        except ValueError as error:
            raise StoreError(f"Corrupt checkpoint {path}: {error}") from error
        if checkpoint.target_id != target_id:
            raise StoreError(
                f"Checkpoint {path} belongs to {checkpoint.target_id!r}, not {target_id!r}"
            )
        return checkpoint

    def commit(
        self,
        target_id: str,
        cursor: Cursor | None,
        *,
        run_id: str,
        watermark: datetime | None = None,
        cycle_started_at: datetime | None = None,
        expected_cursor: object = UNSET,
    ) -> Checkpoint:
        if expected_cursor is not UNSET:
            current = self.load(target_id)
            current_cursor = current.cursor if current else None
            if current_cursor != expected_cursor:
                raise CheckpointConflictError(target_id, expected_cursor, current_cursor)  # type: ignore[arg-type]

        checkpoint = Checkpoint(
            target_id=target_id,
            cursor=cursor,
            run_id=run_id,
            committed_at=utc_now(),
            watermark=watermark,
            cycle_started_at=cycle_started_at,
        )
        path = self.path_for(target_id)
        temp_name: str | None = None
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            file_descriptor, temp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=self.directory
            )
            with os.fdopen(file_descriptor, "w", encoding="utf-8") as file:
                json.dump(checkpoint.to_dict(), file, sort_keys=True)
                file.flush()
                os.fsync(file.fileno())
            os.replace(temp_name, path)
            temp_name = None
            _fsync_directory(self.directory)
        except OSError as error:
            raise StoreError(f"Unable to write checkpoint {path}: {error}") from error
        finally:
            if temp_name is not None:
                Path(temp_name).unlink(missing_ok=True)

        logger.debug("Committed checkpoint %s cursor=%r", target_id, cursor)
        return checkpoint

    def clear(self, target_id: str) -> None:
        path = self.path_for(target_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as error:
            raise StoreError(f"Unable to remove checkpoint {path}: {error}") from error


class MemoryCheckpointStore:
    """Keeps checkpoints in a dictionary. Used for dry runs and tests."""

    def __init__(self, seed: Checkpoint | None = None) -> None:
        self.checkpoints: dict[str, Checkpoint] = {}
        self.history: list[Checkpoint] = []
        if seed is not None:
            self.checkpoints[seed.target_id] = seed

    def load(self, target_id: str) -> Checkpoint | None:
        return self.checkpoints.get(target_id)

    def commit(
        self,
        target_id: str,
        cursor: Cursor | None,
        *,
        run_id: str,
        watermark: datetime | None = None,
        cycle_started_at: datetime | None = None,
        expected_cursor: object = UNSET,
    ) -> Checkpoint:
        if expected_cursor is not UNSET:
            current = self.checkpoints.get(target_id)
            current_cursor = current.cursor if current else None
            if current_cursor != expected_cursor:
                raise CheckpointConflictError(target_id, expected_cursor, current_cursor)  # type: ignore[arg-type]

        checkpoint = Checkpoint(
            target_id=target_id,
            cursor=cursor,
            run_id=run_id,
            committed_at=utc_now(),
            watermark=watermark,
            cycle_started_at=cycle_started_at,
        )
        self.checkpoints[target_id] = checkpoint
        self.history.append(checkpoint)
        return checkpoint

    def clear(self, target_id: str) -> None:
        self.checkpoints.pop(target_id, None)
