from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datasync_api.records import RecordFailure


class SyncError(Exception):
    """Base class for every error the sync engine raises."""

    transient = False


class ConfigurationError(SyncError):
    pass


class FetchError(SyncError):
    """The source could not return a usable page."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    transient = True


class AuthError(FetchError):
    pass


class MalformedPageError(FetchError):
    pass


class StoreError(SyncError):
    """The checkpoint could not be read or written; sync position is unknown."""


class CheckpointConflictError(StoreError):
    def __init__(self, target_id: str, expected: str | None, found: str | None) -> None:
        super().__init__(
            f"Checkpoint for {target_id!r} moved underneath this run "
            f"(expected cursor {expected!r}, found {found!r})"
        )
        self.target_id = target_id
        self.expected = expected
        self.found = found


class SinkError(SyncError):
    pass


class SinkTransientError(SinkError):
    transient = True


class RejectedWritesError(SinkError):
    def __init__(self, failures: Sequence["RecordFailure"]) -> None:
        record_ids = ", ".join(str(failure.record_id) for failure in failures[:10])
        suffix = "" if len(failures) <= 10 else f" and {len(failures) - 10} more"
        super().__init__(
            f"Destination rejected {len(failures)} write(s): {record_ids}{suffix}"
        )
        self.failures = list(failures)


class SyncCancelledError(SyncError):
    pass


class DataError(SyncError):
    """A single record could not be synced. Counted and skipped, never fatal."""

    def __init__(self, message: str, *, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id = record_id


class NormalizeError(DataError):
    pass


class MissingIdError(NormalizeError):
    pass


class InvalidTimestampError(NormalizeError):
    pass


class InvalidRecordError(NormalizeError):
    pass


class RejectedWriteError(DataError):
    pass
