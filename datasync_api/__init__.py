from datasync_api.checkpoint import (
    Checkpoint,
    CheckpointStore,
    FileCheckpointStore,
    MemoryCheckpointStore,
)
from datasync_api.client import SourceClient
from datasync_api.normalizer import Normalizer, normalize
from datasync_api.orchestrator import RunState, SyncOrchestrator, SyncRun
from datasync_api.reconciler import reconcile
from datasync_api.records import Action, Page, Record, WriteOp
from datasync_api.secret import Secret
from datasync_api.sink import ApplyResult, MemorySinkWriter, SinkWriter

__all__ = [
    "Action",
    "ApplyResult",
    "Checkpoint",
    "CheckpointStore",
    "FileCheckpointStore",
    "MemoryCheckpointStore",
    "MemorySinkWriter",
    "Normalizer",
    "Page",
    "Record",
    "RunState",
    "Secret",
    "SinkWriter",
    "SourceClient",
    "SyncOrchestrator",
    "SyncRun",
    "WriteOp",
    "normalize",
    "reconcile",
]
