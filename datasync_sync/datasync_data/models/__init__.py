from .checkpoint import Checkpoint
from .synced_record import SyncedRecord
from .sync_status import SyncStatus
