import logging
from collections.abc import Iterable

from datasync_api.records import Record, WriteOp

logger = logging.getLogger(__name__)


def _is_newer_or_same(candidate: Record, current: Record) -> bool:
    if candidate.updated_at is None or current.updated_at is None:
        return True
    return candidate.updated_at >= current.updated_at


def reconcile(records: Iterable[Record], *, apply_deletes: bool = False) -> list[WriteOp]:
    """Turn one page of records into write operations.

    The source is authoritative, so every record becomes an upsert and a
    tombstoned record becomes a delete when ``apply_deletes`` is set; otherwise
    the tombstone is dropped. Ops keep page order. When an id repeats
    within the page, the op stays at its first position and carries the
    version with the latest ``updated_at``.
    """
    latest: dict[str, Record] = {}
    order: list[str] = []
    for record in records:
        current = latest.get(record.id)
        if current is None:
            order.append(record.id)
            latest[record.id] = record
            continue
        logger.debug("Record %s appears more than once in the page", record.id)
        if _is_newer_or_same(record, current):
            latest[record.id] = record

    ops: list[WriteOp] = []
    for record_id in order:
        record = latest[record_id]
        if not record.deleted:
            ops.append(WriteOp.upsert(record))
        elif apply_deletes:
            ops.append(WriteOp.delete(record))
        else:
            logger.info("Ignoring tombstone for %s; deletes are disabled.", record_id)
    return ops
