import hashlib
import json
from dataclasses import dataclass
from typing import cast

from datasync_api.errors import (
    InvalidRecordError,
    InvalidTimestampError,
    MissingIdError,
)
from datasync_api.records import Record
from datasync_api.type_defs import JsonObject, is_json_object
from datasync_api.utils.datetime import coerce_datetime, ensure_utc


def canonical_json(payload: JsonObject) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def content_hash(payload: JsonObject) -> str:
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def _normalize_identifier(raw_identifier: object) -> str | None:
    if raw_identifier is None or isinstance(raw_identifier, bool):
        return None
    if isinstance(raw_identifier, int):
        return str(raw_identifier)
    if isinstance(raw_identifier, str):
        stripped_value = raw_identifier.strip()
        return stripped_value or None
    return None


TOMBSTONE_STRINGS = frozenset({"true", "1"})


def _is_tombstone(flag: object) -> bool:
    if isinstance(flag, bool):
        return flag
    if isinstance(flag, int):
        return flag == 1
    if isinstance(flag, str):
        return flag.strip().lower() in TOMBSTONE_STRINGS
    return False


def _sort_keys(value: object) -> object:
    if isinstance(value, dict):
        return {key: _sort_keys(value[key]) for key in sorted(value)}
    if isinstance(value, list):
        return [_sort_keys(item) for item in value]
    return value


@dataclass(frozen=True)
class Normalizer:
    """Turns raw source objects into :class:`Record` values.

    Pure: no I/O, no clock, no randomness, so the same raw object always
    yields the same record.
    """

    id_field: str = "id"
    updated_at_field: str = "updated_at"
    deleted_field: str = "deleted"

    def normalize(self, raw: object) -> Record:
        if not is_json_object(raw):
            raise InvalidRecordError(
                f"Expected a JSON object, got {type(raw).__name__}"
            )

        record_id = _normalize_identifier(raw.get(self.id_field))
        if record_id is None:
            raise MissingIdError(
                f"Record has no usable {self.id_field!r}: {raw.get(self.id_field)!r}"
            )

        updated_at = None
        raw_updated_at = raw.get(self.updated_at_field)
        if raw_updated_at is not None:
            updated_at = coerce_datetime(raw_updated_at)
            if updated_at is None:
                raise InvalidTimestampError(
                    f"Unable to parse {self.updated_at_field} {raw_updated_at!r}",
                    record_id=record_id,
                )
            updated_at = ensure_utc(updated_at)

        payload = cast(JsonObject, _sort_keys(raw))
        return Record(
            id=record_id,
            payload=payload,
            updated_at=updated_at,
            content_hash=content_hash(payload),
            deleted=_is_tombstone(raw.get(self.deleted_field)),
        )


_default_normalizer = Normalizer()


def normalize(raw: object) -> Record:
    return _default_normalizer.normalize(raw)
