from __future__ import annotations

import re
from datetime import date, datetime, timezone


_TZ_WITHOUT_COLON_RE = re.compile(r"([+-]\d{2})(\d{2})$")
_EXCESS_MICROS_RE = re.compile(r"(\.\d{6})\d+")
_EPOCH_MILLIS_THRESHOLD = 10_000_000_000


def _normalize_datetime_string(value: str) -> str:
    normalized = value.strip()
    if normalized.endswith(("Z", "z")):
        normalized = f"{normalized[:-1]}+00:00"
    normalized = normalized.replace(" UTC", "+00:00")
    normalized = normalized.replace(" GMT", "+00:00")

    if _TZ_WITHOUT_COLON_RE.search(normalized):
        normalized = _TZ_WITHOUT_COLON_RE.sub(r"\1:\2", normalized)

    # fromisoformat stops at microseconds; sources sometimes send nanoseconds.
    normalized = _EXCESS_MICROS_RE.sub(r"\1", normalized)
    return normalized


def parse_datetime(value: str) -> datetime | None:
    if not isinstance(value, str):
        return None

    normalized = _normalize_datetime_string(value)
    if not normalized:
        return None
    candidates = [normalized]
    if " " in normalized:
        candidates.append(normalized.replace(" ", "T", 1))

    for candidate in candidates:
        try:
            return datetime.fromisoformat(candidate)
        except ValueError:
            continue
    return None


def coerce_datetime(value: object) -> datetime | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        return parse_datetime(value)
    if isinstance(value, (int, float)):
        timestamp = float(value)
        if timestamp > _EPOCH_MILLIS_THRESHOLD:
            timestamp /= 1000.0
        try:
            return datetime.fromtimestamp(timestamp, tz=timezone.utc)
        except (OSError, OverflowError, ValueError):
            return None
    return None


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_datetime(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)
