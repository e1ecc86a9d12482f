from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from datasync_api.utils import coerce_datetime, format_datetime, parse_datetime
from datasync_api.utils.datetime import ensure_utc


def test_parse_datetime_handles_inconsistent_formats() -> None:
    assert parse_datetime("2026-01-01T00:00:00Z") == datetime(
        2026, 1, 1, tzinfo=timezone.utc
    )
    assert parse_datetime("2026-01-01T00:00:00+0000") == datetime(
        2026, 1, 1, tzinfo=timezone.utc
    )
    assert parse_datetime("2026-01-01 00:00:00+00:00") == datetime(
        2026, 1, 1, tzinfo=timezone.utc
    )
    assert parse_datetime("2026-01-01T00:00:00.123456789Z") == datetime(
        2026, 1, 1, microsecond=123456, tzinfo=timezone.utc
    )
    assert parse_datetime("not-a-datetime") is None
    assert parse_datetime("   ") is None


def test_coerce_datetime_supports_date_strings_and_epoch_values() -> None:
    assert coerce_datetime(date(2026, 1, 1)) == datetime(2026, 1, 1)
    assert coerce_datetime(1_704_067_200) == datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert coerce_datetime(1_704_067_200_000) == datetime(
        2024, 1, 1, tzinfo=timezone.utc
    )
    assert coerce_datetime(True) is None
    assert coerce_datetime(object()) is None


def test_ensure_utc_and_format_datetime() -> None:
    naive = datetime(2026, 2, 8, 10, 11, 12, 123456)
    offset = datetime(2026, 2, 8, 12, 11, 12, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert ensure_utc(naive).tzinfo == timezone.utc
    assert ensure_utc(offset) == ensure_utc(naive)
    assert format_datetime(offset) == "2026-02-08T10:11:12.123456Z"
