from datasync_api.utils.datetime import (
    coerce_datetime,
    format_datetime,
    parse_datetime,
    utc_now,
)

__all__ = ["coerce_datetime", "format_datetime", "parse_datetime", "utc_now"]
