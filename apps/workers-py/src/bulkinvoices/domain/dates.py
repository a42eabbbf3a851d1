"""Date helpers for provider time filters."""

from __future__ import annotations

import datetime as dt
import re

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_iso_date(value: str) -> dt.date:
    if not _ISO_DATE.match((value or "").strip()):
        raise ValueError(f"Invalid date: {value}")
    try:
        return dt.datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValueError(f"Invalid date: {value}") from None


def local_midnight_epoch(value: str) -> int:
    """Unix timestamp of 00:00:00 local time on the given YYYY-MM-DD date."""
    d = parse_iso_date(value)
    # naive datetime -> interpreted in the local timezone
    return int(dt.datetime(d.year, d.month, d.day).timestamp())
