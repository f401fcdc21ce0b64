# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Timezone-aware datetime helpers.

Timestamps are stored as UTC. Naive values, whether typed into a
spreadsheet or produced by a driver, are taken to be UTC already.
"""

from datetime import date, datetime, time, timezone

# accepted besides ISO 8601
SPREADSHEET_DATE_FORMATS = (
    "%Y/%m/%d",
    "%m/%d/%Y",
    "%d.%m.%Y",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive values and convert aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date_value(value: object) -> datetime | None:
    """Read a date cell as a UTC datetime.

    Excel cells arrive as datetime or date objects; CSV cells as text in
    ISO 8601 (``Z`` suffix allowed) or one of SPREADSHEET_DATE_FORMATS.

    Returns:
        The datetime, or None for an empty cell.

    Raises:
        ValueError: The value is not a recognizable date.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str):
        raise ValueError(f"Not a date: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        pass
    for fmt in SPREADSHEET_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise ValueError(f"Not a date: {value!r}")


def storage_timestamp(dt: datetime | None = None) -> str:
    """Timestamp safe inside an object key, e.g. ``2025-01-31T10-15-00-123456+00-00``."""
    return (dt or utc_now()).isoformat().replace(":", "-").replace(".", "-")
