"""Shared timestamp parsing and formatting helpers."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

# Entry header: YYYY-MM-DD HH:MM:SS:mmm at the very start of a line.
ENTRY_TIMESTAMP_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}:\d{3}")
# Validator accepts the same shape with optional milliseconds.
LOOSE_TIMESTAMP_PREFIX_RE = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")
_LOG_TIMESTAMP_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2}) (\d{2}):(\d{2}):(\d{2}):(\d{3})$")

LOG_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def starts_with_log_timestamp(line: str) -> bool:
    return bool(ENTRY_TIMESTAMP_PREFIX_RE.match(line))


def parse_log_timestamp(value: str) -> datetime | None:
    """Strictly parse a `YYYY-MM-DD HH:MM:SS:mmm` field.

    Log timestamps carry no zone, so the result is naive. Returns None for any
    token that is not exactly this shape or names an impossible date/time.
    """
    match = _LOG_TIMESTAMP_RE.match((value or "").strip())
    if not match:
        return None
    year, month, day, hour, minute, second, millis = (int(part) for part in match.groups())
    try:
        return datetime(year, month, day, hour, minute, second, millis * 1000)
    except ValueError:
        return None


def format_log_timestamp(value: datetime) -> str:
    """Render a datetime back into the agent's log timestamp format."""
    return f"{value.strftime(LOG_TIMESTAMP_FORMAT)}:{value.microsecond // 1000:03d}"


def first_log_timestamp(lines: Iterable[str]) -> datetime | None:
    """Return the first parseable entry timestamp found in `lines`."""
    for line in lines:
        match = ENTRY_TIMESTAMP_PREFIX_RE.match(line)
        if not match:
            continue
        parsed = parse_log_timestamp(match.group(0))
        if parsed:
            return parsed
    return None


def format_duration(seconds: float | None) -> str:
    if seconds is None:
        return "-"
    if seconds < 1:
        return f"{int(round(seconds * 1000))}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes, secs = divmod(int(round(seconds)), 60)
    if minutes < 60:
        return f"{minutes}m {secs}s"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def _format_datetime_utc(value: datetime) -> str:
    dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt.isoformat().replace("+00:00", "Z")


def file_modified_at(path: Path) -> str:
    """Return the normalized filesystem modified timestamp, or ""."""
    try:
        stats = path.stat()
    except OSError:
        return ""
    return _format_datetime_utc(datetime.fromtimestamp(float(stats.st_mtime), timezone.utc))
