"""Tokenize raw agent log text into LogEntry models."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from logwatch.date_utils import parse_log_timestamp, starts_with_log_timestamp
from logwatch.models import LogEntry, LogLevel
from logwatch.parsers.validator import COLUMN_DELIMITER, MIN_COLUMNS

logger = logging.getLogger("logwatch.parser")

# Chatty reporter whose entries duplicate AppPolicyHandler results.
NOISE_COMPONENTS = frozenset({"AppPolicyResultsReporter"})


@dataclass
class _OpenEntry:
    line_number: int
    header: str
    columns: list[str]
    continuation: list[str] = field(default_factory=list)


def _build_entry(pending: _OpenEntry) -> tuple[LogEntry | None, str | None]:
    """Finalize an open entry. Returns (entry, None) or (None, error)."""
    columns = pending.columns
    timestamp_token = columns[0].strip()
    level_token = columns[2].strip()

    timestamp = parse_log_timestamp(timestamp_token)
    if timestamp is None:
        return None, f"Line {pending.line_number}: Failed to parse log entry (invalid timestamp '{timestamp_token}')"
    level = LogLevel.from_code(level_token)
    if level is None:
        return None, f"Line {pending.line_number}: Failed to parse log entry (unrecognized level code '{level_token}')"

    base_message = COLUMN_DELIMITER.join(columns[MIN_COLUMNS:])
    message = "\n".join([base_message, *pending.continuation]) if pending.continuation else base_message
    raw_line = "\n".join([pending.header, *pending.continuation])

    entry = LogEntry(
        timestamp=timestamp,
        process=columns[1].strip(),
        level=level,
        threadId=columns[3].strip(),
        component=columns[4].strip(),
        message=message,
        rawLine=raw_line,
        lineNumber=pending.line_number,
    )
    return entry, None


def parse_entries(content: str) -> tuple[list[LogEntry], list[str]]:
    """Split `content` into ordered entries plus non-fatal parse errors.

    A line that starts with `YYYY-MM-DD HH:MM:SS:mmm` opens a new entry; any
    other non-blank line continues the open entry's message. Malformed headers
    and orphaned continuation lines are reported by 1-based line number and
    skipped. Entries from noise components are dropped without an error.
    """
    entries: list[LogEntry] = []
    errors: list[str] = []
    current: _OpenEntry | None = None
    noise_dropped = 0

    def _flush() -> None:
        nonlocal noise_dropped
        if current is None:
            return
        entry, error = _build_entry(current)
        if error:
            errors.append(error)
            logger.debug(error)
            return
        if entry.component in NOISE_COMPONENTS:
            noise_dropped += 1
            return
        entries.append(entry)

    for index, line in enumerate((content or "").splitlines(), start=1):
        if not line.strip():
            continue

        if starts_with_log_timestamp(line):
            _flush()
            columns = line.split(COLUMN_DELIMITER)
            if len(columns) >= MIN_COLUMNS:
                current = _OpenEntry(line_number=index, header=line, columns=columns)
            else:
                error = f"Line {index}: Invalid log entry format"
                errors.append(error)
                logger.debug(error)
                current = None
            continue

        if current is not None:
            current.continuation.append(line)
        else:
            error = f"Line {index}: Orphaned continuation line"
            errors.append(error)
            logger.debug(error)

    _flush()

    if noise_dropped:
        logger.debug("Dropped %d entries from noise components", noise_dropped)
    return entries, errors
