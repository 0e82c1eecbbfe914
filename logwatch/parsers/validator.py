"""Cheap format check run before a full parse."""
from __future__ import annotations

import logging

from logwatch import config
from logwatch.date_utils import LOOSE_TIMESTAMP_PREFIX_RE
from logwatch.models import ValidationResult

logger = logging.getLogger("logwatch.parser")

COLUMN_DELIMITER = " | "
MIN_COLUMNS = 5
AGENT_PROCESS_MARKERS = ("IntuneMDMDaemon", "IntuneMDM-Daemon")
BANNER_PREFIX = "==="

WRONG_FORMAT_MESSAGE = """This file does not appear to be a valid log file format.

Expected format: timestamp | process | level | thread | component | message

Log files should have:
• Timestamp format: YYYY-MM-DD HH:MM:SS
• Pipe-delimited columns (at least 5 columns)

Please select a valid log file."""

WRONG_PRODUCT_MESSAGE = """This file appears to be in the correct log format but does not contain Intune-specific content.

Expected: "IntuneMDMDaemon" or "IntuneMDM-Daemon" in the process column

Please select a valid Intune log file from /Library/Logs/Microsoft/Intune/
(typically named "IntuneMDMDaemon*.log" or support log collections)"""


def validate_log_text(content: str, source_title: str = "Unknown", line_limit: int | None = None) -> ValidationResult:
    """Decide whether `content` plausibly is an Intune agent log.

    Only the first `line_limit` non-empty, non-banner lines are inspected.
    Never raises: unexpected input yields an invalid result.
    """
    limit = line_limit if line_limit is not None else config.VALIDATION_LINE_LIMIT
    has_timestamp = False
    has_columns = False
    has_agent_process = False

    inspected = 0
    for line in (content or "").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith(BANNER_PREFIX):
            continue
        inspected += 1
        if inspected > limit:
            break

        if LOOSE_TIMESTAMP_PREFIX_RE.match(line):
            has_timestamp = True

        columns = line.split(COLUMN_DELIMITER)
        if len(columns) >= MIN_COLUMNS:
            has_columns = True
            if any(marker in columns[1] for marker in AGENT_PROCESS_MARKERS):
                has_agent_process = True

        if has_timestamp and has_columns and has_agent_process:
            break

    if not (has_timestamp and has_columns):
        logger.info("Rejected %s: not a pipe-delimited timestamped log", source_title)
        return ValidationResult(isValid=False, kind="wrong_format", message=WRONG_FORMAT_MESSAGE)
    if not has_agent_process:
        logger.info("Rejected %s: no Intune agent process column", source_title)
        return ValidationResult(isValid=False, kind="wrong_product", message=WRONG_PRODUCT_MESSAGE)
    return ValidationResult(isValid=True, kind="ok", message="")
