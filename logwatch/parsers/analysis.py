"""Assemble a LogAnalysis from raw Intune agent log text."""
from __future__ import annotations

import logging
import time

from logwatch.errors import LogFormatError
from logwatch.models import LogAnalysis, PolicyStatus
from logwatch.observability import (
    record_ingestion,
    record_parser_failure,
    record_policy_statuses,
    start_span,
)
from logwatch.parsers.entries import parse_entries
from logwatch.parsers.events import extract_sync_events
from logwatch.parsers.metadata import extract_enrollment_info, extract_network_summary
from logwatch.parsers.validator import validate_log_text

logger = logging.getLogger("logwatch.parser")


def parse_log_content(content: str, source_title: str = "Unknown") -> LogAnalysis:
    """Parse `content` without the format pre-check.

    Entry-level problems end up in `parseErrors`; nothing here raises for
    malformed lines or for input that yields no events.
    """
    started = time.monotonic()
    with start_span("logwatch.parse", {"logwatch.source": source_title}):
        entries, parse_errors = parse_entries(content)
        sync_events = extract_sync_events(entries)
        enrollment = extract_enrollment_info(content)
        network_summary = extract_network_summary(content)

    analysis = LogAnalysis(
        syncEvents=sync_events,
        entries=entries,
        totalEntries=len(entries),
        parseErrors=parse_errors,
        sourceTitle=source_title,
        enrollment=enrollment,
        networkSummary=network_summary,
    )

    duration_ms = (time.monotonic() - started) * 1000
    record_ingestion("log", "success", duration_ms, source=source_title)
    record_parser_failure("entry", source=source_title, count=len(parse_errors))
    status_counts = {status.value: 0 for status in PolicyStatus}
    for event in sync_events:
        for status, count in event.status_counts().items():
            status_counts[status.value] += count
    record_policy_statuses(status_counts, source=source_title)

    logger.info(
        "Parsed %s: %d entries, %d events, %d parse errors (%.1fms)",
        source_title,
        len(entries),
        len(sync_events),
        len(parse_errors),
        duration_ms,
    )
    return analysis


def analyze_log_text(content: str, source_title: str = "Unknown", validate: bool = True) -> LogAnalysis:
    """Validate then parse `content`.

    Raises LogFormatError when the validator rejects the input; no partial
    analysis is produced in that case.
    """
    if validate:
        result = validate_log_text(content, source_title)
        if not result.isValid:
            record_ingestion("log", "rejected", 0.0, source=source_title)
            record_parser_failure(f"validator_{result.kind}", source=source_title)
            raise LogFormatError(result)
    return parse_log_content(content, source_title)
