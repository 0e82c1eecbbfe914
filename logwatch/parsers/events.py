"""Reconstruct bounded sync events from the ordered entry list."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from logwatch.models import EventType, LogEntry, PolicyExecution, PolicyType, SyncEvent
from logwatch.parsers.policies import aggregate_policies

logger = logging.getLogger("logwatch.parser")


@dataclass(frozen=True)
class EventMarkers:
    """Component + message substrings that open and close an event window."""

    name: str
    component: str
    start: str
    end: str

    def is_start(self, entry: LogEntry) -> bool:
        return entry.component == self.component and self.start in entry.message

    def is_end(self, entry: LogEntry) -> bool:
        return entry.component == self.component and self.end in entry.message


FULL_SYNC_MARKERS = EventMarkers(
    name="fullSync",
    component="FullSyncWorkflow",
    start="Starting sidecar gateway service checkin",
    end="Finished sidecar gateway service checkin",
)
RECURRING_MARKERS = EventMarkers(
    name="recurring",
    component="RecurringPolicyWorkflow",
    start="Starting recurring policy run",
    end="Finished recurring policy run",
)
EVENT_MARKERS: tuple[EventMarkers, ...] = (FULL_SYNC_MARKERS, RECURRING_MARKERS)


def _start_markers(entry: LogEntry) -> Optional[EventMarkers]:
    for markers in EVENT_MARKERS:
        if markers.is_start(entry):
            return markers
    return None


def classify_event(markers: EventMarkers, policies: list[PolicyExecution]) -> EventType:
    if markers is FULL_SYNC_MARKERS:
        return EventType.FULL_SYNC
    if policies and all(p.type == PolicyType.HEALTH for p in policies):
        return EventType.HEALTH_POLICY
    return EventType.RECURRING_POLICY


def build_sync_event(
    markers: EventMarkers,
    start_time: datetime,
    end_time: Optional[datetime],
    entries: list[LogEntry],
) -> SyncEvent:
    if end_time is not None and end_time < start_time:
        logger.debug("Clamping out-of-order end time %s to start %s", end_time, start_time)
        end_time = start_time
    policies = aggregate_policies(entries)
    return SyncEvent(
        startTime=start_time,
        endTime=end_time,
        eventType=classify_event(markers, policies),
        policies=policies,
        allEntries=list(entries),
    )


def extract_sync_events(entries: list[LogEntry]) -> list[SyncEvent]:
    """Group entries into events using start/end marker entries.

    A start marker closes any open window (leaving it without an end time)
    and opens a new one. An end marker from the open window's marker pair
    closes it. Entries outside any window are not attached to an event. A
    window still open at end of input has no end time.
    """
    events: list[SyncEvent] = []
    window: list[LogEntry] = []
    window_start: Optional[datetime] = None
    window_markers: Optional[EventMarkers] = None

    for entry in entries:
        starting = _start_markers(entry)
        if starting is not None:
            if window_markers is not None and window_start is not None:
                events.append(build_sync_event(window_markers, window_start, None, window))
            window = [entry]
            window_start = entry.timestamp
            window_markers = starting
            continue

        if window_markers is None:
            continue

        window.append(entry)
        if window_markers.is_end(entry):
            events.append(build_sync_event(window_markers, window_start, entry.timestamp, window))
            window = []
            window_start = None
            window_markers = None

    if window_markers is not None and window_start is not None:
        events.append(build_sync_event(window_markers, window_start, None, window))

    return with_execution_frequency(events)


def with_execution_frequency(events: list[SyncEvent]) -> list[SyncEvent]:
    """Stamp recurring/health events with the gap since the previous event of the same type."""
    previous_start: dict[EventType, datetime] = {}
    stamped: list[SyncEvent] = []
    for event in events:
        if event.eventType != EventType.FULL_SYNC:
            last = previous_start.get(event.eventType)
            if last is not None:
                event = event.model_copy(
                    update={"executionFrequency": max(0.0, (event.startTime - last).total_seconds())}
                )
            previous_start[event.eventType] = event.startTime
        stamped.append(event)
    return stamped
