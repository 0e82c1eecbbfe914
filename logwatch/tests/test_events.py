import unittest
from datetime import datetime

from logwatch.models import EventType, LogEntry, LogLevel, PolicyStatus, PolicyType
from logwatch.parsers.entries import parse_entries
from logwatch.parsers.events import (
    FULL_SYNC_MARKERS,
    RECURRING_MARKERS,
    build_sync_event,
    extract_sync_events,
    with_execution_frequency,
)

APP_ID = "0f4c3a1e-8b2d-4c5e-9a7f-1234567890ab"
HEALTH_ID = "99999999-8888-7777-6666-555555555555"


def _line(ts: str, component: str, message: str, level: str = "I") -> str:
    return f"2025-08-10 {ts} | IntuneMDM-Daemon | {level} | 7F3A | {component} | {message}"


def _entry(second: int, component: str, message: str) -> LogEntry:
    return LogEntry(
        timestamp=datetime(2025, 8, 10, 10, 0, second),
        process="IntuneMDM-Daemon",
        level=LogLevel.INFO,
        threadId="7F3A",
        component=component,
        message=message,
    )


def _events(*lines: str):
    entries, errors = parse_entries("\n".join(lines))
    assert errors == [], errors
    return extract_sync_events(entries)


class FullSyncReconstructionTests(unittest.TestCase):
    def test_single_full_sync_with_completed_app_policy(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:05:000", "AppPolicyHandler", f"Handling app policy. PolicyID: {APP_ID}"),
            _line("10:00:10:000", "AppPolicyHandler", f"Handling app policy finished. PolicyID: {APP_ID}"),
            _line("10:00:15:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
        )

        self.assertEqual(len(events), 1)
        event = events[0]
        self.assertEqual(event.eventType, EventType.FULL_SYNC)
        self.assertEqual(event.startTime, datetime(2025, 8, 10, 10, 0, 0))
        self.assertEqual(event.endTime, datetime(2025, 8, 10, 10, 0, 15))
        self.assertEqual(event.duration, 15.0)
        self.assertEqual(len(event.allEntries), 4)
        self.assertTrue(event.isComplete)
        self.assertEqual(event.overallStatus, PolicyStatus.COMPLETED)

        self.assertEqual(len(event.policies), 1)
        policy = event.policies[0]
        self.assertEqual(policy.policyId, APP_ID)
        self.assertEqual(policy.type, PolicyType.APP)
        self.assertEqual(policy.status, PolicyStatus.COMPLETED)
        self.assertEqual(policy.startTime, datetime(2025, 8, 10, 10, 0, 5))
        self.assertEqual(policy.endTime, datetime(2025, 8, 10, 10, 0, 10))

    def test_unterminated_event_has_no_end(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:05:000", "AppPolicyHandler", f"Handling app policy. PolicyID: {APP_ID}"),
        )

        self.assertEqual(len(events), 1)
        self.assertIsNone(events[0].endTime)
        self.assertIsNone(events[0].duration)
        self.assertFalse(events[0].isComplete)
        self.assertEqual(events[0].overallStatus, PolicyStatus.RUNNING)

    def test_new_start_closes_open_event(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:01:000", "AppPolicyHandler", "first window"),
            _line("10:00:02:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:03:000", "AppPolicyHandler", "second window"),
            _line("10:00:04:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
        )

        self.assertEqual(len(events), 2)
        self.assertIsNone(events[0].endTime)
        self.assertEqual(len(events[0].allEntries), 2)
        self.assertEqual(events[1].startTime, datetime(2025, 8, 10, 10, 0, 2))
        self.assertEqual(events[1].endTime, datetime(2025, 8, 10, 10, 0, 4))
        self.assertEqual([e.message for e in events[1].allEntries][1], "second window")

    def test_entries_outside_windows_are_not_attached(self) -> None:
        events = _events(
            _line("09:59:00:000", "AppPolicyHandler", f"before. PolicyID: {APP_ID}"),
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:01:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
            _line("10:00:02:000", "AppPolicyHandler", f"after. PolicyID: {APP_ID}"),
        )

        self.assertEqual(len(events), 1)
        self.assertEqual(len(events[0].allEntries), 2)
        self.assertEqual(events[0].policies, [])

    def test_no_markers_gives_no_events(self) -> None:
        events = _events(_line("10:00:00:000", "AppPolicyHandler", f"PolicyID: {APP_ID}"))
        self.assertEqual(events, [])

    def test_end_marker_from_other_pair_does_not_close_window(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
            _line("10:00:02:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
        )

        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].endTime, datetime(2025, 8, 10, 10, 0, 2))
        self.assertEqual(len(events[0].allEntries), 3)

    def test_events_are_in_start_order(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:01:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
            _line("10:05:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:05:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )
        self.assertEqual([e.startTime.minute for e in events], [0, 5])


class RecurringClassificationTests(unittest.TestCase):
    def test_health_only_window_is_health_policy(self) -> None:
        events = _events(
            _line("10:00:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:00:01:000", "HealthCheckRunner", f"Checking. HealthDomain: FileVault, PolicyID: {HEALTH_ID}"),
            _line("10:00:02:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )

        self.assertEqual(events[0].eventType, EventType.HEALTH_POLICY)
        self.assertEqual(events[0].policies[0].healthDomain, "FileVault")

    def test_mixed_window_is_recurring_policy(self) -> None:
        events = _events(
            _line("10:00:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:00:01:000", "HealthCheckRunner", f"Checking. PolicyID: {HEALTH_ID}"),
            _line("10:00:02:000", "AppPolicyHandler", f"Handling app policy. PolicyID: {APP_ID}"),
            _line("10:00:03:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )
        self.assertEqual(events[0].eventType, EventType.RECURRING_POLICY)

    def test_empty_recurring_window_is_recurring_policy(self) -> None:
        events = _events(
            _line("10:00:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:00:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )
        self.assertEqual(events[0].eventType, EventType.RECURRING_POLICY)

    def test_full_sync_with_health_policies_stays_full_sync(self) -> None:
        events = _events(
            _line("10:00:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:00:01:000", "HealthCheckRunner", f"Checking. PolicyID: {HEALTH_ID}"),
            _line("10:00:02:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
        )
        self.assertEqual(events[0].eventType, EventType.FULL_SYNC)


class ExecutionFrequencyTests(unittest.TestCase):
    def test_recurring_windows_get_gap_to_previous_window(self) -> None:
        events = _events(
            _line("10:00:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:00:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
            _line("10:02:00:000", "FullSyncWorkflow", "Starting sidecar gateway service checkin"),
            _line("10:02:10:000", "FullSyncWorkflow", "Finished sidecar gateway service checkin"),
            _line("10:05:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:05:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )

        self.assertEqual([e.eventType for e in events], [
            EventType.RECURRING_POLICY,
            EventType.FULL_SYNC,
            EventType.RECURRING_POLICY,
        ])
        self.assertIsNone(events[0].executionFrequency)
        self.assertIsNone(events[0].executionFrequencyFormatted)
        self.assertIsNone(events[1].executionFrequency)
        self.assertEqual(events[2].executionFrequency, 300.0)
        self.assertEqual(events[2].executionFrequencyFormatted, "every 5m 0s")

    def test_health_and_recurring_windows_are_timed_separately(self) -> None:
        events = _events(
            _line("10:00:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:00:01:000", "HealthCheckRunner", f"Checking. PolicyID: {HEALTH_ID}"),
            _line("10:00:02:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
            _line("10:01:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:01:01:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
            _line("10:30:00:000", "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _line("10:30:01:000", "HealthCheckRunner", f"Checking. PolicyID: {HEALTH_ID}"),
            _line("10:30:02:000", "RecurringPolicyWorkflow", "Finished recurring policy run"),
        )

        self.assertEqual(events[0].eventType, EventType.HEALTH_POLICY)
        self.assertEqual(events[1].eventType, EventType.RECURRING_POLICY)
        self.assertIsNone(events[1].executionFrequency)
        self.assertEqual(events[2].eventType, EventType.HEALTH_POLICY)
        self.assertEqual(events[2].executionFrequency, 1800.0)

    def test_full_sync_events_are_not_stamped(self) -> None:
        start = datetime(2025, 8, 10, 10, 0, 0)
        events = [
            build_sync_event(FULL_SYNC_MARKERS, start, None, []),
            build_sync_event(FULL_SYNC_MARKERS, start.replace(minute=10), None, []),
        ]
        self.assertEqual([e.executionFrequency for e in with_execution_frequency(events)], [None, None])


class BuildSyncEventTests(unittest.TestCase):
    def test_end_before_start_is_clamped(self) -> None:
        entries = [_entry(5, "FullSyncWorkflow", "Starting sidecar gateway service checkin")]
        event = build_sync_event(
            FULL_SYNC_MARKERS,
            datetime(2025, 8, 10, 10, 0, 5),
            datetime(2025, 8, 10, 10, 0, 1),
            entries,
        )
        self.assertEqual(event.endTime, event.startTime)
        self.assertEqual(event.duration, 0.0)

    def test_window_policies_are_aggregated(self) -> None:
        entries = [
            _entry(0, "RecurringPolicyWorkflow", "Starting recurring policy run"),
            _entry(1, "HealthPolicyHandler", f"Evaluated. Status: Success, PolicyID: {HEALTH_ID}"),
        ]
        event = build_sync_event(RECURRING_MARKERS, entries[0].timestamp, None, entries)
        self.assertEqual(event.totalPolicies, 1)
        self.assertEqual(event.eventType, EventType.HEALTH_POLICY)
        self.assertEqual(event.status_counts()[PolicyStatus.COMPLETED], 1)


if __name__ == "__main__":
    unittest.main()
