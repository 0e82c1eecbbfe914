import unittest
from datetime import datetime

from logwatch.models import LogEntry, LogLevel, PolicyStatus, PolicyType
from logwatch.parsers.policies import (
    REASON_ENDED_WITHOUT_SUCCESS,
    REASON_ERROR_ENTRY,
    REASON_EXPLICIT_COMPLETION,
    REASON_NO_END,
    REASON_SUCCESS_MARKER,
    REASON_WARNING_ENDED,
    REASON_WARNING_OPEN,
    aggregate_policies,
    build_policy_execution,
    determine_status,
    policy_end_time,
    policy_type_for_component,
)

APP_ID = "0f4c3a1e-8b2d-4c5e-9a7f-1234567890ab"
SCRIPT_ID = "11111111-2222-3333-4444-555555555555"
HEALTH_ID = "99999999-8888-7777-6666-555555555555"


def _entry(
    second: int,
    message: str,
    component: str = "AppPolicyHandler",
    level: LogLevel = LogLevel.INFO,
) -> LogEntry:
    return LogEntry(
        timestamp=datetime(2025, 8, 10, 10, 0, second),
        process="IntuneMDM-Daemon",
        level=level,
        threadId="7F3A",
        component=component,
        message=message,
    )


class PolicyTypeTests(unittest.TestCase):
    def test_component_table(self) -> None:
        self.assertEqual(policy_type_for_component("AppPolicyHandler"), PolicyType.APP)
        self.assertEqual(policy_type_for_component("ScriptPolicyRunner"), PolicyType.SCRIPT)
        self.assertEqual(policy_type_for_component("AdHocScriptProcessor"), PolicyType.SCRIPT)
        self.assertEqual(policy_type_for_component("HealthPolicyHandler"), PolicyType.HEALTH)
        self.assertEqual(policy_type_for_component("HealthCheckRunner"), PolicyType.HEALTH)
        self.assertEqual(policy_type_for_component("SomethingElse"), PolicyType.UNKNOWN)
        self.assertEqual(policy_type_for_component(None), PolicyType.UNKNOWN)


class PolicyEndTimeTests(unittest.TestCase):
    def test_app_end_is_last_finished_marker(self) -> None:
        entries = [
            _entry(1, f"Handling app policy. PolicyID: {APP_ID}"),
            _entry(3, f"Handling app policy finished. PolicyID: {APP_ID}"),
            _entry(5, f"Handling app policy finished. PolicyID: {APP_ID}"),
            _entry(7, f"Cleanup. PolicyID: {APP_ID}"),
        ]
        self.assertEqual(policy_end_time(entries, PolicyType.APP), datetime(2025, 8, 10, 10, 0, 5))

    def test_app_without_finished_marker_has_no_end(self) -> None:
        entries = [_entry(1, f"Handling app policy. PolicyID: {APP_ID}")]
        self.assertIsNone(policy_end_time(entries, PolicyType.APP))

    def test_script_end_is_last_ran_marker(self) -> None:
        entries = [
            _entry(1, f"Running script. PolicyID: {SCRIPT_ID}", component="ScriptPolicyRunner"),
            _entry(4, f"Script policy ran. PolicyID: {SCRIPT_ID}", component="ScriptPolicyRunner"),
            _entry(6, f"Reporting. PolicyID: {SCRIPT_ID}", component="ScriptPolicyRunner"),
        ]
        self.assertEqual(policy_end_time(entries, PolicyType.SCRIPT), datetime(2025, 8, 10, 10, 0, 4))

    def test_other_types_end_at_last_entry(self) -> None:
        entries = [
            _entry(1, f"Checking. PolicyID: {HEALTH_ID}", component="HealthCheckRunner"),
            _entry(9, f"Checked. PolicyID: {HEALTH_ID}", component="HealthCheckRunner"),
        ]
        self.assertEqual(policy_end_time(entries, PolicyType.HEALTH), datetime(2025, 8, 10, 10, 0, 9))
        self.assertEqual(policy_end_time(entries, PolicyType.UNKNOWN), datetime(2025, 8, 10, 10, 0, 9))
        self.assertIsNone(policy_end_time([], PolicyType.HEALTH))


class DetermineStatusTests(unittest.TestCase):
    def test_error_entry_wins_over_completion_marker(self) -> None:
        entries = [
            _entry(1, "Running", level=LogLevel.ERROR),
            _entry(2, "Finished management script."),
        ]
        self.assertEqual(determine_status(entries, PolicyType.SCRIPT), (PolicyStatus.FAILED, REASON_ERROR_ENTRY))

    def test_explicit_completion_wins_over_warning(self) -> None:
        entries = [
            _entry(1, "Slow", level=LogLevel.WARNING),
            _entry(2, "Not running script policy because this policy has already been run."),
        ]
        self.assertEqual(
            determine_status(entries, PolicyType.SCRIPT),
            (PolicyStatus.COMPLETED, REASON_EXPLICIT_COMPLETION),
        )

    def test_warning_with_end_time(self) -> None:
        entries = [
            _entry(1, "Retrying download", level=LogLevel.WARNING),
            _entry(2, "Handling app policy finished"),
        ]
        self.assertEqual(determine_status(entries, PolicyType.APP), (PolicyStatus.WARNING, REASON_WARNING_ENDED))

    def test_warning_without_end_time_is_still_running(self) -> None:
        entries = [_entry(1, "Retrying download", level=LogLevel.WARNING)]
        self.assertEqual(determine_status(entries, PolicyType.APP), (PolicyStatus.RUNNING, REASON_WARNING_OPEN))

    def test_end_time_with_success_marker(self) -> None:
        entries = [
            _entry(1, "Running script", component="ScriptPolicyRunner"),
            _entry(2, "Script policy ran. Status: Success", component="ScriptPolicyRunner"),
        ]
        self.assertEqual(
            determine_status(entries, PolicyType.SCRIPT),
            (PolicyStatus.COMPLETED, REASON_SUCCESS_MARKER),
        )

    def test_end_time_without_success_marker(self) -> None:
        entries = [
            _entry(1, "Running script", component="ScriptPolicyRunner"),
            _entry(2, "Script policy ran. Status: Failed", component="ScriptPolicyRunner"),
        ]
        self.assertEqual(
            determine_status(entries, PolicyType.SCRIPT),
            (PolicyStatus.WARNING, REASON_ENDED_WITHOUT_SUCCESS),
        )

    def test_no_end_time_is_running(self) -> None:
        entries = [_entry(1, "Handling app policy")]
        self.assertEqual(determine_status(entries, PolicyType.APP), (PolicyStatus.RUNNING, REASON_NO_END))

    def test_pending_is_never_produced(self) -> None:
        for policy_type in PolicyType:
            status, _ = determine_status([_entry(1, "anything")], policy_type)
            self.assertNotEqual(status, PolicyStatus.PENDING)


class BuildPolicyExecutionTests(unittest.TestCase):
    def test_entries_sorted_and_first_non_null_metadata_kept(self) -> None:
        entries = [
            _entry(5, f"Handling app policy finished. PolicyID: {APP_ID}, AppName: Second Name"),
            _entry(1, f"Handling app policy. PolicyID: {APP_ID}, AppType: DMG"),
            _entry(3, f"Installing. PolicyID: {APP_ID}, AppName: First Name, BundleID: com.example.app"),
        ]

        policy = build_policy_execution(APP_ID, entries)

        self.assertEqual([e.timestamp.second for e in policy.entries], [1, 3, 5])
        self.assertEqual(policy.type, PolicyType.APP)
        self.assertEqual(policy.appName, "First Name")
        self.assertEqual(policy.appType, "DMG")
        self.assertEqual(policy.bundleId, "com.example.app")
        self.assertEqual(policy.startTime, datetime(2025, 8, 10, 10, 0, 1))
        self.assertEqual(policy.endTime, datetime(2025, 8, 10, 10, 0, 5))
        self.assertEqual(policy.duration, 4.0)
        self.assertEqual(policy.status, PolicyStatus.COMPLETED)
        self.assertEqual(policy.displayName, "First Name")

    def test_type_comes_from_first_entry_component(self) -> None:
        entries = [
            _entry(1, f"Checking. PolicyID: {HEALTH_ID}", component="HealthPolicyHandler"),
            _entry(2, f"Noted. PolicyID: {HEALTH_ID}", component="AppPolicyHandler"),
        ]
        self.assertEqual(build_policy_execution(HEALTH_ID, entries).type, PolicyType.HEALTH)

    def test_display_name_falls_back_to_policy_id(self) -> None:
        policy = build_policy_execution(SCRIPT_ID, [_entry(1, f"PolicyID: {SCRIPT_ID}", component="ScriptPolicyRunner")])
        self.assertEqual(policy.displayName, "Policy 11111111...")


class AggregatePoliciesTests(unittest.TestCase):
    def test_groups_by_policy_id_and_orders_by_start(self) -> None:
        entries = [
            _entry(2, f"Running script. PolicyID: {SCRIPT_ID}", component="ScriptPolicyRunner"),
            _entry(3, "no policy here"),
            _entry(1, f"Handling app policy. PolicyID: {APP_ID}"),
            _entry(4, f"Handling app policy finished. PolicyID: {APP_ID}"),
        ]

        policies = aggregate_policies(entries)

        self.assertEqual([p.policyId for p in policies], [APP_ID, SCRIPT_ID])
        self.assertEqual(len(policies[0].entries), 2)
        self.assertEqual(len(policies[1].entries), 1)
        self.assertEqual(sum(len(p.entries) for p in policies), 3)

    def test_no_policy_entries_gives_empty_list(self) -> None:
        self.assertEqual(aggregate_policies([_entry(1, "hello")]), [])


if __name__ == "__main__":
    unittest.main()
