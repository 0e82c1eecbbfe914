"""Aggregate an event's entries into per-policy execution records."""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

from logwatch.models import LogEntry, LogLevel, PolicyExecution, PolicyStatus, PolicyType

COMPONENT_POLICY_TYPES: dict[str, PolicyType] = {
    "AppPolicyHandler": PolicyType.APP,
    "ScriptPolicyRunner": PolicyType.SCRIPT,
    "AdHocScriptProcessor": PolicyType.SCRIPT,
    "HealthPolicyHandler": PolicyType.HEALTH,
    "HealthCheckRunner": PolicyType.HEALTH,
}

APP_FINISHED_MARKER = "Handling app policy finished"
SCRIPT_RAN_MARKER = "policy ran"
EXPLICIT_COMPLETION_MARKERS = (
    "Not running script policy because this policy has already been run.",
    "Finished management script.",
)
SUCCESS_MARKERS = ("Status: Success", APP_FINISHED_MARKER)

# statusReason values, one per status rule.
REASON_ERROR_ENTRY = "error_entry"
REASON_EXPLICIT_COMPLETION = "explicit_completion"
REASON_WARNING_ENDED = "warning_ended"
REASON_WARNING_OPEN = "warning_open"
REASON_SUCCESS_MARKER = "success_marker"
REASON_ENDED_WITHOUT_SUCCESS = "ended_without_success"
REASON_NO_END = "no_end"


def policy_type_for_component(component: Optional[str]) -> PolicyType:
    return COMPONENT_POLICY_TYPES.get(component or "", PolicyType.UNKNOWN)


def _contains_any(entries: list[LogEntry], markers: tuple[str, ...]) -> bool:
    return any(marker in entry.message for entry in entries for marker in markers)


def _last_timestamp(entries: list[LogEntry], predicate: Callable[[LogEntry], bool]) -> Optional[datetime]:
    for entry in reversed(entries):
        if predicate(entry):
            return entry.timestamp
    return None


def policy_end_time(entries: list[LogEntry], policy_type: PolicyType) -> Optional[datetime]:
    """End of a policy run, which depends on the policy type."""
    if not entries:
        return None
    if policy_type == PolicyType.APP:
        return _last_timestamp(entries, lambda e: APP_FINISHED_MARKER in e.message)
    if policy_type == PolicyType.SCRIPT:
        return _last_timestamp(entries, lambda e: SCRIPT_RAN_MARKER in e.message)
    return entries[-1].timestamp


def determine_status(entries: list[LogEntry], policy_type: PolicyType) -> tuple[PolicyStatus, str]:
    """Return (status, reason) for a policy's time-sorted entries.

    Rules are evaluated in order and the first match wins:
    error entry, explicit completion, warning entry, end marker, no end.
    """
    if any(e.level == LogLevel.ERROR for e in entries):
        return PolicyStatus.FAILED, REASON_ERROR_ENTRY

    if _contains_any(entries, EXPLICIT_COMPLETION_MARKERS):
        return PolicyStatus.COMPLETED, REASON_EXPLICIT_COMPLETION

    end_time = policy_end_time(entries, policy_type)

    if any(e.level == LogLevel.WARNING for e in entries):
        if end_time is not None:
            return PolicyStatus.WARNING, REASON_WARNING_ENDED
        return PolicyStatus.RUNNING, REASON_WARNING_OPEN

    if end_time is not None:
        if _contains_any(entries, SUCCESS_MARKERS):
            return PolicyStatus.COMPLETED, REASON_SUCCESS_MARKER
        return PolicyStatus.WARNING, REASON_ENDED_WITHOUT_SUCCESS

    return PolicyStatus.RUNNING, REASON_NO_END


def _first_value(entries: list[LogEntry], attribute: str) -> Optional[str]:
    for entry in entries:
        value = getattr(entry, attribute)
        if value:
            return value
    return None


def build_policy_execution(policy_id: str, entries: list[LogEntry]) -> PolicyExecution:
    sorted_entries = sorted(entries, key=lambda e: e.timestamp)
    policy_type = policy_type_for_component(sorted_entries[0].component if sorted_entries else None)
    status, reason = determine_status(sorted_entries, policy_type)

    return PolicyExecution(
        policyId=policy_id,
        type=policy_type,
        bundleId=_first_value(sorted_entries, "bundleId"),
        appName=_first_value(sorted_entries, "appName"),
        appType=_first_value(sorted_entries, "appType"),
        appIntent=_first_value(sorted_entries, "appIntent"),
        scriptType=_first_value(sorted_entries, "scriptType"),
        executionContext=_first_value(sorted_entries, "executionContext"),
        healthDomain=_first_value(sorted_entries, "healthDomain"),
        status=status,
        statusReason=reason,
        startTime=sorted_entries[0].timestamp if sorted_entries else None,
        endTime=policy_end_time(sorted_entries, policy_type),
        entries=sorted_entries,
    )


def aggregate_policies(entries: list[LogEntry]) -> list[PolicyExecution]:
    """Group entries by policy ID into PolicyExecution records.

    Entries without a policy ID are left out. Records are ordered by start
    time; records without one sort last and ties keep first-seen order.
    """
    groups: dict[str, list[LogEntry]] = {}
    for entry in entries:
        policy_id = entry.policyId
        if not policy_id:
            continue
        groups.setdefault(policy_id, []).append(entry)

    policies = [build_policy_execution(policy_id, group) for policy_id, group in groups.items()]
    policies.sort(key=lambda p: (p.startTime is None, p.startTime or datetime.min))
    return policies
