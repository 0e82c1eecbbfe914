"""Single-pass metadata scrapers over raw agent log text."""
from __future__ import annotations

import re
from collections import Counter
from typing import Optional

from logwatch.models import EnrollmentInfo, NetworkSummary

ENROLLMENT_COMPONENT = "VerifyEnrollmentStatus"

# marker phrase -> [(EnrollmentInfo field, pattern)]
_ENROLLMENT_RULES: list[tuple[str, list[tuple[str, re.Pattern[str]]]]] = [
    (
        "Successfully verified enrollment status",
        [
            ("environment", re.compile(r"Environment: ([^,]+)")),
            ("region", re.compile(r"Region: ([^,]+)")),
            ("asu", re.compile(r"ASU: ([^,]+)")),
            ("accountId", re.compile(r"AccountID: ([a-fA-F0-9-]+)")),
            ("aadTenantId", re.compile(r"AADTenantID: ([a-fA-F0-9-]+)")),
        ],
    ),
    (
        "Successfully verified device status",
        [
            ("deviceId", re.compile(r"DeviceId: ([^,]+)")),
            ("osVersion", re.compile(r"OSVersionActual: ([^,]+)")),
            ("agentVersion", re.compile(r"VersionInstalled: ([^,]+)")),
        ],
    ),
    (
        "Successfully verified MDM server info",
        [
            ("platform", re.compile(r"Platform=([^,]+)")),
        ],
    ),
]
_ENROLLMENT_FIELDS = {name for _, rules in _ENROLLMENT_RULES for name, _ in rules}

NETWORK_COMPONENT = "ObserveNetworkInterface"
NO_CONNECTION_MARKER = "No internet connection"
CONNECTION_AVAILABLE_MARKER = "Internet connection available. Context:"
_NETWORK_CONTEXT_RE = re.compile(r"Context: \[\"([^\]]+)\"\]")


def extract_enrollment_info(content: str) -> EnrollmentInfo:
    """Scrape enrollment identity from VerifyEnrollmentStatus lines.

    The first value seen for each field wins. Scanning stops as soon as every
    field has been found.
    """
    found: dict[str, str] = {}
    for line in (content or "").splitlines():
        if ENROLLMENT_COMPONENT not in line:
            continue
        for marker, rules in _ENROLLMENT_RULES:
            if marker not in line:
                continue
            for name, pattern in rules:
                if name in found:
                    continue
                match = pattern.search(line)
                if match:
                    value = match.group(1).strip()
                    if value:
                        found[name] = value
        if len(found) == len(_ENROLLMENT_FIELDS):
            break
    return EnrollmentInfo(**found)


def _parse_interfaces(line: str) -> list[str]:
    match = _NETWORK_CONTEXT_RE.search(line)
    if not match:
        return []
    return [name.strip() for name in match.group(1).split('", "') if name.strip()]


def extract_network_summary(content: str) -> Optional[NetworkSummary]:
    """Tally ObserveNetworkInterface checks; None when there were none."""
    total = 0
    no_connection = 0
    interfaces: Counter[str] = Counter()

    for line in (content or "").splitlines():
        if NETWORK_COMPONENT not in line:
            continue
        total += 1
        if NO_CONNECTION_MARKER in line:
            no_connection += 1
        elif CONNECTION_AVAILABLE_MARKER in line:
            interfaces.update(_parse_interfaces(line))

    if total == 0:
        return None
    return NetworkSummary(
        totalNetworkChecks=total,
        interfaceStats=dict(interfaces),
        noConnectionCount=no_connection,
    )
