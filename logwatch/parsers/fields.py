"""Derived-field extraction for log entry messages.

Every derived field is described by an ordered table of (label, pattern)
rules. The first rule whose pattern matches wins and its first capture group
is the value. A missing value is never an error.
"""
from __future__ import annotations

import re

_UUID = r"([a-f0-9-]{36})"

FieldRule = tuple[str, re.Pattern[str]]


def _rules(*pairs: tuple[str, str], flags: int = re.IGNORECASE) -> list[FieldRule]:
    return [(label, re.compile(pattern, flags)) for label, pattern in pairs]


POLICY_ID_RULES: list[FieldRule] = _rules(
    ("PolicyID", rf"PolicyID: {_UUID}"),
    ("PolicyID (compact)", rf"PolicyID:{_UUID}"),
    ("Policy measurement", rf"Policy measurement\. ID: {_UUID}"),
)

BUNDLE_ID_RULES: list[FieldRule] = _rules(
    ("BundleID", r"BundleID: ([^,\s]+)"),
    ("Primary BundleID", r"Primary BundleID: ([^,\s]+)"),
)

APP_NAME_RULES: list[FieldRule] = _rules(
    ("AppName", r"AppName: ([^,]+)"),
    ("AppName (compact)", r"AppName:([^,]+)"),
)

APP_TYPE_RULES: list[FieldRule] = _rules(
    ("AppType", r"AppType: (PKG|DMG)"),
    ("AppType (compact)", r"AppType:(PKG|DMG)"),
)

APP_INTENT_RULES: list[FieldRule] = _rules(
    ("App Policy Intent", r"App Policy Intent: (RequiredInstall|Available|Uninstall)"),
    ("App Policy Intent (compact)", r"App Policy Intent:(RequiredInstall|Available|Uninstall)"),
)

EXECUTION_CONTEXT_RULES: list[FieldRule] = _rules(
    ("ExecutionContext", r"ExecutionContext: (root|user)"),
    ("ExecutionContext (compact)", r"ExecutionContext:(root|user)"),
)

HEALTH_DOMAIN_RULES: list[FieldRule] = _rules(
    ("HealthDomain", r"HealthDomain: ?([^,\s]+)"),
    ("Health domain", r"Health domain: ?([^,\s]+)"),
)

# Script type is keyed on plain substrings rather than captures.
SCRIPT_TYPE_MARKERS: list[tuple[str, str]] = [
    ("custom attribute policy", "Custom Attribute"),
    ("recurring script policy", "Script Policy"),
    ("Not running script policy", "Script Policy"),
]

APP_RESULT_COMPONENT = "AppResultStateChangeManager"

_CURRENT_POLICY_RESULT_RULES: list[re.Pattern[str]] = [
    re.compile(r"(?<!Cached)PolicyResult:\s*(\[.*?)(?:,\s*CachedPolicyResult:|$)", re.DOTALL),
    re.compile(r"(?<!Cached)PolicyResult:\s*(\[.*)", re.DOTALL),
]
_ERROR_CODE_RULES: list[re.Pattern[str]] = [
    re.compile(r"\"?ErrorCode\"?\s*[=:]\s*\"([^\"]+)\"", re.IGNORECASE),
    re.compile(r"\"?ErrorCode\"?\s*[=:]\s*([^,\s;}\]]+)", re.IGNORECASE),
]
# An install error is only flagged for a quoted code.
_ERROR_CODE_PRESENT_RE = re.compile(r"\"?ErrorCode\"?\s*[=:]\s*\"[^\"]+\"", re.IGNORECASE)


def first_match(message: str, rules: list[FieldRule]) -> str | None:
    if not message:
        return None
    for _label, pattern in rules:
        match = pattern.search(message)
        if match:
            value = match.group(1).strip()
            if value:
                return value
    return None


def extract_policy_id(message: str) -> str | None:
    return first_match(message, POLICY_ID_RULES)


def extract_bundle_id(message: str) -> str | None:
    return first_match(message, BUNDLE_ID_RULES)


def extract_app_name(message: str) -> str | None:
    return first_match(message, APP_NAME_RULES)


def extract_app_type(message: str) -> str | None:
    return first_match(message, APP_TYPE_RULES)


def extract_app_intent(message: str) -> str | None:
    return first_match(message, APP_INTENT_RULES)


def extract_execution_context(message: str) -> str | None:
    return first_match(message, EXECUTION_CONTEXT_RULES)


def extract_health_domain(message: str) -> str | None:
    return first_match(message, HEALTH_DOMAIN_RULES)


def extract_script_type(message: str) -> str | None:
    for marker, script_type in SCRIPT_TYPE_MARKERS:
        if marker in (message or ""):
            return script_type
    return None


def _current_policy_result(message: str) -> str | None:
    """Return the `PolicyResult:` section, excluding any cached result."""
    for pattern in _CURRENT_POLICY_RESULT_RULES:
        match = pattern.search(message)
        if match:
            return match.group(1)
    return None


def extract_app_error_code(component: str, message: str) -> str | None:
    """Error code reported for the current app install result, if any.

    Only `AppResultStateChangeManager` entries carry install results. Empty and
    "0" codes mean no error.
    """
    if component != APP_RESULT_COMPONENT or not message:
        return None
    section = _current_policy_result(message)
    if section is None:
        return None
    for pattern in _ERROR_CODE_RULES:
        match = pattern.search(section)
        if not match:
            continue
        code = match.group(1).strip()
        if code and code != "0":
            return code
    return None


def has_app_installation_error(component: str, message: str) -> bool:
    if component != APP_RESULT_COMPONENT or not message:
        return False
    section = _current_policy_result(message)
    if section is None:
        return False
    return bool(_ERROR_CODE_PRESENT_RE.search(section))
