"""Pydantic models for reconstructed Intune agent log data."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from logwatch.date_utils import format_duration
from logwatch.parsers import fields
from logwatch.parsers.error_codes import IntuneErrorCode, get_error_details

WARNING_PREFIX = "WARNING: "


class LogLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    DEBUG = "debug"

    @classmethod
    def from_code(cls, code: str) -> Optional["LogLevel"]:
        return _LEVEL_CODES.get((code or "").strip())


_LEVEL_CODES = {
    "I": LogLevel.INFO,
    "W": LogLevel.WARNING,
    "E": LogLevel.ERROR,
    "D": LogLevel.DEBUG,
}


class PolicyType(str, Enum):
    APP = "app"
    SCRIPT = "script"
    HEALTH = "health"
    UNKNOWN = "unknown"


class PolicyStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


class EventType(str, Enum):
    FULL_SYNC = "fullSync"
    RECURRING_POLICY = "recurringPolicy"
    HEALTH_POLICY = "healthPolicy"


# ── Entry ──────────────────────────────────────────────────────────

class LogEntry(BaseModel):
    """One log record, possibly spanning several raw lines.

    Policy/app/script attributes are derived from `message` on access and are
    never stored.
    """

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    process: str
    level: LogLevel
    threadId: str
    component: str
    message: str = ""
    rawLine: str = ""
    lineNumber: int = 0

    @property
    def policyId(self) -> Optional[str]:
        return fields.extract_policy_id(self.message)

    @property
    def bundleId(self) -> Optional[str]:
        return fields.extract_bundle_id(self.message)

    @property
    def appName(self) -> Optional[str]:
        return fields.extract_app_name(self.message)

    @property
    def appType(self) -> Optional[str]:
        return fields.extract_app_type(self.message)

    @property
    def appIntent(self) -> Optional[str]:
        return fields.extract_app_intent(self.message)

    @property
    def scriptType(self) -> Optional[str]:
        return fields.extract_script_type(self.message)

    @property
    def executionContext(self) -> Optional[str]:
        return fields.extract_execution_context(self.message)

    @property
    def healthDomain(self) -> Optional[str]:
        return fields.extract_health_domain(self.message)

    @property
    def hasAppInstallationError(self) -> bool:
        return fields.has_app_installation_error(self.component, self.message)

    @property
    def appErrorCode(self) -> Optional[str]:
        return fields.extract_app_error_code(self.component, self.message)


# ── Policy execution ───────────────────────────────────────────────

class PolicyExecution(BaseModel):
    model_config = ConfigDict(frozen=True)

    policyId: str
    type: PolicyType = PolicyType.UNKNOWN
    bundleId: Optional[str] = None
    appName: Optional[str] = None
    appType: Optional[str] = None  # PKG | DMG
    appIntent: Optional[str] = None  # RequiredInstall | Available | Uninstall
    scriptType: Optional[str] = None  # Custom Attribute | Script Policy
    executionContext: Optional[str] = None  # root | user
    healthDomain: Optional[str] = None
    status: PolicyStatus = PolicyStatus.RUNNING
    statusReason: str = ""
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    entries: list[LogEntry] = Field(default_factory=list)

    @property
    def duration(self) -> Optional[float]:
        if self.startTime is None or self.endTime is None:
            return None
        return (self.endTime - self.startTime).total_seconds()

    @property
    def hasErrors(self) -> bool:
        return any(e.level == LogLevel.ERROR for e in self.entries)

    @property
    def hasWarnings(self) -> bool:
        return any(e.level == LogLevel.WARNING for e in self.entries)

    @property
    def hasAppInstallationErrors(self) -> bool:
        return any(e.hasAppInstallationError for e in self.entries)

    @property
    def appErrorCodes(self) -> list[str]:
        return [code for code in (e.appErrorCode for e in self.entries) if code]

    @property
    def errorDetails(self) -> list[IntuneErrorCode]:
        """Reference entries for the known codes in `appErrorCodes`, deduplicated."""
        details: dict[str, IntuneErrorCode] = {}
        for code in self.appErrorCodes:
            found = get_error_details(code)
            if found is not None:
                details.setdefault(found.hexCode, found)
        return list(details.values())

    @property
    def displayName(self) -> str:
        if self.appName:
            return self.appName
        if self.bundleId:
            return self.bundleId
        return f"Policy {self.policyId[:8]}..."


# ── Sync event ─────────────────────────────────────────────────────

class SyncEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    startTime: datetime
    endTime: Optional[datetime] = None
    eventType: EventType = EventType.FULL_SYNC
    policies: list[PolicyExecution] = Field(default_factory=list)
    allEntries: list[LogEntry] = Field(default_factory=list)
    # Seconds since the previous recurring/health event of the same type.
    executionFrequency: Optional[float] = None

    @property
    def executionFrequencyFormatted(self) -> Optional[str]:
        if self.executionFrequency is None:
            return None
        return f"every {format_duration(self.executionFrequency)}"

    @model_validator(mode="after")
    def _check_bounds(self) -> "SyncEvent":
        if self.endTime is not None and self.endTime < self.startTime:
            raise ValueError("endTime must not precede startTime")
        return self

    @property
    def duration(self) -> Optional[float]:
        if self.endTime is None:
            return None
        return (self.endTime - self.startTime).total_seconds()

    @property
    def totalPolicies(self) -> int:
        return len(self.policies)

    @property
    def completedPolicies(self) -> int:
        return sum(1 for p in self.policies if p.status == PolicyStatus.COMPLETED)

    @property
    def failedPolicies(self) -> int:
        return sum(1 for p in self.policies if p.status == PolicyStatus.FAILED)

    @property
    def warningPolicies(self) -> int:
        return sum(1 for p in self.policies if p.hasWarnings)

    @property
    def isComplete(self) -> bool:
        return self.endTime is not None

    @property
    def overallStatus(self) -> PolicyStatus:
        if self.failedPolicies > 0:
            return PolicyStatus.FAILED
        if self.warningPolicies > 0:
            return PolicyStatus.WARNING
        if self.isComplete:
            return PolicyStatus.COMPLETED
        return PolicyStatus.RUNNING

    def status_counts(self) -> dict[PolicyStatus, int]:
        counts = {status: 0 for status in PolicyStatus}
        for policy in self.policies:
            counts[policy.status] += 1
        return counts


# ── Metadata ───────────────────────────────────────────────────────

class EnrollmentInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    environment: Optional[str] = None
    region: Optional[str] = None
    asu: Optional[str] = None
    accountId: Optional[str] = None
    aadTenantId: Optional[str] = None  # Entra tenant ID
    deviceId: Optional[str] = None  # Intune device ID
    osVersion: Optional[str] = None
    agentVersion: Optional[str] = None
    platform: Optional[str] = None

    @property
    def isEmpty(self) -> bool:
        return all(value is None for value in self.model_dump().values())


class NetworkSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    totalNetworkChecks: int = 0
    interfaceStats: dict[str, int] = Field(default_factory=dict)
    noConnectionCount: int = 0

    @property
    def hasData(self) -> bool:
        return self.totalNetworkChecks > 0

    @property
    def interfacePercentages(self) -> dict[str, float]:
        if self.totalNetworkChecks <= 0:
            return {}
        return {
            name: count / self.totalNetworkChecks * 100
            for name, count in self.interfaceStats.items()
        }

    @property
    def noConnectionPercentage(self) -> float:
        if self.totalNetworkChecks <= 0:
            return 0.0
        return self.noConnectionCount / self.totalNetworkChecks * 100


# ── Analysis result ────────────────────────────────────────────────

class LogAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    syncEvents: list[SyncEvent] = Field(default_factory=list)
    entries: list[LogEntry] = Field(default_factory=list)
    totalEntries: int = 0
    parseErrors: list[str] = Field(default_factory=list)
    sourceTitle: str = "Unknown"
    enrollment: EnrollmentInfo = Field(default_factory=EnrollmentInfo)
    networkSummary: Optional[NetworkSummary] = None

    @property
    def totalSyncEvents(self) -> int:
        return len(self.syncEvents)

    @property
    def completedSyncs(self) -> int:
        return sum(1 for event in self.syncEvents if event.isComplete)

    @property
    def failedSyncs(self) -> int:
        return sum(1 for event in self.syncEvents if event.overallStatus == PolicyStatus.FAILED)

    @property
    def warnings(self) -> list[str]:
        return [error for error in self.parseErrors if error.startswith(WARNING_PREFIX)]

    def with_warning(self, message: str) -> "LogAnalysis":
        """Return a copy with a soft warning appended to `parseErrors`."""
        text = message if message.startswith(WARNING_PREFIX) else f"{WARNING_PREFIX}{message}"
        return self.model_copy(update={"parseErrors": [*self.parseErrors, text]})

    def error_code_details(self) -> dict[str, IntuneErrorCode]:
        """Known install error codes seen in any policy, keyed by the code as logged."""
        details: dict[str, IntuneErrorCode] = {}
        for event in self.syncEvents:
            for policy in event.policies:
                for code in policy.appErrorCodes:
                    if code in details:
                        continue
                    found = get_error_details(code)
                    if found is not None:
                        details[code] = found
        return details

    def summary(self) -> dict:
        """Counts derived from the event list, for API and CLI consumers."""
        by_status = {status.value: 0 for status in PolicyStatus}
        by_type = {event_type.value: 0 for event_type in EventType}
        for event in self.syncEvents:
            by_type[event.eventType.value] += 1
            for status, count in event.status_counts().items():
                by_status[status.value] += count
        return {
            "sourceTitle": self.sourceTitle,
            "totalEntries": self.totalEntries,
            "totalSyncEvents": self.totalSyncEvents,
            "completedSyncs": self.completedSyncs,
            "failedSyncs": self.failedSyncs,
            "eventsByType": by_type,
            "policiesByStatus": by_status,
            "parseErrorCount": len(self.parseErrors) - len(self.warnings),
            "warningCount": len(self.warnings),
        }


class ValidationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    isValid: bool
    kind: str = "ok"  # ok | wrong_format | wrong_product
    message: str = ""
