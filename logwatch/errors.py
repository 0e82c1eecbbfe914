"""Exceptions raised at the edges of a parse invocation."""
from __future__ import annotations

from logwatch.models import ValidationResult


class LogFormatError(ValueError):
    """Input does not look like an Intune agent log; no parse was attempted."""

    def __init__(self, result: ValidationResult):
        super().__init__(result.message)
        self.result = result

    @property
    def kind(self) -> str:
        return self.result.kind


class LogSourceError(RuntimeError):
    """No usable local log source (agent and logs missing, or empty log dir)."""


class LogReadError(OSError):
    """A log file could not be read or decoded."""

    def __init__(self, path, reason: str):
        super().__init__(f"Failed to read log file {path}: {reason}")
        self.path = path
        self.reason = reason
