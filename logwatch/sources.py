"""Read agent log files from disk and hand them to the parser.

File discovery, multi-file ordering and the local installation check live
here, outside the parsing engine.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from logwatch import config
from logwatch.date_utils import file_modified_at, first_log_timestamp
from logwatch.errors import LogReadError, LogSourceError
from logwatch.models import LogAnalysis
from logwatch.parsers.analysis import analyze_log_text

logger = logging.getLogger("logwatch.sources")


@dataclass
class InstallationStatus:
    agent_path: Path
    log_dir: Path
    has_agent: bool
    log_files: list[Path] = field(default_factory=list)

    @property
    def has_logs(self) -> bool:
        return bool(self.log_files)

    def to_dict(self) -> dict:
        return {
            "agentPath": str(self.agent_path),
            "logDir": str(self.log_dir),
            "hasAgent": self.has_agent,
            "hasLogs": self.has_logs,
            "logFiles": [
                {"path": str(path), "name": path.name, "modifiedAt": file_modified_at(path)}
                for path in self.log_files
            ],
        }


def list_log_files(log_dir: Path, prefix: str | None = None) -> list[Path]:
    """Agent log files in `log_dir`, newest modification first."""
    prefix = config.LOG_FILE_PREFIX if prefix is None else prefix
    if not log_dir.is_dir():
        return []

    def _mtime(path: Path) -> float:
        try:
            return path.stat().st_mtime
        except OSError:
            return 0.0

    candidates = [
        path
        for path in log_dir.iterdir()
        if path.is_file() and path.name.startswith(prefix) and path.name.endswith(config.LOG_FILE_SUFFIX)
    ]
    return sorted(candidates, key=_mtime, reverse=True)


def check_installation(agent_path: Path | None = None, log_dir: Path | None = None) -> InstallationStatus:
    agent_path = agent_path or config.AGENT_PATH
    log_dir = log_dir or config.LOG_DIR
    try:
        log_files = list_log_files(log_dir)
    except OSError as exc:
        logger.warning("Unable to list %s: %s", log_dir, exc)
        log_files = []
    return InstallationStatus(
        agent_path=agent_path,
        log_dir=log_dir,
        has_agent=agent_path.exists(),
        log_files=log_files,
    )


def read_log_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        logger.error("Log file %s is not valid UTF-8", path)
        raise LogReadError(path, "not valid UTF-8 text") from exc
    except OSError as exc:
        logger.error("Unable to read %s: %s", path, exc)
        raise LogReadError(path, exc.strerror or str(exc)) from exc


def combine_log_texts(texts: Iterable[str]) -> str:
    """Concatenate log blobs oldest first.

    Each blob is keyed by its first entry timestamp; blobs without one sort
    first. The sort is stable and lines are never interleaved.
    """
    keyed: list[tuple[datetime, str]] = []
    for text in texts:
        first = first_log_timestamp(text.splitlines())
        keyed.append((first or datetime.min, text))
    keyed.sort(key=lambda item: item[0])
    return "\n".join(text for _, text in keyed)


def load_log_file(path: Path, validate: bool = True) -> LogAnalysis:
    """Read and analyze one file. Raises LogReadError or LogFormatError."""
    content = read_log_file(path)
    return analyze_log_text(content, source_title=path.name, validate=validate)


def load_log_files(paths: list[Path], validate: bool = True, source_title: Optional[str] = None) -> LogAnalysis:
    """Read several files, order them by first timestamp and analyze once."""
    if len(paths) == 1 and source_title is None:
        return load_log_file(paths[0], validate=validate)
    contents = [read_log_file(path) for path in paths]
    combined = combine_log_texts(contents)
    title = source_title or f"{len(paths)} log files"
    return analyze_log_text(combined, source_title=title, validate=validate)


def load_local_logs(agent_path: Path | None = None, log_dir: Path | None = None) -> LogAnalysis:
    """Analyze every agent log found on this device.

    Raises LogSourceError when there is nothing to read. A missing agent with
    logs still present is reported as a soft warning on the result.
    """
    status = check_installation(agent_path, log_dir)

    if not status.has_agent and not status.has_logs:
        raise LogSourceError(
            "This device does not appear to be enrolled in Microsoft Intune.\n\n"
            f"• Intune Agent not found at: {status.agent_path}\n"
            f"• No log files found at: {status.log_dir}\n\n"
            "You can still open individual log files if you have logs from another device."
        )
    if not status.log_dir.is_dir():
        raise LogSourceError(f"Intune logs directory not found at {status.log_dir}")
    if not status.has_logs:
        if status.has_agent:
            raise LogSourceError(
                "Intune Agent is installed but no log files found. The device may not have synced yet."
            )
        raise LogSourceError(f"No Intune log files found at {status.log_dir}")

    logger.info("Loading %d local log files from %s", len(status.log_files), status.log_dir)
    analysis = load_log_files(
        status.log_files,
        validate=False,
        source_title=f"Local Intune Logs ({len(status.log_files)} files)",
    )
    if not status.has_agent:
        analysis = analysis.with_warning(
            f"Intune Agent not found at {status.agent_path}. Device may have been unenrolled from Intune."
        )
    return analysis
