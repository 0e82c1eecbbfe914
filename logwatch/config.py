"""logwatch configuration."""
import os
from pathlib import Path


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


# Local Intune installation (macOS defaults)
LOG_DIR = Path(os.getenv("LOGWATCH_LOG_DIR", "/Library/Logs/Microsoft/Intune"))
AGENT_PATH = Path(os.getenv("LOGWATCH_AGENT_PATH", "/Library/Intune/Microsoft Intune Agent.app"))
LOG_FILE_PREFIX = os.getenv("LOGWATCH_LOG_PREFIX", "IntuneMDMDaemon")
LOG_FILE_SUFFIX = ".log"

# Parser tuning
VALIDATION_LINE_LIMIT = _env_int("LOGWATCH_VALIDATION_LINE_LIMIT", 50)

# Local log watcher
WATCH_ENABLED = _env_bool("LOGWATCH_WATCH_ENABLED", False)
WATCH_DEBOUNCE_MS = _env_int("LOGWATCH_WATCH_DEBOUNCE_MS", 1600)

# Observability
OTEL_ENABLED = _env_bool("LOGWATCH_OTEL_ENABLED", False)
OTEL_ENDPOINT = os.getenv("LOGWATCH_OTEL_ENDPOINT", "http://localhost:4318")
OTEL_SERVICE_NAME = os.getenv("LOGWATCH_OTEL_SERVICE_NAME", "logwatch")
PROM_PORT = _env_int("LOGWATCH_PROM_PORT", 9464)

# Server settings
HOST = os.getenv("LOGWATCH_HOST", "127.0.0.1")
PORT = _env_int("LOGWATCH_PORT", 8000)

# CORS
FRONTEND_ORIGIN = os.getenv("LOGWATCH_FRONTEND_ORIGIN", "http://localhost:3000")
