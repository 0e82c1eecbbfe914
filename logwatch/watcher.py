"""Local log watcher using watchfiles.

Watches the Intune log directory and re-analyzes the local logs whenever an
agent log file is added, modified or removed.
"""
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from watchfiles import Change, awatch

from logwatch import config
from logwatch.models import LogAnalysis
from logwatch.sources import load_local_logs

logger = logging.getLogger("logwatch.watcher")


class LocalLogWatcher:
    """Keeps the latest analysis of the local agent logs.

    `refresh()` can be awaited on demand; `start()` additionally re-runs it in
    the background when the log directory changes.
    """

    def __init__(self, agent_path: Path | None = None, log_dir: Path | None = None):
        self.agent_path = agent_path
        self.log_dir = log_dir
        self.latest: Optional[LogAnalysis] = None
        self.last_error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._running = False
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def watch_dir(self) -> Path:
        return self.log_dir or config.LOG_DIR

    async def refresh(self) -> LogAnalysis:
        """Re-analyze local logs in a worker thread and cache the result.

        Errors propagate to the caller; the previous analysis is kept.
        """
        async with self._lock:
            try:
                analysis = await asyncio.to_thread(load_local_logs, self.agent_path, self.log_dir)
            except Exception as exc:
                self.last_error = str(exc)
                raise
            self.latest = analysis
            self.last_error = None
            return analysis

    async def start(self) -> None:
        if self._running:
            logger.warning("Log watcher already running")
            return
        if not self.watch_dir.is_dir():
            logger.warning("Log directory %s does not exist, watcher not started", self.watch_dir)
            return
        self._running = True
        self._task = asyncio.create_task(self._watch_loop())
        logger.info("Log watcher started for %s", self.watch_dir)

    async def stop(self) -> None:
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Log watcher stopped")

    def is_relevant(self, changes: set[tuple[Change, str]]) -> bool:
        """True when any change touches an agent log file."""
        for _change, path_str in changes:
            name = Path(path_str).name
            if name.startswith(config.LOG_FILE_PREFIX) and name.endswith(config.LOG_FILE_SUFFIX):
                return True
        return False

    async def _watch_loop(self) -> None:
        try:
            async for changes in awatch(self.watch_dir, debounce=config.WATCH_DEBOUNCE_MS):
                if not self._running:
                    break
                if not self.is_relevant(changes):
                    continue
                logger.info("Detected %d log file changes, re-analyzing", len(changes))
                try:
                    await self.refresh()
                except Exception as exc:
                    logger.error("Failed to refresh local log analysis: %s", exc)
        except asyncio.CancelledError:
            logger.info("Log watcher task cancelled")
        except Exception as exc:
            logger.error("Log watcher error: %s", exc)
        finally:
            self._running = False


# Singleton instance
log_watcher = LocalLogWatcher()
