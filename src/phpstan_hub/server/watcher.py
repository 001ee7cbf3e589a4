"""Polling file watcher that re-runs analysis on source or config changes."""

from __future__ import annotations

import asyncio
import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, Optional, Protocol

from watchfiles import Change, DefaultFilter

from ..config import Level

logger = logging.getLogger(__name__)

# Seconds between two watch cycles
WATCH_INTERVAL = 1.0

SOURCE_PATTERNS = ("*.php",)
CONFIG_PATTERNS = ("*.neon",)

# Absolute path -> st_mtime_ns
Snapshot = dict[str, int]


class _SourceFilter(DefaultFilter):
    """watchfiles filter: skip VCS, tooling and dependency directories."""

    ignore_dirs = (*DefaultFilter.ignore_dirs, "vendor")


class _Trigger(Protocol):
    def trigger(self, paths: str, level: Level, generate_baseline: bool = False) -> object: ...


def take_snapshot(
    paths: Iterable[str | Path],
    patterns: Iterable[str] = SOURCE_PATTERNS,
    path_filter: Optional[DefaultFilter] = None,
) -> Snapshot:
    """Map every matching file under *paths* to its modification time.

    Walks directories recursively; a root that is itself a file is included
    when its name matches. Missing roots contribute nothing.
    """
    patterns = tuple(patterns)
    path_filter = path_filter or _SourceFilter()
    files: Snapshot = {}

    def record(full: str, name: str) -> None:
        if not any(fnmatch.fnmatchcase(name, pattern) for pattern in patterns):
            return
        try:
            files[os.path.realpath(full)] = os.stat(full).st_mtime_ns
        except FileNotFoundError:
            pass  # deleted while walking

    for root in paths:
        root = str(root)
        if os.path.isfile(root):
            record(root, os.path.basename(root))
            continue
        if not os.path.isdir(root):
            logger.debug("Watch path %s does not exist", root)
            continue

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if path_filter(Change.added, d)]
            for name in filenames:
                full = os.path.join(dirpath, name)
                if path_filter(Change.modified, os.path.relpath(full, root)):
                    record(full, name)

    return files


def snapshots_differ(old: Snapshot, new: Snapshot) -> bool:
    """True if a file was added, removed or modified between two snapshots."""
    if len(old) != len(new):
        return True
    return any(old.get(path) != mtime for path, mtime in new.items())


class ChangeSnapshotter:
    """Detects changes under a fixed set of roots between two calls.

    The retained snapshot is replaced wholesale on every check, so a change
    is reported once and a quiet filesystem reads as unchanged afterwards.
    """

    def __init__(
        self,
        paths: Iterable[str | Path],
        patterns: Iterable[str] = SOURCE_PATTERNS,
    ) -> None:
        self.paths = [str(p) for p in paths]
        self.patterns = tuple(patterns)
        self._filter = _SourceFilter()
        self._snapshot = self.snapshot()

    def snapshot(self) -> Snapshot:
        return take_snapshot(self.paths, self.patterns, self._filter)

    def has_changed(self) -> bool:
        current = self.snapshot()
        changed = snapshots_differ(self._snapshot, current)
        self._snapshot = current
        return changed


class WatchLoop:
    """Checks watched sources and PHPStan configs on a fixed period.

    Level and paths are fixed when the loop is built; a change to either
    set of files triggers exactly one analysis run per cycle.
    """

    def __init__(
        self,
        project_root: str | Path,
        orchestrator: _Trigger,
        paths: list[str],
        level: Level,
        interval: float = WATCH_INTERVAL,
    ) -> None:
        self.project_root = Path(project_root)
        self.orchestrator = orchestrator
        self.paths = list(paths)
        self.level = level
        self.interval = interval

        self.sources = ChangeSnapshotter(
            [self._absolute(p) for p in self.paths], SOURCE_PATTERNS
        )
        self.configs = ChangeSnapshotter([self.project_root], CONFIG_PATTERNS)
        self._task: Optional[asyncio.Task] = None

    def _absolute(self, path: str) -> Path:
        path = path.replace("%currentWorkingDirectory%", str(self.project_root))
        return self.project_root / path

    def check(self) -> bool:
        """Run one watch cycle; returns True if a run was triggered."""
        # Both snapshots are refreshed every cycle
        sources_changed = self.sources.has_changed()
        config_changed = self.configs.has_changed()
        if not (sources_changed or config_changed):
            return False

        logger.info(
            "Detected changes in %s, re-analyzing...",
            "sources" if sources_changed else "configuration",
        )
        self.orchestrator.trigger(" ".join(self.paths), self.level)
        return True

    async def run(self) -> None:
        logger.info("Watching %s for changes", ", ".join(self.paths) or "(nothing)")
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.check()
            except Exception:
                logger.exception("Watch cycle failed")

    def start(self) -> asyncio.Task:
        self._task = asyncio.get_running_loop().create_task(self.run(), name="phpstan-watch")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
