"""Runs one PHPStan pass and publishes its status to the broadcast bus."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from ..config import Level
from ..exceptions import ProcessSpawnError
from .bus import BroadcastBus
from .runner import DEFAULT_BINARY, AnalysisRun, ProcessRunner, build_command, find_config_file

logger = logging.getLogger(__name__)

RUNNING_PAYLOAD = json.dumps({"status": "running"})


def error_payload(message: str) -> str:
    """Status payload reporting a run that produced no usable report."""
    return json.dumps(
        {
            "totals": {"errors": 1, "file_errors": 1},
            "files": {},
            "errors": [message],
        }
    )


def result_payload(run: AnalysisRun) -> str:
    """Status payload for a finished run.

    A failed run becomes a synthetic single error embedding the exit code and
    stderr; otherwise PHPStan's stdout is forwarded as-is.
    """
    if run.failed:
        stderr = bytes(run.stderr).decode("utf-8", errors="replace")
        return error_payload(f"PHPStan failed with exit code {run.exit_code}: {stderr}")
    return bytes(run.stdout).decode("utf-8", errors="replace")


class AnalysisOrchestrator:
    """Builds, runs and reports analysis passes for one project.

    Runs are serialized: each trigger queues behind the run in flight and
    only announces ``running`` once it actually starts. Every run therefore
    publishes exactly one ``running`` payload followed by exactly one final
    payload, and the pairs of two runs never interleave.
    """

    def __init__(
        self,
        project_root: str | Path,
        bus: BroadcastBus,
        runner: Optional[ProcessRunner] = None,
        binary: str = DEFAULT_BINARY,
    ) -> None:
        self.project_root = str(project_root)
        self.bus = bus
        self.runner = runner or ProcessRunner()
        self.binary = binary

        self._lock: Optional[asyncio.Lock] = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def running(self) -> bool:
        """True while a run holds the slot."""
        return self._lock is not None and self._lock.locked()

    @property
    def pending(self) -> int:
        """Number of triggered runs not yet finished (including the active one)."""
        return len(self._tasks)

    def command_for(self, paths: str, level: Level, generate_baseline: bool = False) -> str:
        return build_command(
            paths,
            level,
            generate_baseline=generate_baseline,
            config_file=find_config_file(self.project_root),
            binary=self.binary,
        )

    def trigger(self, paths: str, level: Level, generate_baseline: bool = False) -> asyncio.Task:
        """Schedule a run without waiting for it. Must be called on the loop."""
        task = asyncio.get_running_loop().create_task(
            self.execute(paths, level, generate_baseline),
            name="phpstan-run",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def execute(self, paths: str, level: Level, generate_baseline: bool = False) -> str:
        """Run one pass to completion and return the final payload it published."""
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            await self.bus.broadcast(RUNNING_PAYLOAD)

            command = self.command_for(paths, level, generate_baseline)
            logger.info("Running command: %s", command)

            try:
                run = await self.runner.run(command, self.project_root)
            except ProcessSpawnError as exc:
                logger.error("%s", exc)
                payload = error_payload(f"PHPStan could not be started: {exc.reason}")
            except Exception as exc:
                logger.exception("Analysis run failed unexpectedly")
                payload = error_payload(f"Analysis failed: {exc}")
            else:
                if run.failed:
                    logger.error(
                        "PHPStan exited with code %d:\n%s",
                        run.exit_code,
                        bytes(run.stderr).decode("utf-8", errors="replace"),
                    )
                else:
                    logger.debug("PHPStan output (exit code %s): %d bytes", run.exit_code, len(run.stdout))
                payload = result_payload(run)

            await self.bus.broadcast(payload)
            return payload

    async def wait_idle(self) -> None:
        """Wait until every triggered run has published its final payload."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_pending(self) -> None:
        """Cancel queued and active runs (process shutdown only)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
