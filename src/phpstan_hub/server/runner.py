"""Asynchronous execution of the PHPStan command line."""

from __future__ import annotations

import asyncio
import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Optional, Union

from ..config import CONFIG_FILES, Level
from ..exceptions import ProcessSpawnError

logger = logging.getLogger(__name__)

DEFAULT_BINARY = "vendor/bin/phpstan"

# Bytes requested per read; chunks are arbitrary slices, not lines
CHUNK_SIZE = 64 * 1024


def find_config_file(cwd: str | Path) -> Optional[str]:
    """Return the first PHPStan config present in *cwd* (``phpstan.neon`` wins)."""
    for name in CONFIG_FILES:
        if (Path(cwd) / name).is_file():
            return name
    return None


def build_command(
    paths: str,
    level: Level,
    generate_baseline: bool = False,
    config_file: Optional[str] = None,
    binary: str = DEFAULT_BINARY,
) -> str:
    """Build the ``phpstan analyse`` command line.

    *paths* is inserted verbatim; callers pass it already space-joined.
    """
    parts = [
        binary,
        "analyse",
        paths,
        f"--level={level}",
        "--error-format=json",
        "--no-progress",
    ]
    if config_file:
        parts.append(f"-c {shlex.quote(config_file)}")
    if generate_baseline:
        parts.append("--generate-baseline")
    return " ".join(part for part in parts if part).strip()


@dataclass
class OutputChunk:
    """A slice of bytes read from one of the process's output streams."""

    stream: str  # "stdout" or "stderr"
    data: bytes


@dataclass
class ProcessExit:
    """Terminal event of a process stream, carrying the exit code."""

    returncode: int


ProcessEvent = Union[OutputChunk, ProcessExit]


@dataclass
class AnalysisRun:
    """One PHPStan invocation and the output it produced."""

    command: str
    cwd: str
    stdout: bytearray = field(default_factory=bytearray)
    stderr: bytearray = field(default_factory=bytearray)
    exit_code: Optional[int] = None

    @property
    def failed(self) -> bool:
        """Non-zero exit with something on stderr.

        PHPStan exits 1 when it finds errors but still prints its JSON report,
        so a non-zero exit alone is not a failure.
        """
        return self.exit_code not in (None, 0) and bool(self.stderr)

    def feed(self, event: ProcessEvent) -> None:
        if isinstance(event, ProcessExit):
            self.exit_code = event.returncode
        elif event.stream == "stderr":
            self.stderr.extend(event.data)
        else:
            self.stdout.extend(event.data)


class ProcessRunner:
    """Spawns shell commands on the running event loop.

    Both output pipes are drained concurrently so a chatty stderr can never
    block stdout (or the other way round).
    """

    async def stream(self, command: str, cwd: str | Path) -> AsyncIterator[ProcessEvent]:
        """Yield output chunks in arrival order, then a single ProcessExit.

        Raises:
            ProcessSpawnError: If the shell itself can't be started
        """
        try:
            process = await asyncio.create_subprocess_shell(
                command,
                cwd=str(cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as exc:
            raise ProcessSpawnError(command, str(exc)) from exc

        queue: asyncio.Queue[Optional[OutputChunk]] = asyncio.Queue()

        async def pump(name: str, reader: asyncio.StreamReader) -> None:
            try:
                while True:
                    data = await reader.read(CHUNK_SIZE)
                    if not data:
                        break
                    await queue.put(OutputChunk(name, data))
            finally:
                await queue.put(None)

        pumps = [
            asyncio.create_task(pump("stdout", process.stdout)),
            asyncio.create_task(pump("stderr", process.stderr)),
        ]
        try:
            remaining = len(pumps)
            while remaining:
                chunk = await queue.get()
                if chunk is None:
                    remaining -= 1
                else:
                    yield chunk
            returncode = await process.wait()
        finally:
            for task in pumps:
                task.cancel()
            if process.returncode is None:
                try:
                    process.kill()
                except ProcessLookupError:
                    pass
                await process.wait()

        yield ProcessExit(returncode)

    async def run(self, command: str, cwd: str | Path) -> AnalysisRun:
        """Run *command* to completion and return the accumulated output."""
        run = AnalysisRun(command=command, cwd=str(cwd))
        async for event in self.stream(command, cwd):
            run.feed(event)
        return run
