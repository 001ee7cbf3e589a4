"""Tests for server.orchestrator.AnalysisOrchestrator."""

import asyncio
import json

from phpstan_hub.exceptions import ProcessSpawnError
from phpstan_hub.server.bus import BroadcastBus
from phpstan_hub.server.orchestrator import AnalysisOrchestrator, error_payload, result_payload
from phpstan_hub.server.runner import AnalysisRun

REPORT = '{"totals":{"errors":0,"file_errors":2},"files":{"/p/src/A.php":{"errors":2,"messages":[]}},"errors":[]}'


class RecordingSubscriber:
    def __init__(self) -> None:
        self.frames: list[str] = []

    async def send_text(self, data: str) -> None:
        self.frames.append(data)


class StubRunner:
    """Returns canned runs and records the commands it was asked to run."""

    def __init__(self, stdout=b"", stderr=b"", exit_code=0, delay=0.0, error=None) -> None:
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.delay = delay
        self.error = error
        self.commands: list[str] = []
        self.active = 0
        self.max_active = 0

    async def run(self, command, cwd):
        self.commands.append(command)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            return AnalysisRun(
                command=command,
                cwd=str(cwd),
                stdout=bytearray(self.stdout),
                stderr=bytearray(self.stderr),
                exit_code=self.exit_code,
            )
        finally:
            self.active -= 1


def _orchestrator(tmp_path, runner):
    bus = BroadcastBus()
    subscriber = RecordingSubscriber()
    bus.subscribe(subscriber)
    return AnalysisOrchestrator(tmp_path, bus, runner=runner), subscriber


class TestPayloads:
    def test_error_payload_shape(self):
        payload = json.loads(error_payload("boom"))
        assert payload == {"totals": {"errors": 1, "file_errors": 1}, "files": {}, "errors": ["boom"]}

    def test_result_payload_forwards_stdout(self):
        run = AnalysisRun(command="x", cwd="/", stdout=bytearray(REPORT.encode()), exit_code=1)
        assert result_payload(run) == REPORT

    def test_result_payload_failure(self):
        run = AnalysisRun(command="x", cwd="/", stderr=bytearray(b"Killed"), exit_code=137)
        payload = json.loads(result_payload(run))
        assert payload["errors"] == ["PHPStan failed with exit code 137: Killed"]


class TestExecute:
    def test_running_then_report(self, tmp_path):
        runner = StubRunner(stdout=REPORT.encode(), exit_code=1)
        orchestrator, subscriber = _orchestrator(tmp_path, runner)

        asyncio.run(orchestrator.execute("src", 5))

        assert subscriber.frames == ['{"status": "running"}', REPORT]
        assert runner.commands == [
            "vendor/bin/phpstan analyse src --level=5 --error-format=json --no-progress"
        ]

    def test_failed_run_reports_single_error(self, tmp_path):
        runner = StubRunner(stderr=b"Memory exhausted", exit_code=2)
        orchestrator, subscriber = _orchestrator(tmp_path, runner)

        asyncio.run(orchestrator.execute("src", 5))

        final = json.loads(subscriber.frames[-1])
        assert final["totals"]["errors"] == 1
        assert final["files"] == {}
        assert "2" in final["errors"][0]
        assert "Memory exhausted" in final["errors"][0]

    def test_spawn_failure_reports_error(self, tmp_path):
        runner = StubRunner(error=ProcessSpawnError("phpstan", "No such file or directory"))
        orchestrator, subscriber = _orchestrator(tmp_path, runner)

        asyncio.run(orchestrator.execute("src", 5))

        assert len(subscriber.frames) == 2
        final = json.loads(subscriber.frames[1])
        assert final["errors"] == ["PHPStan could not be started: No such file or directory"]

    def test_uses_project_config_file(self, tmp_path):
        (tmp_path / "phpstan.neon.dist").write_text("parameters:\n\tlevel: 3\n")
        runner = StubRunner(stdout=b"{}")
        orchestrator, _ = _orchestrator(tmp_path, runner)

        asyncio.run(orchestrator.execute("src lib", "max", generate_baseline=True))

        assert runner.commands == [
            "vendor/bin/phpstan analyse src lib --level=max --error-format=json"
            " --no-progress -c phpstan.neon.dist --generate-baseline"
        ]

    def test_no_subscribers_is_fine(self, tmp_path):
        orchestrator = AnalysisOrchestrator(tmp_path, BroadcastBus(), runner=StubRunner(stdout=b"{}"))
        assert asyncio.run(orchestrator.execute("src", 5)) == "{}"


class TestTrigger:
    def test_runs_are_serialized(self, tmp_path):
        runner = StubRunner(stdout=b"{}", delay=0.05)
        orchestrator, subscriber = _orchestrator(tmp_path, runner)

        async def scenario():
            orchestrator.trigger("src", 5)
            orchestrator.trigger("lib", 5)
            assert orchestrator.pending == 2
            await orchestrator.wait_idle()

        asyncio.run(scenario())

        assert runner.max_active == 1
        assert subscriber.frames == ['{"status": "running"}', "{}", '{"status": "running"}', "{}"]
        assert orchestrator.pending == 0
        assert not orchestrator.running

    def test_trigger_returns_immediately(self, tmp_path):
        runner = StubRunner(stdout=b"{}", delay=0.05)
        orchestrator, subscriber = _orchestrator(tmp_path, runner)

        async def scenario():
            orchestrator.trigger("src", 5)
            # nothing published until the task gets scheduled
            assert subscriber.frames == []
            await orchestrator.wait_idle()

        asyncio.run(scenario())
        assert len(subscriber.frames) == 2

    def test_cancel_pending(self, tmp_path):
        runner = StubRunner(stdout=b"{}", delay=10)
        orchestrator, _ = _orchestrator(tmp_path, runner)

        async def scenario():
            orchestrator.trigger("src", 5)
            orchestrator.trigger("src", 5)
            await asyncio.sleep(0.01)
            await orchestrator.cancel_pending()

        asyncio.run(scenario())
        assert orchestrator.pending == 0
