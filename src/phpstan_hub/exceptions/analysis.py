"""Analysis-related exceptions: spawning and running PHPStan."""

from .base import PhpStanHubError


class AnalysisError(PhpStanHubError):
    """Base class for analysis-related errors."""

    pass


class ProcessSpawnError(AnalysisError):
    """Raised when the analysis command cannot be started at all."""

    def __init__(self, command: str, reason: str):
        super().__init__(
            f"Cannot start analysis command: {command}",
            details={"command": command, "reason": reason},
        )
        self.command = command
        self.reason = reason
