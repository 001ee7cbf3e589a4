"""Exception hierarchy for PhpStanHub."""

from .analysis import AnalysisError, ProcessSpawnError
from .base import PhpStanHubError
from .config import ConfigurationError, InvalidConfigError, SecurityError
from .request import RequestError

__all__ = [
    "PhpStanHubError",
    "AnalysisError",
    "ProcessSpawnError",
    "ConfigurationError",
    "InvalidConfigError",
    "SecurityError",
    "RequestError",
]
