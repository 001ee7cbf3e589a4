"""
PhpStanHub - live dashboard for PHPStan.

Serves a single-page app, runs PHPStan on request (or when watched files
change) and pushes every result to all open browser tabs over a WebSocket.
"""

__version__ = "0.1.0"

from .config import EffectiveConfig, ServerSettings, load_settings, resolve_config

__all__ = [
    "EffectiveConfig",
    "ServerSettings",
    "load_settings",
    "resolve_config",
]
