"""Configuration loading for PhpStanHub.

Two kinds of configuration live here:

``ServerSettings``
    How the dashboard process runs (ports, watch mode, PHPStan binary).
    Sources are merged in priority order:
        1. Defaults (defined in ServerSettings)
        2. Environment variables (PHPSTAN_HUB_* prefix)
        3. CLI overrides (passed as kwargs)

``EffectiveConfig``
    What PHPStan analyses, rebuilt on every request from three layers
    where each layer fully overrides the keys it defines:
        1. Hardcoded defaults
        2. Source roots declared in ``composer.json``
        3. The project's ``phpstan.neon`` (or ``phpstan.neon.dist``)

Example:
    >>> config = resolve_config("/path/to/project")
    >>> config.level
    5
    >>> config.paths
    ['src']
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union, get_type_hints

from . import neon
from .exceptions import InvalidConfigError

logger = logging.getLogger(__name__)

# Persisted config names, highest priority first
CONFIG_FILES = ("phpstan.neon", "phpstan.neon.dist")

DEFAULT_LEVEL = 5
DEFAULT_PATHS = ("src",)
DEFAULT_EDITOR_URL = "idea://open?file=%%file%%&line=%%line%%"

# Characters escaped by PCRE's preg_quote(), plus the delimiter
_PCRE_SPECIAL = set(".\\+*?[^]$(){}=!<>|:-#/")

Level = Union[int, str]


@dataclass(frozen=True)
class ServerSettings:
    """Runtime settings for the dashboard process.

    Attributes:
        project_root: Directory PHPStan runs in (defaults to the cwd)
        host: Interface both servers bind to
        http_port: Port for the HTTP API and the single-page app
        ws_port: Port for the WebSocket push channel
        watch: Re-run analysis when watched files change
        watch_interval: Seconds between two watch cycles
        phpstan_binary: PHPStan executable, relative to project_root
        dev_server_url: Vite dev server used by ``GET /?dev``
    """

    project_root: str = field(default_factory=os.getcwd)
    host: str = "127.0.0.1"
    http_port: int = 8081
    ws_port: int = 8082
    watch: bool = False
    watch_interval: float = 1.0
    phpstan_binary: str = "vendor/bin/phpstan"
    dev_server_url: str = "http://localhost:5173"

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name in ("http_port", "ws_port"):
            port = getattr(self, name)
            if not 1 <= port <= 65535:
                raise InvalidConfigError(name, port, "must be between 1 and 65535")
        if self.http_port == self.ws_port:
            raise InvalidConfigError("ws_port", self.ws_port, "must differ from http_port")
        if self.watch_interval <= 0:
            raise InvalidConfigError("watch_interval", self.watch_interval, "must be positive")
        if not Path(self.project_root).is_dir():
            raise InvalidConfigError("project_root", self.project_root, "not a directory")


def load_settings(**overrides: Any) -> ServerSettings:
    """Build ServerSettings from defaults, environment and CLI overrides.

    ``None`` overrides are ignored so CLI options can be passed straight through.

    Raises:
        InvalidConfigError: If a value is invalid or an env var can't be parsed
    """
    merged: dict[str, Any] = {}
    merged.update(_load_env_vars())
    merged.update({k: v for k, v in overrides.items() if v is not None})
    if "project_root" in merged:
        merged["project_root"] = str(Path(merged["project_root"]).resolve())
    return ServerSettings(**merged)


def _load_env_vars() -> dict[str, Any]:
    """Load settings from PHPSTAN_HUB_* environment variables.

    Supported environment variables:
        PHPSTAN_HUB_PROJECT_ROOT: str
        PHPSTAN_HUB_HOST: str
        PHPSTAN_HUB_HTTP_PORT: int
        PHPSTAN_HUB_WS_PORT: int
        PHPSTAN_HUB_WATCH: bool (true/false/1/0)
        PHPSTAN_HUB_WATCH_INTERVAL: float
        PHPSTAN_HUB_PHPSTAN_BINARY: str
        PHPSTAN_HUB_DEV_SERVER_URL: str
    """
    type_hints = get_type_hints(ServerSettings)
    result: dict[str, Any] = {}

    for field_name in ServerSettings.__dataclass_fields__:
        env_key = f"PHPSTAN_HUB_{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue
        try:
            result[field_name] = _parse_env_value(env_value, type_hints[field_name])
        except ValueError as e:
            raise InvalidConfigError(env_key, env_value, str(e))

    return result


def _parse_env_value(value: str, type_hint: Any) -> Any:
    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        if lower in ("false", "0", "no", "off"):
            return False
        raise ValueError(f"expected true/false, got '{value}'")
    if type_hint is int:
        return int(value)
    if type_hint is float:
        return float(value)
    return value


# ── Effective PHPStan configuration ───────────────────────────────────


@dataclass(frozen=True)
class EffectiveConfig:
    """Merged view of what PHPStan should analyse for a project."""

    level: Level
    paths: list[str]
    available_paths: list[str]
    editor_url: str
    project_root: str
    host_project_root: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Wire form served by ``GET /api/config``."""
        return {
            "level": self.level,
            "paths": list(self.paths),
            "availablePaths": list(self.available_paths),
            "editorUrl": self.editor_url,
            "projectRoot": self.project_root,
            "hostProjectRoot": self.host_project_root,
        }


def find_project_config(project_root: str | Path) -> Optional[Path]:
    """Return the persisted PHPStan config, primary name first, or None."""
    root = Path(project_root)
    for name in CONFIG_FILES:
        candidate = root / name
        if candidate.is_file():
            return candidate
    return None


def discover_default_paths(project_root: str | Path) -> list[str]:
    """Read PSR-4 source roots from ``composer.json``.

    Collects ``autoload`` then ``autoload-dev`` entries, trims trailing
    slashes and drops duplicates. Falls back to ``["src"]`` when the manifest
    is missing, unreadable or declares nothing.
    """
    composer_path = Path(project_root) / "composer.json"
    if not composer_path.is_file():
        return list(DEFAULT_PATHS)

    try:
        data = json.loads(composer_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Ignoring unreadable %s: %s", composer_path, exc)
        return list(DEFAULT_PATHS)

    paths: list[str] = []
    if isinstance(data, dict):
        for section in ("autoload", "autoload-dev"):
            psr4 = data.get(section, {})
            psr4 = psr4.get("psr-4", {}) if isinstance(psr4, dict) else {}
            if not isinstance(psr4, dict):
                continue
            for declared in psr4.values():
                entries = declared if isinstance(declared, list) else [declared]
                for entry in entries:
                    if isinstance(entry, str):
                        paths.append(entry.rstrip("/"))

    return _unique(paths) or list(DEFAULT_PATHS)


def resolve_config(project_root: str | Path) -> EffectiveConfig:
    """Merge defaults, composer roots and the persisted NEON config.

    Decode failures never propagate: the defaults are returned instead.
    """
    root = str(Path(project_root).resolve())
    available = discover_default_paths(root)
    defaults = EffectiveConfig(
        level=DEFAULT_LEVEL,
        paths=list(available),
        available_paths=available,
        editor_url=DEFAULT_EDITOR_URL,
        project_root=root,
    )

    config_path = find_project_config(root)
    if config_path is None:
        return defaults

    try:
        data = neon.decode(config_path.read_text(encoding="utf-8"))
    except (neon.NeonError, OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s, using defaults: %s", config_path, exc)
        return defaults

    params = data.get("parameters") if isinstance(data, dict) else None
    if not isinstance(params, dict):
        return defaults

    paths = params.get("paths", defaults.paths)
    if not isinstance(paths, list):
        paths = [paths]

    hub = params.get("phpstanHub")
    host_root = hub.get("hostProjectRoot") if isinstance(hub, dict) else None

    return EffectiveConfig(
        level=params.get("level", defaults.level),
        paths=_unique(str(p) for p in paths if p is not None),
        available_paths=available,
        editor_url=params.get("editorUrl", defaults.editor_url),
        project_root=root,
        host_project_root=host_root,
    )


def append_ignore_rule(project_root: str | Path, error_message: str, file_path: str) -> Path:
    """Add an ``ignoreErrors`` entry for *error_message* in *file_path*.

    Writes to ``phpstan.neon``, else ``phpstan.neon.dist``, else creates
    ``phpstan.neon``. This is an unlocked read-modify-write.

    Returns:
        The config file that was written

    Raises:
        neon.NeonError: If the existing config can't be decoded
    """
    config_path = find_project_config(project_root) or Path(project_root) / CONFIG_FILES[0]

    data: Any = {}
    if config_path.exists():
        data = neon.decode(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(data, dict):
        raise InvalidConfigError(str(config_path), type(data).__name__, "top level is not a mapping")

    params = data.setdefault("parameters", {})
    if not isinstance(params, dict):
        raise InvalidConfigError("parameters", params, "not a mapping")
    rules = params.get("ignoreErrors")
    if not isinstance(rules, list):
        rules = params["ignoreErrors"] = []

    rules.append({"message": f"#{preg_quote(error_message, '#')}#", "path": file_path})

    config_path.write_text(neon.encode(data), encoding="utf-8")
    logger.info("Added ignore rule to %s", config_path)
    return config_path


def preg_quote(text: str, delimiter: str = "") -> str:
    """Escape *text* for use inside a PCRE pattern delimited by *delimiter*."""
    special = _PCRE_SPECIAL | set(delimiter)
    out = []
    for ch in text:
        if ch == "\0":
            out.append("\\000")
        elif ch in special:
            out.append("\\" + ch)
        else:
            out.append(ch)
    return "".join(out)


def _unique(items) -> list[str]:
    seen: dict[str, None] = {}
    for item in items:
        seen.setdefault(item, None)
    return list(seen)
