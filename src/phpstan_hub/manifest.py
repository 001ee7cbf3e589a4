"""Vite build manifest lookup for the dashboard's asset URLs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENTRY_POINT = "assets/js/app.js"


class BuildManifest:
    """Resolves the app entry point to ``/build/...`` script and style tags.

    A missing or malformed manifest behaves like an empty one.
    """

    def __init__(self, manifest_path: str | Path, entry: str = ENTRY_POINT) -> None:
        self.manifest_path = Path(manifest_path)
        self.entry = entry
        self._manifest: dict[str, Any] = {}

        if self.manifest_path.is_file():
            try:
                decoded = json.loads(self.manifest_path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Ignoring unreadable build manifest %s: %s", self.manifest_path, exc)
                decoded = None
            self._manifest = decoded if isinstance(decoded, dict) else {}

    def _entry(self) -> dict[str, Any]:
        entry = self._manifest.get(self.entry)
        return entry if isinstance(entry, dict) else {}

    def script_urls(self) -> list[str]:
        file = self._entry().get("file")
        return [f"/build/{file}"] if file else []

    def style_urls(self) -> list[str]:
        return [f"/build/{css}" for css in self._entry().get("css", [])]

    def script_tags(self) -> str:
        return "".join(f'<script type="module" src="{url}"></script>' for url in self.script_urls())

    def style_tags(self) -> str:
        return "".join(f'<link rel="stylesheet" href="{url}">' for url in self.style_urls())
