"""Starlette ASGI applications: the HTTP API and the WebSocket push channel."""

from __future__ import annotations

import functools
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, HTMLResponse, JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket

from ..config import DEFAULT_LEVEL, DEFAULT_PATHS, Level, append_ignore_rule, resolve_config
from ..exceptions import RequestError, SecurityError
from ..highlight import tokenize_php
from ..manifest import BuildManifest
from .bus import BroadcastBus

logger = logging.getLogger(__name__)

_PKG_DIR = Path(__file__).parent
BUILD_DIR = _PKG_DIR / "static" / "build"

DEV_SERVER_URL = "http://localhost:5173"

MIME_TYPES: dict[str, str] = {
    "js": "application/javascript",
    "css": "text/css",
    "json": "application/json",
    "ico": "image/x-icon",
    "png": "image/png",
    "jpg": "image/jpeg",
    "svg": "image/svg+xml",
}

_INDEX_HTML = """<!DOCTYPE html>
<html lang="en" class="bg-gray-100">
<head>
    <meta charset="UTF-8">
    <title>PhpStanHub</title>
    {head}
</head>
<body>
    <div id="app"></div>
</body>
</html>
"""


class _Runner(Protocol):
    def trigger(self, paths: str, level: Level, generate_baseline: bool = False) -> object: ...


Handler = Callable[[Request], Awaitable[Response]]


def _json_errors(handler: Handler) -> Handler:
    """Map exceptions escaping an API handler to JSON error responses."""

    @functools.wraps(handler)
    async def wrapper(request: Request) -> Response:
        try:
            return await handler(request)
        except RequestError as exc:
            return JSONResponse({"error": exc.message}, status_code=exc.status_code)
        except SecurityError as exc:
            logger.warning("Rejected %s: %s", request.url.path, exc)
            return JSONResponse({"error": "Access denied"}, status_code=403)
        except Exception as exc:
            logger.exception("Error processing %s", request.url.path)
            return JSONResponse(
                {"error": "Internal Server Error", "message": str(exc)},
                status_code=500,
            )

    return wrapper


async def _json_body(request: Request) -> dict[str, Any]:
    body = await request.body()
    logger.debug("Received %s request with body: %s", request.url.path, body[:2048])
    try:
        params = json.loads(body)
    except ValueError as exc:
        raise RequestError(f"Malformed JSON body: {exc}")
    if not isinstance(params, dict):
        raise RequestError("JSON body must be an object")
    return params


def _normalize_paths(paths: Any) -> str:
    if isinstance(paths, str):
        return paths
    if isinstance(paths, list) and all(isinstance(p, str) for p in paths):
        return " ".join(paths)
    raise RequestError("'paths' must be a string or a list of strings")


def _normalize_level(level: Any) -> Level:
    if isinstance(level, int) and not isinstance(level, bool):
        return level
    if level == "max":
        return level
    raise RequestError("'level' must be an integer or 'max'")


def resolve_project_file(project_root: str | Path, file: str) -> Path:
    """Resolve *file* (absolute or relative to the root) inside the project.

    Symlinks are resolved before the containment check.

    Raises:
        SecurityError: If the canonical path escapes *project_root*
        RequestError: 404 if the path does not exist or is not a regular file
    """
    root = Path(project_root).resolve()
    resolved = (root / file).resolve()
    if resolved != root and root not in resolved.parents:
        raise SecurityError("path is outside the project root", filepath=resolved)
    if not resolved.is_file():
        raise RequestError("File not found", status_code=404)
    return resolved


def create_app(
    project_root: str | Path,
    orchestrator: _Runner,
    build_dir: str | Path = BUILD_DIR,
    dev_server_url: str = DEV_SERVER_URL,
) -> Starlette:
    """Build the HTTP application for *project_root*.

    Args:
        project_root: Directory PHPStan analyses and file requests are confined to
        orchestrator: Receives run requests; must not block
        build_dir: Directory holding the built front-end assets
        dev_server_url: Vite dev server referenced by ``GET /?dev``
    """
    project_root = str(Path(project_root).resolve())
    build_dir = Path(build_dir).resolve()
    manifest = BuildManifest(build_dir / ".vite" / "manifest.json")

    async def homepage(request: Request) -> HTMLResponse:
        if "dev" in request.query_params:
            head = (
                f'<script type="module" src="{dev_server_url}/@vite/client"></script>\n'
                f'    <script type="module" src="{dev_server_url}/assets/js/app.js"></script>'
            )
        else:
            head = manifest.style_tags() + manifest.script_tags()
        return HTMLResponse(_INDEX_HTML.format(head=head))

    async def build_asset(request: Request) -> Response:
        asset = (build_dir / request.path_params["path"]).resolve()
        if build_dir not in asset.parents or not asset.is_file():
            return Response("Not found", status_code=404, media_type="text/plain")
        content_type = MIME_TYPES.get(asset.suffix.lstrip("."), "text/plain")
        return FileResponse(asset, media_type=content_type)

    @_json_errors
    async def api_config(request: Request) -> JSONResponse:
        return JSONResponse(resolve_config(project_root).to_dict())

    @_json_errors
    async def api_run(request: Request) -> JSONResponse:
        params = await _json_body(request)
        paths = _normalize_paths(params.get("paths", list(DEFAULT_PATHS)))
        level = _normalize_level(params.get("level", DEFAULT_LEVEL))
        generate_baseline = bool(params.get("generateBaseline", False))

        orchestrator.trigger(paths, level, generate_baseline)
        return JSONResponse({"status": "running"}, status_code=202)

    @_json_errors
    async def api_ignore_error(request: Request) -> JSONResponse:
        params = await _json_body(request)
        error = params.get("error")
        file = params.get("file")
        if not (isinstance(error, str) and error and isinstance(file, str) and file):
            raise RequestError("Invalid request")

        append_ignore_rule(project_root, error, file)
        return JSONResponse({"status": "success"})

    @_json_errors
    async def api_file_content(request: Request) -> JSONResponse:
        params = await _json_body(request)
        file = params.get("file")
        if not isinstance(file, str) or not file:
            raise RequestError("File path is required")

        path = resolve_project_file(project_root, file)
        content = path.read_text(encoding="utf-8", errors="replace")
        return JSONResponse({"content": content, "tokens": tokenize_php(content)})

    routes = [
        Route("/", homepage),
        Route("/build/{path:path}", build_asset),
        Route("/api/config", api_config),
        Route("/api/run", api_run, methods=["POST"]),
        Route("/api/ignore-error", api_ignore_error, methods=["POST"]),
        Route("/api/file-content", api_file_content, methods=["POST"]),
    ]

    return Starlette(routes=routes)


def create_push_app(bus: BroadcastBus) -> Starlette:
    """Build the WebSocket application that feeds *bus* subscribers.

    The channel is one-directional: inbound frames are read and dropped.
    """

    async def websocket_endpoint(websocket: WebSocket) -> None:
        await websocket.accept()
        bus.subscribe(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            bus.unsubscribe(websocket)

    return Starlette(routes=[WebSocketRoute("/", websocket_endpoint)])
