"""``phpstan-hub serve``: dashboard server with optional file watching."""

from pathlib import Path
from typing import Optional

import typer

from ..exceptions import InvalidConfigError
from ..logging_config import setup_logging
from . import app
from ._common import console


@app.command()
def serve(
    ctx: typer.Context,
    watch: bool = typer.Option(False, "--watch", "-w", help="Re-run PHPStan when files change"),
    host: Optional[str] = typer.Option(None, help="Host to bind to [default: 127.0.0.1]"),
    port: Optional[int] = typer.Option(None, "--port", help="HTTP port [default: 8081]"),
    ws_port: Optional[int] = typer.Option(None, "--ws-port", help="WebSocket port [default: 8082]"),
    interval: Optional[float] = typer.Option(
        None, "--interval", help="Seconds between watch checks [default: 1.0]"
    ),
    phpstan_binary: Optional[str] = typer.Option(
        None, "--phpstan-binary", help="PHPStan executable [default: vendor/bin/phpstan]"
    ),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logging"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only log errors"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also write logs to a file"),
) -> None:
    """Start the dashboard: HTTP API, WebSocket status channel, optional watcher."""
    try:
        from ..server import _check_deps

        _check_deps()
    except ImportError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    from ..config import load_settings
    from ..server.lifecycle import launch_server

    setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file else None)

    root = (ctx.obj or {}).get("path")
    try:
        settings = load_settings(
            project_root=str(root) if root else None,
            host=host,
            http_port=port,
            ws_port=ws_port,
            watch=True if watch else None,
            watch_interval=interval,
            phpstan_binary=phpstan_binary,
        )
    except InvalidConfigError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1)

    if not launch_server(settings, console, verbose=verbose):
        raise typer.Exit(1)
