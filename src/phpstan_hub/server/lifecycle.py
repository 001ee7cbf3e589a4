"""Server lifecycle management: startup, running, and graceful shutdown.

Coordinates:
- Port availability checks for the HTTP and push servers
- Both uvicorn servers and the optional watch loop on one event loop
- Resource cleanup (watch task, queued runs, WebSocket subscribers)
- Rich terminal status display
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import ServerSettings, resolve_config
from .app import create_app, create_push_app
from .bus import BroadcastBus
from .orchestrator import AnalysisOrchestrator
from .watcher import WatchLoop

logger = logging.getLogger(__name__)


def is_port_in_use(host: str, port: int) -> bool:
    """Check if a port is currently bound."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    try:
        sock.connect((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


class ShutdownManager:
    """Tears down every running piece exactly once and reports what it did."""

    def __init__(self, console: Console) -> None:
        self.console = console
        self._shutdown_complete = False
        self._servers: list = []
        self._watch_loop: Optional[WatchLoop] = None
        self._orchestrator: Optional[AnalysisOrchestrator] = None
        self._bus: Optional[BroadcastBus] = None

    def register_server(self, server) -> None:
        self._servers.append(server)

    def register_watch_loop(self, watch_loop: WatchLoop) -> None:
        self._watch_loop = watch_loop

    def register_orchestrator(self, orchestrator: AnalysisOrchestrator) -> None:
        self._orchestrator = orchestrator

    def register_bus(self, bus: BroadcastBus) -> None:
        self._bus = bus

    def request_exit(self) -> None:
        """Ask every uvicorn server to stop serving."""
        for server in self._servers:
            server.should_exit = True

    async def shutdown(self) -> None:
        """Perform full shutdown. Safe to call multiple times."""
        if self._shutdown_complete:
            return
        self._shutdown_complete = True

        steps = []

        if self._watch_loop is not None:
            await self._watch_loop.stop()
            steps.append("Stopped file watcher")

        if self._orchestrator is not None and self._orchestrator.pending:
            count = self._orchestrator.pending
            await self._orchestrator.cancel_pending()
            steps.append(f"Cancelled {count} pending analysis run{'s' if count != 1 else ''}")

        if self._bus is not None:
            count = len(self._bus)
            await self._bus.close_all()
            if count:
                steps.append(f"Closed WebSocket connections ({count} client{'s' if count != 1 else ''})")
            else:
                steps.append("No active WebSocket connections")

        self.request_exit()

        self.console.print()
        for step in steps:
            self.console.print(f"  [green]OK[/green] {step}")
        self.console.print("  [green]OK[/green] Server stopped cleanly")


def _format_status_display(settings: ServerSettings, watched: Optional[list[str]]) -> Panel:
    """Build the Rich panel shown once both servers are configured."""
    table = Table(show_header=False, show_edge=False, box=None, padding=(0, 1))
    table.add_column("key", style="bold", width=14)
    table.add_column("value")

    url = f"http://{settings.host}:{settings.http_port}"
    table.add_row("Project:", settings.project_root)
    table.add_row("Dashboard:", f"[link={url}]{url}[/link]")
    table.add_row("WebSocket:", f"ws://{settings.host}:{settings.ws_port}")
    table.add_row("PHPStan:", settings.phpstan_binary)
    if watched is None:
        table.add_row("Watch:", "[dim]off (use --watch)[/dim]")
    else:
        table.add_row("Watch:", f"[green]{', '.join(watched) or '(nothing)'}[/green]")

    return Panel(table, title="[bold]PhpStanHub[/bold]", border_style="cyan")


async def serve(settings: ServerSettings, console: Console, verbose: bool = False) -> None:
    """Run both servers (and the watch loop) until one of them stops."""
    import uvicorn

    bus = BroadcastBus()
    orchestrator = AnalysisOrchestrator(settings.project_root, bus, binary=settings.phpstan_binary)

    shutdown_mgr = ShutdownManager(console)
    shutdown_mgr.register_bus(bus)
    shutdown_mgr.register_orchestrator(orchestrator)

    log_level = "info" if verbose else "warning"
    http_app = create_app(settings.project_root, orchestrator, dev_server_url=settings.dev_server_url)
    servers = [
        uvicorn.Server(
            uvicorn.Config(
                http_app, host=settings.host, port=settings.http_port, log_level=log_level, lifespan="off"
            )
        ),
        uvicorn.Server(
            uvicorn.Config(
                create_push_app(bus),
                host=settings.host,
                port=settings.ws_port,
                log_level=log_level,
                lifespan="off",
            )
        ),
    ]
    for server in servers:
        shutdown_mgr.register_server(server)

    watched: Optional[list[str]] = None
    if settings.watch:
        config = resolve_config(settings.project_root)
        watched = config.paths
        watch_loop = WatchLoop(
            settings.project_root,
            orchestrator,
            config.paths,
            config.level,
            interval=settings.watch_interval,
        )
        shutdown_mgr.register_watch_loop(watch_loop)
        watch_loop.start()

    console.print(_format_status_display(settings, watched))
    console.print("[dim]Run `npm run dev` for frontend development. Ctrl+C to stop.[/dim]")

    tasks = [asyncio.create_task(server.serve()) for server in servers]
    try:
        # Either server stopping (signal or bind failure) stops the other
        await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        shutdown_mgr.request_exit()
        await asyncio.gather(*tasks, return_exceptions=True)
    finally:
        await shutdown_mgr.shutdown()


def launch_server(settings: ServerSettings, console: Console, verbose: bool = False) -> bool:
    """Full server lifecycle: port checks, serve, shutdown.

    Returns False if the servers could not be started.
    """
    for name, port in (("HTTP", settings.http_port), ("WebSocket", settings.ws_port)):
        if is_port_in_use(settings.host, port):
            console.print(f"[red]{name} port {port} is already in use on {settings.host}[/red]")
            return False

    try:
        asyncio.run(serve(settings, console, verbose=verbose))
    except KeyboardInterrupt:
        pass
    return True
