"""Tests for server.lifecycle: port checks and shutdown coordination."""

import asyncio
import io
import socket

from rich.console import Console

from phpstan_hub.config import ServerSettings
from phpstan_hub.server.bus import BroadcastBus
from phpstan_hub.server.lifecycle import ShutdownManager, is_port_in_use, launch_server


def _quiet_console():
    return Console(file=io.StringIO(), force_terminal=False)


class FakeServer:
    should_exit = False


class ClosableSubscriber:
    def __init__(self) -> None:
        self.closed = False

    async def send_text(self, data):
        pass

    async def close(self):
        self.closed = True


class TestIsPortInUse:
    def test_listening_socket(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        try:
            assert is_port_in_use("127.0.0.1", sock.getsockname()[1])
        finally:
            sock.close()

    def test_free_port(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
        sock.close()
        assert not is_port_in_use("127.0.0.1", port)


class TestShutdownManager:
    def test_request_exit_flags_servers(self):
        manager = ShutdownManager(_quiet_console())
        servers = [FakeServer(), FakeServer()]
        for server in servers:
            manager.register_server(server)

        manager.request_exit()

        assert all(server.should_exit for server in servers)

    def test_shutdown_closes_subscribers_once(self):
        console = _quiet_console()
        manager = ShutdownManager(console)
        bus = BroadcastBus()
        subscriber = ClosableSubscriber()
        bus.subscribe(subscriber)
        manager.register_bus(bus)

        asyncio.run(manager.shutdown())
        asyncio.run(manager.shutdown())

        assert subscriber.closed
        assert len(bus) == 0
        output = console.file.getvalue()
        assert output.count("Server stopped cleanly") == 1
        assert "1 client" in output


class TestLaunchServer:
    def test_refuses_busy_port(self, php_project):
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.bind(("127.0.0.1", 0))
        sock.listen(1)
        port = sock.getsockname()[1]
        console = _quiet_console()
        try:
            other = port - 1 if port == 65535 else port + 1
            settings = ServerSettings(project_root=str(php_project), http_port=port, ws_port=other)
            assert launch_server(settings, console) is False
        finally:
            sock.close()
        assert "already in use" in console.file.getvalue()
