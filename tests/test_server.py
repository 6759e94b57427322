import asyncio
import json
import signal
import sys

import pytest

from vhost_server.__main__ import main
from vhost_server.core.config import ServerConfig, SiteDescriptor, SiteRegistry
from vhost_server.core.server_core import VirtualHostServer


@pytest.fixture
def registry(tmp_path):
    sites = []
    for name in ("alpha", "beta"):
        root = tmp_path / name
        root.mkdir()
        (root / "index.html").write_text(f"<h1>{name}</h1>")
        sites.append(SiteDescriptor(name=name, hostname=f"{name}.test", document_root=root))
    return SiteRegistry(sites)


async def fetch(port, raw):
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    try:
        writer.write(raw)
        await writer.drain()
        return await asyncio.wait_for(reader.read(), timeout=5)
    finally:
        writer.close()


@pytest.mark.asyncio
async def test_serves_virtual_hosts_over_tcp(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    _, port = await server.start()
    try:
        alpha = await fetch(port, b"GET / HTTP/1.1\r\nHost: alpha.test\r\n\r\n")
        beta = await fetch(port, b"GET / HTTP/1.1\r\nHost: beta.test\r\n\r\n")
        unknown = await fetch(port, b"GET / HTTP/1.1\r\nHost: gamma.test\r\n\r\n")
    finally:
        await server.shutdown()

    assert alpha.startswith(b"HTTP/1.1 200 OK\r\n")
    assert alpha.endswith(b"<h1>alpha</h1>")
    assert beta.endswith(b"<h1>beta</h1>")
    assert unknown.startswith(b"HTTP/1.1 404 ")


@pytest.mark.asyncio
async def test_request_split_across_writes(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    _, port = await server.start()
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        for part in (b"GET / HT", b"TP/1.1\r\nHost: al", b"pha.test\r\n", b"\r\n"):
            writer.write(part)
            await writer.drain()
            await asyncio.sleep(0.01)
        response = await asyncio.wait_for(reader.read(), timeout=5)
        writer.close()
    finally:
        await server.shutdown()

    assert response.startswith(b"HTTP/1.1 200 OK\r\n")


@pytest.mark.asyncio
async def test_concurrent_connections_are_independent(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    _, port = await server.start()
    try:
        # a stalled client must not hold up the others
        stalled_reader, stalled_writer = await asyncio.open_connection("127.0.0.1", port)
        stalled_writer.write(b"GET / HTTP/1.1\r\n")
        await stalled_writer.drain()

        responses = await asyncio.gather(*[
            fetch(port, b"GET / HTTP/1.1\r\nHost: alpha.test\r\n\r\n") for _ in range(10)
        ])
        stalled_writer.close()
    finally:
        await server.shutdown(timeout=1.0)

    assert all(r.startswith(b"HTTP/1.1 200 OK\r\n") for r in responses)


@pytest.mark.asyncio
async def test_connection_closed_after_response(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    _, port = await server.start()
    try:
        reader, writer = await asyncio.open_connection("127.0.0.1", port)
        writer.write(b"GET / HTTP/1.1\r\nHost: alpha.test\r\n\r\n")
        await writer.drain()
        first = await asyncio.wait_for(reader.read(), timeout=5)
        assert reader.at_eof()
        writer.close()
    finally:
        await server.shutdown()

    assert first.startswith(b"HTTP/1.1 200 OK\r\n")


@pytest.mark.asyncio
async def test_shutdown_stops_accepting(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    _, port = await server.start()
    await server.shutdown()

    with pytest.raises(OSError):
        await asyncio.open_connection("127.0.0.1", port)


@pytest.mark.asyncio
async def test_shutdown_cancels_stalled_connections(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0, read_timeout=60))
    _, port = await server.start()
    reader, writer = await asyncio.open_connection("127.0.0.1", port)
    writer.write(b"GET / HTTP/1.1\r\n")
    await writer.drain()
    await asyncio.sleep(0.05)

    await asyncio.wait_for(server.shutdown(timeout=0.1), timeout=10)
    assert await asyncio.wait_for(reader.read(), timeout=5) == b""
    writer.close()


@pytest.mark.asyncio
@pytest.mark.skipif(sys.platform == "win32", reason="loop signal handlers need POSIX")
async def test_serve_removes_signal_handlers(registry):
    server = VirtualHostServer(registry, ServerConfig(port=0))
    serving = asyncio.create_task(server.serve())
    for _ in range(100):
        if server._signals:
            break
        await asyncio.sleep(0.01)
    assert set(server._signals) == {signal.SIGINT, signal.SIGTERM}

    server.request_shutdown()
    await asyncio.wait_for(serving, timeout=10)

    loop = asyncio.get_running_loop()
    assert server._signals == []
    assert loop.remove_signal_handler(signal.SIGINT) is False
    assert loop.remove_signal_handler(signal.SIGTERM) is False


def test_cli_reports_config_errors(tmp_path, capsys):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"server": {"port": 99999}, "sites": {}}))

    assert main([str(path)]) == 1
    assert "Configuration error" in capsys.readouterr().err


def test_cli_rejects_bad_port_override(tmp_path, capsys):
    root = tmp_path / "www"
    root.mkdir()
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"sites": {"www": {"hostname": "www.test", "root": "www"}}}))

    assert main([str(path), "--port", "70000"]) == 1
    assert "Port number" in capsys.readouterr().err


def test_cli_reports_wrongly_typed_options(tmp_path, capsys):
    root = tmp_path / "www"
    root.mkdir()
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "server": {"default_site": 5},
        "sites": {"www": {"hostname": "www.test", "root": "www"}},
    }))

    assert main([str(path)]) == 1
    assert "Configuration error: default_site" in capsys.readouterr().err
