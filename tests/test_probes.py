"""
Tests for the protocol probes against local servers.

Tests cover:
- TCP up / refused
- HTTP status handling via aiohttp's test server
- SMTP greeting and QUIT handling
- TLS handshakes with a locally issued certificate, trusted or not
- DNS failure classification
- Socket error classification
"""

import asyncio
import contextlib
import socket
import ssl

import dns.exception
import dns.resolver
import pytest
import trustme
from aiohttp import web
from aiohttp.test_utils import TestServer

from svcwatch.config.constants import ProbeFailureKind, Protocol
from svcwatch.exceptions.probe import (
    ProbeConnectRefused,
    ProbeFailure,
    ProbeProtocolError,
    ProbeTimeout,
    ProbeUnreachable,
)
from svcwatch.monitoring.monitor import Monitor
from svcwatch.monitoring.probes import (
    DNSProbe,
    HTTPProbe,
    SMTPProbe,
    TCPProbe,
    TLSProbe,
    classify_os_error,
    default_probes,
)


# =============================================================
# LOCAL SERVERS
# =============================================================

@pytest.fixture
async def tcp_server():
    async def handle(reader, writer):
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    yield server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()


class FakeSMTPServer:
    """Sends ``greeting`` and records every line the client sends."""

    def __init__(self, greeting: bytes):
        self.greeting = greeting
        self.received = []
        self.port = None
        self._server = None
        self.done = asyncio.Event()

    async def _handle(self, reader, writer):
        if self.greeting:
            writer.write(self.greeting)
            await writer.drain()
        try:
            line = await asyncio.wait_for(reader.readline(), timeout=2)
            self.received.append(line)
        finally:
            writer.close()
            self.done.set()

    async def __aenter__(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def __aexit__(self, *exc):
        self._server.close()
        await self._server.wait_closed()


@pytest.fixture
async def http_server():
    async def ok(request):
        return web.Response(text="fine")

    async def moved(request):
        raise web.HTTPFound("/")

    async def broken(request):
        return web.Response(status=503, text="down for maintenance")

    app = web.Application()
    app.router.add_get("/", ok)
    app.router.add_get("/moved", moved)
    app.router.add_get("/broken", broken)

    server = TestServer(app, host="127.0.0.1")
    await server.start_server()
    yield server
    await server.close()


def _free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


# =============================================================
# TCP
# =============================================================

class TestTCPProbe:

    async def test_up(self, tcp_server):
        outcome = await TCPProbe().check(f"127.0.0.1:{tcp_server}", timeout=2)
        assert outcome.up is True
        assert outcome.latency_ms >= 0

    async def test_refused(self):
        with pytest.raises(ProbeConnectRefused):
            await TCPProbe().check(f"127.0.0.1:{_free_port()}", timeout=2)

    async def test_monitor_round_marks_closed_port_down(self, monitor_settings):
        monitor = Monitor(monitor_settings)
        monitor.register("db", Protocol.TCP, "localhost:1")

        await monitor.run_round()

        view = monitor.get_status("db")
        assert view.up is False
        assert view.last_latency_ms == -1
        assert view.last_diagnostic.split(":")[0] in {
            ProbeFailureKind.CONNECT_REFUSED.value,
            ProbeFailureKind.UNREACHABLE.value,
        }


# =============================================================
# HTTP
# =============================================================

class TestHTTPProbe:

    async def test_up(self, http_server):
        outcome = await HTTPProbe().check(str(http_server.make_url("/")), timeout=2)
        assert outcome.up is True
        assert outcome.latency_ms >= 0
        assert outcome.diagnostic == "HTTP 200"

    async def test_redirect_counts_as_up(self, http_server):
        outcome = await HTTPProbe().check(str(http_server.make_url("/moved")), timeout=2)
        assert outcome.up is True
        assert outcome.diagnostic == "HTTP 302"

    async def test_server_error_is_protocol_error(self, http_server):
        with pytest.raises(ProbeProtocolError) as exc_info:
            await HTTPProbe().check(str(http_server.make_url("/broken")), timeout=2)
        assert exc_info.value.diagnostic == "ProtocolError: HTTP 503"

    async def test_refused(self):
        with pytest.raises(ProbeFailure) as exc_info:
            await HTTPProbe().check(f"http://127.0.0.1:{_free_port()}/", timeout=2)
        assert exc_info.value.kind is ProbeFailureKind.CONNECT_REFUSED

    async def test_monitor_round_marks_web_up(self, monitor_settings, http_server):
        monitor = Monitor(monitor_settings)
        monitor.register("web", Protocol.HTTP, str(http_server.make_url("/")))

        await monitor.run_round()

        view = monitor.get_status("web")
        assert view.up is True
        assert view.last_latency_ms >= 0


# =============================================================
# SMTP
# =============================================================

class TestSMTPProbe:

    async def test_up_and_says_quit(self):
        async with FakeSMTPServer(b"220 mail.local ESMTP ready\r\n") as server:
            outcome = await SMTPProbe().check(f"127.0.0.1:{server.port}", timeout=2)
            await asyncio.wait_for(server.done.wait(), timeout=2)

        assert outcome.up is True
        assert server.received == [b"QUIT\r\n"]

    async def test_bad_greeting_still_says_quit(self):
        async with FakeSMTPServer(b"554 go away\r\n") as server:
            with pytest.raises(ProbeProtocolError) as exc_info:
                await SMTPProbe().check(f"127.0.0.1:{server.port}", timeout=2)
            await asyncio.wait_for(server.done.wait(), timeout=2)

        assert "554" in exc_info.value.message
        assert server.received == [b"QUIT\r\n"]

    async def test_silent_server_times_out(self):
        async with FakeSMTPServer(b"") as server:
            with pytest.raises(ProbeTimeout):
                await SMTPProbe().check(f"127.0.0.1:{server.port}", timeout=0.2)
            await asyncio.wait_for(server.done.wait(), timeout=2)

        assert server.received == [b"QUIT\r\n"]

    async def test_refused(self):
        with pytest.raises(ProbeConnectRefused):
            await SMTPProbe().check(f"127.0.0.1:{_free_port()}", timeout=2)


# =============================================================
# TLS
# =============================================================

@pytest.fixture
def certificate_authority():
    return trustme.CA()


@pytest.fixture
def ca_file(tmp_path, certificate_authority):
    path = tmp_path / "ca.pem"
    certificate_authority.cert_pem.write_to_path(str(path))
    return path


@pytest.fixture
async def tls_server(certificate_authority):
    context = ssl.create_default_context(ssl.Purpose.CLIENT_AUTH)
    certificate_authority.issue_cert("127.0.0.1", "localhost").configure_cert(context)

    async def handle(reader, writer):
        with contextlib.suppress(OSError):
            await asyncio.wait_for(reader.read(1), timeout=2)
        writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0, ssl=context)
    yield server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()


class TestTLSProbe:

    async def test_up_with_trusted_ca(self, tls_server, ca_file):
        outcome = await TLSProbe(ca_file=str(ca_file)).check(f"127.0.0.1:{tls_server}", timeout=2)
        assert outcome.up is True
        assert outcome.latency_ms >= 0
        assert outcome.diagnostic.startswith("certificate expires in ")

    async def test_untrusted_certificate_is_protocol_error(self, tls_server):
        with pytest.raises(ProbeProtocolError):
            await TLSProbe(verify=True).check(f"127.0.0.1:{tls_server}", timeout=2)

    async def test_untrusted_certificate_is_up_without_verification(self, tls_server):
        outcome = await TLSProbe(verify=False).check(f"127.0.0.1:{tls_server}", timeout=2)
        assert outcome.up is True

    async def test_monitor_uses_configured_ca(self, monitor_settings, tls_server, ca_file):
        monitor_settings.tls_ca_file = ca_file
        monitor = Monitor(monitor_settings)
        monitor.register("secure", Protocol.TLS, f"127.0.0.1:{tls_server}")

        await monitor.run_round()

        view = monitor.get_status("secure")
        assert view.up is True
        assert view.last_latency_ms >= 0

    async def test_handshake_failure_is_down(self, tcp_server):
        with pytest.raises(ProbeFailure) as exc_info:
            await TLSProbe().check(f"127.0.0.1:{tcp_server}", timeout=2)
        assert exc_info.value.kind in {
            ProbeFailureKind.PROTOCOL_ERROR,
            ProbeFailureKind.UNREACHABLE,
        }

    def test_expiry_diagnostic(self):
        assert TLSProbe._expiry_diagnostic({}) is None
        assert TLSProbe._expiry_diagnostic({"notAfter": "garbage"}) is None
        diagnostic = TLSProbe._expiry_diagnostic({"notAfter": "Jan  1 00:00:00 2100 GMT"})
        assert diagnostic.startswith("certificate expires in ")


# =============================================================
# DNS
# =============================================================

class FakeResolver:
    def __init__(self, error):
        self.error = error

    async def resolve(self, host, record_type):
        raise self.error


class TestDNSProbe:

    @pytest.mark.parametrize(
        "error, expected",
        [
            (dns.resolver.NXDOMAIN(), ProbeUnreachable),
            (dns.resolver.NoAnswer(), ProbeProtocolError),
            (dns.exception.Timeout(), ProbeTimeout),
            (dns.exception.DNSException("weird"), ProbeProtocolError),
        ],
    )
    async def test_failure_classification(self, monkeypatch, error, expected):
        monkeypatch.setattr(DNSProbe, "_make_resolver", staticmethod(lambda timeout: FakeResolver(error)))
        with pytest.raises(expected):
            await DNSProbe().check("does-not-exist.example", timeout=1)


# =============================================================
# ERROR CLASSIFICATION
# =============================================================

@pytest.mark.parametrize(
    "error, kind",
    [
        (ConnectionRefusedError(111, "refused"), ProbeFailureKind.CONNECT_REFUSED),
        (OSError("Multiple exceptions: [Errno 111] Connect call failed ('::1', 1), "
                 "[Errno 111] Connect call failed ('127.0.0.1', 1)"), ProbeFailureKind.CONNECT_REFUSED),
        (socket.gaierror(-2, "Name or service not known"), ProbeFailureKind.UNREACHABLE),
        (ssl.SSLError(1, "handshake failure"), ProbeFailureKind.PROTOCOL_ERROR),
        (ConnectionResetError(104, "reset"), ProbeFailureKind.PROTOCOL_ERROR),
        (asyncio.TimeoutError(), ProbeFailureKind.TIMEOUT),
        (OSError(113, "No route to host"), ProbeFailureKind.UNREACHABLE),
    ],
)
def test_classify_os_error(error, kind):
    assert classify_os_error(error, "host:1").kind is kind


def test_default_probes_cover_every_protocol(monitor_settings):
    probes = default_probes(monitor_settings)
    assert set(probes) == set(Protocol)
    assert all(probe.protocol is protocol for protocol, probe in probes.items())
