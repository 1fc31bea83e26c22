"""
============================================================================
SVCWATCH - PROBES
============================================================================
One stateless Probe per protocol. Every probe satisfies the same contract:

    await probe.check(address, timeout) -> Outcome

and signals failure by raising a ProbeFailure subclass. The checker pool
enforces the hard deadline and turns every failure into a down Outcome,
so a probe only has to classify what went wrong.

Probe          ← abstract contract
├── HTTPProbe  ← GET via httpx, up iff status in [200, 400)
├── TCPProbe   ← raw connect
├── TLSProbe   ← connect + handshake
├── SMTPProbe  ← 220 greeting, always says QUIT
└── DNSProbe   ← A record via dnspython

License: MIT
============================================================================
"""

import asyncio
import errno
import re
import socket
import ssl
import time
from abc import ABC, abstractmethod
from contextlib import suppress
from datetime import datetime, timezone
from typing import Dict, Optional

import dns.asyncresolver
import dns.exception
import dns.resolver
import httpx

from svcwatch.config.constants import Defaults, Protocol
from svcwatch.config.settings import MonitorSettings
from svcwatch.exceptions.probe import (
    ProbeConnectRefused,
    ProbeFailure,
    ProbeProtocolError,
    ProbeTimeout,
    ProbeUnreachable,
)
from svcwatch.monitoring.models import Outcome
from svcwatch.utils.logger import get_logger
from svcwatch.utils.validators import AddressValidator


logger = get_logger("Probes")


def _elapsed_ms(start: float) -> int:
    return int(round((time.perf_counter() - start) * 1000))


_ERRNO_PATTERN = re.compile(r"\[Errno (\d+)\]")


def _all_refused(exc: OSError) -> bool:
    """
    True when every attempt was refused.

    asyncio tries each resolved address in turn and, if they fail
    differently, raises a plain OSError listing each errno.
    """
    if exc.errno == errno.ECONNREFUSED:
        return True
    codes = _ERRNO_PATTERN.findall(str(exc))
    return bool(codes) and all(int(code) == errno.ECONNREFUSED for code in codes)


def classify_os_error(exc: BaseException, address: str) -> ProbeFailure:
    """Map a socket-level exception to the matching ProbeFailure."""
    detail = str(exc) or type(exc).__name__
    if isinstance(exc, (asyncio.TimeoutError, socket.timeout, TimeoutError)):
        return ProbeTimeout(f"timed out ({detail})", address=address, cause=exc)
    if isinstance(exc, ConnectionRefusedError):
        return ProbeConnectRefused(detail, address=address, cause=exc)
    if isinstance(exc, OSError) and _all_refused(exc):
        return ProbeConnectRefused(detail, address=address, cause=exc)
    if isinstance(exc, socket.gaierror):
        return ProbeUnreachable(f"name resolution failed ({detail})", address=address, cause=exc)
    if isinstance(exc, (ssl.SSLError, ssl.CertificateError)):
        return ProbeProtocolError(f"TLS error ({detail})", address=address, cause=exc)
    if isinstance(exc, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return ProbeProtocolError(f"connection dropped ({detail})", address=address, cause=exc)
    return ProbeUnreachable(detail, address=address, cause=exc)


# ============================================================================
# PROBE CONTRACT
# ============================================================================

class Probe(ABC):
    """
    Contract for a protocol check.

    ``timeout`` is in seconds. Implementations should try to finish within
    it, but the caller enforces the real deadline.
    """

    protocol: Protocol

    @abstractmethod
    async def check(self, address: str, timeout: float) -> Outcome:
        """Probe *address* once and return an up Outcome, or raise ProbeFailure."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


# ============================================================================
# HTTP PROBE
# ============================================================================

class HTTPProbe(Probe):
    """
    Issues a GET with httpx.

    Redirects are not followed: a 3xx answer already proves the service is
    up. Latency is measured to the arrival of the response headers; the
    body is never read.
    """

    protocol = Protocol.HTTP

    def __init__(self, verify: bool = True, user_agent: str = Defaults.USER_AGENT):
        self.verify = verify
        self.user_agent = user_agent

    async def check(self, address: str, timeout: float) -> Outcome:
        target = AddressValidator.parse(Protocol.HTTP, address)
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(timeout),
                follow_redirects=False,
                verify=self.verify,
            ) as client:
                async with client.stream(
                    "GET", target.url, headers={"User-Agent": self.user_agent}
                ) as response:
                    elapsed = _elapsed_ms(start)
                    status_code = response.status_code

        except httpx.TimeoutException as e:
            raise ProbeTimeout(f"HTTP request timed out after {timeout:.3f}s", address=address, cause=e)
        except httpx.ConnectError as e:
            raise self._classify_connect_error(e, address)
        except httpx.HTTPError as e:
            raise ProbeProtocolError(f"HTTP error: {str(e)[:200]}", address=address, cause=e)

        if 200 <= status_code < 400:
            logger.debug(f"[HTTP] {address} → {status_code} in {elapsed}ms")
            return Outcome.success(elapsed, diagnostic=f"HTTP {status_code}")

        raise ProbeProtocolError(f"HTTP {status_code}", address=address)

    @staticmethod
    def _classify_connect_error(exc: httpx.ConnectError, address: str) -> ProbeFailure:
        # httpx wraps the socket error, sometimes under a generic OSError;
        # the deepest one in the chain is the most specific
        failures = []
        inner: Optional[BaseException] = exc
        for _ in range(10):
            if inner is None:
                break
            if isinstance(inner, OSError):
                failures.append(classify_os_error(inner, address))
            grouped = getattr(inner, "exceptions", None)
            if grouped and all(isinstance(e, ConnectionRefusedError) for e in grouped):
                failures.append(ProbeConnectRefused(str(grouped[0]), address=address, cause=exc))
            inner = inner.__cause__ or inner.__context__

        for failure in failures:
            if isinstance(failure, ProbeConnectRefused):
                return failure
        if failures:
            return failures[-1]

        text = str(exc).lower()
        if "refused" in text:
            return ProbeConnectRefused(str(exc), address=address, cause=exc)
        if "ssl" in text or "certificate" in text:
            return ProbeProtocolError(f"TLS error ({exc})", address=address, cause=exc)
        return ProbeUnreachable(str(exc) or "connect failed", address=address, cause=exc)


# ============================================================================
# TCP PROBE
# ============================================================================

class TCPProbe(Probe):
    """
    Opens a TCP connection to host:port, measures connect latency, closes.
    """

    protocol = Protocol.TCP

    async def check(self, address: str, timeout: float) -> Outcome:
        target = AddressValidator.parse(Protocol.TCP, address)
        start = time.perf_counter()

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(target.host, target.port),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(
                f"TCP connection to {target.host}:{target.port} timed out", address=address, cause=e
            )
        except OSError as e:
            raise classify_os_error(e, address)

        elapsed = _elapsed_ms(start)
        await _close_writer(writer)

        logger.debug(f"[TCP] {target.host}:{target.port} → connected in {elapsed}ms")
        return Outcome.success(elapsed)


# ============================================================================
# TLS PROBE
# ============================================================================

class TLSProbe(Probe):
    """
    Connects and completes a TLS handshake.

    With verification on (the default) an untrusted or mismatched
    certificate is a ProtocolError. ``ca_file`` replaces the system
    trust store, for services behind a private CA. When the peer
    certificate is available, the days left before expiry go into the
    diagnostic.
    """

    protocol = Protocol.TLS

    def __init__(self, verify: bool = True, ca_file: Optional[str] = None):
        self.verify = verify
        self.ca_file = ca_file

    def _context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.ca_file)
        if not self.verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        return context

    async def check(self, address: str, timeout: float) -> Outcome:
        target = AddressValidator.parse(Protocol.TLS, address)
        start = time.perf_counter()

        try:
            _, writer = await asyncio.wait_for(
                asyncio.open_connection(
                    target.host,
                    target.port,
                    ssl=self._context(),
                    server_hostname=target.host,
                    ssl_handshake_timeout=max(timeout, 0.001),
                ),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(
                f"TLS handshake with {target.host}:{target.port} timed out", address=address, cause=e
            )
        except OSError as e:
            raise classify_os_error(e, address)

        elapsed = _elapsed_ms(start)
        diagnostic = self._expiry_diagnostic(writer.get_extra_info("peercert"))
        await _close_writer(writer)

        logger.debug(f"[TLS] {target.host}:{target.port} → handshake in {elapsed}ms")
        return Outcome.success(elapsed, diagnostic=diagnostic)

    @staticmethod
    def _expiry_diagnostic(cert: Optional[dict]) -> Optional[str]:
        if not cert or "notAfter" not in cert:
            return None
        try:
            expires = ssl.cert_time_to_seconds(cert["notAfter"])
        except ValueError:
            return None
        days_left = int((expires - datetime.now(timezone.utc).timestamp()) // 86400)
        return f"certificate expires in {days_left}d"


# ============================================================================
# SMTP PROBE
# ============================================================================

class SMTPProbe(Probe):
    """
    Reads the server greeting; up iff it starts with ``220``.

    Once connected the probe always sends ``QUIT`` before closing,
    whatever the greeting was.
    """

    protocol = Protocol.SMTP

    async def check(self, address: str, timeout: float) -> Outcome:
        target = AddressValidator.parse(Protocol.SMTP, address)
        start = time.perf_counter()

        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(target.host, target.port),
                timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise ProbeTimeout(
                f"SMTP connection to {target.host}:{target.port} timed out", address=address, cause=e
            )
        except OSError as e:
            raise classify_os_error(e, address)

        try:
            remaining = max(timeout - (time.perf_counter() - start), 0.001)
            try:
                greeting = await asyncio.wait_for(reader.readline(), timeout=remaining)
            except asyncio.TimeoutError as e:
                raise ProbeTimeout("no SMTP greeting before timeout", address=address, cause=e)
            except OSError as e:
                raise classify_os_error(e, address)
            except ValueError as e:
                raise ProbeProtocolError("SMTP greeting line too long", address=address, cause=e)

            elapsed = _elapsed_ms(start)

            if not greeting:
                raise ProbeProtocolError("connection closed before greeting", address=address)
            if not greeting.startswith(b"220"):
                line = greeting.decode("ascii", errors="replace").strip()
                raise ProbeProtocolError(f"unexpected greeting {line[:80]!r}", address=address)

            logger.debug(f"[SMTP] {target.host}:{target.port} → 220 in {elapsed}ms")
            return Outcome.success(elapsed)

        finally:
            await self._quit(writer, address)

    @staticmethod
    async def _quit(writer: asyncio.StreamWriter, address: str) -> None:
        try:
            writer.write(b"QUIT\r\n")
            await asyncio.wait_for(writer.drain(), timeout=1.0)
        except (OSError, asyncio.TimeoutError) as e:
            logger.debug(f"[SMTP] {address} → QUIT not delivered: {e!r}")
        await _close_writer(writer)


# ============================================================================
# DNS PROBE
# ============================================================================

class DNSProbe(Probe):
    """
    Resolves an A record for a hostname with dnspython's async resolver.
    Latency is the resolution time.
    """

    protocol = Protocol.DNS

    def __init__(self, record_type: str = "A"):
        self.record_type = record_type

    async def check(self, address: str, timeout: float) -> Outcome:
        target = AddressValidator.parse(Protocol.DNS, address)
        start = time.perf_counter()

        try:
            resolver = self._make_resolver(timeout)
            answers = await resolver.resolve(target.host, self.record_type)
        except dns.resolver.NXDOMAIN as e:
            raise ProbeUnreachable(f"{target.host} does not exist (NXDOMAIN)", address=address, cause=e)
        except dns.resolver.NoAnswer as e:
            raise ProbeProtocolError(f"no {self.record_type} record for {target.host}", address=address, cause=e)
        except dns.resolver.NoNameservers as e:
            raise ProbeUnreachable("no nameserver answered", address=address, cause=e)
        except dns.exception.Timeout as e:
            raise ProbeTimeout(f"DNS resolution for {target.host} timed out", address=address, cause=e)
        except dns.exception.DNSException as e:
            raise ProbeProtocolError(f"DNS error: {str(e)[:200]}", address=address, cause=e)

        elapsed = _elapsed_ms(start)
        first = str(answers[0]) if len(answers) else None
        logger.debug(f"[DNS] {target.host} ({self.record_type}) → {first} in {elapsed}ms")
        return Outcome.success(elapsed, diagnostic=first)

    @staticmethod
    def _make_resolver(timeout: float) -> dns.asyncresolver.Resolver:
        resolver = dns.asyncresolver.Resolver()
        resolver.lifetime = timeout
        return resolver


# ============================================================================
# HELPERS
# ============================================================================

async def _close_writer(writer: asyncio.StreamWriter) -> None:
    """Close a stream; errors while closing do not change the outcome."""
    writer.close()
    with suppress(OSError, asyncio.TimeoutError):
        await asyncio.wait_for(writer.wait_closed(), timeout=1.0)


def default_probes(settings: Optional[MonitorSettings] = None) -> Dict[Protocol, Probe]:
    """One probe instance per protocol, configured from MonitorSettings."""
    settings = settings or MonitorSettings()
    return {
        Protocol.HTTP: HTTPProbe(verify=settings.tls_verify, user_agent=settings.user_agent),
        Protocol.TCP: TCPProbe(),
        Protocol.TLS: TLSProbe(
            verify=settings.tls_verify,
            ca_file=str(settings.tls_ca_file) if settings.tls_ca_file else None,
        ),
        Protocol.SMTP: SMTPProbe(),
        Protocol.DNS: DNSProbe(),
    }
