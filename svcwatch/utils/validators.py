"""
============================================================================
SVCWATCH - ADDRESS VALIDATORS
============================================================================
Parses and validates service addresses per protocol. The same parser is
used at registration time (to reject bad input) and by the probes (to
find out where to connect), so both always agree.

License: MIT
============================================================================
"""

import ipaddress
from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlparse

import validators as external_validators

from svcwatch.config.constants import Defaults, Protocol
from svcwatch.exceptions.config import InvalidAddressError


@dataclass(frozen=True)
class ParsedAddress:
    """Connection target extracted from a service address."""

    host: str
    port: Optional[int] = None
    url: Optional[str] = None


class AddressValidator:
    """
    Protocol-aware address parsing.

    Expected shapes
    ---------------
    HTTP  : http://host[:port][/path] or https://...
    TCP   : host:port           (tcp:// prefix tolerated)
    TLS   : host[:port]         (default 443; tls://, ssl://, https:// tolerated)
    SMTP  : host[:port]         (default 25; smtp:// tolerated)
    DNS   : hostname            (dns:// tolerated)
    """

    _PREFIXES = {
        Protocol.TCP: ("tcp://",),
        Protocol.TLS: ("tls://", "ssl://", "https://"),
        Protocol.SMTP: ("smtp://",),
        Protocol.DNS: ("dns://",),
    }

    _DEFAULT_PORTS = {
        Protocol.TLS: Defaults.TLS_PORT,
        Protocol.SMTP: Defaults.SMTP_PORT,
    }

    @staticmethod
    def is_valid_host(host: str) -> bool:
        """True for IPv4/IPv6 literals and RFC hostnames (``localhost`` included)."""
        if not host:
            return False
        try:
            ipaddress.ip_address(host)
            return True
        except ValueError:
            pass
        return bool(external_validators.hostname(host, maybe_simple=True, may_have_port=False))

    @staticmethod
    def _parse_port(raw: str, address: str, protocol: Protocol) -> int:
        try:
            port = int(raw)
        except ValueError:
            raise InvalidAddressError(address, protocol.value, f"port {raw!r} is not a number")
        if not 1 <= port <= 65535:
            raise InvalidAddressError(address, protocol.value, f"port {port} out of range")
        return port

    @classmethod
    def _strip_prefix(cls, address: str, protocol: Protocol) -> str:
        for prefix in cls._PREFIXES.get(protocol, ()):
            if address.lower().startswith(prefix):
                address = address[len(prefix):]
                break
        # Trailing path is meaningless for socket-level probes
        return address.split("/")[0]

    @classmethod
    def _split_host_port(cls, target: str, address: str, protocol: Protocol) -> Tuple[str, Optional[int]]:
        # [v6]:port
        if target.startswith("["):
            host, sep, rest = target[1:].partition("]")
            if not sep:
                raise InvalidAddressError(address, protocol.value, "unterminated IPv6 literal")
            if not rest:
                return host, None
            if not rest.startswith(":"):
                raise InvalidAddressError(address, protocol.value, "garbage after IPv6 literal")
            return host, cls._parse_port(rest[1:], address, protocol)

        if target.count(":") == 1:
            host, raw_port = target.split(":")
            return host, cls._parse_port(raw_port, address, protocol)

        if target.count(":") > 1:
            # bare IPv6 literal, no port
            return target, None

        return target, None

    @classmethod
    def parse(cls, protocol: Protocol, address: str) -> ParsedAddress:
        """
        Parse *address* for *protocol*.

        Raises:
            InvalidAddressError: if the address does not have the expected shape
        """
        protocol = Protocol.parse(protocol)

        if not isinstance(address, str) or not address.strip():
            raise InvalidAddressError(str(address), protocol.value, "address is empty")
        address = address.strip()

        if protocol is Protocol.HTTP:
            return cls._parse_url(address)

        target = cls._strip_prefix(address, protocol)
        host, port = cls._split_host_port(target, address, protocol)

        if not cls.is_valid_host(host):
            raise InvalidAddressError(address, protocol.value, f"invalid host {host!r}")

        if protocol is Protocol.DNS:
            if port is not None:
                raise InvalidAddressError(address, protocol.value, "DNS targets take no port")
            return ParsedAddress(host=host)

        if port is None:
            port = cls._DEFAULT_PORTS.get(protocol)
            if port is None:
                raise InvalidAddressError(address, protocol.value, "expected host:port")

        return ParsedAddress(host=host, port=port)

    @classmethod
    def _parse_url(cls, address: str) -> ParsedAddress:
        parsed = urlparse(address)
        if parsed.scheme.lower() not in ("http", "https"):
            raise InvalidAddressError(address, Protocol.HTTP.value, "URL must start with http:// or https://")

        host = parsed.hostname or ""
        if not cls.is_valid_host(host):
            raise InvalidAddressError(address, Protocol.HTTP.value, f"invalid host {host!r}")

        try:
            port = parsed.port
        except ValueError:
            raise InvalidAddressError(address, Protocol.HTTP.value, "invalid port")
        if port is not None and not 1 <= port <= 65535:
            raise InvalidAddressError(address, Protocol.HTTP.value, f"port {port} out of range")

        if port is None:
            port = 443 if parsed.scheme.lower() == "https" else 80

        return ParsedAddress(host=host, port=port, url=address)

    @classmethod
    def is_valid(cls, protocol: Protocol, address: str) -> bool:
        """Non-raising variant of parse()."""
        try:
            cls.parse(protocol, address)
            return True
        except InvalidAddressError:
            return False
