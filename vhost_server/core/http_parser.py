"""
HTTP request head parser.

This module turns the framed bytes of one connection into an HTTPRequest:
- Strict request line validation (exactly three tokens)
- Case-insensitive header map, last value wins
- Host extraction without the port suffix
- No body handling; only bodiless requests are served
"""

from dataclasses import dataclass, field
from typing import Dict, Optional

HEADER_TERMINATOR = b"\r\n\r\n"


class HTTPParserError(Exception):
    """Custom exception for HTTP parsing errors"""
    pass


@dataclass
class HTTPRequest:
    """A parsed request head.

    Attributes:
        method: Request method token, e.g. ``GET``
        target: Raw request target (path plus optional query)
        version: Protocol version token from the request line
        host: Lower-cased hostname from the Host header, None if absent
        headers: Header map with lower-cased names
    """
    method: str
    target: str
    version: str
    host: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return self.target.split("?", 1)[0]

    @property
    def query(self) -> str:
        parts = self.target.split("?", 1)
        return parts[1] if len(parts) == 2 else ""


def find_header_terminator(buffer: bytes) -> int:
    """Return the offset just past the first blank line, or -1."""
    index = buffer.find(HEADER_TERMINATOR)
    if index == -1:
        return -1
    return index + len(HEADER_TERMINATOR)


def host_from_header(value: Optional[str]) -> Optional[str]:
    """Strip an optional port from a Host header value and lower-case it.

    ``Example.COM:8080`` -> ``example.com``; ``[::1]:80`` -> ``[::1]``.
    """
    if value is None:
        return None
    host = value.strip().lower()
    if host.startswith("["):
        end = host.find("]")
        if end != -1:
            host = host[:end + 1]
    elif host.count(":") == 1:
        name, port = host.split(":", 1)
        if port.isdigit() or not port:
            host = name
    return host or None


def parse_request(data: bytes) -> HTTPRequest:
    """Parse the request line and headers of a framed request.

    Args:
        data: Accumulated bytes up to and including the header terminator;
            anything after the terminator is ignored

    Returns:
        The parsed HTTPRequest

    Raises:
        HTTPParserError: If the head is incomplete or malformed
    """
    end = data.find(HEADER_TERMINATOR)
    if end == -1:
        raise HTTPParserError("Incomplete request headers")

    # latin-1 maps every byte, so decoding never fails
    lines = data[:end].decode("latin-1").split("\r\n")

    request_line = lines[0].split(" ")
    if len(request_line) != 3:
        raise HTTPParserError("Invalid request line")

    method, target, version = request_line
    if not method or not target or not version:
        raise HTTPParserError("Invalid request line")

    headers: Dict[str, str] = {}
    for line in lines[1:]:
        if ":" not in line:
            raise HTTPParserError(f"Malformed header line: {line!r}")

        name, value = line.split(":", 1)
        name = name.strip().lower()
        if not name:
            raise HTTPParserError("Empty header name")
        headers[name] = value.strip()

    return HTTPRequest(
        method=method,
        target=target,
        version=version,
        host=host_from_header(headers.get("host")),
        headers=headers,
    )
