"""
Serve results and HTTP response assembly.
"""

from dataclasses import dataclass

PROTOCOL = "HTTP/1.1"

STATUS_REASONS = {
    200: "OK",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
}

FALLBACK_RESPONSE = (
    b"HTTP/1.1 500 Internal Server Error\r\n"
    b"Content-Type: text/plain\r\n"
    b"Content-Length: 12\r\n"
    b"\r\n"
    b"Server Error"
)


def reason_phrase(status: int) -> str:
    return STATUS_REASONS.get(status, "Unknown")


@dataclass(frozen=True)
class ServeResult:
    """Outcome of serving one request, file payload or error page alike."""
    status: int
    reason: str
    body: bytes = b""
    content_type: str = "application/octet-stream"

    def __post_init__(self):
        if not isinstance(self.status, int) or not 100 <= self.status <= 599:
            raise ValueError(f"Invalid HTTP status: {self.status!r}")
        if not isinstance(self.body, bytes):
            raise TypeError("ServeResult body must be bytes")

    @property
    def content_length(self) -> int:
        return len(self.body)


def build_response(result: ServeResult) -> bytes:
    """Build the complete response bytes for a serve result.

    The status line always carries HTTP/1.1 and the header set is fixed
    (Content-Type then Content-Length); the connection is closed after
    the response, so no persistent-connection header is sent.
    """
    head = (
        f"{PROTOCOL} {result.status} {result.reason}\r\n"
        f"Content-Type: {result.content_type}\r\n"
        f"Content-Length: {result.content_length}\r\n"
        f"\r\n"
    )
    return head.encode("latin-1") + result.body
