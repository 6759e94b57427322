"""
Static content reading.

Files are read whole in the default executor so a slow disk never
blocks other connections; nothing is streamed.
"""

import asyncio
from pathlib import Path

from vhost_server.core.response import ServeResult, reason_phrase
from .mime_types import guess_content_type


def _read_bytes(path: Path) -> bytes:
    with open(path, "rb") as f:
        return f.read()


async def read_file_contents(path: Path) -> bytes:
    """Read the full contents of ``path`` without blocking the event loop.

    Raises:
        OSError: If the file cannot be opened or read
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, _read_bytes, path)


def file_result(path: Path, body: bytes) -> ServeResult:
    """Wrap file contents in a 200 ServeResult."""
    return ServeResult(
        status=200,
        reason=reason_phrase(200),
        body=body,
        content_type=guess_content_type(path),
    )
