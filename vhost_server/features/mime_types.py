"""
Fixed file extension to MIME type mapping.
"""

from pathlib import PurePath
from typing import Union

DEFAULT_CONTENT_TYPE = "application/octet-stream"

MIME_TYPES = {
    ".html": "text/html",
    ".htm": "text/html",
    ".css": "text/css",
    ".js": "application/javascript",
    ".mjs": "application/javascript",
    ".json": "application/json",
    ".xml": "application/xml",
    ".txt": "text/plain",
    ".csv": "text/csv",
    ".md": "text/markdown",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".svg": "image/svg+xml",
    ".ico": "image/x-icon",
    ".webp": "image/webp",
    ".woff": "font/woff",
    ".woff2": "font/woff2",
    ".ttf": "font/ttf",
    ".pdf": "application/pdf",
    ".zip": "application/zip",
    ".wasm": "application/wasm",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
}


def guess_content_type(path: Union[str, PurePath]) -> str:
    """Return the MIME type for ``path``'s extension (case-insensitive)."""
    return MIME_TYPES.get(PurePath(path).suffix.lower(), DEFAULT_CONTENT_TYPE)
