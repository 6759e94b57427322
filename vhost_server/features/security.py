"""
Request path resolution with traversal prevention.

This module maps a request target onto a file inside a site's document
root. Every rejection is reported as None (served as 404), never as an
exception:
- Percent-decoding per path segment
- Rejection of '..' segments, NUL bytes and encoded separators
- Lexical and symlink-aware containment checks
- Default document lookup for directories, never a listing
"""

import os
import stat
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote

import httptools

from vhost_server.core.config import SiteDescriptor

MAX_SEGMENT_LENGTH = 255


def split_target_path(target: str) -> Optional[str]:
    """Return the raw (still encoded) path of a request target.

    The query string and fragment are dropped. Returns None when
    httptools cannot parse the target as a URL.
    """
    try:
        url = httptools.parse_url(target.encode("latin-1"))
    except (httptools.HttpParserInvalidURLError, UnicodeEncodeError):
        return None
    if not url.path:
        return "/"
    return url.path.decode("latin-1")


def decode_segments(raw_path: str) -> Optional[List[str]]:
    """Percent-decode a path into its meaningful segments.

    Returns None if any segment is a traversal attempt or otherwise
    unsafe to join onto a filesystem path.
    """
    segments: List[str] = []
    for raw in raw_path.split("/"):
        if raw == "..":
            return None
        try:
            segment = unquote(raw, errors="strict")
        except UnicodeDecodeError:
            return None

        if segment in ("", "."):
            continue
        if segment == ".." or "\0" in segment:
            return None
        if "/" in segment or "\\" in segment:
            return None
        if os.path.isabs(segment) or os.path.splitdrive(segment)[0]:
            return None
        if len(segment) > MAX_SEGMENT_LENGTH:
            return None
        segments.append(segment)
    return segments


def is_traversal_attempt(target: str) -> bool:
    """Check whether a request target tries to leave the document root."""
    raw_path = split_target_path(target)
    return raw_path is None or decode_segments(raw_path) is None


def _is_within(root: str, candidate: str) -> bool:
    try:
        return os.path.commonpath([root, candidate]) == root
    except ValueError:
        # different drives on Windows
        return False


def _stat(path: str) -> Optional[os.stat_result]:
    try:
        return os.stat(path)
    except (OSError, ValueError):
        return None


def resolve_file_path(site: SiteDescriptor, target: str) -> Optional[Path]:
    """Resolve a request target to a readable regular file of the site.

    Args:
        site: Site whose document root confines the lookup
        target: Raw request target, e.g. ``/docs/a%20b.html?x=1``

    Returns:
        The real path of the file to serve, or None when it must be
        answered with 404 (traversal attempt, missing, not a regular
        file, not readable)
    """
    raw_path = split_target_path(target)
    if raw_path is None:
        return None
    segments = decode_segments(raw_path)
    if segments is None:
        return None

    root = str(site.document_root)
    candidate = os.path.join(root, *segments)
    if not _is_within(root, os.path.normpath(candidate)):
        return None

    real_root = os.path.realpath(root)
    real = os.path.realpath(candidate)
    if not _is_within(real_root, real):
        return None

    info = _stat(real)
    if info is None:
        return None

    if stat.S_ISDIR(info.st_mode):
        real = os.path.realpath(os.path.join(real, site.index))
        if not _is_within(real_root, real):
            return None
        info = _stat(real)
        if info is None:
            return None

    if not stat.S_ISREG(info.st_mode) or not os.access(real, os.R_OK):
        return None
    return Path(real)
