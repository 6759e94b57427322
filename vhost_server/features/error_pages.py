"""
Error page rendering.

A site may configure its own page per status code; everything else gets
a small built-in HTML page. Rendering an error page never raises: a
custom page that cannot be read falls back to the built-in body.
"""

from typing import Optional

from vhost_server.core.config import SiteDescriptor
from vhost_server.core.response import ServeResult, reason_phrase
from vhost_server.core.server_utils import logger
from . import content
from .mime_types import guess_content_type

ERROR_CONTENT_TYPE = "text/html"

ERROR_TEMPLATE = (
    "<!DOCTYPE html>\n"
    "<html>\n"
    "<head><title>{status} {reason}</title></head>\n"
    "<body>\n"
    "<h1>{status} {reason}</h1>\n"
    "{detail}"
    "</body>\n"
    "</html>\n"
)


def default_error_body(status: int, reason: str, detail: Optional[str] = None) -> bytes:
    """Render the built-in error page.

    The detail is only shown for 5xx statuses and is inserted verbatim.
    """
    detail_html = ""
    if detail and status >= 500:
        detail_html = f"<p>{detail}</p>\n"
    return ERROR_TEMPLATE.format(status=status, reason=reason, detail=detail_html).encode("utf-8")


async def render_error_page(
    site: Optional[SiteDescriptor],
    status: int,
    detail: Optional[str] = None,
) -> ServeResult:
    """Produce the error ServeResult for ``status``.

    Args:
        site: Site whose custom pages apply, None when no site is known
        status: HTTP status code
        detail: Optional free text, shown only on 5xx built-in pages

    Returns:
        ServeResult carrying the custom or built-in page
    """
    reason = reason_phrase(status)

    page = site.error_page_path(status) if site is not None else None
    if page is not None:
        try:
            body = await content.read_file_contents(page)
        except OSError as e:
            logger.warning(f"Custom error page {page} unreadable, using built-in page: {e}")
        else:
            return ServeResult(status, reason, body, guess_content_type(page))

    return ServeResult(status, reason, default_error_body(status, reason, detail), ERROR_CONTENT_TYPE)
