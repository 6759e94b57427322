"""
Per-request view of one configured site.
"""

from pathlib import Path
from typing import Optional

from vhost_server.core.config import SiteDescriptor
from vhost_server.core.response import ServeResult
from vhost_server.core.server_utils import logger
from . import content
from .error_pages import render_error_page
from .security import resolve_file_path


class VirtualHost:
    """Serves files and error pages for a single site."""

    def __init__(self, site: SiteDescriptor):
        self.site = site

    @property
    def hostname(self) -> str:
        return self.site.hostname

    def resolve_file_path(self, target: str) -> Optional[Path]:
        return resolve_file_path(self.site, target)

    async def serve_file(self, path: Path) -> ServeResult:
        """Read a resolved file; read failures become a 500 error page."""
        try:
            body = await content.read_file_contents(path)
        except OSError as e:
            logger.error(f"Error serving file {path}: {e}")
            return await self.serve_error_page(500, str(e))
        return content.file_result(path, body)

    async def serve_error_page(self, status: int, detail: Optional[str] = None) -> ServeResult:
        return await render_error_page(self.site, status, detail)
