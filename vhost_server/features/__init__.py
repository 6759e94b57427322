"""
Site serving features: path resolution, content, error pages
"""

from .virtual_host import VirtualHost
from .security import resolve_file_path, is_traversal_attempt
from .error_pages import render_error_page
from .mime_types import guess_content_type

__all__ = ["VirtualHost", "resolve_file_path", "is_traversal_attempt", "render_error_page", "guess_content_type"]
