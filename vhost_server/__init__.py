from .core import (
    ConfigLoader, ServerConfig, SiteDescriptor, SiteRegistry,
    HTTPParserError, HTTPRequest, parse_request,
    ServeResult, build_response,
    ConnectionHandler, VirtualHostServer,
    ServerConfigError, configure_logging,
)
from .features import VirtualHost, resolve_file_path, render_error_page

__version__ = '1.0.0'

__all__ = [
    # Configuration and registry
    'ConfigLoader',
    'ServerConfig',
    'SiteDescriptor',
    'SiteRegistry',
    'ServerConfigError',

    # Request pipeline
    'HTTPParserError',
    'HTTPRequest',
    'parse_request',
    'VirtualHost',
    'resolve_file_path',
    'render_error_page',
    'ServeResult',
    'build_response',

    # Server
    'ConnectionHandler',
    'VirtualHostServer',
    'configure_logging',
]
