"""
Core server components
"""

from .config import ConfigLoader, ServerConfig, SiteDescriptor, SiteRegistry
from .http_parser import HTTPParserError, HTTPRequest, parse_request
from .response import ServeResult, build_response
from .request_handler import ConnectionHandler, ConnectionState
from .server_core import VirtualHostServer
from .server_utils import ServerConfigError, configure_logging

# Expose public interface
__all__ = [
    "ConfigLoader",
    "ServerConfig",
    "SiteDescriptor",
    "SiteRegistry",
    "HTTPParserError",
    "HTTPRequest",
    "parse_request",
    "ServeResult",
    "build_response",
    "ConnectionHandler",
    "ConnectionState",
    "VirtualHostServer",
    "ServerConfigError",
    "configure_logging",
]
