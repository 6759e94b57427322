"""
Server configuration and the virtual host site registry.

This module provides:
- ServerConfig: bind address and runtime options
- SiteDescriptor: the immutable record for one virtual host
- SiteRegistry: read-only hostname -> site mapping shared by all connections
- ConfigLoader: builds both from a JSON configuration file
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Union

from .server_utils import ServerConfigError

DEFAULT_INDEX = "index.html"


@dataclass(frozen=True)
class ServerConfig:
    """Listener and runtime settings.

    Attributes:
        host: Host address to bind to
        port: Port number to listen on
        log_requests: Emit one access log record per request
        default_site: Hostname served when the Host header matches no site
        read_timeout: Idle timeout in seconds for each read while awaiting headers
        max_header_bytes: Largest request head accepted before answering 431
        shutdown_timeout: Seconds to wait for in-flight connections on shutdown
        json_logs: Use the JSON log formatter
    """
    host: str = "127.0.0.1"
    port: int = 8080
    log_requests: bool = False
    default_site: Optional[str] = None
    read_timeout: float = 10.0
    max_header_bytes: int = 65536
    shutdown_timeout: float = 30.0
    json_logs: bool = True

    def __post_init__(self):
        if not isinstance(self.host, str) or not self.host:
            raise ServerConfigError("host must be a non-empty string")
        if not isinstance(self.port, int) or isinstance(self.port, bool):
            raise ServerConfigError("Port must be an integer")
        if self.port < 0 or self.port > 65535:
            raise ServerConfigError("Port number must be between 0 and 65535")
        for name in ("log_requests", "json_logs"):
            if not isinstance(getattr(self, name), bool):
                raise ServerConfigError(f"{name} must be true or false")
        if self.default_site is not None and not isinstance(self.default_site, str):
            raise ServerConfigError("default_site must be a hostname or null")
        for name in ("read_timeout", "max_header_bytes", "shutdown_timeout"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ServerConfigError(f"{name} must be a number")
            if value <= 0:
                raise ServerConfigError(f"{name} must be positive")


@dataclass(frozen=True)
class SiteDescriptor:
    """Configuration record for one virtual host."""
    name: str
    hostname: str
    document_root: Path
    index: str = DEFAULT_INDEX
    error_pages: Mapping[int, Path] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.hostname, str) or not self.hostname:
            raise ServerConfigError(f"Site '{self.name}' has no hostname")
        if (not isinstance(self.index, str) or not self.index
                or "/" in self.index or self.index in (".", "..")):
            raise ServerConfigError(f"Site '{self.name}' has an invalid index document")
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "hostname", self.hostname.lower())
        object.__setattr__(self, "document_root", Path(self.document_root).resolve())
        object.__setattr__(self, "error_pages", MappingProxyType(dict(self.error_pages)))

    def error_page_path(self, status: int) -> Optional[Path]:
        return self.error_pages.get(status)


class SiteRegistry:
    """Immutable hostname -> SiteDescriptor mapping.

    Built once before the server accepts connections and never mutated
    afterwards, so it is read concurrently without locking.
    """

    def __init__(self, sites, default_site: Optional[str] = None):
        by_host: Dict[str, SiteDescriptor] = {}
        for site in sites:
            if site.hostname in by_host:
                raise ServerConfigError(f"Duplicate hostname: {site.hostname}")
            by_host[site.hostname] = site
        self._sites = MappingProxyType(by_host)

        self._default: Optional[SiteDescriptor] = None
        if default_site is not None:
            self._default = self._sites.get(default_site.lower())
            if self._default is None:
                raise ServerConfigError(f"default_site '{default_site}' is not a registered hostname")

    def lookup(self, host: Optional[str]) -> Optional[SiteDescriptor]:
        """Return the site for ``host``, the default site, or None."""
        if host:
            site = self._sites.get(host.lower())
            if site is not None:
                return site
        return self._default

    @property
    def default_site(self) -> Optional[SiteDescriptor]:
        return self._default

    @property
    def sites(self) -> Mapping[str, SiteDescriptor]:
        return self._sites

    def __len__(self) -> int:
        return len(self._sites)

    def __contains__(self, host) -> bool:
        return isinstance(host, str) and host.lower() in self._sites

    def __iter__(self):
        return iter(self._sites.values())


class ConfigLoader:
    """Loads ServerConfig and SiteRegistry from a JSON file.

    Relative site roots are resolved against the directory holding the
    configuration file; relative error page paths against the site root.
    """
    SERVER_KEYS = {
        "host", "port", "log_requests", "default_site", "read_timeout",
        "max_header_bytes", "shutdown_timeout", "json_logs",
    }

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._server_config: Optional[ServerConfig] = None
        self._registry: Optional[SiteRegistry] = None

    def load(self) -> "ConfigLoader":
        """Read and validate the configuration file.

        Raises:
            ServerConfigError: If the file is missing, malformed or invalid
        """
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ServerConfigError(f"Cannot read config file {self.path}: {e}") from e
        except ValueError as e:
            raise ServerConfigError(f"Invalid JSON in {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise ServerConfigError("Config root must be an object")

        self._server_config = self._build_server_config(raw.get("server", {}))
        base_dir = self.path.resolve().parent
        sites = [
            self._build_site(name, entry, base_dir)
            for name, entry in self._section(raw, "sites").items()
        ]
        if not sites:
            raise ServerConfigError("At least one site must be configured")
        self._registry = SiteRegistry(sites, self._server_config.default_site)
        return self

    @property
    def server_config(self) -> ServerConfig:
        if self._server_config is None:
            raise ServerConfigError("Configuration not loaded")
        return self._server_config

    @property
    def registry(self) -> SiteRegistry:
        if self._registry is None:
            raise ServerConfigError("Configuration not loaded")
        return self._registry

    def get_site_by_hostname(self, hostname: Optional[str]) -> Optional[SiteDescriptor]:
        return self.registry.lookup(hostname)

    def get_all_sites(self) -> Dict[str, SiteDescriptor]:
        return {site.name: site for site in self.registry}

    @staticmethod
    def _section(raw: Dict[str, Any], key: str) -> Dict[str, Any]:
        value = raw.get(key)
        if not isinstance(value, dict):
            raise ServerConfigError(f"'{key}' must be an object")
        return value

    def _build_server_config(self, entry: Any) -> ServerConfig:
        if not isinstance(entry, dict):
            raise ServerConfigError("'server' must be an object")
        unknown = set(entry) - self.SERVER_KEYS
        if unknown:
            raise ServerConfigError(f"Unknown server options: {', '.join(sorted(unknown))}")
        try:
            return ServerConfig(**entry)
        except TypeError as e:
            raise ServerConfigError(f"Invalid server options: {e}") from e

    def _build_site(self, name: str, entry: Any, base_dir: Path) -> SiteDescriptor:
        if not isinstance(entry, dict):
            raise ServerConfigError(f"Site '{name}' must be an object")
        hostname = entry.get("hostname")
        if not isinstance(hostname, str) or not hostname.strip():
            raise ServerConfigError(f"Site '{name}' has no hostname")
        root_value = entry.get("root")
        if not isinstance(root_value, str) or not root_value:
            raise ServerConfigError(f"Site '{name}' has no root")

        root = (base_dir / root_value).resolve()
        if not root.is_dir():
            raise ServerConfigError(f"Site '{name}' root is not a directory: {root}")

        pages = entry.get("error_pages", {})
        if not isinstance(pages, dict):
            raise ServerConfigError(f"Site '{name}' error_pages must be an object")

        error_pages: Dict[int, Path] = {}
        for code, page in pages.items():
            if not (isinstance(code, str) and len(code) == 3 and code.isdigit()):
                raise ServerConfigError(f"Site '{name}' error page key must be a status code: {code!r}")
            if not isinstance(page, str) or not page:
                raise ServerConfigError(f"Site '{name}' error page for {code} must be a path")
            error_pages[int(code)] = (root / page).resolve()

        return SiteDescriptor(
            name=name,
            hostname=hostname.strip(),
            document_root=root,
            index=entry.get("index", DEFAULT_INDEX),
            error_pages=error_pages,
        )
