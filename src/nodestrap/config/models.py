"""Typed configuration for nodestrap.

Defaults reproduce the behaviour of the guijs desktop launcher.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

DEFAULT_MANIFEST_URL = "https://registry.npmjs.org/guijs-version-marker/latest"


@dataclass
class RuntimeConfig:
    """The runtime binary whose presence and version gate everything else."""

    binary: str = "node"
    version_flag: str = "--version"


@dataclass
class PackageManagerConfig:
    """Package manager invoked to install and update dependencies."""

    binary: str = "npm"
    install_args: List[str] = field(default_factory=lambda: ["install", "-g"])
    update_args: List[str] = field(default_factory=lambda: ["update", "-g"])


@dataclass
class DependencyConfig:
    """How a dependency name maps to the binary that reports its version.

    ``@guijs/server-core`` becomes ``guijs-server``: the ``@scope/`` prefix
    turns into ``scope-`` and any of ``strip_suffixes`` is removed from the
    end. Entries in ``binaries`` bypass the transform entirely.
    """

    strip_suffixes: List[str] = field(default_factory=lambda: ["-core"])
    binaries: Dict[str, str] = field(default_factory=dict)
    version_flag: str = "--version"


@dataclass
class ServiceConfig:
    """The background service started once the dependencies are in place."""

    launcher: str = "guijs-orchestrator"
    launcher_args: List[str] = field(default_factory=lambda: ["run", "{server}"])
    server_binary: str = "guijs-server"
    url_template: str = "http://localhost:{port}"


@dataclass
class TimingConfig:
    """Cosmetic delays that let the presentation layer settle."""

    reload_delay: float = 0.1
    settle_delay: float = 0.3


@dataclass
class LoggingConfig:
    to_file: bool = False
    file: Optional[str] = None


@dataclass
class NodestrapConfig:
    """Complete nodestrap configuration."""

    manifest_url: str = DEFAULT_MANIFEST_URL
    manifest_timeout: float = 30.0
    max_workers: int = 4
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    package_manager: PackageManagerConfig = field(default_factory=PackageManagerConfig)
    dependencies: DependencyConfig = field(default_factory=DependencyConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Where the values came from, for diagnostics
    _config_sources: List[str] = field(default_factory=list)

    @property
    def sources(self) -> List[str]:
        return list(self._config_sources)
