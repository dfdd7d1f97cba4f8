"""Dependency reconciliation against the remote manifest.

Each required dependency is classified as up to date, missing (needs
install) or outdated (needs update) by asking the binary it ships for
its version.
"""

from __future__ import annotations

import shutil
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from nodestrap.bootstrap.versions import (
    MalformedVersion,
    Ordering,
    compare,
    normalize_version,
    strip_range_prefix,
)
from nodestrap.config.models import DependencyConfig
from nodestrap.core.logging import get_logger
from nodestrap.core.models import Classification, DependencyStatus, RemoteManifest
from nodestrap.core.process import ProcessRunner, SpawnFailure

LOGGER = get_logger(__name__)

LocalResolver = Callable[[str], Optional[str]]


def binary_name_for(
    dependency: str,
    strip_suffixes: Iterable[str] = ("-core",),
    overrides: Optional[Dict[str, str]] = None,
) -> str:
    """Derive the on-path binary name of a dependency.

    ``@guijs/server-core`` -> ``guijs-server``: a ``@scope/`` prefix
    becomes ``scope-`` and the first matching suffix token is dropped.
    """
    if overrides and dependency in overrides:
        return overrides[dependency]

    name = dependency
    if name.startswith("@") and "/" in name:
        scope, _, rest = name[1:].partition("/")
        name = f"{scope}-{rest}"

    for suffix in strip_suffixes:
        if suffix and name.endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)]
            break
    return name


class LocalVersionResolver:
    """Resolve the installed version of a dependency from its binary."""

    def __init__(self, runner: ProcessRunner, config: Optional[DependencyConfig] = None):
        self._runner = runner
        self._config = config or DependencyConfig()

    def __call__(self, dependency: str) -> Optional[str]:
        binary = binary_name_for(
            dependency,
            strip_suffixes=self._config.strip_suffixes,
            overrides=self._config.binaries,
        )
        LOGGER.debug(f"Getting {dependency} version, binary {binary}")

        path = shutil.which(binary)
        if path is None:
            LOGGER.debug(f"{binary} not found on PATH")
            return None

        try:
            result = self._runner.run(path, [self._config.version_flag])
        except SpawnFailure as e:
            LOGGER.debug(f"{dependency} not installed: {e}")
            return None

        if result.returncode != 0:
            LOGGER.debug(f"{binary} {self._config.version_flag} exited with {result.returncode}")
            return None

        version = normalize_version(result.stdout)
        if not version:
            return None
        LOGGER.debug(f"{dependency} v{version}")
        return version


class DependencyReconciler:
    """Classify manifest dependencies against locally installed versions.

    Update policy: a dependency is queued for update only when the installed
    version compares strictly greater than the numeric floor of its
    manifest spec. Both strings are compared after dropping range prefixes,
    so an installed ``1.5.0`` against ``^1.4.0`` needs an update while an
    installed ``1.4.0`` or ``1.3.9`` is left as is.
    """

    def reconcile(
        self,
        manifest: RemoteManifest,
        resolve_local: LocalResolver,
    ) -> List[DependencyStatus]:
        """Classify every dependency of the manifest.

        Args:
            manifest: Remote manifest with the required dependency map.
            resolve_local: Returns the installed version of a dependency,
                or None when it is not installed.

        Returns:
            One DependencyStatus per manifest entry, in manifest order.
        """
        statuses: List[DependencyStatus] = []

        for name, spec in manifest.required_dependencies.items():
            installed = resolve_local(name)
            classification = self.classify(name, spec, installed)
            statuses.append(
                DependencyStatus(
                    name=name,
                    required_spec=spec,
                    installed_version=installed,
                    classification=classification,
                )
            )

        return statuses

    def classify(self, name: str, spec: str, installed: Optional[str]) -> Classification:
        if installed is None:
            LOGGER.info(f"{name} is not installed")
            return Classification.NEEDS_INSTALL

        current = strip_range_prefix(installed)
        required = strip_range_prefix(spec)
        try:
            ordering = compare(current, required)
        except MalformedVersion as e:
            LOGGER.warning(f"Cannot compare {name} versions ({e}); leaving it as is")
            return Classification.UP_TO_DATE

        if ordering == Ordering.GREATER:
            LOGGER.info(f"found update for {name}: installed {current}, manifest {spec}")
            return Classification.NEEDS_UPDATE
        return Classification.UP_TO_DATE


def partition(statuses: Iterable[DependencyStatus]) -> Tuple[List[str], List[str]]:
    """Split statuses into the install batch and the update queue."""
    to_install: List[str] = []
    to_update: List[str] = []
    for status in statuses:
        if status.classification == Classification.NEEDS_INSTALL:
            to_install.append(status.name)
        elif status.classification == Classification.NEEDS_UPDATE:
            to_update.append(status.name)
    return to_install, to_update
