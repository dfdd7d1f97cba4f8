"""Toolchain probing: the local runtime binary and the remote manifest."""

from __future__ import annotations

import json
import shutil
from typing import Callable, Optional
from urllib.error import HTTPError, URLError

from nodestrap.bootstrap.download import fetch_bytes
from nodestrap.bootstrap.versions import normalize_version
from nodestrap.config.models import NodestrapConfig
from nodestrap.core.logging import get_logger
from nodestrap.core.models import LocalToolchain, RemoteManifest
from nodestrap.core.process import ProcessRunner, SpawnFailure

LOGGER = get_logger(__name__)


class ManifestUnavailable(Exception):
    """The remote manifest could not be fetched or decoded."""

    pass


class ToolchainProbe:
    """Locates the runtime binary and fetches the remote manifest.

    Both operations block; the controller only calls them from worker
    threads.
    """

    def __init__(
        self,
        runner: ProcessRunner,
        config: Optional[NodestrapConfig] = None,
        fetch: Callable[..., bytes] = fetch_bytes,
    ):
        """Initialize ToolchainProbe.

        Args:
            runner: Process runner used to query the runtime version.
            config: Configuration (runtime binary, manifest URL).
            fetch: Function downloading a URL into bytes.
        """
        self._runner = runner
        self._config = config or NodestrapConfig()
        self._fetch = fetch

    def locate_runtime(self) -> LocalToolchain:
        """Search PATH for the runtime binary and ask it for its version.

        Returns:
            LocalToolchain with ``present=False`` if the binary is not on
            PATH, otherwise the normalized version (None if the binary
            could not report one).
        """
        runtime = self._config.runtime
        path = shutil.which(runtime.binary)
        if path is None:
            LOGGER.info(f"{runtime.binary} not found on PATH")
            return LocalToolchain(present=False)

        try:
            result = self._runner.run(path, [runtime.version_flag])
        except SpawnFailure as e:
            LOGGER.warning(f"Could not run {path}: {e}")
            return LocalToolchain(present=True, version=None, path=path)

        version = normalize_version(result.stdout)
        if result.returncode != 0 or not version:
            LOGGER.warning(
                f"{path} {runtime.version_flag} exited with status {result.returncode}"
            )
            return LocalToolchain(present=True, version=None, path=path)

        LOGGER.info(f"Found {runtime.binary} v{version} at {path}")
        return LocalToolchain(present=True, version=version, path=path)

    def fetch_manifest(self) -> RemoteManifest:
        """Fetch and decode the remote manifest.

        Raises:
            ManifestUnavailable: On network, HTTP or decode errors.
        """
        url = self._config.manifest_url
        LOGGER.info(f"Fetching manifest from {url}")

        try:
            raw = self._fetch(url, timeout=self._config.manifest_timeout)
        except HTTPError as e:
            raise ManifestUnavailable(
                f"Failed to fetch manifest: HTTP {e.code} - {e.reason}"
            ) from e
        except URLError as e:
            raise ManifestUnavailable(
                f"Failed to fetch manifest: {e.reason}. Check your network connection."
            ) from e
        except (OSError, ValueError) as e:
            raise ManifestUnavailable(f"Failed to fetch manifest: {e}") from e

        try:
            manifest = RemoteManifest.from_dict(json.loads(raw))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ManifestUnavailable(f"Manifest is not valid JSON: {e}") from e
        except ValueError as e:
            raise ManifestUnavailable(f"Unexpected manifest shape: {e}") from e

        LOGGER.debug(
            f"Manifest: min runtime {manifest.min_runtime_version}, "
            f"{len(manifest.required_dependencies)} dependencies"
        )
        return manifest
