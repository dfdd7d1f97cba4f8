"""Data models shared by the probe, reconciler and controller."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class BootstrapState(str, Enum):
    """Lifecycle states of a single bootstrap attempt."""

    INIT = "Init"
    PROBING_TOOLCHAIN = "ProbingToolchain"
    TOOLCHAIN_MISSING = "ToolchainMissing"
    TOOLCHAIN_INCOMPATIBLE = "ToolchainIncompatible"
    RECONCILING = "Reconciling"
    INSTALLING_MISSING = "InstallingMissing"
    AWAITING_UPDATE_DECISION = "AwaitingUpdateDecision"
    UPDATING = "Updating"
    LAUNCHING_SERVICE = "LaunchingService"
    SERVICE_RUNNING = "ServiceRunning"


class Classification(str, Enum):
    """Outcome of reconciling one required dependency."""

    UP_TO_DATE = "UpToDate"
    NEEDS_INSTALL = "NeedsInstall"
    NEEDS_UPDATE = "NeedsUpdate"


class Notification(str, Enum):
    """Names of the notifications published to the presentation layer."""

    SPLASHSCREEN = "splashscreen"
    FIRST_DOWNLOAD = "first-download"
    UPDATE_AVAILABLE = "update-available"
    DOWNLOADING_UPDATE = "downloading-update"
    NODE_NOT_FOUND = "node-not-found"
    NODE_WRONG_VERSION = "node-wrong-version"
    BOOTSTRAP_FAILED = "bootstrap-failed"


@dataclass(frozen=True)
class LocalToolchain:
    """Result of probing the execution environment for the runtime binary.

    Attributes:
        present: Whether the runtime binary was found on the command path.
        version: Normalized version string reported by the binary, if any.
        path: Resolved path to the binary, if found.
    """

    present: bool
    version: Optional[str] = None
    path: Optional[str] = None


@dataclass(frozen=True)
class RemoteManifest:
    """Remote description of the runtime floor and required dependencies."""

    min_runtime_version: str
    required_dependencies: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "RemoteManifest":
        """Create from the registry document.

        The document is shaped ``{"custom": {"minNodeVersion": str},
        "devDependencies": {name: spec}}``.

        Raises:
            ValueError: If the document does not have the expected shape.
        """
        if not isinstance(data, dict):
            raise ValueError(f"manifest must be a JSON object, got {type(data).__name__}")

        custom = data.get("custom")
        if not isinstance(custom, dict):
            raise ValueError("manifest is missing the 'custom' object")

        min_version = custom.get("minNodeVersion")
        if not isinstance(min_version, str) or not min_version.strip():
            raise ValueError("manifest is missing 'custom.minNodeVersion'")

        dependencies = data.get("devDependencies", {})
        if not isinstance(dependencies, dict):
            raise ValueError("manifest 'devDependencies' must be an object")
        for name, spec in dependencies.items():
            if not isinstance(spec, str):
                raise ValueError(f"version spec for '{name}' must be a string")

        return cls(
            min_runtime_version=min_version.strip(),
            required_dependencies=dict(dependencies),
        )


@dataclass(frozen=True)
class DependencyStatus:
    """Classification of one manifest entry against the local environment."""

    name: str
    required_spec: str
    installed_version: Optional[str]
    classification: Classification

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "requiredSpec": self.required_spec,
            "installedVersion": self.installed_version,
            "classification": self.classification.value,
        }


@dataclass(frozen=True)
class StateEvent:
    """Notification published to the presentation layer."""

    name: str
    payload: str = ""

    def to_json(self) -> str:
        return json.dumps({"name": self.name, "payload": self.payload})

    @classmethod
    def from_json(cls, raw: str) -> "StateEvent":
        data = json.loads(raw)
        return cls(name=data["name"], payload=data.get("payload", ""))
