"""Status command implementation."""

from __future__ import annotations

import json
import sys
from argparse import Namespace
from typing import TYPE_CHECKING, Any, Dict, List, Optional, TextIO

if TYPE_CHECKING:
    from nodestrap.config.models import NodestrapConfig

from nodestrap.bootstrap.probe import ManifestUnavailable, ToolchainProbe
from nodestrap.bootstrap.reconcile import DependencyReconciler, LocalVersionResolver
from nodestrap.bootstrap.versions import meets_floor
from nodestrap.cli.commands import Command
from nodestrap.cli.exit_codes import (
    EXIT_BOOTSTRAP_FAILED,
    EXIT_SUCCESS,
    EXIT_TOOLCHAIN_INCOMPATIBLE,
    EXIT_TOOLCHAIN_MISSING,
)
from nodestrap.core.logging import get_logger
from nodestrap.core.models import DependencyStatus
from nodestrap.core.process import ProcessRunner

LOGGER = get_logger(__name__)


class StatusCommand(Command):
    """Shows runtime and dependency status without changing anything."""

    def __init__(
        self,
        version: str,
        runner: Optional[ProcessRunner] = None,
        stdout: Optional[TextIO] = None,
    ):
        """Initialize StatusCommand.

        Args:
            version: Current nodestrap version string.
            runner: Process runner used for version queries.
            stdout: Report sink (default: sys.stdout at execution time).
        """
        self._version = version
        self._runner = runner
        self._stdout = stdout

    @property
    def name(self) -> str:
        """Command identifier."""
        return "status"

    def execute(self, args: Namespace, config: "NodestrapConfig") -> int:
        """Execute the status command.

        Probes the runtime, fetches the manifest and classifies every
        required dependency.

        Args:
            args: Parsed command-line arguments.
            config: Loaded nodestrap configuration.

        Returns:
            0 when the runtime is usable, otherwise the matching failure code.
        """
        runner = self._runner or ProcessRunner()
        probe = self.build_probe(runner, config)

        report: Dict[str, Any] = {
            "version": self._version,
            "configSources": config.sources,
            "manifestUrl": config.manifest_url,
        }
        exit_code = self._collect(report, probe, runner, config)

        out = self._stdout or sys.stdout
        if getattr(args, "json", False):
            print(json.dumps(report, indent=2), file=out)
        else:
            self._print_report(report, out)
        return exit_code

    def build_probe(self, runner: ProcessRunner, config: "NodestrapConfig") -> ToolchainProbe:
        return ToolchainProbe(runner, config)

    def _collect(
        self,
        report: Dict[str, Any],
        probe: ToolchainProbe,
        runner: ProcessRunner,
        config: "NodestrapConfig",
    ) -> int:
        toolchain = probe.locate_runtime()
        report["runtime"] = {
            "binary": config.runtime.binary,
            "present": toolchain.present,
            "version": toolchain.version,
            "path": toolchain.path,
        }
        if not toolchain.present or toolchain.version is None:
            report["result"] = "toolchain-missing"
            return EXIT_TOOLCHAIN_MISSING

        try:
            manifest = probe.fetch_manifest()
        except ManifestUnavailable as e:
            report["result"] = "manifest-unavailable"
            report["error"] = str(e)
            return EXIT_BOOTSTRAP_FAILED

        report["minRuntimeVersion"] = manifest.min_runtime_version
        if not meets_floor(toolchain.version, manifest.min_runtime_version):
            report["result"] = "toolchain-incompatible"
            return EXIT_TOOLCHAIN_INCOMPATIBLE

        resolver = LocalVersionResolver(runner, config.dependencies)
        statuses: List[DependencyStatus] = DependencyReconciler().reconcile(manifest, resolver)
        report["dependencies"] = [status.to_dict() for status in statuses]
        report["result"] = "ok"
        return EXIT_SUCCESS

    def _print_report(self, report: Dict[str, Any], out: TextIO) -> None:
        print(f"nodestrap version: {report['version']}", file=out)
        sources = report["configSources"]
        print(f"Config: {', '.join(sources) if sources else 'defaults'}", file=out)
        print(f"Manifest: {report['manifestUrl']}", file=out)
        print(file=out)

        runtime = report["runtime"]
        if not runtime["present"]:
            print(f"Runtime: {runtime['binary']} not found on PATH", file=out)
        elif runtime["version"] is None:
            print(f"Runtime: {runtime['path']} (version unknown)", file=out)
        else:
            print(f"Runtime: {runtime['binary']} v{runtime['version']} ({runtime['path']})", file=out)

        if "minRuntimeVersion" in report:
            print(f"Required runtime: >= {report['minRuntimeVersion']}", file=out)
        if "error" in report:
            print(f"Error: {report['error']}", file=out)

        dependencies = report.get("dependencies")
        if dependencies is not None:
            print(file=out)
            print("Dependencies:", file=out)
            if not dependencies:
                print("  (none required)", file=out)
            for dep in dependencies:
                installed = dep["installedVersion"] or "not installed"
                print(
                    f"  {dep['name']}: {installed} "
                    f"[requires {dep['requiredSpec']}] {dep['classification']}",
                    file=out,
                )

        print(file=out)
        print(f"Result: {report['result']}", file=out)
