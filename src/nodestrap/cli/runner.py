"""CLI runner orchestration.

This module handles command dispatch and execution for the nodestrap CLI.
"""

from __future__ import annotations

from argparse import Namespace
from typing import Any, Dict, Iterable, Optional

from importlib.metadata import version, PackageNotFoundError

from nodestrap.bootstrap.paths import NodestrapPaths
from nodestrap.cli.arguments import build_parser
from nodestrap.cli.commands.run import RunCommand
from nodestrap.cli.commands.status import StatusCommand
from nodestrap.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from nodestrap.config import load_config
from nodestrap.config.loader import ConfigError
from nodestrap.config.models import NodestrapConfig
from nodestrap.core.logging import add_log_file, configure_logging, get_logger

LOGGER = get_logger(__name__)


def get_version() -> str:
    """Get nodestrap version.

    Returns:
        Version string from package metadata or fallback.
    """
    try:
        return version("nodestrap")
    except PackageNotFoundError:
        # Fallback for editable installs that have not yet built metadata.
        from nodestrap import __version__
        return __version__


class CLIRunner:
    """Orchestrates CLI execution with subcommand dispatch."""

    def __init__(self, paths: Optional[NodestrapPaths] = None) -> None:
        """Initialize CLIRunner with parser and commands."""
        self.parser = build_parser()
        self._version = get_version()
        self._paths = paths or NodestrapPaths.default()
        self.run_cmd = RunCommand(version=self._version)
        self.status_cmd = StatusCommand(version=self._version)

    def run(self, argv: Optional[Iterable[str]] = None) -> int:
        """Run the CLI.

        Args:
            argv: Command-line arguments (defaults to sys.argv).

        Returns:
            Exit code.
        """
        argv_list = list(argv) if argv is not None else None

        try:
            args = self.parser.parse_args(argv_list)
        except SystemExit as e:
            # argparse exits on --help and on usage errors
            return int(e.code) if isinstance(e.code, int) else EXIT_INVALID_USAGE

        # Configure logging as early as possible
        configure_logging(
            debug=args.debug,
            verbose=args.verbose,
            quiet=args.quiet,
        )

        if args.version:
            print(self._version)
            return EXIT_SUCCESS

        command = getattr(args, "command", None)
        if command is None:
            self.parser.print_help()
            return EXIT_SUCCESS

        try:
            config = self._load_config(args)
        except ConfigError as e:
            LOGGER.error(str(e))
            return EXIT_INVALID_USAGE

        if command == "run":
            return self.run_cmd.execute(args, config)
        elif command == "status":
            return self.status_cmd.execute(args, config)

        self.parser.print_help()
        return EXIT_INVALID_USAGE

    def _load_config(self, args: Namespace) -> NodestrapConfig:
        overrides: Dict[str, Any] = {}
        if getattr(args, "manifest_url", None):
            overrides["manifest_url"] = args.manifest_url

        config = load_config(
            cli_config_path=getattr(args, "config", None),
            cli_overrides=overrides or None,
            paths=self._paths,
        )

        if config.logging.file:
            add_log_file(config.logging.file)
        elif config.logging.to_file:
            add_log_file(self._paths.log_file)
        return config
