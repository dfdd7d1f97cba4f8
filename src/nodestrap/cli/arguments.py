"""Argument parser construction for the nodestrap CLI.

This module builds the argument parser with subcommands:
- nodestrap run    - Bootstrap the toolchain and start the service
- nodestrap status - Report toolchain and dependency state without changes
"""

from __future__ import annotations

import argparse
from pathlib import Path


def _add_global_options(parser: argparse.ArgumentParser) -> None:
    """Add global options available to all commands."""
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show nodestrap version and exit.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose (info-level) logging.",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Reduce logging output to errors only.",
    )


def _add_config_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=Path,
        metavar="FILE",
        help="Load configuration from FILE on top of the global config.",
    )
    parser.add_argument(
        "--manifest-url",
        metavar="URL",
        help="Fetch the manifest from URL instead of the configured registry.",
    )


def _build_run_parser(subparsers: argparse._SubParsersAction) -> None:
    """Build the 'run' subcommand parser."""
    run_parser = subparsers.add_parser(
        "run",
        help="Bootstrap the toolchain and start the service.",
        description=(
            "Check the runtime, install or update dependencies and launch "
            "the service. State notifications are printed as JSON lines; "
            "commands (update, skip-update, reload) are read from stdin."
        ),
    )
    _add_config_options(run_parser)
    run_parser.add_argument(
        "--no-input",
        action="store_true",
        help="Do not read commands from stdin; skip available updates.",
    )
    run_parser.add_argument(
        "--show-output",
        action="store_true",
        help="Print package manager and launcher output to stderr.",
    )
    run_parser.add_argument(
        "--rich",
        action="store_true",
        help="Use Rich formatting for --show-output.",
    )


def _build_status_parser(subparsers: argparse._SubParsersAction) -> None:
    """Build the 'status' subcommand parser."""
    status_parser = subparsers.add_parser(
        "status",
        help="Show runtime and dependency status.",
        description=(
            "Probe the runtime, fetch the manifest and classify every "
            "required dependency. Nothing is installed."
        ),
    )
    _add_config_options(status_parser)
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Print the report as JSON.",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the top-level argument parser."""
    parser = argparse.ArgumentParser(
        prog="nodestrap",
        description="nodestrap - bootstrap a Node.js backed service before UI hand-off.",
    )
    _add_global_options(parser)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    _build_run_parser(subparsers)
    _build_status_parser(subparsers)

    return parser
