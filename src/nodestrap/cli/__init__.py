"""Command-line interface for nodestrap."""

from __future__ import annotations

from typing import Iterable, Optional


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Entry point for the ``nodestrap`` console script."""
    from nodestrap.cli.runner import CLIRunner

    return CLIRunner().run(argv)


__all__ = ["main"]
