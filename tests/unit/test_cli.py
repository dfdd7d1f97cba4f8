"""Tests for CLI argument parsing."""

from __future__ import annotations

import argparse
from pathlib import Path

import pytest

from nodestrap.cli import main
from nodestrap.cli.arguments import build_parser
from nodestrap.cli.exit_codes import EXIT_SUCCESS


class TestBuildParser:
    """Tests for CLI argument parser."""

    def test_build_parser_includes_global_flags(self) -> None:
        parser = build_parser()
        assert isinstance(parser, argparse.ArgumentParser)

        for flag in ["--version", "--debug", "--verbose", "--quiet"]:
            assert any(a.option_strings and flag in a.option_strings for a in parser._actions)

    def test_run_options(self) -> None:
        args = build_parser().parse_args(
            ["-v", "run", "--no-input", "--show-output", "--rich", "--config", "c.yml"]
        )

        assert args.command == "run"
        assert args.verbose is True
        assert args.no_input is True
        assert args.show_output is True
        assert args.rich is True
        assert args.config == Path("c.yml")
        assert args.manifest_url is None

    def test_status_options(self) -> None:
        args = build_parser().parse_args(
            ["status", "--json", "--manifest-url", "https://mirror.example/latest"]
        )

        assert args.command == "status"
        assert args.json is True
        assert args.manifest_url == "https://mirror.example/latest"

    def test_no_command(self) -> None:
        args = build_parser().parse_args([])
        assert args.command is None

    def test_unknown_command_exits(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["scan"])


def test_main_version(capsys) -> None:
    assert main(["--version"]) == EXIT_SUCCESS
    assert capsys.readouterr().out.strip()
