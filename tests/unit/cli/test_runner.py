"""Tests for CLI runner."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from nodestrap.bootstrap.paths import NodestrapPaths
from nodestrap.cli.exit_codes import EXIT_INVALID_USAGE, EXIT_SUCCESS
from nodestrap.cli.runner import CLIRunner, get_version


@pytest.fixture
def runner(tmp_path: Path) -> CLIRunner:
    return CLIRunner(paths=NodestrapPaths(tmp_path / "home"))


class TestGetVersion:
    """Tests for get_version function."""

    def test_get_version_from_metadata(self) -> None:
        with patch("nodestrap.cli.runner.version", return_value="1.2.3"):
            assert get_version() == "1.2.3"

    def test_get_version_fallback(self) -> None:
        from importlib.metadata import PackageNotFoundError

        from nodestrap import __version__

        with patch(
            "nodestrap.cli.runner.version",
            side_effect=PackageNotFoundError("not found"),
        ):
            assert get_version() == __version__


class TestCLIRunner:
    """Tests for CLIRunner class."""

    def test_initialization(self, runner: CLIRunner) -> None:
        assert runner.parser is not None
        assert runner.run_cmd.name == "run"
        assert runner.status_cmd.name == "status"

    def test_run_help(self, runner: CLIRunner, capsys) -> None:
        assert runner.run(["--help"]) == EXIT_SUCCESS
        assert "usage:" in capsys.readouterr().out.lower()

    def test_version(self, runner: CLIRunner, capsys) -> None:
        with patch.object(runner, "_version", "9.9.9"):
            assert runner.run(["--version"]) == EXIT_SUCCESS
        assert capsys.readouterr().out.strip() == "9.9.9"

    def test_no_command_prints_help(self, runner: CLIRunner, capsys) -> None:
        assert runner.run([]) == EXIT_SUCCESS
        assert "usage:" in capsys.readouterr().out.lower()

    def test_invalid_command(self, runner: CLIRunner) -> None:
        assert runner.run(["frobnicate"]) == EXIT_INVALID_USAGE

    def test_missing_config_file(self, runner: CLIRunner, tmp_path: Path) -> None:
        result = runner.run(["status", "--config", str(tmp_path / "missing.yml")])
        assert result == EXIT_INVALID_USAGE

    def test_dispatches_status_with_overrides(self, runner: CLIRunner) -> None:
        with patch.object(runner.status_cmd, "execute", return_value=EXIT_SUCCESS) as execute:
            result = runner.run(["status", "--manifest-url", "https://mirror.example/latest"])

        assert result == EXIT_SUCCESS
        args, config = execute.call_args.args
        assert args.command == "status"
        assert config.manifest_url == "https://mirror.example/latest"
        assert config.sources == ["cli"]

    def test_dispatches_run(self, runner: CLIRunner) -> None:
        with patch.object(runner.run_cmd, "execute", return_value=3) as execute:
            assert runner.run(["run", "--no-input"]) == 3
        execute.assert_called_once()

    def test_log_file_from_config(self, runner: CLIRunner, tmp_path: Path) -> None:
        log_path = tmp_path / "out" / "n.log"
        config_path = tmp_path / "c.yml"
        config_path.write_text(f"logging:\n  file: {log_path}\n", encoding="utf-8")

        with patch("nodestrap.cli.runner.add_log_file") as add_log_file, \
                patch.object(runner.status_cmd, "execute", return_value=EXIT_SUCCESS):
            runner.run(["status", "--config", str(config_path)])

        add_log_file.assert_called_once_with(str(log_path))

    def test_log_file_default_location(self, runner: CLIRunner, tmp_path: Path) -> None:
        config_path = tmp_path / "c.yml"
        config_path.write_text("logging:\n  to_file: true\n", encoding="utf-8")

        with patch("nodestrap.cli.runner.add_log_file") as add_log_file, \
                patch.object(runner.status_cmd, "execute", return_value=EXIT_SUCCESS):
            runner.run(["status", "--config", str(config_path)])

        add_log_file.assert_called_once_with(runner._paths.log_file)
