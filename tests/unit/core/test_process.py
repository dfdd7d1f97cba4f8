"""Tests for the process runner."""

from __future__ import annotations

import sys
from typing import List, Tuple
from unittest.mock import patch

import pytest

from nodestrap.core.process import (
    ProcessFailed,
    ProcessRunner,
    SpawnFailure,
    format_label,
    resolve_command,
)
from nodestrap.core.streaming import CallbackStreamHandler, StreamEvent

PYTHON = sys.executable


def _script(code: str) -> List[str]:
    return ["-c", code]


class TestResolveCommand:
    """Tests for resolve_command."""

    def test_missing_name(self) -> None:
        with patch("nodestrap.core.process.shutil.which", return_value=None):
            with pytest.raises(SpawnFailure, match="not found on PATH"):
                resolve_command("definitely-not-installed")

    def test_name_on_path(self) -> None:
        with patch("nodestrap.core.process.shutil.which", return_value="/usr/bin/npm"):
            assert resolve_command("npm") == "/usr/bin/npm"

    def test_existing_path(self) -> None:
        assert resolve_command(PYTHON) == PYTHON

    def test_missing_path(self, tmp_path) -> None:
        with pytest.raises(SpawnFailure, match="no such file"):
            resolve_command(str(tmp_path / "nope"))


def test_format_label() -> None:
    assert format_label("/usr/bin/npm", ["install", "-g", "x"]) == "npm install -g x"


def test_process_failed_message() -> None:
    error = ProcessFailed("npm update -g x", 1, "network down")
    assert str(error) == "npm update -g x failed with exit status 1: network down"
    assert error.returncode == 1


class TestProcessRunner:
    """Tests for ProcessRunner."""

    def test_spawn_yields_lines_lazily(self) -> None:
        runner = ProcessRunner()
        handle = runner.spawn(PYTHON, _script("print('4321'); print('ready')"))

        lines = handle.lines()
        assert next(lines) == "4321"
        assert list(lines) == ["ready"]
        assert handle.wait() == 0

    def test_lines_not_rewindable(self) -> None:
        handle = ProcessRunner().spawn(PYTHON, _script("print('once')"))

        assert list(handle) == ["once"]
        assert list(handle) == []

    def test_empty_output(self) -> None:
        handle = ProcessRunner().spawn(PYTHON, _script("pass"))
        assert list(handle.lines()) == []
        assert handle.returncode == 0

    def test_exit_status(self) -> None:
        handle = ProcessRunner().spawn(PYTHON, _script("import sys; sys.exit(3)"))
        assert handle.wait() == 3

    def test_spawn_missing_command(self) -> None:
        with patch("nodestrap.core.process.shutil.which", return_value=None):
            with pytest.raises(SpawnFailure):
                ProcessRunner().spawn("guijs-orchestrator", ["run"])

    def test_terminate(self) -> None:
        handle = ProcessRunner().spawn(
            PYTHON, _script("import time; print('up', flush=True); time.sleep(30)")
        )
        lines = handle.lines()
        assert next(lines) == "up"

        handle.terminate()
        assert list(lines) == []
        assert handle.wait() != 0

    def test_run_captures_output(self) -> None:
        result = ProcessRunner().run(PYTHON, _script("print('v14.17.0')"))

        assert result.returncode == 0
        assert result.stdout.strip() == "v14.17.0"

    def test_run_streaming_forwards_lines(self) -> None:
        events: List[StreamEvent] = []
        ends: List[Tuple[str, bool]] = []
        handler = CallbackStreamHandler(
            on_event=events.append,
            on_end=lambda label, ok: ends.append((label, ok)),
        )
        runner = ProcessRunner(handler)

        result = runner.run_streaming(PYTHON, _script("print('a'); print('b')"), label="job")

        assert result.returncode == 0
        assert result.stdout == "a\nb"
        stdout_events = [e for e in events if e.stream_type.value == "stdout"]
        assert [e.content for e in stdout_events] == ["a", "b"]
        assert [e.line_number for e in stdout_events] == [1, 2]
        assert ends == [("job", True)]

    def test_run_streaming_failure_status(self) -> None:
        ends: List[Tuple[str, bool]] = []
        runner = ProcessRunner(CallbackStreamHandler(on_end=lambda l, ok: ends.append((l, ok))))

        result = runner.run_streaming(PYTHON, _script("import sys; sys.exit(2)"), label="job")

        assert result.returncode == 2
        assert ends == [("job", False)]
