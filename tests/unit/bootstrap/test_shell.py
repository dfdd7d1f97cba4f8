"""Tests for presentation shells."""

from __future__ import annotations

import io
import json

from nodestrap.bootstrap.shell import BOOTSTRAP_SCRIPT, ConsoleShell, RecordingShell


class TestRecordingShell:
    """Tests for RecordingShell."""

    def test_redirect_records_url_and_script(self) -> None:
        shell = RecordingShell()
        shell.redirect("http://localhost:4321")

        assert shell.redirects == ["http://localhost:4321"]
        assert shell.scripts == ['window.location.replace("http://localhost:4321")']

    def test_inject_bootstrap_script(self) -> None:
        shell = RecordingShell()
        shell.inject_bootstrap_script()

        assert shell.scripts == [BOOTSTRAP_SCRIPT]
        assert "'reload'" in BOOTSTRAP_SCRIPT


class TestConsoleShell:
    """Tests for ConsoleShell."""

    def test_redirect_prints_json(self) -> None:
        out = io.StringIO()
        ConsoleShell(out).redirect("http://localhost:8080")

        assert json.loads(out.getvalue()) == {"redirect": "http://localhost:8080"}

    def test_evaluate_is_silent(self) -> None:
        out = io.StringIO()
        ConsoleShell(out).inject_bootstrap_script()
        assert out.getvalue() == ""
