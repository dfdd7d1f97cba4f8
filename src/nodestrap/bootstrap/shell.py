"""Presentation layer collaborator.

The window that renders progress is not part of nodestrap. The
controller only needs to run a script in it and point it at the
started service; hosts implement :class:`PresentationShell` for their
UI toolkit.
"""

from __future__ import annotations

import json
import sys
import threading
from abc import ABC, abstractmethod
from typing import List, TextIO

from nodestrap.core.events import Command

# Installed into every page so the UI can ask for a reload
BOOTSTRAP_SCRIPT = f"""
window.__NODESTRAP_RELOAD = function () {{
  window.nodestrap.emit('{Command.RELOAD.value}')
  window.location.reload()
}}
"""


class PresentationShell(ABC):
    """Minimal interface of the window hosting the UI."""

    @abstractmethod
    def evaluate(self, script: str) -> None:
        """Run a script inside the presentation layer."""

    def redirect(self, url: str) -> None:
        """Point the presentation layer at ``url``."""
        self.evaluate(f"window.location.replace({json.dumps(url)})")

    def inject_bootstrap_script(self) -> None:
        self.evaluate(BOOTSTRAP_SCRIPT)


class RecordingShell(PresentationShell):
    """Shell that keeps every call; used when there is no window at all."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.scripts: List[str] = []
        self.redirects: List[str] = []

    def evaluate(self, script: str) -> None:
        with self._lock:
            self.scripts.append(script)

    def redirect(self, url: str) -> None:
        with self._lock:
            self.redirects.append(url)
        super().redirect(url)


class ConsoleShell(PresentationShell):
    """Terminal stand-in for a window: announces redirects on a stream."""

    def __init__(self, output: TextIO = sys.stdout):
        self._output = output
        self._lock = threading.Lock()

    def evaluate(self, script: str) -> None:
        # A terminal cannot run scripts
        pass

    def redirect(self, url: str) -> None:
        with self._lock:
            print(json.dumps({"redirect": url}), file=self._output, flush=True)
