"""Stream handler abstraction for child process output.

Every line a spawned command writes to stdout is forwarded to a handler:
- Logging: write each line to the ``nodestrap.process`` logger (default)
- CLI: print to the console with optional Rich formatting
- Callback: forward to arbitrary callables (embedding hosts, tests)
- Null: discard
"""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, TextIO

from nodestrap.core.logging import get_logger

PROCESS_LOGGER_NAME = "nodestrap.process"


class StreamType(str, Enum):
    """Type of stream output."""

    STDOUT = "stdout"
    STATUS = "status"


@dataclass
class StreamEvent:
    """A single line of output from a spawned command."""

    label: str
    stream_type: StreamType
    content: str
    line_number: Optional[int] = None


class StreamHandler(ABC):
    """Abstract base class for stream handlers.

    Implementations must be thread-safe as install batches and the
    service launcher emit lines from different worker threads.
    """

    @abstractmethod
    def emit(self, event: StreamEvent) -> None:
        """Emit a stream event.

        Args:
            event: The stream event to emit.
        """

    @abstractmethod
    def start_tool(self, label: str) -> None:
        """Signal that a command has been spawned.

        Args:
            label: Human readable label of the command.
        """

    @abstractmethod
    def end_tool(self, label: str, success: bool) -> None:
        """Signal that a command has finished.

        Args:
            label: Human readable label of the command.
            success: Whether the command exited with status 0.
        """


class NullStreamHandler(StreamHandler):
    """No-op handler.

    Use this when child output is not interesting - all methods are no-ops.
    """

    def emit(self, event: StreamEvent) -> None:
        pass

    def start_tool(self, label: str) -> None:
        pass

    def end_tool(self, label: str, success: bool) -> None:
        pass


class LoggingStreamHandler(StreamHandler):
    """Forward child output to the standard logging system."""

    def __init__(self, logger_name: str = PROCESS_LOGGER_NAME):
        self._logger = get_logger(logger_name)

    def emit(self, event: StreamEvent) -> None:
        if event.stream_type == StreamType.STATUS:
            self._logger.debug("[%s] %s", event.label, event.content)
        else:
            self._logger.info("[%s] %s", event.label, event.content)

    def start_tool(self, label: str) -> None:
        self._logger.debug("[%s] started", label)

    def end_tool(self, label: str, success: bool) -> None:
        if success:
            self._logger.debug("[%s] finished", label)
        else:
            self._logger.warning("[%s] failed", label)


class CLIStreamHandler(StreamHandler):
    """Thread-safe CLI stream handler.

    Streams child output to the console with optional Rich formatting.
    Shows both raw output and formatted status messages.
    """

    def __init__(
        self,
        output: TextIO = sys.stderr,
        show_output: bool = True,
        use_rich: bool = False,
    ):
        """Initialize CLIStreamHandler.

        Args:
            output: Output stream to write to (default: stderr).
            show_output: Whether to show raw output lines.
            use_rich: Whether to use Rich for formatted output.
        """
        self._output = output
        self._show_output = show_output
        self._lock = threading.Lock()
        self._console = None

        if use_rich:
            from rich.console import Console

            self._console = Console(file=output, force_terminal=True)

    def emit(self, event: StreamEvent) -> None:
        """Emit a stream event to the console.

        Args:
            event: The stream event to emit.
        """
        if not self._show_output:
            return

        with self._lock:
            if event.stream_type == StreamType.STATUS:
                self._print_status(f"[{event.label}] {event.content}")
            else:
                prefix = f"  {event.label}: "
                self._print_line(prefix, event.content)

    def start_tool(self, label: str) -> None:
        with self._lock:
            self._print_status(f"[{label}] Starting...")

    def end_tool(self, label: str, success: bool) -> None:
        with self._lock:
            if success:
                self._print_status(f"[{label}] Done")
            else:
                self._print_status(f"[{label}] Failed")

    def _print_status(self, message: str) -> None:
        if self._console:
            self._console.print(f"[bold cyan]{message}[/bold cyan]", markup=True)
        else:
            print(message, file=self._output, flush=True)

    def _print_line(self, prefix: str, content: str) -> None:
        if self._console:
            self._console.print(f"[dim]{prefix}[/dim]{content}", markup=True)
        else:
            print(f"{prefix}{content}", file=self._output, flush=True)


class CallbackStreamHandler(StreamHandler):
    """Handler that invokes callbacks for stream events.

    Useful for embedding hosts where lines need to be forwarded to
    another system.
    """

    def __init__(
        self,
        on_event: Optional[Callable[[StreamEvent], None]] = None,
        on_start: Optional[Callable[[str], None]] = None,
        on_end: Optional[Callable[[str, bool], None]] = None,
    ):
        """Initialize CallbackStreamHandler.

        Args:
            on_event: Callback for stream events.
            on_start: Callback when a command starts.
            on_end: Callback when a command ends.
        """
        self._on_event = on_event
        self._on_start = on_start
        self._on_end = on_end
        self._lock = threading.Lock()

    def emit(self, event: StreamEvent) -> None:
        if self._on_event:
            with self._lock:
                self._on_event(event)

    def start_tool(self, label: str) -> None:
        if self._on_start:
            with self._lock:
                self._on_start(label)
        if self._on_event:
            self.emit(
                StreamEvent(
                    label=label,
                    stream_type=StreamType.STATUS,
                    content="started",
                )
            )

    def end_tool(self, label: str, success: bool) -> None:
        if self._on_end:
            with self._lock:
                self._on_end(label, success)
        if self._on_event:
            status = "completed" if success else "failed"
            self.emit(
                StreamEvent(
                    label=label,
                    stream_type=StreamType.STATUS,
                    content=status,
                )
            )
