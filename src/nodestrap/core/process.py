"""Process runner with line streaming support.

Spawns external commands (the runtime, the package manager, the service
launcher) and exposes their standard output as a lazy line sequence.
"""

from __future__ import annotations

import os
import platform
import shutil
import subprocess
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

from nodestrap.core.logging import get_logger
from nodestrap.core.streaming import (
    NullStreamHandler,
    StreamEvent,
    StreamHandler,
    StreamType,
)

LOGGER = get_logger(__name__)


class SpawnFailure(Exception):
    """The command could not be located or started."""

    def __init__(self, command: str, reason: str):
        super().__init__(f"Failed to start {command}: {reason}")
        self.command = command
        self.reason = reason


class ProcessFailed(Exception):
    """A command ran but did not complete successfully."""

    def __init__(self, label: str, returncode: Optional[int], detail: str = ""):
        message = f"{label} failed with exit status {returncode}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.label = label
        self.returncode = returncode


def resolve_command(command: str) -> str:
    """Resolve a command name to an executable path.

    Bare names are searched on PATH; anything containing a path separator
    is used as is once it exists.

    Raises:
        SpawnFailure: If the command cannot be found.
    """
    if os.sep in command or (os.altsep and os.altsep in command):
        if Path(command).exists():
            return command
        raise SpawnFailure(command, "no such file")

    resolved = shutil.which(command)
    if resolved is None:
        raise SpawnFailure(command, "not found on PATH")
    return resolved


def creation_flags() -> int:
    """Return ``creationflags`` that keep Windows from opening a console."""
    if platform.system().lower() == "windows":
        return subprocess.CREATE_NO_WINDOW  # type: ignore[attr-defined]
    return 0


def format_label(command: str, args: Sequence[str]) -> str:
    return " ".join([Path(command).name, *args])


class ProcessHandle:
    """A spawned child process whose stdout is read line by line.

    The line sequence is not rewindable: it can be iterated once, and it
    ends when the child closes its stdout. The handle is released (stdout
    closed, exit status collected) when the sequence ends.
    """

    def __init__(
        self,
        proc: subprocess.Popen,
        label: str,
        stream_handler: StreamHandler,
    ):
        self._proc = proc
        self._label = label
        self._handler = stream_handler
        self._consumed = False
        self._released = False

    @property
    def label(self) -> str:
        return self._label

    @property
    def pid(self) -> int:
        return self._proc.pid

    @property
    def returncode(self) -> Optional[int]:
        """Exit status, or None while the child is still running."""
        return self._proc.poll()

    def lines(self) -> Iterator[str]:
        """Yield stdout lines without their trailing newline."""
        if self._consumed:
            return
        self._consumed = True

        exhausted = False
        try:
            stdout = self._proc.stdout
            if stdout is not None:
                for line_num, raw in enumerate(stdout, 1):
                    line = raw.rstrip("\r\n")
                    self._handler.emit(
                        StreamEvent(
                            label=self._label,
                            stream_type=StreamType.STDOUT,
                            content=line,
                            line_number=line_num,
                        )
                    )
                    yield line
            exhausted = True
        finally:
            self._release(wait=exhausted)

    __iter__ = lines

    def terminate(self) -> None:
        """Ask a still running child to exit."""
        if self._proc.poll() is None:
            LOGGER.debug(f"Terminating {self._label} (pid {self._proc.pid})")
            self._proc.terminate()

    def wait(self) -> int:
        """Drain remaining output and wait for the child to exit."""
        for _ in self.lines():
            pass
        self._release(wait=True)
        return self._proc.wait()

    def _release(self, wait: bool) -> None:
        if self._released:
            return
        self._released = True
        if self._proc.stdout is not None:
            self._proc.stdout.close()
        returncode = self._proc.wait() if wait else self._proc.poll()
        self._handler.end_tool(self._label, returncode == 0)
        LOGGER.debug(f"{self._label} released (exit status {returncode})")

    def __enter__(self) -> "ProcessHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._release(wait=exc_type is None)


class ProcessRunner:
    """Spawns and runs external commands.

    All output handling goes through a single StreamHandler so that a
    host can decide where child output ends up.
    """

    def __init__(self, stream_handler: Optional[StreamHandler] = None):
        self._handler = stream_handler or NullStreamHandler()

    @property
    def stream_handler(self) -> StreamHandler:
        return self._handler

    def spawn(
        self,
        command: str,
        args: Sequence[str] = (),
        label: Optional[str] = None,
    ) -> ProcessHandle:
        """Start a command with its stdout piped.

        Args:
            command: Command name (searched on PATH) or path.
            args: Arguments passed to the command.
            label: Label used for stream events (default: command line).

        Returns:
            ProcessHandle exposing the stdout line sequence.

        Raises:
            SpawnFailure: If the command cannot be located or started.
        """
        executable = resolve_command(command)
        cmd: List[str] = [executable, *args]
        label = label or format_label(command, args)

        try:
            proc = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                creationflags=creation_flags(),
            )
        except OSError as e:
            raise SpawnFailure(command, str(e)) from e

        LOGGER.debug(f"Spawned {label} (pid {proc.pid})")
        self._handler.start_tool(label)
        return ProcessHandle(proc, label, self._handler)

    def run(
        self,
        command: str,
        args: Sequence[str] = (),
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command to completion and capture its stdout.

        Output is not streamed; use :meth:`run_streaming` for that.

        Raises:
            SpawnFailure: If the command cannot be located or started.
            subprocess.TimeoutExpired: If ``timeout`` is given and exceeded.
        """
        executable = resolve_command(command)
        try:
            return subprocess.run(
                [executable, *args],
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=timeout,
                creationflags=creation_flags(),
            )
        except OSError as e:
            raise SpawnFailure(command, str(e)) from e

    def run_streaming(
        self,
        command: str,
        args: Sequence[str] = (),
        label: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        """Run a command, forwarding every stdout line to the stream handler.

        Returns:
            CompletedProcess with the joined stdout and the exit status.

        Raises:
            SpawnFailure: If the command cannot be located or started.
        """
        handle = self.spawn(command, args, label=label)
        stdout_lines = list(handle.lines())
        returncode = handle.wait()
        return subprocess.CompletedProcess(
            args=[command, *args],
            returncode=returncode,
            stdout="\n".join(stdout_lines),
            stderr="",
        )
