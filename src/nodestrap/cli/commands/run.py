"""Run command implementation."""

from __future__ import annotations

import sys
import threading
from argparse import Namespace
from typing import TYPE_CHECKING, Optional, TextIO

if TYPE_CHECKING:
    from nodestrap.config.models import NodestrapConfig

from nodestrap.bootstrap.controller import BootstrapController
from nodestrap.bootstrap.probe import ToolchainProbe
from nodestrap.bootstrap.shell import ConsoleShell
from nodestrap.cli.commands import Command
from nodestrap.cli.exit_codes import (
    EXIT_BOOTSTRAP_FAILED,
    EXIT_SERVICE_ERROR,
    EXIT_SUCCESS,
    EXIT_TOOLCHAIN_INCOMPATIBLE,
    EXIT_TOOLCHAIN_MISSING,
)
from nodestrap.core.events import STATE_CHANNEL, Command as BusCommand, EventBus
from nodestrap.core.logging import get_logger
from nodestrap.core.models import BootstrapState, Notification, StateEvent
from nodestrap.core.process import ProcessRunner
from nodestrap.core.streaming import (
    CLIStreamHandler,
    LoggingStreamHandler,
    StreamHandler,
)

LOGGER = get_logger(__name__)

# Poll interval of the main thread so Ctrl+C is noticed promptly
WAIT_INTERVAL = 0.5


class RunCommand(Command):
    """Bootstraps the toolchain and keeps the service in the foreground.

    State notifications are printed to stdout as JSON lines. Unless
    ``--no-input`` is given, every stdin line naming a command
    (``update``, ``skip-update``, ``reload``) is forwarded to the
    controller.
    """

    def __init__(
        self,
        version: str,
        stdin: Optional[TextIO] = None,
        stdout: Optional[TextIO] = None,
    ):
        """Initialize RunCommand.

        Args:
            version: Current nodestrap version string.
            stdin: Command source (default: sys.stdin at execution time).
            stdout: Notification sink (default: sys.stdout at execution time).
        """
        self._version = version
        self._stdin = stdin
        self._stdout = stdout
        self._output_lock = threading.Lock()

    @property
    def name(self) -> str:
        """Command identifier."""
        return "run"

    def execute(self, args: Namespace, config: "NodestrapConfig") -> int:
        """Execute the run command.

        Args:
            args: Parsed command-line arguments.
            config: Loaded nodestrap configuration.

        Returns:
            Exit code describing how the bootstrap attempt ended.
        """
        stdout = self._stdout or sys.stdout
        runner = ProcessRunner(self._stream_handler(args))
        bus = EventBus()
        controller = self.build_controller(config, runner, bus, stdout)

        bus.subscribe(STATE_CHANNEL, lambda payload: self._print(stdout, payload))
        if getattr(args, "no_input", False):
            bus.subscribe(STATE_CHANNEL, lambda payload: self._auto_skip(bus, payload))
        else:
            reader = threading.Thread(
                target=self._read_commands,
                args=(self._stdin or sys.stdin, bus),
                name="nodestrap-stdin",
                daemon=True,
            )
            reader.start()

        LOGGER.info(f"nodestrap {self._version} starting")
        controller.start()

        try:
            while not controller.wait_for(lambda c: c.finished, timeout=WAIT_INTERVAL):
                pass
        except KeyboardInterrupt:
            LOGGER.warning("Interrupted, stopping the service")
            controller.shutdown(wait=False)
            return EXIT_BOOTSTRAP_FAILED

        controller.shutdown()
        return self.exit_code_for(controller)

    def build_controller(
        self,
        config: "NodestrapConfig",
        runner: ProcessRunner,
        bus: EventBus,
        stdout: TextIO,
    ) -> BootstrapController:
        probe = ToolchainProbe(runner, config)
        return BootstrapController(probe, runner, bus, ConsoleShell(stdout), config)

    @staticmethod
    def exit_code_for(controller: BootstrapController) -> int:
        """Map the final controller state to a process exit code."""
        if controller.failure is not None:
            return EXIT_BOOTSTRAP_FAILED

        state = controller.state
        if state == BootstrapState.TOOLCHAIN_MISSING:
            return EXIT_TOOLCHAIN_MISSING
        if state == BootstrapState.TOOLCHAIN_INCOMPATIBLE:
            return EXIT_TOOLCHAIN_INCOMPATIBLE

        if controller.service_exit_code:
            return EXIT_SERVICE_ERROR
        return EXIT_SUCCESS

    def _stream_handler(self, args: Namespace) -> StreamHandler:
        if getattr(args, "show_output", False):
            return CLIStreamHandler(
                output=sys.stderr,
                show_output=True,
                use_rich=getattr(args, "rich", False),
            )
        return LoggingStreamHandler()

    def _print(self, stdout: TextIO, payload: str) -> None:
        with self._output_lock:
            print(payload, file=stdout, flush=True)

    def _auto_skip(self, bus: EventBus, payload: str) -> None:
        event = StateEvent.from_json(payload)
        if event.name == Notification.UPDATE_AVAILABLE.value:
            LOGGER.info("Updates available, skipping them (--no-input)")
            bus.publish(BusCommand.SKIP_UPDATE.value)

    def _read_commands(self, stdin: TextIO, bus: EventBus) -> None:
        valid = {command.value for command in BusCommand}
        for raw in stdin:
            line = raw.strip()
            if not line:
                continue
            if line not in valid:
                LOGGER.warning(
                    f"Unknown command '{line}' (expected one of: {', '.join(sorted(valid))})"
                )
                continue
            bus.publish(line)
        LOGGER.debug("stdin closed, no more commands")
