"""Bootstrap state machine.

Drives probe -> reconcile -> install/update -> launch, reacting to the
``update``, ``skip-update`` and ``reload`` commands and publishing one
notification per observable state change:

    Init -> ProbingToolchain -> ToolchainMissing | ToolchainIncompatible
                             -> Reconciling -> [InstallingMissing]
                             -> [AwaitingUpdateDecision -> [Updating]]
                             -> LaunchingService -> ServiceRunning

Automatic work runs on a bounded worker pool. Commands arriving on the
bus are queued and dispatched by a single command loop thread, which
never performs I/O itself. Notifications are queued in transition order
and delivered to bus subscribers by a notifier thread, so a slow
subscriber never holds up the state machine.
"""

from __future__ import annotations

import os
import queue
import shutil
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from functools import partial
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Union

from nodestrap.bootstrap.pending import PendingUpdateQueue
from nodestrap.bootstrap.probe import ManifestUnavailable, ToolchainProbe
from nodestrap.bootstrap.reconcile import (
    DependencyReconciler,
    LocalResolver,
    LocalVersionResolver,
    partition,
)
from nodestrap.bootstrap.shell import PresentationShell
from nodestrap.bootstrap.versions import meets_floor
from nodestrap.config.models import NodestrapConfig
from nodestrap.core.errors import INTERNAL_ERROR_EXIT_CODE, InvariantViolation
from nodestrap.core.events import STATE_CHANNEL, Command, EventBus
from nodestrap.core.logging import get_logger
from nodestrap.core.models import (
    BootstrapState,
    DependencyStatus,
    Notification,
    StateEvent,
)
from nodestrap.core.process import ProcessFailed, ProcessHandle, ProcessRunner, SpawnFailure

LOGGER = get_logger(__name__)

State = BootstrapState

TRANSITIONS: Dict[BootstrapState, FrozenSet[BootstrapState]] = {
    State.INIT: frozenset({State.PROBING_TOOLCHAIN}),
    State.PROBING_TOOLCHAIN: frozenset(
        {State.TOOLCHAIN_MISSING, State.TOOLCHAIN_INCOMPATIBLE, State.RECONCILING}
    ),
    State.RECONCILING: frozenset(
        {State.INSTALLING_MISSING, State.AWAITING_UPDATE_DECISION, State.LAUNCHING_SERVICE}
    ),
    State.INSTALLING_MISSING: frozenset(
        {State.AWAITING_UPDATE_DECISION, State.LAUNCHING_SERVICE}
    ),
    State.AWAITING_UPDATE_DECISION: frozenset({State.UPDATING, State.LAUNCHING_SERVICE}),
    State.UPDATING: frozenset({State.LAUNCHING_SERVICE}),
    State.LAUNCHING_SERVICE: frozenset({State.SERVICE_RUNNING}),
    State.TOOLCHAIN_MISSING: frozenset(),
    State.TOOLCHAIN_INCOMPATIBLE: frozenset(),
    State.SERVICE_RUNNING: frozenset(),
}

# Notification published when a state is entered
STATE_NOTIFICATIONS: Dict[BootstrapState, Notification] = {
    State.TOOLCHAIN_MISSING: Notification.NODE_NOT_FOUND,
    State.TOOLCHAIN_INCOMPATIBLE: Notification.NODE_WRONG_VERSION,
    State.RECONCILING: Notification.SPLASHSCREEN,
    State.INSTALLING_MISSING: Notification.FIRST_DOWNLOAD,
    State.AWAITING_UPDATE_DECISION: Notification.UPDATE_AVAILABLE,
    State.UPDATING: Notification.DOWNLOADING_UPDATE,
}

FatalHook = Callable[[BaseException], None]
WaitCondition = Union[Iterable[BootstrapState], Callable[["BootstrapController"], bool]]


def terminate_process(exc: BaseException) -> None:
    """Default fatal hook: leave immediately, skipping any cleanup."""
    os._exit(INTERNAL_ERROR_EXIT_CODE)


class BootstrapController:
    """Owns the bootstrap state and the pending update queue of one launch.

    Construct it once per process and call :meth:`start`; repeated
    :meth:`start` calls are ignored, so a host framework may re-run its
    setup hook freely.
    """

    def __init__(
        self,
        probe: ToolchainProbe,
        runner: ProcessRunner,
        bus: EventBus,
        shell: PresentationShell,
        config: Optional[NodestrapConfig] = None,
        reconciler: Optional[DependencyReconciler] = None,
        resolve_local: Optional[LocalResolver] = None,
        on_fatal: FatalHook = terminate_process,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize BootstrapController.

        Args:
            probe: Locates the runtime and fetches the manifest.
            runner: Runs the package manager and the service launcher.
            bus: Channel registry shared with the presentation layer.
            shell: Presentation layer collaborator.
            config: Configuration (default: built-in defaults).
            reconciler: Dependency classifier.
            resolve_local: Installed-version lookup used by the reconciler.
            on_fatal: Called with the exception when an invariant breaks.
            sleep: Used for the cosmetic presentation delays.
        """
        self._config = config or NodestrapConfig()
        self._probe = probe
        self._runner = runner
        self._bus = bus
        self._shell = shell
        self._reconciler = reconciler or DependencyReconciler()
        self._resolve_local = resolve_local or LocalVersionResolver(
            runner, self._config.dependencies
        )
        self._on_fatal = on_fatal
        self._sleep = sleep

        self._start_lock = threading.Lock()
        self._started = False

        self._cond = threading.Condition()
        self._state = State.INIT
        self._history: List[BootstrapState] = [State.INIT]
        self._events: List[StateEvent] = []
        self._statuses: List[DependencyStatus] = []
        self._failure: Optional[str] = None
        self._service_url: Optional[str] = None
        self._service_exit_code: Optional[int] = None
        self._service_handle: Optional[ProcessHandle] = None

        self._pending = PendingUpdateQueue()
        self._commands: "queue.Queue[Optional[Command]]" = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._command_thread: Optional[threading.Thread] = None
        self._outbox: "queue.Queue[Optional[str]]" = queue.Queue()
        self._notifier_thread: Optional[threading.Thread] = None

    # ------------------------------------------------------------------
    # Observable state

    @property
    def state(self) -> BootstrapState:
        with self._cond:
            return self._state

    @property
    def history(self) -> List[BootstrapState]:
        """Every state entered so far, in order, starting with Init."""
        with self._cond:
            return list(self._history)

    @property
    def events(self) -> List[StateEvent]:
        """Every notification published so far, in order."""
        with self._cond:
            return list(self._events)

    @property
    def dependency_statuses(self) -> List[DependencyStatus]:
        with self._cond:
            return list(self._statuses)

    @property
    def pending_updates(self) -> PendingUpdateQueue:
        return self._pending

    @property
    def failure(self) -> Optional[str]:
        """Reason the attempt stopped early, if it did."""
        with self._cond:
            return self._failure

    @property
    def service_url(self) -> Optional[str]:
        with self._cond:
            return self._service_url

    @property
    def service_exit_code(self) -> Optional[int]:
        with self._cond:
            return self._service_exit_code

    @property
    def finished(self) -> bool:
        """True once nothing more will happen without outside help."""
        with self._cond:
            return (
                self._failure is not None
                or self._state in (State.TOOLCHAIN_MISSING, State.TOOLCHAIN_INCOMPATIBLE)
                or self._service_exit_code is not None
            )

    def wait_for(self, condition: WaitCondition, timeout: Optional[float] = None) -> bool:
        """Block until ``condition`` holds.

        Args:
            condition: States to wait for, or a predicate on the controller.
            timeout: Seconds to wait; None waits forever.

        Returns:
            True if the condition holds, False on timeout.
        """
        if callable(condition):
            predicate = partial(condition, self)
        else:
            states = frozenset(condition)
            predicate = lambda: self._state in states  # noqa: E731

        with self._cond:
            return self._cond.wait_for(predicate, timeout=timeout)

    # ------------------------------------------------------------------
    # Lifecycle

    def start(self) -> bool:
        """Begin bootstrapping.

        Returns:
            True on the first call, False (doing nothing) on later calls.
        """
        with self._start_lock:
            if self._started:
                LOGGER.debug("Bootstrap already started, ignoring repeated setup")
                return False
            self._started = True

        self._executor = ThreadPoolExecutor(
            max_workers=self._config.max_workers,
            thread_name_prefix="nodestrap-worker",
        )
        for command in Command:
            self._bus.subscribe(command.value, partial(self._enqueue_command, command))

        self._command_thread = threading.Thread(
            target=self._command_loop,
            name="nodestrap-commands",
            daemon=True,
        )
        self._command_thread.start()
        self._notifier_thread = threading.Thread(
            target=self._notify_loop,
            name="nodestrap-notifier",
            daemon=True,
        )
        self._notifier_thread.start()

        self._transition(State.PROBING_TOOLCHAIN)
        self._submit(self._probe_and_reconcile)
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop the command loop, the service launcher, the worker pool and the notifier.

        With ``wait`` every notification published so far has been delivered
        when this returns.
        """
        self._commands.put(None)

        with self._cond:
            handle = self._service_handle
        if handle is not None:
            handle.terminate()

        # The loop may still be submitting work, so stop it before the pool
        if self._command_thread is not None and wait:
            self._command_thread.join(timeout=5)
        if self._executor is not None:
            self._executor.shutdown(wait=wait)

        # Queued after the pool so events of finished tasks still go out
        self._outbox.put(None)
        if self._notifier_thread is not None and wait:
            self._notifier_thread.join(timeout=5)

    # ------------------------------------------------------------------
    # Commands

    def _enqueue_command(self, command: Command, _payload: object = None) -> None:
        self._commands.put(command)

    def _command_loop(self) -> None:
        while True:
            command = self._commands.get()
            if command is None:
                break
            LOGGER.debug(f"Received command '{command.value}'")
            try:
                self._dispatch(command)
            except InvariantViolation as e:
                LOGGER.critical(f"Internal invariant violated: {e}")
                self._on_fatal(e)

    def _dispatch(self, command: Command) -> None:
        if command == Command.RELOAD:
            self._submit(self._reload)
        elif command == Command.UPDATE:
            self._decide(update=True)
        elif command == Command.SKIP_UPDATE:
            self._decide(update=False)

    def _decide(self, update: bool) -> None:
        with self._cond:
            if self._state != State.AWAITING_UPDATE_DECISION:
                LOGGER.info(
                    f"Ignoring '{'update' if update else 'skip-update'}' "
                    f"in state {self._state.value}"
                )
                return
            if update:
                self._transition(State.UPDATING)
            else:
                self._transition(State.LAUNCHING_SERVICE, notification=Notification.SPLASHSCREEN)

        self._submit(self._update_then_launch if update else self._launch_service)

    # ------------------------------------------------------------------
    # Transitions and notifications

    def _transition(
        self,
        new_state: BootstrapState,
        payload: str = "",
        notification: Optional[Notification] = None,
    ) -> None:
        with self._cond:
            if new_state not in TRANSITIONS[self._state]:
                raise InvariantViolation(
                    f"Illegal transition {self._state.value} -> {new_state.value}"
                )
            self._state = new_state
            self._history.append(new_state)
            LOGGER.info(f"Bootstrap state: {new_state.value}")

            name = notification or STATE_NOTIFICATIONS.get(new_state)
            if name is not None:
                self._publish(StateEvent(name=name.value, payload=payload))
            self._cond.notify_all()

    def _publish(self, event: StateEvent) -> None:
        # Called with self._cond held; the outbox keeps transition order
        self._events.append(event)
        self._outbox.put(event.to_json())

    def _notify_loop(self) -> None:
        while True:
            payload = self._outbox.get()
            if payload is None:
                break
            self._bus.publish(STATE_CHANNEL, payload)

    def _fail(self, reason: str) -> None:
        LOGGER.error(f"Bootstrap failed: {reason}")
        with self._cond:
            self._failure = reason
            self._publish(StateEvent(name=Notification.BOOTSTRAP_FAILED.value, payload=reason))
            self._cond.notify_all()

    # ------------------------------------------------------------------
    # Background tasks

    def _submit(self, task: Callable[[], None]) -> Future:
        if self._executor is None:
            raise InvariantViolation("Bootstrap task submitted before start()")
        return self._executor.submit(self._run_task, task)

    def _run_task(self, task: Callable[[], None]) -> None:
        try:
            task()
        except InvariantViolation as e:
            LOGGER.critical(f"Internal invariant violated: {e}")
            self._on_fatal(e)
        except (ManifestUnavailable, SpawnFailure, ProcessFailed) as e:
            self._fail(str(e))
        except Exception as e:
            LOGGER.exception(f"Unexpected error in bootstrap task {task.__name__}")
            self._fail(f"Unexpected error: {e}")

    def _probe_and_reconcile(self) -> None:
        toolchain = self._probe.locate_runtime()
        if not toolchain.present or toolchain.version is None:
            self._transition(State.TOOLCHAIN_MISSING)
            return

        manifest = self._probe.fetch_manifest()
        min_version = manifest.min_runtime_version
        if not meets_floor(toolchain.version, min_version):
            self._transition(
                State.TOOLCHAIN_INCOMPATIBLE,
                payload=f"{toolchain.version}|{min_version}",
            )
            return

        self._transition(State.RECONCILING)
        statuses = self._reconciler.reconcile(manifest, self._resolve_local)
        with self._cond:
            self._statuses = list(statuses)

        to_install, to_update = partition(statuses)
        for name in to_update:
            self._pending.enqueue(name)

        if to_install:
            self._transition(State.INSTALLING_MISSING)
            self._run_package_manager(self._config.package_manager.install_args, to_install)

        if to_update:
            self._transition(State.AWAITING_UPDATE_DECISION)
            return

        self._transition(State.LAUNCHING_SERVICE)
        self._launch_service()

    def _update_then_launch(self) -> None:
        names = self._pending.drain()
        LOGGER.info(f"Updating {len(names)} dependencies")
        self._run_package_manager(self._config.package_manager.update_args, names)
        self._transition(State.LAUNCHING_SERVICE)
        self._launch_service()

    def _run_package_manager(self, args: List[str], names: List[str]) -> None:
        """Install or update one dependency at a time, stopping at the first failure."""
        package_manager = self._config.package_manager.binary
        for name in names:
            LOGGER.info(f"{' '.join(args)} {name}")
            result = self._runner.run_streaming(package_manager, [*args, name])
            if result.returncode != 0:
                raise ProcessFailed(
                    f"{package_manager} {' '.join(args)} {name}", result.returncode
                )

    def _launch_service(self) -> None:
        service = self._config.service
        server_path = shutil.which(service.server_binary)
        if server_path is None:
            raise SpawnFailure(service.server_binary, "not found on PATH")

        args = [arg.format(server=server_path) for arg in service.launcher_args]
        handle = self._runner.spawn(service.launcher, args)
        with self._cond:
            self._service_handle = handle

        ready = False
        for line in handle.lines():
            if not ready:
                ready = True
                self._on_service_ready(line.strip())

        returncode = handle.wait()
        with self._cond:
            self._service_handle = None
            if ready:
                self._service_exit_code = returncode
                self._cond.notify_all()

        if not ready:
            raise ProcessFailed(handle.label, returncode, "exited before announcing its port")
        LOGGER.info(f"Service launcher exited with status {returncode}")

    def _on_service_ready(self, port: str) -> None:
        url = self._config.service.url_template.format(port=port)
        LOGGER.info(f"Service ready at {url}")
        with self._cond:
            self._service_url = url

        self._shell.redirect(url)
        self._transition(State.SERVICE_RUNNING)

        # Let the page finish replacing its location
        self._sleep(self._config.timing.settle_delay)
        self._shell.inject_bootstrap_script()

    def _reload(self) -> None:
        self._sleep(self._config.timing.reload_delay)
        self._shell.inject_bootstrap_script()
