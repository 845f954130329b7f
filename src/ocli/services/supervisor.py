"""Odoo server supervision.

Runs the Odoo server as a child process with inherited standard streams
and forwards shutdown signals to it:

    STARTING -> RUNNING -> SHUTTING_DOWN -> TERMINATED
                        -> COMPLETED | FAILED

A waiter thread performs the only ``Popen.wait()`` and posts the exit
status to an event queue. Signal handlers post the received signal to the
same queue, so the main thread waits on a single source for whichever
happens first. ``queue.SimpleQueue.put`` is reentrant, which makes it safe
to call from a signal handler.
"""

import queue
import signal
import subprocess
import threading
import time
from dataclasses import dataclass
from enum import Enum
from types import FrameType
from typing import Any, Callable, Optional, Sequence

from ocli.core.context import ExecutionContext
from ocli.core.exceptions import SupervisorError


DEFAULT_GRACE_PERIOD = 10.0  # seconds
SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (
    signal.SIGINT,
    signal.SIGTERM,
    signal.SIGQUIT,
)

_EXIT = "exit"
_SIGNAL = "signal"


class SupervisorState(str, Enum):
    """Lifecycle of a supervised server process."""
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"
    COMPLETED = "completed"
    FAILED = "failed"


def signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"signal {signum}"


def describe_exit(returncode: Optional[int]) -> str:
    """Decode a Popen return code into words.

    Negative return codes mean the child was killed by that signal.
    """
    if returncode is None:
        return "unknown exit status"
    if returncode < 0:
        return f"killed by {signal_name(-returncode)}"
    return f"exited with code {returncode}"


@dataclass(frozen=True)
class SupervisorResult:
    """Final status of a supervised run."""
    state: SupervisorState
    returncode: Optional[int]
    received_signal: Optional[int] = None
    forced: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def exit_code(self) -> int:
        """Shell exit code for this result."""
        if self.returncode is None:
            return 1
        if self.returncode < 0:
            return 128 + (-self.returncode)
        return self.returncode

    def describe(self) -> str:
        return describe_exit(self.returncode)


class ServerSupervisor:
    """Start a server process and shut it down cleanly on signals.

    Usage:
        supervisor = ServerSupervisor(ctx, [odoo_bin, "-c", config_path])
        result = supervisor.run()
    """

    def __init__(
        self,
        ctx: ExecutionContext,
        command: Sequence[str],
        *,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        signals: Sequence[int] = SHUTDOWN_SIGNALS,
        popen: Callable[..., Any] = subprocess.Popen,
    ) -> None:
        """Initialize the supervisor.

        Args:
            ctx: Execution context
            command: Server command line
            grace_period: Seconds to wait after SIGTERM before killing
            signals: Signals that trigger a shutdown
            popen: Process factory (subprocess.Popen)
        """
        self.ctx = ctx
        self.command = [str(arg) for arg in command]
        self.grace_period = grace_period
        self.signals = tuple(signals)
        self._popen = popen
        self._events: "queue.SimpleQueue[tuple[str, Optional[int]]]" = queue.SimpleQueue()
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False
        self.state = SupervisorState.STARTING

    @property
    def pid(self) -> Optional[int]:
        return None if self._process is None else self._process.pid

    def request_shutdown(self, signum: int = signal.SIGTERM) -> None:
        """Ask the running supervisor to shut the server down."""
        self._events.put((_SIGNAL, int(signum)))

    def _on_signal(self, signum: int, frame: Optional[FrameType]) -> None:
        self.request_shutdown(signum)

    def _install_handlers(self) -> dict[int, Any]:
        previous = {}
        try:
            for signum in self.signals:
                previous[signum] = signal.signal(signum, self._on_signal)
        except ValueError as e:
            # signal.signal() only works in the main thread
            self.ctx.console.debug(f"Signal handlers not installed: {e}")
            self._restore_handlers(previous)
            return {}
        return previous

    @staticmethod
    def _restore_handlers(previous: dict[int, Any]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler if handler is not None else signal.SIG_DFL)

    def _wait_for_exit(self, process: subprocess.Popen) -> None:
        self._events.put((_EXIT, process.wait()))

    def _next_exit_status(self, timeout: Optional[float] = None) -> int:
        """Read the completion event, skipping repeated signals.

        Raises:
            queue.Empty: If the timeout expires first
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            kind, value = self._events.get(timeout=remaining)
            if kind == _EXIT:
                return value  # type: ignore[return-value]
            self.ctx.console.verbose(f"Received {signal_name(value)} while shutting down")

    def run(self) -> SupervisorResult:
        """Start the server and block until it exits.

        Raises:
            SupervisorError: If the process cannot be started or killed
        """
        self.state = SupervisorState.STARTING
        self.ctx.console.verbose(f"Executing: {' '.join(self.command)}")

        # A signal that arrives while the child is spawning is queued and
        # handled once it runs
        previous = self._install_handlers()
        try:
            try:
                process = self._popen(self.command)
            except OSError as e:
                self.state = SupervisorState.FAILED
                raise SupervisorError(
                    f"Failed to start Odoo: {e.strerror or e}",
                    details=[f"Command: {' '.join(self.command)}"],
                    hint="Check the binary path (--bin or odoo.odoo_bin in ocli.yml)",
                ) from e

            self._process = process
            waiter = threading.Thread(
                target=self._wait_for_exit,
                args=(process,),
                name=f"wait-{process.pid}",
                daemon=True,
            )
            waiter.start()
            self.state = SupervisorState.RUNNING
            self.ctx.console.success(f"Odoo started with PID {process.pid}")
            self.ctx.console.info("Press Ctrl+C to stop...")

            kind, value = self._events.get()
            if kind == _EXIT:
                return self._completed(value)
            return self._shutdown(value)  # type: ignore[arg-type]
        finally:
            self._restore_handlers(previous)

    def _completed(self, returncode: Optional[int]) -> SupervisorResult:
        if returncode == 0:
            self.state = SupervisorState.COMPLETED
            self.ctx.console.success("Odoo finished successfully")
        else:
            self.state = SupervisorState.FAILED
            self.ctx.console.error(f"Odoo {describe_exit(returncode)}")
        return SupervisorResult(self.state, returncode)

    def _cancel(self) -> None:
        """Send SIGTERM to the server once."""
        if self._cancelled or self._process is None:
            return
        self._cancelled = True
        try:
            self._process.terminate()
        except ProcessLookupError:
            pass

    def _shutdown(self, signum: int) -> SupervisorResult:
        self.state = SupervisorState.SHUTTING_DOWN
        self.ctx.console.print()
        self.ctx.console.warn(f"Received {signal_name(signum)}. Shutting down Odoo...")
        self._cancel()

        forced = False
        try:
            returncode = self._next_exit_status(timeout=self.grace_period)
        except queue.Empty:
            forced = True
            self.ctx.console.warn(
                f"Shutdown timeout ({self.grace_period:g}s) exceeded, forcing termination..."
            )
            try:
                self._process.kill()  # type: ignore[union-attr]
            except ProcessLookupError:
                pass
            except OSError as e:
                self.state = SupervisorState.FAILED
                raise SupervisorError(
                    f"Failed to kill Odoo process {self.pid}",
                    details=[str(e)],
                ) from e
            returncode = self._next_exit_status()

        self.state = SupervisorState.TERMINATED
        if returncode == 0:
            self.ctx.console.success("Odoo shut down gracefully")
        else:
            self.ctx.console.warn(f"Odoo terminated: {describe_exit(returncode)}")
        return SupervisorResult(self.state, returncode, received_signal=signum, forced=forced)
