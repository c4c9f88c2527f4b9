"""
Lifecycle supervisor for clean termination in headless contexts.

One supervisor is created per process and handed to every component that
needs to register cleanup work. Shutdown moves through

    RUNNING -> SHUTTING_DOWN -> TERMINATED

and is bounded: each cleanup callback gets its own timeout, and a global
deadline caps the whole sequence no matter what the callbacks do.
"""

import asyncio
import inspect
import logging
import os
import signal
import threading
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from .environment import EnvironmentProbe, is_truthy
from .models import ExecutionMode, SwarmResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

EXIT_ON_COMPLETE_VAR = "SWARM_EXIT_ON_COMPLETE"
SHUTDOWN_SIGNALS = ("SIGTERM", "SIGINT", "SIGHUP", "SIGQUIT")

CleanupCallback = Callable[[], Any]


class LifecycleState(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class CleanupOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


def _is_async_callable(callback: CleanupCallback) -> bool:
    return inspect.iscoroutinefunction(callback) or inspect.iscoroutinefunction(
        getattr(callback, "__call__", None)
    )


def _run_in_daemon_thread(callback: CleanupCallback) -> asyncio.Future:
    """
    Run a sync callback on its own daemon thread.

    asyncio.to_thread uses the loop's default executor, which asyncio.run
    joins on exit; a daemon thread left behind by the shutdown deadline
    does not hold the process open.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def settle(outcome: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(outcome)

    def target() -> None:
        outcome, error = None, None
        try:
            outcome = callback()
        except Exception as e:
            error = e
        try:
            loop.call_soon_threadsafe(settle, outcome, error)
        except RuntimeError:
            logger.debug("Event loop closed before abandoned cleanup handler returned")

    threading.Thread(target=target, name="swarm-cleanup", daemon=True).start()
    return future


class LifecycleSupervisor:
    """
    Registers cleanup callbacks, intercepts termination signals and
    unhandled faults, and decides whether the process exits on completion.

    The supervisor never calls sys.exit itself; it records exit_code and
    the entry point raises SystemExit when should_auto_exit() is true.
    """

    def __init__(
        self,
        mode: ExecutionMode = ExecutionMode.HEADLESS,
        shutdown_timeout: float = 30.0,
        cleanup_timeout: float = 5.0,
        exit_on_complete: Optional[bool] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """
        Args:
            mode: Execution mode reported by the EnvironmentProbe
            shutdown_timeout: Global deadline for the shutdown sequence
            cleanup_timeout: Timeout for each cleanup callback
            exit_on_complete: Explicit auto-exit override
            environ: Environment mapping (defaults to os.environ)
        """
        self.mode = mode
        self.shutdown_timeout = shutdown_timeout
        self.cleanup_timeout = cleanup_timeout
        self.exit_on_complete = exit_on_complete
        self.environ = os.environ if environ is None else environ

        self.state = LifecycleState.RUNNING
        self.exit_code: Optional[int] = None
        self.reason: Optional[str] = None
        self.deadline_exceeded = False
        self.outcomes: list[CleanupOutcome] = []

        self._cleanups: list[CleanupCallback] = []
        self._shutdown_task: Optional[asyncio.Task] = None
        self._main_task: Optional[asyncio.Future] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._installed_signals: list[int] = []
        self._previous_exception_handler = None

    @property
    def is_shutting_down(self) -> bool:
        return self.state is not LifecycleState.RUNNING

    def register_cleanup(self, callback: CleanupCallback) -> None:
        """
        Add a callback to run during shutdown.

        Sync callbacks run in a daemon thread so a stuck one cannot block
        the event loop, or process exit, past the shutdown deadline.
        """
        if not callable(callback):
            raise TypeError(f"Cleanup callback must be callable, got {type(callback).__name__}")
        self._cleanups.append(callback)

    def set_mode(self, mode: ExecutionMode) -> None:
        """Record the mode the run actually executed in (e.g. after an interactive fallback)."""
        if mode is not self.mode:
            logger.debug("Execution mode changed: %s -> %s", self.mode.value, mode.value)
        self.mode = mode

    def should_auto_exit(self) -> bool:
        """
        Whether the process should exit once the run completes.

        False only in a genuinely interactive session with no CI/container
        markers and no explicit override.
        """
        if self.mode is ExecutionMode.HEADLESS:
            return True
        if EnvironmentProbe(environ=self.environ).markers():
            return True
        if is_truthy(self.environ.get(EXIT_ON_COMPLETE_VAR)):
            return True
        return bool(self.exit_on_complete)

    async def on_complete(self, result: SwarmResult) -> Optional[int]:
        """
        Handle normal completion of a run.

        Returns:
            The exit code if a shutdown was performed, otherwise None
        """
        if not self.should_auto_exit():
            logger.debug("Interactive session, not exiting after completion")
            return None
        logger.info("Swarm execution completed: %s", "success" if result.success else "failed")
        return await self.shutdown("completion", 0 if result.success else 1)

    async def on_fault(self, error: BaseException) -> Optional[int]:
        """Handle an unrecovered fault; shuts down with exit code 1 when auto-exit applies."""
        if not self.should_auto_exit():
            return None
        return await self.shutdown(f"fault: {type(error).__name__}", 1)

    async def shutdown(self, reason: str = "manual", exit_code: int = 0) -> int:
        """
        Run all cleanup callbacks and terminate.

        Calls made while a shutdown is already in flight wait for that
        shutdown instead of starting another one.

        Returns:
            The final exit code (1 if the shutdown deadline was breached)
        """
        task = self._begin_shutdown(reason, exit_code)
        return await asyncio.shield(task)

    def _begin_shutdown(self, reason: str, exit_code: int) -> asyncio.Task:
        if self._shutdown_task is not None:
            logger.info("Shutdown already in progress (%s), ignoring %s", self.reason, reason)
            return self._shutdown_task
        self.state = LifecycleState.SHUTTING_DOWN
        self.reason = reason
        logger.info("Initiating graceful shutdown (reason: %s)", reason)
        self._shutdown_task = asyncio.ensure_future(self._perform_shutdown(exit_code))
        return self._shutdown_task

    async def _perform_shutdown(self, exit_code: int) -> int:
        loop = asyncio.get_running_loop()
        started = loop.time()
        callbacks, self._cleanups = self._cleanups, []
        outcomes = [CleanupOutcome.TIMED_OUT] * len(callbacks)

        logger.info("Running %d cleanup handler(s)", len(callbacks))
        runners = [
            asyncio.ensure_future(self._run_cleanup(index, callback, outcomes))
            for index, callback in enumerate(callbacks)
        ]
        if runners:
            _, pending = await asyncio.wait(runners, timeout=self.shutdown_timeout)
            if pending:
                self.deadline_exceeded = True
                logger.error("Shutdown deadline of %ss exceeded, abandoning %d handler(s)",
                             self.shutdown_timeout, len(pending))
                for runner in pending:
                    runner.cancel()
                exit_code = 1

        self.outcomes = outcomes
        self.exit_code = exit_code
        self.state = LifecycleState.TERMINATED
        logger.info("Graceful shutdown completed in %dms (exit code %d)",
                    int((loop.time() - started) * 1000), exit_code)
        return exit_code

    async def _run_cleanup(
        self, index: int, callback: CleanupCallback, outcomes: list[CleanupOutcome]
    ) -> None:
        try:
            await asyncio.wait_for(self._invoke(callback), timeout=self.cleanup_timeout)
        except TimeoutError:
            logger.warning("Cleanup handler %d timed out after %ss", index + 1, self.cleanup_timeout)
            outcomes[index] = CleanupOutcome.TIMED_OUT
        except Exception as e:
            logger.warning("Cleanup handler %d failed: %s", index + 1, e)
            outcomes[index] = CleanupOutcome.FAILED
        else:
            logger.debug("Cleanup handler %d completed", index + 1)
            outcomes[index] = CleanupOutcome.COMPLETED

    @staticmethod
    async def _invoke(callback: CleanupCallback) -> None:
        if _is_async_callable(callback):
            await callback()
            return
        outcome = await _run_in_daemon_thread(callback)
        if inspect.isawaitable(outcome):
            await outcome

    def install_signal_handlers(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Route termination signals and unhandled loop faults into shutdown."""
        loop = loop or asyncio.get_running_loop()
        self._loop = loop
        for name in SHUTDOWN_SIGNALS:
            sig = getattr(signal, name, None)
            if sig is None:
                continue
            try:
                loop.add_signal_handler(sig, self._handle_signal, sig)
            except (NotImplementedError, RuntimeError, ValueError) as e:
                # Windows event loops and non-main threads cannot install handlers
                logger.debug("Cannot install handler for %s: %s", name, e)
                continue
            self._installed_signals.append(sig)
        self._previous_exception_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._handle_loop_exception)

    def remove_signal_handlers(self) -> None:
        if self._loop is None:
            return
        for sig in self._installed_signals:
            self._loop.remove_signal_handler(sig)
        self._installed_signals = []
        self._loop.set_exception_handler(self._previous_exception_handler)
        self._loop = None

    def _handle_signal(self, sig: int) -> None:
        name = signal.Signals(sig).name
        logger.warning("Received %s, initiating graceful shutdown", name)
        self._cancel_main()
        self._begin_shutdown(f"signal {name}", 1)

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        error = context.get("exception")
        logger.error("Unhandled fault: %s", error or context.get("message"))
        if self.state is LifecycleState.RUNNING and self.should_auto_exit():
            self._cancel_main()
            self._begin_shutdown("unhandled fault", 1)

    def _cancel_main(self) -> None:
        if self._main_task is not None and not self._main_task.done():
            self._main_task.cancel()

    async def guard(self, main: Awaitable[T]) -> Optional[T]:
        """
        Run the main coroutine under signal supervision.

        Returns:
            The coroutine's result, or None if a signal or fault cancelled
            it (after the triggered shutdown has finished)
        """
        self.install_signal_handlers()
        self._main_task = asyncio.ensure_future(main)
        try:
            return await self._main_task
        except asyncio.CancelledError:
            if self._shutdown_task is None:
                raise
            await asyncio.shield(self._shutdown_task)
            return None
        finally:
            self._main_task = None
            self.remove_signal_handlers()
