"""
Supervised (blocking) start.

Process supervisors such as runit expect the service command to stay in the
foreground for the lifetime of the service. ``SupervisedWait`` launches the
session, then blocks until either the server signals its own exit through the
session's wait-for channel or this process receives a termination signal.
Both paths end in exactly one ``stop()`` call.
"""

import asyncio
import signal
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING

from ..utils.logging import LogContext, ServiceError, get_logger
from .enums import WaitState

if TYPE_CHECKING:
    from .lifecycle import SessionLifecycleManager

logger = get_logger(__name__, LogContext.SUPERVISOR)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM, signal.SIGHUP)


class SupervisedWait:
    """State machine: idle, launching, waiting, cleaning up, terminated."""

    def __init__(
        self,
        manager: "SessionLifecycleManager",
        signals: Sequence[signal.Signals] = DEFAULT_SIGNALS,
        exit_waiter: Callable[[], Awaitable[int]] | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            manager: Lifecycle manager used to launch and stop the session
            signals: Signals that trigger cleanup
            exit_waiter: Coroutine factory completing when the server exits;
                defaults to waiting on the session's exit channel
        """
        self.manager = manager
        self.signals = tuple(signals)
        self.exit_waiter = exit_waiter or self._wait_for_exit_channel
        self.state = WaitState.IDLE
        self.history: list[WaitState] = [WaitState.IDLE]
        self.received_signal: int | None = None
        self._shutdown: asyncio.Future[int] | None = None

    def _transition(self, state: WaitState) -> None:
        logger.info("Supervised wait transition", source=self.state.value, target=state.value)
        self.state = state
        self.history.append(state)

    def run(self) -> int:
        """Launch the session and block until it is cleaned up.

        Launch failures propagate without cleanup; no session of ours exists
        to stop in that case.
        """
        self._transition(WaitState.LAUNCHING)
        try:
            self.manager.launch(supervised=True)
        except Exception:
            self._transition(WaitState.TERMINATED)
            raise

        self._transition(WaitState.WAITING)
        return asyncio.run(self._supervise())

    def request_shutdown(self, signum: int) -> None:
        """Signal handler: end the wait. Repeated signals are ignored."""
        if self._shutdown is None or self._shutdown.done():
            logger.info("Signal ignored, cleanup already under way", signal=signum)
            return
        logger.warning("Termination signal received", signal=signum)
        self._shutdown.set_result(signum)

    async def _supervise(self) -> int:
        loop = asyncio.get_running_loop()
        self._shutdown = loop.create_future()
        for sig in self.signals:
            loop.add_signal_handler(sig, self.request_shutdown, sig)

        status = 1
        try:
            wait_task = asyncio.ensure_future(self.exit_waiter())
            try:
                await asyncio.wait(
                    {wait_task, self._shutdown}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                self._transition(WaitState.CLEANING_UP)
                if not self._shutdown.done():
                    logger.info("Server exit observed")
                wait_task.cancel()
                await asyncio.gather(wait_task, return_exceptions=True)
                # A signal arriving from here on is ignored by request_shutdown.
                if not self._shutdown.done():
                    self._shutdown.cancel()
                status = await loop.run_in_executor(None, self._cleanup)
        finally:
            for sig in self.signals:
                loop.remove_signal_handler(sig)

        if not self._shutdown.cancelled():
            self.received_signal = self._shutdown.result()
            if status == 0:
                status = 128 + self.received_signal

        self._transition(WaitState.TERMINATED)
        return status

    def _cleanup(self) -> int:
        """Run ``stop()`` to completion and map its outcome to an exit status."""
        try:
            return self.manager.stop()
        except ServiceError as e:
            logger.error("Cleanup stop failed", error=e.message)
            self.manager.echo(f"Error: {e.message}", err=True)
            return e.exit_code
        except Exception as e:
            logger.error("Unexpected error during cleanup stop", exception=e)
            self.manager.echo(f"Error: {e}", err=True)
            return 1

    async def _wait_for_exit_channel(self) -> int:
        argv = self.manager.tmux.exit_wait_argv()
        process = await asyncio.create_subprocess_exec(*argv)
        try:
            return await process.wait()
        finally:
            if process.returncode is None:
                process.terminate()
                await process.wait()
