"""
Process-wide trigger sources wired to the shutdown coordinator.

Registration points:
- SIGINT / SIGTERM            -> shutdown
- sys.excepthook, threading.excepthook (unexpected synchronous fault)
- event loop exception handler (unfulfilled asynchronous operation)

Faults are logged. They only request shutdown when escalation is enabled
(``SHUTDOWN_ON_FAULT``).

Before the coordinator exists, ``StartupInterrupts`` turns SIGINT / SIGTERM
into cancellation of the startup task.
"""
import asyncio
import signal
import sys
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

import structlog

from .shutdown import ShutdownCoordinator

logger = structlog.get_logger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ProcessTriggers:
    """Installs and removes the process hooks that can ask for shutdown."""

    def __init__(
        self,
        coordinator: ShutdownCoordinator,
        loop: asyncio.AbstractEventLoop,
        escalate_faults: bool = False,
    ):
        self._coordinator = coordinator
        self._loop = loop
        self._escalate_faults = escalate_faults
        self._tasks: Set[asyncio.Task] = set()
        self._signals: List[signal.Signals] = []
        self._fallback_handlers: Dict[signal.Signals, Any] = {}
        self._previous_excepthook: Optional[Callable] = None
        self._previous_threading_excepthook: Optional[Callable] = None
        self._previous_loop_handler: Optional[Callable] = None
        self._fault_hooks_installed = False
        self.faults_seen = 0

    # ------------------------------------------------------------------ #
    # Shutdown requests
    # ------------------------------------------------------------------ #

    def request_shutdown(self, reason: str) -> None:
        """Schedule ``trigger_shutdown`` on the loop; callable from any thread."""
        if self._loop.is_closed():
            logger.warning("shutdown_request_dropped", reason=reason, cause="loop_closed")
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None

        if running is self._loop:
            self._spawn(reason)
        else:
            self._loop.call_soon_threadsafe(self._spawn, reason)

    def _spawn(self, reason: str) -> None:
        task = self._loop.create_task(self._coordinator.trigger_shutdown(reason))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def drain(self) -> None:
        """Wait for trigger tasks already scheduled."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Signals
    # ------------------------------------------------------------------ #

    def install_signal_handlers(self, signals: Sequence[signal.Signals] = DEFAULT_SIGNALS) -> None:
        for sig in signals:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                # Windows: no loop signal handlers, hop back onto the loop ourselves
                self._fallback_handlers[sig] = signal.signal(
                    sig,
                    lambda signum, frame: self._loop.call_soon_threadsafe(
                        self._on_signal, signal.Signals(signum)
                    ),
                )
            self._signals.append(sig)

        logger.info("signal_handlers_installed", signals=[sig.name for sig in self._signals])

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info("signal_received", signal=sig.name)
        self.request_shutdown(sig.name)

    # ------------------------------------------------------------------ #
    # Fault hooks
    # ------------------------------------------------------------------ #

    def install_fault_hooks(self) -> None:
        self._previous_excepthook = sys.excepthook
        self._previous_threading_excepthook = threading.excepthook
        self._previous_loop_handler = self._loop.get_exception_handler()

        sys.excepthook = self._on_unexpected_fault
        threading.excepthook = self._on_thread_fault
        self._loop.set_exception_handler(self._on_unfulfilled_async_operation)
        self._fault_hooks_installed = True

        logger.info("fault_hooks_installed", escalate=self._escalate_faults)

    def _on_unexpected_fault(self, exc_type, exc_value, exc_traceback) -> None:
        self.faults_seen += 1
        logger.error(
            "unexpected_fault",
            error=str(exc_value),
            error_type=exc_type.__name__,
            exc_info=(exc_type, exc_value, exc_traceback),
        )
        self._maybe_escalate("unexpected_fault")

    def _on_thread_fault(self, args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        self.faults_seen += 1
        logger.error(
            "unexpected_fault",
            error=str(args.exc_value),
            error_type=args.exc_type.__name__,
            thread=args.thread.name if args.thread else None,
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )
        self._maybe_escalate("unexpected_fault")

    def _on_unfulfilled_async_operation(self, loop: asyncio.AbstractEventLoop, context: Dict[str, Any]) -> None:
        self.faults_seen += 1
        exc = context.get("exception")
        logger.error(
            "unfulfilled_async_operation",
            message=context.get("message"),
            error=str(exc) if exc else None,
            error_type=type(exc).__name__ if exc else None,
            exc_info=exc if exc else False,
        )
        self._maybe_escalate("unfulfilled_async_operation")

    def _maybe_escalate(self, reason: str) -> None:
        if not self._escalate_faults or self._coordinator.is_requested:
            return
        logger.warning("fault_escalated_to_shutdown", reason=reason)
        self.request_shutdown(reason)

    # ------------------------------------------------------------------ #
    # Removal
    # ------------------------------------------------------------------ #

    def uninstall(self) -> None:
        """Put back whatever was installed before; safe to call twice."""
        for sig in self._signals:
            if sig in self._fallback_handlers:
                signal.signal(sig, self._fallback_handlers.pop(sig))
            elif not self._loop.is_closed():
                self._loop.remove_signal_handler(sig)
        self._signals.clear()

        if self._fault_hooks_installed:
            sys.excepthook = self._previous_excepthook
            threading.excepthook = self._previous_threading_excepthook
            if not self._loop.is_closed():
                self._loop.set_exception_handler(self._previous_loop_handler)
            self._fault_hooks_installed = False


class StartupInterrupts:
    """
    SIGINT / SIGTERM handling while resources are still being acquired.

    There is no coordinator yet, so a signal cancels the startup task;
    ``ResourceGraph.acquire_all`` releases whatever it already holds on the
    way out. Once startup completes, ``handover()`` leaves the loop handlers
    in place for ``ProcessTriggers`` to replace.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop, task: asyncio.Task):
        self._loop = loop
        self._task = task
        self._signals: List[signal.Signals] = []
        self._fallback_handlers: Dict[signal.Signals, Any] = {}
        self.received: Optional[signal.Signals] = None

    def install(self, signals: Sequence[signal.Signals] = DEFAULT_SIGNALS) -> None:
        for sig in signals:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                self._fallback_handlers[sig] = signal.signal(
                    sig,
                    lambda signum, frame: self._loop.call_soon_threadsafe(
                        self._on_signal, signal.Signals(signum)
                    ),
                )
            self._signals.append(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        if self.received is not None:
            logger.info("signal_received_during_startup", signal=sig.name, already_stopping=True)
            return
        self.received = sig
        logger.warning("signal_received_during_startup", signal=sig.name)
        self._task.cancel()

    def handover(self) -> None:
        """Startup finished; stop tracking without resetting the loop handlers."""
        for sig, previous in self._fallback_handlers.items():
            signal.signal(sig, previous)
        self._fallback_handlers.clear()
        self._signals.clear()

    def uninstall(self) -> None:
        """Restore default handling; safe to call twice."""
        for sig in self._signals:
            if sig in self._fallback_handlers:
                signal.signal(sig, self._fallback_handlers.pop(sig))
            elif not self._loop.is_closed():
                self._loop.remove_signal_handler(sig)
        self._signals.clear()


__all__ = ["ProcessTriggers", "StartupInterrupts", "DEFAULT_SIGNALS"]
