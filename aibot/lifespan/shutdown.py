"""Shutdown coordinator: one idempotent close-everything entry point."""
import asyncio
import threading
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional

import structlog

from .health_registry import HealthRegistry, HealthStatus, get_health_registry
from .resources import ServiceResources

logger = structlog.get_logger(__name__)

EXIT_SUCCESS = 0


class ShutdownState(Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class ShutdownCoordinator:
    """
    Tears the service down exactly once, whoever asks first.

    ``trigger_shutdown`` may be called from signal handlers, fault hooks and
    ordinary coroutines, possibly at the same time. The move out of
    NOT_STARTED is a compare-and-set under a lock; the winner releases the
    resources (listener, controller, storage: reverse acquisition order),
    waits for every step, then calls ``on_terminate`` once. Everyone else
    returns immediately.

    Example:
        coordinator = ShutdownCoordinator(resources, on_terminate=sys.exit)
        loop.add_signal_handler(
            signal.SIGTERM,
            lambda: loop.create_task(coordinator.trigger_shutdown("SIGTERM")),
        )
        await coordinator.wait()
    """

    def __init__(
        self,
        resources: ServiceResources,
        on_terminate: Callable[[int], None],
        health_registry: Optional[HealthRegistry] = None,
    ):
        self._resources = resources
        self._on_terminate = on_terminate
        self._health = health_registry or get_health_registry()
        self._state = ShutdownState.NOT_STARTED
        self._lock = threading.Lock()
        self._done = asyncio.Event()
        self.reason: Optional[str] = None
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None

    @property
    def state(self) -> ShutdownState:
        return self._state

    @property
    def is_requested(self) -> bool:
        return self._state != ShutdownState.NOT_STARTED

    def _claim(self, reason: str) -> bool:
        with self._lock:
            if self._state != ShutdownState.NOT_STARTED:
                return False
            self._state = ShutdownState.IN_PROGRESS
            self.reason = reason
            self.started_at = datetime.now(timezone.utc)
            return True

    async def trigger_shutdown(self, reason: str) -> bool:
        """
        Request shutdown.

        Args:
            reason: What asked for it (signal name, fault, ...)

        Returns:
            True if this call performed the teardown, False if another
            trigger already had
        """
        if not self._claim(reason):
            logger.info(
                "shutdown_already_requested",
                reason=reason,
                first_reason=self.reason,
                state=self._state.value,
            )
            return False

        logger.info("shutdown_started", reason=reason, resources=list(reversed(self._resources.names)))

        try:
            errors = await self._resources.release_all()
        except Exception as e:
            # release_all records per-resource failures itself; this is anything else
            errors = []
            logger.error("teardown_aborted", error=str(e), exc_info=True)

        for handle in self._resources:
            self._health.register_component(
                handle.name,
                HealthStatus.UNHEALTHY,
                state=handle.state.value,
            )

        with self._lock:
            self._state = ShutdownState.DONE
            self.finished_at = datetime.now(timezone.utc)
        self._done.set()

        logger.info(
            "shutdown_completed",
            reason=reason,
            teardown_failures=len(errors),
            duration_seconds=(self.finished_at - self.started_at).total_seconds(),
        )

        self._on_terminate(EXIT_SUCCESS)
        return True

    async def wait(self) -> None:
        """Block until teardown has finished."""
        await self._done.wait()


__all__ = ["ShutdownCoordinator", "ShutdownState", "EXIT_SUCCESS"]
