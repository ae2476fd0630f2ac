"""
aibot/lifespan/manager.py
Lifecycle driver for the AI bot service.

Startup:
1. Apply settings as process metadata, register serialization loaders
2. Open storage
3. Ensure the bot account exists (bounded retry, never fatal)
4. Build the controller on top of storage
5. Start the HTTP listener bound to the controller
6. Hook SIGINT/SIGTERM and fault handlers up to the shutdown coordinator

A SIGINT/SIGTERM during steps 2-5 cancels startup; whatever was already
acquired is released and run() returns a clean exit status.

Shutdown (first trigger wins):
1. Stop listener
2. Shut down controller
3. Close storage
"""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Optional

import structlog

from ..api.main import create_server
from ..api.server import ListenerHandle, listen
from ..application.controller import AIBotController
from ..core.config import Settings
from ..core.exceptions import AcquisitionError
from ..core.loaders import register_loaders
from ..core.logging import get_logger
from ..core.metadata import apply_settings
from ..services.account import create_bot_account
from ..services.storage import DbStorage, close_db, get_db
from .health_registry import HealthRegistry, get_health_registry
from .resources import ResourceGraph, ResourceInitializer, ServiceResources
from .retry import BootstrapOutcome, RetryPolicy, run_with_retry
from .shutdown import EXIT_SUCCESS, ShutdownCoordinator
from .triggers import ProcessTriggers, StartupInterrupts

logger = structlog.get_logger("lifespan")

STORAGE = "storage"
BOT_ACCOUNT = "bot_account"
CONTROLLER = "controller"
LISTENER = "listener"


class LifecycleDriver:
    """
    Owns the service's resources from startup to process exit.

    Collaborators are injectable so the sequence can run against fakes;
    the defaults are the real storage, accounts client, controller and
    uvicorn listener.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        open_storage: Callable[[str], Awaitable[Any]] = get_db,
        close_storage: Callable[[Any], Awaitable[None]] = close_db,
        provision: Optional[Callable[[], Awaitable[None]]] = None,
        controller_factory: Callable[..., Any] = AIBotController,
        build_server: Callable[..., Any] = create_server,
        start_listener: Callable[..., Awaitable[ListenerHandle]] = listen,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        health_registry: Optional[HealthRegistry] = None,
        install_triggers: bool = True,
    ):
        self.settings = settings
        self._open_storage = open_storage
        self._close_storage = close_storage
        self._provision = provision or functools.partial(
            create_bot_account,
            settings.BOT_EMAIL,
            settings.BOT_PASSWORD,
            settings.FIRST_NAME,
            settings.LAST_NAME,
            timeout=settings.ACCOUNTS_TIMEOUT,
        )
        self._controller_factory = controller_factory
        self._build_server = build_server
        self._start_listener = start_listener
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.BOOTSTRAP_MAX_ATTEMPTS,
            delay_between_attempts=settings.BOOTSTRAP_RETRY_DELAY,
        )
        self._sleep = sleep
        self._health = health_registry or get_health_registry()
        self._install_triggers = install_triggers

        # statistics/logging context handed to the controller
        self.ctx = get_logger("service").bind(service=settings.SERVICE_ID)

        self.graph = ResourceGraph([
            ResourceInitializer(
                name=STORAGE,
                factory=self._acquire_storage,
                closer=self._release_storage,
                on_acquired=self._bootstrap_account,
            ),
            ResourceInitializer(
                name=CONTROLLER,
                factory=self._acquire_controller,
                closer=self._release_controller,
                depends_on=(STORAGE,),
                on_acquired=self._mark_healthy(CONTROLLER),
            ),
            ResourceInitializer(
                name=LISTENER,
                factory=self._acquire_listener,
                closer=self._release_listener,
                depends_on=(CONTROLLER,),
                on_acquired=self._mark_healthy(LISTENER),
            ),
        ])

        self.resources: Optional[ServiceResources] = None
        self.coordinator: Optional[ShutdownCoordinator] = None
        self.triggers: Optional[ProcessTriggers] = None
        self.startup_interrupts: Optional[StartupInterrupts] = None
        self.bootstrap_outcome: Optional[BootstrapOutcome] = None
        self.exit_code: Optional[int] = None
        self._started = asyncio.Event()
        self._terminated = asyncio.Event()

    # ------------------------------------------------------------------ #
    # Resource initializers
    # ------------------------------------------------------------------ #

    async def _acquire_storage(self, resources: ServiceResources) -> DbStorage:
        conn = await self._open_storage(self.settings.DATABASE_URL)
        return DbStorage(conn)

    async def _release_storage(self, storage: DbStorage) -> None:
        await self._close_storage(storage.conn)

    async def _bootstrap_account(self, resources: ServiceResources) -> None:
        self._health.mark_healthy(STORAGE)

        outcome = await run_with_retry(
            self._provision,
            self.retry_policy,
            sleep=self._sleep,
            name=BOT_ACCOUNT,
        )
        self.bootstrap_outcome = outcome

        if outcome.succeeded:
            self._health.mark_healthy(BOT_ACCOUNT, attempts=outcome.attempts)
        else:
            # availability over consistency: serve without a confirmed bot account
            self._health.mark_degraded(BOT_ACCOUNT, str(outcome.cause), attempts=outcome.attempts)
            self.ctx.warning(
                "starting_without_bot_account",
                attempts=outcome.attempts,
                error=str(outcome.cause),
            )

    async def _acquire_controller(self, resources: ServiceResources) -> Any:
        return self._controller_factory(resources.get(STORAGE), self.ctx)

    async def _release_controller(self, controller: Any) -> None:
        await controller.shutdown()

    async def _acquire_listener(self, resources: ServiceResources) -> ListenerHandle:
        app = self._build_server(resources.get(CONTROLLER), self.settings)
        return await self._start_listener(
            app,
            self.settings.PORT,
            host=self.settings.HOST,
            bind_timeout=self.settings.LISTENER_BIND_TIMEOUT,
        )

    async def _release_listener(self, handle: ListenerHandle) -> None:
        await handle.close(
            on_closed=lambda: logger.info("listener_close_acknowledged", port=self.settings.PORT)
        )

    def _mark_healthy(self, name: str) -> Callable[[ServiceResources], Awaitable[None]]:
        async def hook(resources: ServiceResources) -> None:
            self._health.mark_healthy(name)
        return hook

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #

    async def run(self) -> int:
        """
        Start the service and serve until shutdown completes.

        Returns:
            Exit status handed to the terminate callback (0 on shutdown,
            including a signal that interrupted startup)

        Raises:
            AcquisitionError: if a resource could not be acquired; nothing is
                left open and the listener was never exposed
        """
        apply_settings(self.settings)
        register_loaders()

        self.ctx.info(
            "service_starting",
            first_name=self.settings.FIRST_NAME,
            last_name=self.settings.LAST_NAME,
            environment=self.settings.ENVIRONMENT,
        )

        loop = asyncio.get_running_loop()
        self.startup_interrupts = StartupInterrupts(loop, asyncio.current_task())
        if self._install_triggers:
            self.startup_interrupts.install()

        try:
            self.resources = await self.graph.acquire_all()
        except AcquisitionError as e:
            self.startup_interrupts.uninstall()
            self._health.mark_failed(e.resource, e.message)
            logger.error("startup_failed", **e.to_dict())
            raise
        except asyncio.CancelledError:
            self.startup_interrupts.uninstall()
            if self.startup_interrupts.received is None:
                raise
            # acquire_all already released the acquired prefix
            logger.warning(
                "startup_interrupted",
                signal=self.startup_interrupts.received.name,
            )
            self.exit_code = EXIT_SUCCESS
            return self.exit_code

        self.coordinator = ShutdownCoordinator(
            self.resources,
            on_terminate=self._on_terminate,
            health_registry=self._health,
        )
        self.triggers = ProcessTriggers(
            self.coordinator,
            loop,
            escalate_faults=self.settings.SHUTDOWN_ON_FAULT,
        )
        if self._install_triggers:
            self.startup_interrupts.handover()
            self.triggers.install_signal_handlers()
            self.triggers.install_fault_hooks()

        self.resources.get(LISTENER).on_unexpected_exit = self._on_listener_exit

        self._started.set()
        self.ctx.info(
            "service_started",
            port=self.settings.PORT,
            bot_account_confirmed=self.bootstrap_outcome.succeeded,
        )

        try:
            await self._terminated.wait()
        except asyncio.CancelledError:
            # either an outside cancel, or a startup signal handled after the
            # last acquisition step
            interrupted_by = self.startup_interrupts.received
            await self.coordinator.trigger_shutdown(
                interrupted_by.name if interrupted_by else "cancelled"
            )
            if interrupted_by is None:
                raise
        finally:
            self.triggers.uninstall()

        return self.exit_code

    async def wait_started(self) -> None:
        await self._started.wait()

    async def close(self, reason: str = "close_requested") -> bool:
        """Internal close request; same path as a signal."""
        if self.coordinator is None:
            raise RuntimeError("service has not started")
        return await self.coordinator.trigger_shutdown(reason)

    def _on_listener_exit(self, error: Optional[BaseException]) -> None:
        self.triggers.request_shutdown("listener_exited")

    def _on_terminate(self, exit_code: int) -> None:
        self.exit_code = exit_code
        self._terminated.set()


__all__ = ["LifecycleDriver", "STORAGE", "BOT_ACCOUNT", "CONTROLLER", "LISTENER"]
