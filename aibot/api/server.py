"""
aibot/api/server.py
Uvicorn runner for the HTTP listener.

Responsibilities:
- Start serving an app on the event loop and wait until the socket is bound
- Hand back a handle whose close() waits for the server to finish

Signal handling is left to the lifecycle's shutdown coordinator.
"""

import asyncio
import contextlib
import time
from typing import Callable, Optional

import structlog
import uvicorn
from fastapi import FastAPI

from ..core.exceptions import AcquisitionError

logger = structlog.get_logger("listener")

BIND_POLL_INTERVAL = 0.05  # seconds


class _Server(uvicorn.Server):
    """uvicorn server that never touches process signal handlers."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


async def _serve(server: uvicorn.Server) -> None:
    try:
        await server.serve()
    except SystemExit as e:
        # uvicorn exits the process when it can't bind; keep that inside the task
        raise AcquisitionError(
            "listener",
            f"failed to bind {server.config.host}:{server.config.port}",
        ) from e


class ListenerHandle:
    """Stoppable handle on a running HTTP listener."""

    def __init__(self, server: uvicorn.Server, task: asyncio.Task):
        self.server = server
        self._task = task
        self._closed = False
        # called with the task's exception (or None) if serving stops on its own
        self.on_unexpected_exit: Optional[Callable[[Optional[BaseException]], None]] = None
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task) -> None:
        if self._closed:
            return
        error = None if task.cancelled() else task.exception()
        logger.error(
            "listener_exited_unexpectedly",
            port=self.port,
            error=str(error) if error else None,
            cancelled=task.cancelled(),
        )
        if self.on_unexpected_exit is not None:
            self.on_unexpected_exit(error)

    @property
    def host(self) -> str:
        return self.server.config.host

    @property
    def port(self) -> int:
        return self.server.config.port

    @property
    def closed(self) -> bool:
        return self._closed

    async def close(self, on_closed: Optional[Callable[[], None]] = None) -> None:
        """
        Stop accepting connections and wait for the server to finish.

        ``on_closed`` runs once the server has fully stopped. Later calls
        return immediately without calling it again.
        """
        if self._closed:
            return
        self._closed = True

        logger.info("stopping_listener", port=self.port)
        self.server.should_exit = True
        if not self._task.done():
            await self._task

        logger.info("listener_stopped", port=self.port)
        if on_closed is not None:
            on_closed()


async def listen(
    app: FastAPI,
    port: int,
    host: str = "0.0.0.0",
    bind_timeout: float = 10.0,
) -> ListenerHandle:
    """
    Start serving ``app`` and return once the socket is bound.

    Raises:
        AcquisitionError: if the server stops or times out before binding
    """
    config = uvicorn.Config(
        app=app,
        host=host,
        port=port,
        loop="asyncio",
        lifespan="off",
        log_config=None,
        access_log=False,
    )
    server = _Server(config)
    task = asyncio.create_task(_serve(server), name=f"listener:{port}")

    logger.info("starting_listener", host=host, port=port)
    deadline = time.monotonic() + bind_timeout
    while not server.started:
        if task.done():
            task.result()
            raise AcquisitionError("listener", "server stopped before binding")
        if time.monotonic() > deadline:
            server.should_exit = True
            with contextlib.suppress(Exception):
                await task
            raise AcquisitionError("listener", f"bind timed out after {bind_timeout}s")
        await asyncio.sleep(BIND_POLL_INTERVAL)

    logger.info("listener_started", address=f"{host}:{port}")
    return ListenerHandle(server, task)


__all__ = ["listen", "ListenerHandle"]
