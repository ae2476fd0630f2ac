"""Base classes and enums for lifecycle-managed resources."""
import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

import structlog

from ..core.exceptions import TeardownError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

Closer = Callable[[Any], Awaitable[None]]


class ResourceState(Enum):
    """Lifecycle states for an owned resource. CLOSED is terminal."""
    OPEN = "open"
    CLOSED = "closed"


class ResourceHandle(Generic[T]):
    """
    Owns exactly one long-lived dependency (connection, controller, server).

    The handle is created already OPEN around a successfully acquired
    resource. ``close()`` releases it through the closer supplied at
    acquisition time and is safe to call any number of times: only the
    first call reaches the closer.
    """

    def __init__(self, name: str, resource: T, closer: Closer):
        self.name = name
        self._resource = resource
        self._closer = closer
        self.state = ResourceState.OPEN
        self.opened_at: datetime = datetime.now(timezone.utc)
        self.closed_at: Optional[datetime] = None
        self.error: Optional[str] = None
        self._logger = structlog.get_logger(f"resource.{name}")

    @property
    def resource(self) -> T:
        return self._resource

    @property
    def is_open(self) -> bool:
        return self.state == ResourceState.OPEN

    async def close(self) -> None:
        """
        Release the underlying resource.

        Raises:
            TeardownError: if the closer failed (first call only)
        """
        if self.state == ResourceState.CLOSED:
            return
        # flip first so a concurrent caller can't reach the closer twice
        self.state = ResourceState.CLOSED
        self.closed_at = datetime.now(timezone.utc)

        self._logger.info("releasing_resource", resource=self.name)
        try:
            await self._closer(self._resource)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.error = str(e)
            raise TeardownError(self.name, str(e)) from e

        self._logger.info("resource_released", resource=self.name)

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self.state.value,
            "opened_at": self.opened_at.isoformat(),
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
            "error": self.error,
        }

    def __repr__(self) -> str:
        return f"ResourceHandle(name={self.name!r}, state={self.state.value})"
