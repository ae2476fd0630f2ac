"""Resource graph: ordered acquisition and reverse-order release of service resources."""
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import structlog

from ..core.exceptions import AcquisitionError, TeardownError
from .base import Closer, ResourceHandle

logger = structlog.get_logger(__name__)


class ServiceResources:
    """
    Ordered aggregate of acquired resource handles.

    Handles are kept in acquisition order; ``release_all`` walks them in
    reverse. Only resources that were actually acquired are ever in here,
    so a partially built aggregate tears down just that prefix.
    """

    def __init__(self):
        self._handles: List[ResourceHandle] = []
        self._released = False
        self.teardown_errors: List[TeardownError] = []

    def add(self, handle: ResourceHandle) -> None:
        if self._released:
            raise AcquisitionError(handle.name, "resources already released")
        if handle.name in self.names:
            raise ValueError(f"Resource '{handle.name}' already acquired")
        self._handles.append(handle)

    def get(self, name: str) -> Any:
        """Return the underlying resource acquired under ``name``."""
        for handle in self._handles:
            if handle.name == name:
                return handle.resource
        raise KeyError(name)

    def handle(self, name: str) -> ResourceHandle:
        for handle in self._handles:
            if handle.name == name:
                return handle
        raise KeyError(name)

    @property
    def names(self) -> List[str]:
        return [handle.name for handle in self._handles]

    @property
    def released(self) -> bool:
        return self._released

    def __contains__(self, name: str) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[ResourceHandle]:
        return iter(list(self._handles))

    def __len__(self) -> int:
        return len(self._handles)

    async def release_all(self) -> List[TeardownError]:
        """
        Close every handle in reverse acquisition order.

        A failing close is logged and recorded, and the walk continues with
        the next handle. Calling this again is a no-op.

        Returns:
            Teardown errors recorded by this call
        """
        if self._released:
            return []
        self._released = True

        errors: List[TeardownError] = []
        for handle in reversed(self._handles):
            try:
                await handle.close()
            except TeardownError as e:
                errors.append(e)
                logger.error(
                    "resource_release_failed",
                    resource=handle.name,
                    error=e.details.get("reason"),
                    exc_info=True,
                )

        self.teardown_errors.extend(errors)
        logger.info(
            "resources_released",
            released=[handle.name for handle in reversed(self._handles)],
            failures=len(errors),
        )
        return errors

    def describe(self) -> List[Dict[str, Any]]:
        return [handle.describe() for handle in self._handles]


Factory = Callable[[ServiceResources], Awaitable[Any]]
Hook = Callable[[ServiceResources], Awaitable[None]]


async def _no_close(_: Any) -> None:
    return None


@dataclass(frozen=True)
class ResourceInitializer:
    """
    Recipe for one resource.

    Attributes:
        name: Key the resource is stored under
        factory: Coroutine producing the resource from those acquired so far
        closer: Coroutine releasing the resource
        depends_on: Names that must be acquired before this one
        on_acquired: Optional coroutine run right after the resource is added
    """
    name: str
    factory: Factory
    closer: Closer = _no_close
    depends_on: Tuple[str, ...] = ()
    on_acquired: Optional[Hook] = None


class ResourceGraph:
    """
    Ordered set of resource initializers.

    Declaration order is acquisition order. Every dependency must name an
    initializer declared earlier, which also rules out cycles.
    """

    def __init__(self, initializers: Sequence[ResourceInitializer]):
        self._initializers = list(initializers)
        self.validate_dependencies()

    @property
    def order(self) -> List[str]:
        return [init.name for init in self._initializers]

    def validate_dependencies(self) -> bool:
        """
        Raises:
            ValueError: on duplicate names or a dependency that is not
                declared before its dependent
        """
        seen: List[str] = []
        for init in self._initializers:
            if init.name in seen:
                raise ValueError(f"Duplicate resource initializer '{init.name}'")
            for dep in init.depends_on:
                if dep not in seen:
                    raise ValueError(
                        f"Resource '{init.name}' depends on '{dep}' "
                        f"which is not declared before it. Declared so far: {seen}"
                    )
            seen.append(init.name)

        logger.debug("resource_graph_validated", order=seen)
        return True

    async def acquire_all(self) -> ServiceResources:
        """
        Run every initializer in order.

        On any failure (or cancellation) the handles acquired so far are
        released in reverse order before the error propagates.

        Raises:
            AcquisitionError: naming the resource that failed
        """
        resources = ServiceResources()

        for init in self._initializers:
            logger.info("acquiring_resource", resource=init.name, depends_on=list(init.depends_on))
            try:
                resource = await init.factory(resources)
            except BaseException as e:
                await self._abort(resources, init.name, e)
                # cancellation and already-typed failures pass through untouched
                if isinstance(e, AcquisitionError) or not isinstance(e, Exception):
                    raise
                raise AcquisitionError(init.name, str(e)) from e

            resources.add(ResourceHandle(init.name, resource, init.closer))
            logger.info("resource_acquired", resource=init.name)

            if init.on_acquired is not None:
                try:
                    await init.on_acquired(resources)
                except BaseException as e:
                    await self._abort(resources, init.name, e)
                    raise

        return resources

    async def _abort(self, resources: ServiceResources, name: str, error: BaseException) -> None:
        logger.error(
            "resource_acquisition_failed",
            resource=name,
            error=str(error),
            error_type=type(error).__name__,
            rollback=list(reversed(resources.names)),
        )
        await resources.release_all()


__all__ = ["ServiceResources", "ResourceInitializer", "ResourceGraph"]
