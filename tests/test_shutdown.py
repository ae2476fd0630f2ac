import asyncio

from aibot.lifespan.base import ResourceHandle, ResourceState
from aibot.lifespan.health_registry import HealthStatus, get_health_registry
from aibot.lifespan.resources import ServiceResources
from aibot.lifespan.shutdown import EXIT_SUCCESS, ShutdownCoordinator, ShutdownState


def build_resources(events, fail_on=(), close_delay=0.0):
    resources = ServiceResources()
    for name in ("storage", "controller", "listener"):
        async def closer(resource, name=name):
            if close_delay:
                await asyncio.sleep(close_delay)
            events.append(f"{name}.close")
            if name in fail_on:
                raise RuntimeError(f"{name} close failed")
        resources.add(ResourceHandle(name, object(), closer))
    return resources


def test_single_trigger_releases_in_reverse_and_terminates_once():
    events = []
    exits = []

    async def scenario():
        coordinator = ShutdownCoordinator(build_resources(events), on_terminate=exits.append)
        performed = await coordinator.trigger_shutdown("test")
        return coordinator, performed

    coordinator, performed = asyncio.run(scenario())

    assert performed is True
    assert events == ["listener.close", "controller.close", "storage.close"]
    assert exits == [EXIT_SUCCESS]
    assert coordinator.state == ShutdownState.DONE
    assert coordinator.reason == "test"


def test_concurrent_triggers_tear_down_exactly_once():
    events = []
    exits = []

    async def scenario():
        coordinator = ShutdownCoordinator(
            build_resources(events, close_delay=0.01),
            on_terminate=exits.append,
        )
        results = await asyncio.gather(
            coordinator.trigger_shutdown("SIGINT"),
            coordinator.trigger_shutdown("SIGTERM"),
            coordinator.trigger_shutdown("close_requested"),
        )
        return coordinator, results

    coordinator, results = asyncio.run(scenario())

    assert results == [True, False, False]
    assert coordinator.reason == "SIGINT"
    assert events == ["listener.close", "controller.close", "storage.close"]
    assert exits == [EXIT_SUCCESS]


def test_trigger_after_completion_is_a_no_op():
    events = []
    exits = []

    async def scenario():
        coordinator = ShutdownCoordinator(build_resources(events), on_terminate=exits.append)
        await coordinator.trigger_shutdown("first")
        return await coordinator.trigger_shutdown("second")

    assert asyncio.run(scenario()) is False
    assert len(events) == 3
    assert exits == [EXIT_SUCCESS]


def test_teardown_failure_is_logged_and_does_not_stop_the_rest():
    events = []
    exits = []
    resources = build_resources(events, fail_on=("controller",))

    async def scenario():
        coordinator = ShutdownCoordinator(resources, on_terminate=exits.append)
        return await coordinator.trigger_shutdown("SIGTERM")

    assert asyncio.run(scenario()) is True
    assert events == ["listener.close", "controller.close", "storage.close"]
    assert [e.resource for e in resources.teardown_errors] == ["controller"]
    assert exits == [EXIT_SUCCESS]
    assert all(handle.state == ResourceState.CLOSED for handle in resources)


def test_state_moves_through_in_progress_to_done():
    seen = []

    async def scenario():
        coordinator = None

        async def closer(resource):
            seen.append((coordinator.state, coordinator.is_requested))

        resources = ServiceResources()
        resources.add(ResourceHandle("storage", object(), closer))
        coordinator = ShutdownCoordinator(resources, on_terminate=lambda code: None)
        seen.append((coordinator.state, coordinator.is_requested))
        await coordinator.trigger_shutdown("test")
        seen.append((coordinator.state, coordinator.is_requested))

    asyncio.run(scenario())

    assert seen == [
        (ShutdownState.NOT_STARTED, False),
        (ShutdownState.IN_PROGRESS, True),
        (ShutdownState.DONE, True),
    ]


def test_wait_returns_once_teardown_is_done():
    events = []

    async def scenario():
        coordinator = ShutdownCoordinator(
            build_resources(events, close_delay=0.01),
            on_terminate=lambda code: None,
        )
        waiter = asyncio.create_task(coordinator.wait())
        await asyncio.sleep(0)
        assert not waiter.done()
        await coordinator.trigger_shutdown("test")
        await asyncio.wait_for(waiter, timeout=1)

    asyncio.run(scenario())

    assert len(events) == 3


def test_released_resources_are_reported_unhealthy():
    registry = get_health_registry()
    for name in ("storage", "controller", "listener"):
        registry.mark_healthy(name)

    async def scenario():
        coordinator = ShutdownCoordinator(
            build_resources([]),
            on_terminate=lambda code: None,
            health_registry=registry,
        )
        await coordinator.trigger_shutdown("test")

    asyncio.run(scenario())

    for name in ("storage", "controller", "listener"):
        component = registry.get_component_health(name)
        assert component.status == HealthStatus.UNHEALTHY
        assert component.metadata["state"] == "closed"
    assert registry.get_overall_status() == HealthStatus.UNHEALTHY
