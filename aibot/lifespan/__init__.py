"""
Lifecycle management for the AI bot service.
Resource acquisition, bootstrap retry, health tracking and coordinated shutdown.

The driver itself lives in ``aibot.lifespan.manager``.
"""

from aibot.lifespan.base import ResourceHandle, ResourceState
from aibot.lifespan.retry import RetryPolicy, BootstrapOutcome, run_with_retry
from aibot.lifespan.resources import ResourceGraph, ResourceInitializer, ServiceResources
from aibot.lifespan.shutdown import ShutdownCoordinator, ShutdownState
from aibot.lifespan.triggers import ProcessTriggers
from aibot.lifespan.health_registry import HealthRegistry, ComponentHealth, HealthStatus, get_health_registry


__all__ = [
    "ResourceHandle",
    "ResourceState",
    "RetryPolicy",
    "BootstrapOutcome",
    "run_with_retry",
    "ResourceGraph",
    "ResourceInitializer",
    "ServiceResources",
    "ShutdownCoordinator",
    "ShutdownState",
    "ProcessTriggers",
    "HealthRegistry",
    "ComponentHealth",
    "HealthStatus",
    "get_health_registry",
]
