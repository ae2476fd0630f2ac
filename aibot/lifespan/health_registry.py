"""Health tracking for the service's resources and bootstrap step."""
from typing import Dict, Optional, Any
from datetime import datetime, timezone
from enum import Enum
from dataclasses import dataclass, field
from threading import RLock
import structlog

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(Enum):
    """Component health status levels."""
    HEALTHY = "healthy"          # Fully operational
    DEGRADED = "degraded"        # Serving, with something missing
    UNHEALTHY = "unhealthy"      # Not functional (failed or torn down)
    UNKNOWN = "unknown"          # Status not yet determined


@dataclass
class ComponentHealth:
    """Health information for a single component."""
    name: str
    status: HealthStatus
    last_check: datetime = field(default_factory=_utcnow)
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    consecutive_failures: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary for API responses."""
        return {
            "name": self.name,
            "status": self.status.value,
            "last_check": self.last_check.isoformat(),
            "error_message": self.error_message,
            "metadata": self.metadata,
            "consecutive_failures": self.consecutive_failures,
        }


class HealthRegistry:
    """
    Thread-safe singleton registry for component health.

    Fed by the lifecycle driver (startup) and the shutdown coordinator
    (teardown); read by the health routes.
    """

    _instance: Optional['HealthRegistry'] = None
    _lock = RLock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if getattr(self, '_initialized', False):
            return

        self._components: Dict[str, ComponentHealth] = {}
        self._component_lock = RLock()
        self._initialized = True

    def _update(
        self,
        name: str,
        status: HealthStatus,
        error: Optional[str],
        metadata: Dict[str, Any],
    ) -> None:
        with self._component_lock:
            component = self._components.get(name)
            if component is None:
                component = ComponentHealth(name=name, status=status)
                self._components[name] = component
            component.status = status
            component.error_message = error
            component.last_check = _utcnow()
            component.metadata.update(metadata)
            if status in (HealthStatus.DEGRADED, HealthStatus.UNHEALTHY):
                component.consecutive_failures += 1
            elif status == HealthStatus.HEALTHY:
                component.consecutive_failures = 0

    def register_component(
        self,
        name: str,
        status: HealthStatus = HealthStatus.UNKNOWN,
        **metadata
    ) -> None:
        """Register or update a component's health status."""
        self._update(name, status, None, metadata)
        logger.debug("health_status_updated", component=name, status=status.value)

    def mark_healthy(self, name: str, **metadata) -> None:
        self._update(name, HealthStatus.HEALTHY, None, metadata)
        logger.debug("health_status_updated", component=name, status="healthy")

    def mark_degraded(self, name: str, reason: str, **metadata) -> None:
        """Mark a component as degraded (service runs without it)."""
        self._update(name, HealthStatus.DEGRADED, reason, metadata)
        logger.warning("component_degraded", component=name, reason=reason)

    def mark_failed(self, name: str, error: str, **metadata) -> None:
        """Mark a component as failed or no longer available."""
        self._update(name, HealthStatus.UNHEALTHY, error, metadata)
        logger.error("component_failed", component=name, error=error)

    def get_component_health(self, name: str) -> Optional[ComponentHealth]:
        with self._component_lock:
            return self._components.get(name)

    def get_all_health(self) -> Dict[str, ComponentHealth]:
        with self._component_lock:
            return self._components.copy()

    def get_overall_status(self) -> HealthStatus:
        """
        Calculate overall health.

        - UNHEALTHY: any component is unhealthy
        - DEGRADED: any component is degraded
        - HEALTHY: all components healthy
        - UNKNOWN: no components, or some still unknown
        """
        with self._component_lock:
            if not self._components:
                return HealthStatus.UNKNOWN

            statuses = [c.status for c in self._components.values()]

            if any(s == HealthStatus.UNHEALTHY for s in statuses):
                return HealthStatus.UNHEALTHY
            if any(s == HealthStatus.DEGRADED for s in statuses):
                return HealthStatus.DEGRADED
            if all(s == HealthStatus.HEALTHY for s in statuses):
                return HealthStatus.HEALTHY
            return HealthStatus.UNKNOWN

    def get_health_summary(self) -> Dict[str, Any]:
        """Overall status, timestamp, per-component details and counts."""
        with self._component_lock:
            overall = self.get_overall_status()
            components = {
                name: health.to_dict()
                for name, health in self._components.items()
            }

        counts = {status.value: 0 for status in HealthStatus}
        for component in components.values():
            counts[component["status"]] += 1

        return {
            "overall_status": overall.value,
            "timestamp": _utcnow().isoformat(),
            "components": components,
            "summary": {"total": len(components), **counts},
        }

    def clear(self) -> None:
        """Clear all health data (testing only)."""
        with self._component_lock:
            self._components.clear()


_health_registry = HealthRegistry()


def get_health_registry() -> HealthRegistry:
    """Get the singleton health registry instance."""
    return _health_registry


__all__ = ["HealthStatus", "ComponentHealth", "HealthRegistry", "get_health_registry"]
