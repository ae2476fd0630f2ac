"""Health check endpoints for monitoring and observability."""
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from typing import Dict, Any
import structlog

from ...lifespan.health_registry import get_health_registry, HealthStatus

router = APIRouter(prefix="/api/v1/health", tags=["health"])
root_router = APIRouter(tags=["health"])
logger = structlog.get_logger(__name__)


@root_router.get("/health", summary="Process health")
async def health(request: Request):
    """
    Always 200 while the process serves; reports the overall status.

    A degraded service (e.g. bot account not provisioned) is still alive.
    """
    overall = get_health_registry().get_overall_status()
    return {"status": overall.value, "service": request.app.title}


@router.get("", response_model=Dict[str, Any], summary="System health check")
@router.get("/", include_in_schema=False)
async def health_check():
    """
    Full health summary.

    Status Codes:
    - 200: All components healthy
    - 503: One or more components unhealthy or degraded
    """
    health_summary = get_health_registry().get_health_summary()

    status_code = status.HTTP_200_OK
    if health_summary["overall_status"] in ("degraded", "unhealthy"):
        status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(status_code=status_code, content=health_summary)


@router.get("/live", summary="Liveness probe")
async def liveness():
    """200 whenever the process is running; does not look at components."""
    return {"status": "alive", "probe": "liveness"}


@router.get("/ready", summary="Readiness probe")
async def readiness(request: Request):
    """
    Ready when no component is unhealthy and storage answers.

    Degraded components do not make the service unready: it is meant to
    serve without a confirmed bot account.
    """
    overall = get_health_registry().get_overall_status()
    controller = request.app.state.controller

    if overall in (HealthStatus.HEALTHY, HealthStatus.DEGRADED) and await controller.storage_available():
        return {"status": "ready", "probe": "readiness", "health": overall.value}

    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "not_ready",
            "probe": "readiness",
            "reason": overall.value,
        }
    )


@router.get("/components/{component_name}", summary="Component-specific health")
async def component_health(component_name: str):
    """
    Health for one component (storage, bot_account, controller, listener).

    Returns 404 if the component is unknown.
    """
    component = get_health_registry().get_component_health(component_name)

    if not component:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "Component not found",
                "component": component_name
            }
        )

    return component.to_dict()
