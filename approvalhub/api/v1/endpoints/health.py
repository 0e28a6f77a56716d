"""Health check endpoints."""

from fastapi import APIRouter, Depends
import structlog

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services
from approvalhub.core.exceptions import ConfigValidationFailed
from approvalhub.schemas import HealthResponse

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Basic liveness check - returns healthy if the service is running",
)
async def health_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Basic health check endpoint for liveness probes."""
    return HealthResponse(
        status="healthy",
        version=services.settings.app_version,
        environment=services.settings.environment,
        checks={"api": True},
    )


@router.get(
    "/ready",
    response_model=HealthResponse,
    summary="Readiness Check",
    description="Readiness check - verifies providers are registered and accept their credentials",
)
async def readiness_check(services: Services = Depends(get_services)) -> HealthResponse:
    """Readiness check endpoint that verifies dependencies.

    Checks:
    - API is running
    - At least one provider is registered
    - Each registered provider passes `validate_config`
    - The response worker is running
    """
    checks = {
        "api": True,
        "providers_registered": len(services.registry) > 0,
        "response_worker": services.worker.running,
    }
    for provider in services.registry:
        try:
            checks[f"provider_{provider.name.value}"] = await provider.validate_config()
        except ConfigValidationFailed as e:
            logger.warning("Provider not ready", provider=provider.name.value, error=str(e))
            checks[f"provider_{provider.name.value}"] = False

    if not checks["providers_registered"]:
        status = "unhealthy"
    elif all(checks.values()):
        status = "healthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        version=services.settings.app_version,
        environment=services.settings.environment,
        checks=checks,
    )
