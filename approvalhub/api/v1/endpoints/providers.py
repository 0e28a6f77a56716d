"""Provider status and routing configuration endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from approvalhub.api.v1.deps import get_services
from approvalhub.container import Services
from approvalhub.models.message import ProviderName
from approvalhub.schemas import ProviderStatus, ProvidersStatusResponse, ValidateProviderResponse
from approvalhub.services.routing import ProviderConfig

router = APIRouter(prefix="/providers", tags=["Providers"])


@router.get(
    "/status",
    response_model=ProvidersStatusResponse,
    summary="Provider Status",
    description="Routing configuration in force plus per-provider registration, usage and circuit state.",
)
async def provider_status(services: Services = Depends(get_services)) -> ProvidersStatusResponse:
    config = services.routing.config.current
    statuses = []
    for name in ProviderName:
        provider = services.registry.get(name)
        statuses.append(
            ProviderStatus(
                name=name,
                registered=provider is not None,
                interactive=bool(provider and provider.supports_interactive),
                sent_today=services.routing.counter.sent_today(name),
                daily_cap=config.daily_send_caps.get(name),
                circuit_state=provider.circuit_breaker.state.value if provider else None,
            )
        )
    return ProvidersStatusResponse(config=config, providers=statuses)


@router.put(
    "/config",
    response_model=ProviderConfig,
    summary="Replace Routing Configuration",
    responses={422: {"description": "Invalid configuration"}},
)
async def replace_config(
    payload: ProviderConfig,
    services: Services = Depends(get_services),
) -> ProviderConfig:
    services.routing.replace_config(payload)
    return services.routing.config.current


@router.post(
    "/{name}/validate",
    response_model=ValidateProviderResponse,
    summary="Validate Provider Credentials",
    description="Check credentials against the backend; a successful check closes the provider's circuit.",
    responses={
        404: {"description": "Provider not configured"},
        422: {"description": "Provider configuration incomplete"},
    },
)
async def validate_provider(
    name: ProviderName,
    services: Services = Depends(get_services),
) -> ValidateProviderResponse:
    provider = services.registry.get(name)
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "provider_not_configured",
                "message": f"Provider {name.value} is not configured",
            },
        )
    valid = await provider.validate_config()
    if valid:
        provider.circuit_breaker.reset()
    return ValidateProviderResponse(provider=name, valid=valid)
