"""Liveness and readiness schema."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class HealthResponse(BaseModel):
    """Service status with one boolean per dependency that was checked."""

    model_config = ConfigDict(
        title="Health status (version, environment, checks)",
        json_schema_extra={
            "examples": [
                {
                    "status": "degraded",
                    "version": "0.1.0",
                    "environment": "production",
                    "checks": {
                        "api": True,
                        "providers_registered": True,
                        "response_worker": True,
                        "provider_meta_cloud_api": True,
                        "provider_n8n_evolution_api": False,
                    },
                }
            ]
        },
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="unhealthy without any provider, degraded when any check failed",
    )
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="development, staging or production")
    checks: dict[str, bool] = Field(
        default_factory=dict,
        description="api, providers_registered, response_worker and provider_<name> checks",
    )
