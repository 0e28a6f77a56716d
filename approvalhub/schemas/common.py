"""Error envelope returned by every failing endpoint."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Machine-readable error code plus a message for operators."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "error": "workflow_not_found",
                    "message": "Workflow not found: 6f1c2a0e-1b7d-4c55-9a8e-0d3f5b2e7c11",
                    "request_id": "a3f9e0c4-77d2-4f0b-8d61-2b9c5e4a1f30",
                    "details": {"workflow_id": "6f1c2a0e-1b7d-4c55-9a8e-0d3f5b2e7c11"},
                }
            ]
        },
    )

    error: str = Field(
        ...,
        description=(
            "Error code, e.g. validation_error, workflow_not_found, "
            "no_provider_configured, send_failed"
        ),
    )
    message: str = Field(..., description="What went wrong")
    request_id: str | None = Field(default=None, description="X-Request-ID of the failed request")
    details: dict[str, Any] | None = Field(
        default=None,
        description="Error-specific data such as the failed message or workflow id",
    )
