"""Provider status schemas.

Routing configuration itself is served and accepted as
`approvalhub.services.routing.ProviderConfig`.
"""

from pydantic import BaseModel, Field

from approvalhub.models.message import ProviderName
from approvalhub.services.routing import ProviderConfig


class ProviderStatus(BaseModel):
    name: ProviderName = Field(..., description="Provider")
    registered: bool = Field(..., description="Whether credentials are configured")
    interactive: bool = Field(default=False, description="Supports reply buttons")
    sent_today: int = Field(default=0, ge=0, description="Successful sends today")
    daily_cap: int | None = Field(default=None, description="Configured daily cap")
    circuit_state: str | None = Field(default=None, description="closed, open or half_open")


class ProvidersStatusResponse(BaseModel):
    config: ProviderConfig = Field(..., description="Routing configuration in force")
    providers: list[ProviderStatus] = Field(..., description="Per-provider status")


class ValidateProviderResponse(BaseModel):
    provider: ProviderName = Field(..., description="Provider checked")
    valid: bool = Field(..., description="Whether the provider accepted the credentials")
