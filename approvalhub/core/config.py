"""Application configuration settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

PriorityName = Literal["low", "medium", "high", "urgent"]
ProviderKey = Literal["meta_cloud_api", "n8n_evolution_api"]


class Settings(BaseSettings):
    """Application configuration settings.

    All settings can be overridden via environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Approval Hub"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="The environment the application is running in"
    )
    debug: bool = Field(default=False, description="Whether to run the application in debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="The log level to use"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="The host to bind the server to")
    port: int = Field(default=8000, description="The port to bind the server to")

    # Meta WhatsApp Cloud API
    meta_access_token: SecretStr = Field(default=SecretStr(""))
    meta_phone_number_id: str = ""
    meta_api_version: str = "v21.0"
    meta_app_secret: SecretStr = Field(default=SecretStr(""))
    meta_webhook_verify_token: SecretStr = Field(default=SecretStr(""))
    meta_template_language: str = "en"
    meta_default_country_code: str = "91"

    # n8n / Evolution API webhook bridge
    n8n_webhook_url: str = ""
    n8n_auth_token: SecretStr = Field(default=SecretStr(""))

    # Routing
    active_provider: ProviderKey = "n8n_evolution_api"
    fallback_provider: ProviderKey | None = None
    use_critical_provider_for: list[PriorityName] = Field(default_factory=list)
    use_bulk_provider_for: list[PriorityName] = Field(default_factory=list)
    daily_send_caps: dict[str, int] = Field(default_factory=dict)
    provider_config_path: str = Field(
        default="",
        description="Optional YAML file with routing configuration; overrides the routing fields above.",
    )
    provider_timeout_seconds: float = 5.0

    # Approval workflows
    workflow_ttl_hours: float = 24.0
    sweep_interval_seconds: float = 60.0
    response_queue_size: int = 1000
    recipient_groups: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Approver group name to phone numbers, e.g. {'directors': ['919800000001']}",
    )

    # Persistence
    database_path: str = Field(
        default="",
        description="SQLite database file; empty keeps workflows in memory.",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


__all__ = ["PriorityName", "ProviderKey", "Settings", "get_settings"]
