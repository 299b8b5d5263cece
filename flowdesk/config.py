"""
flowdesk - Configuration

Settings are read from the environment (prefix ``FLOWDESK_``) or an
optional ``.env`` file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlowDeskSettings(BaseSettings):
    """
    Configuration for the flow editor engine.

    Attributes:
        api_url: Base URL of the dashboard backend
        access_token: Bearer token sent with every request
        timeout: Request timeout in seconds
        sync_debounce_ms: Quiescence window before an automatic sync
        log_level: Log level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, console)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: str = "http://localhost:3333"
    access_token: Optional[str] = None
    timeout: float = 12.0
    sync_debounce_ms: int = Field(default=600, ge=0)
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("api_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def sync_debounce_seconds(self) -> float:
        return self.sync_debounce_ms / 1000.0


@lru_cache
def get_settings() -> FlowDeskSettings:
    """Get cached settings instance."""
    return FlowDeskSettings()


# Endpoints
class Endpoints:
    """API endpoint paths."""

    # Flows
    FLOWS = "/flows"
    FLOW = "/flows/{flow_id}"
    FLOW_VERSION_SYNC = "/flows/{flow_id}/version/sync"

    # Apps
    APPS = "/apps"
    APP_FLOWS = "/apps/{app_id}/flows"
