"""
Shared configuration management for the HTTP Status Lab.
"""

from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="STATUS_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Rate limiting
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_max_requests: int = Field(default=10, ge=1)
    trust_proxy_headers: bool = Field(default=False)

    # Maintenance
    maintenance_retry_after_seconds: int = Field(default=3600, ge=0)

    # Security
    accepted_credential: str = Field(default="Bearer valid-token-123")
    identity_id: int = Field(default=1)
    identity_role: str = Field(default="admin")

    # Simulated upstream
    upstream_timeout_seconds: float = Field(default=0.1, gt=0)
    slow_operation_seconds: float = Field(default=5.0, gt=0)

    @property
    def is_development(self) -> bool:
        """Whether internal error text may be surfaced to clients."""
        return self.env.lower() == "development"


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)


def get_config(service_name: str, port: Optional[int] = None, **overrides: Any) -> ServiceConfig:
    """Get configuration for a specific service.

    An explicit ``port`` wins; otherwise STATUS_PORT (or the default) applies.
    """
    if port is not None:
        overrides["port"] = port
    return ServiceConfig(service_name=service_name, **overrides)
