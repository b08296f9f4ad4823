"""
Shared configuration management for the blog trust boundary.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="BLOG_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Store
    database_url: str = Field(default="sqlite:///blog.db")

    # Listings
    per_page_default: int = Field(default=10, ge=1)
    per_page_max: int = Field(default=100, ge=1)
    search_min_length: int = Field(default=2, ge=1)

    # Observability
    enable_metrics: bool = Field(default=True)

    # Security
    csrf_header: str = Field(default="X-CSRF-Token")
    actor_header: str = Field(default="X-Actor-Id")


class ServiceConfig(BaseConfig):
    """Service-specific configuration."""

    service_name: str
    port: int
    host: str = "0.0.0.0"

    def __init__(self, service_name: str, port: int, **kwargs):
        super().__init__(service_name=service_name, port=port, **kwargs)


def get_config(service_name: str, port: int, **overrides) -> ServiceConfig:
    """Get configuration for a specific service."""
    return ServiceConfig(service_name=service_name, port=port, **overrides)
