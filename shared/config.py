"""
Shared configuration management for the rate limit gate.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="RATELIMIT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Pod store
    store_backend: str = Field(default="kubernetes", description="kubernetes or memory")
    kube_api_url: str = Field(default="https://kubernetes.default.svc")
    kube_token: Optional[str] = Field(default=None)
    kube_token_file: str = Field(default="/var/run/secrets/kubernetes.io/serviceaccount/token")
    kube_ca_file: Optional[str] = Field(default="/var/run/secrets/kubernetes.io/serviceaccount/ca.crt")
    kube_verify_tls: bool = Field(default=True)
    kube_request_timeout_seconds: float = Field(default=10.0, gt=0)

    # Gate
    annotation_prefix: str = Field(default="kube-scheduler-ratelimit")
    retry_delay_seconds: float = Field(default=15.0, ge=0)
    cycle_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)


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
