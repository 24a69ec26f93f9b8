"""Pydantic configuration models for the agent health exporter."""

from pydantic import BaseModel, Field, field_validator
from typing import Literal, Optional


SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


class DiscoveryConfig(BaseModel):
    """Configuration for agent discovery through the Kubernetes API."""
    namespace: str = "monitor"
    name_match: str = "vmagent"  # Substring of pod names to keep
    label_selector: Optional[str] = None
    agent_port: int = Field(default=8429, ge=1, le=65535)
    # None means derive from KUBERNETES_SERVICE_HOST/PORT
    api_server: Optional[str] = None
    token_path: str = f"{SERVICE_ACCOUNT_DIR}/token"
    ca_path: Optional[str] = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
    timeout_seconds: float = Field(default=10.0, gt=0)
    page_size: int = Field(default=500, ge=1)
    # "host" publishes agent="10.0.0.5", "address" publishes agent="10.0.0.5:8429"
    agent_id: Literal["host", "address"] = "host"

    @field_validator('api_server')
    @classmethod
    def validate_api_server(cls, v: Optional[str]) -> Optional[str]:
        """Validate API server URL format."""
        if v and not v.startswith(('http://', 'https://')):
            raise ValueError('api_server must start with http:// or https://')
        return v.rstrip('/') if v else v


class FetchConfig(BaseModel):
    """Configuration for polling agent target endpoints."""
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_concurrency: int = Field(default=16, ge=1)
    path: str = "/api/v1/targets"

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith('/'):
            raise ValueError('path must start with /')
        return v


class SchedulerConfig(BaseModel):
    """Scrape cycle scheduling configuration."""
    interval_seconds: float = Field(default=180.0, gt=0)
    # Evict series not refreshed for this long; 0 keeps them indefinitely
    stale_ttl_seconds: float = Field(default=900.0, ge=0)


class ExporterConfig(BaseModel):
    """Metrics endpoint configuration."""
    listen_host: str = "0.0.0.0"
    listen_port: int = Field(default=8080, ge=1, le=65535)


class ExporterSystemConfig(BaseModel):
    """Root configuration model for the exporter."""
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    exporter: ExporterConfig = Field(default_factory=ExporterConfig)
