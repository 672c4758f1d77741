"""Response models for the HTTP read surface."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class FleetInstanceHealth(BaseModel):
    name: str
    last_refresh: datetime | None = None
    clusters: int = 0


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str
    fleet_instances: list[FleetInstanceHealth]
    static_clusters: int = 0


class ClusterResponse(BaseModel):
    """A cluster as served over HTTP. Credential values are masked."""

    name: str
    url: str
    auth_provider: str | None = None
    auth_metadata: dict[str, str]
    has_ca_data: bool
    skip_tls_verify: bool
    skip_metrics_lookup: bool
