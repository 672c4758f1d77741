"""Test helpers: admin kubeconfigs, fleet configs and cluster records."""

from __future__ import annotations

import base64
from typing import Any

from fleet_supplier.config import ClusterProviderConfig, FleetInstanceConfig
from fleet_supplier.models import (
    AUTH_PROVIDER_KEY,
    SERVICE_ACCOUNT_TOKEN_KEY,
    ClusterDetails,
)


def b64(value: str) -> str:
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


def make_kubeconfig(
    server: str = "https://10.0.0.1:6443",
    ca: str | None = "kubeconfig-ca",
) -> dict[str, Any]:
    cluster: dict[str, Any] = {"server": server}
    if ca is not None:
        cluster["certificate-authority-data"] = b64(ca)
    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": "c1", "cluster": cluster}],
        "contexts": [{"name": "admin@c1", "context": {"cluster": "c1", "user": "admin"}}],
        "current-context": "admin@c1",
        "users": [{"name": "admin", "user": {"token": "admin-token"}}],
    }


def make_instance(name: str | None = None, **provider: Any) -> FleetInstanceConfig:
    provider.setdefault("settle_seconds", 0)
    return FleetInstanceConfig(
        url="https://fleet.example.com",
        tenant="acme",
        api_token="fleet-key",
        name=name,
        cluster_provider=ClusterProviderConfig(**provider),
    )


def make_details(name: str, token: str = "tok") -> ClusterDetails:
    return ClusterDetails(
        name=name,
        url=f"https://{name}.example.com:6443",
        auth_metadata={
            AUTH_PROVIDER_KEY: "serviceAccount",
            SERVICE_ACCOUNT_TOKEN_KEY: token,
        },
        ca_data="ca",
        skip_tls_verify=True,
        skip_metrics_lookup=True,
    )


