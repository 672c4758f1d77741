"""Combined cluster view, with credentials masked."""

from __future__ import annotations

from fastapi import APIRouter, HTTPException

from fleet_supplier.server.schemas import ClusterResponse
from fleet_supplier.service import SupplierService

router = APIRouter(prefix="/api/clusters", tags=["clusters"])

_service: SupplierService | None = None


def init_router(service: SupplierService) -> None:
    global _service  # noqa: PLW0603
    _service = service


def _svc() -> SupplierService:
    assert _service is not None, "SupplierService not initialized"
    return _service


@router.get("/", response_model=list[ClusterResponse])
def list_clusters() -> list[ClusterResponse]:
    try:
        clusters = _svc().combined.get_clusters()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Failed to fetch clusters: {e}") from e

    return [
        ClusterResponse(
            name=cluster.name,
            url=cluster.url,
            auth_provider=cluster.auth_provider,
            auth_metadata=dict(cluster.redacted().auth_metadata),
            has_ca_data=cluster.ca_data is not None,
            skip_tls_verify=cluster.skip_tls_verify,
            skip_metrics_lookup=cluster.skip_metrics_lookup,
        )
        for cluster in clusters
    ]
