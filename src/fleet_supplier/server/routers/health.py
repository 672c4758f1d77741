"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter

from fleet_supplier import __version__
from fleet_supplier.server.schemas import FleetInstanceHealth, HealthResponse
from fleet_supplier.service import SupplierService

router = APIRouter(tags=["health"])

_service: SupplierService | None = None


def init_router(service: SupplierService) -> None:
    global _service  # noqa: PLW0603
    _service = service


@router.get("/api/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    if _service is None:
        return HealthResponse(version=__version__, fleet_instances=[])
    return HealthResponse(
        version=__version__,
        fleet_instances=[
            FleetInstanceHealth(
                name=supplier.name,
                last_refresh=supplier.last_refresh,
                clusters=len(supplier.get_clusters()),
            )
            for supplier in _service.fleet_suppliers
        ],
        static_clusters=len(_service.static_supplier) if _service.static_supplier else 0,
    )
