"""FastAPI application factory for the cluster read surface."""

from __future__ import annotations

from fastapi import FastAPI

from fleet_supplier import __version__
from fleet_supplier.server.routers import clusters, health
from fleet_supplier.service import SupplierService


def create_app(service: SupplierService) -> FastAPI:
    """Build the FastAPI application around an assembled *service*.

    The app only reads from the service; starting and stopping the
    refresh schedules is the caller's job.
    """
    app = FastAPI(
        title="fleet-supplier",
        version=__version__,
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    health.init_router(service)
    clusters.init_router(service)

    app.include_router(health.router)
    app.include_router(clusters.router)

    return app
