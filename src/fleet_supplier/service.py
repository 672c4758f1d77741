"""Assembles suppliers and refresh schedules from configuration.

One ``FleetClusterSupplier`` and one ``PeriodicRunner`` are created per
configured fleet instance. Statically configured clusters become a
``StaticClusterSupplier``. Everything is exposed through a single
``CombinedClustersSupplier``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from fleet_supplier.config import FleetSupplierConfig
from fleet_supplier.scheduler import PeriodicRunner
from fleet_supplier.suppliers.base import ClustersSupplier
from fleet_supplier.suppliers.combined import CombinedClustersSupplier
from fleet_supplier.suppliers.fleet import FleetClusterSupplier
from fleet_supplier.suppliers.static import StaticClusterSupplier

logger = logging.getLogger(__name__)


@dataclass
class SupplierService:
    """The combined cluster view plus the schedules that keep it fresh."""

    combined: CombinedClustersSupplier
    fleet_suppliers: list[FleetClusterSupplier] = field(default_factory=list)
    static_supplier: StaticClusterSupplier | None = None
    runners: list[PeriodicRunner] = field(default_factory=list)

    def start(self) -> None:
        """Start periodic refresh for every fleet instance."""
        for runner in self.runners:
            runner.start()

    def stop(self, timeout: float | None = None) -> None:
        for runner in self.runners:
            runner.stop(timeout)

    def refresh_all(self) -> dict[str, bool]:
        """Run one cycle on every fleet supplier, in the calling thread."""
        return {supplier.name: supplier.refresh_clusters() for supplier in self.fleet_suppliers}


def build_service(config: FleetSupplierConfig) -> SupplierService:
    """Build suppliers and runners for *config*. Nothing is started."""
    suppliers: list[ClustersSupplier] = []

    static_supplier: StaticClusterSupplier | None = None
    if config.clusters:
        static_supplier = StaticClusterSupplier(config.clusters)
        suppliers.append(static_supplier)
        logger.info("Loaded %d static cluster(s)", len(static_supplier))

    if not config.fleet:
        logger.info("No fleet instances configured, using only static clusters")

    fleet_suppliers: list[FleetClusterSupplier] = []
    runners: list[PeriodicRunner] = []
    for instance in config.fleet:
        supplier = FleetClusterSupplier.from_config(instance)
        fleet_suppliers.append(supplier)
        suppliers.append(supplier)
        runners.append(
            PeriodicRunner(
                supplier.refresh_clusters,
                interval=instance.cluster_provider.refresh_interval_seconds,
                name=supplier.name,
            )
        )
        logger.info("Created fleet cluster supplier for %s", supplier.name)

    return SupplierService(
        combined=CombinedClustersSupplier(suppliers),
        fleet_suppliers=fleet_suppliers,
        static_supplier=static_supplier,
        runners=runners,
    )
