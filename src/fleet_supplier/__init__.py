"""fleet-supplier: multi-cluster credential bootstrap and discovery for Kubernetes fleets."""

__version__ = "0.3.0"

from fleet_supplier.bootstrap.executor import BootstrapExecutor
from fleet_supplier.config import (
    ClusterProviderConfig,
    ConfigError,
    FleetInstanceConfig,
    FleetSupplierConfig,
    find_config,
    load_config,
)
from fleet_supplier.fleet.client import FleetClient
from fleet_supplier.models import (
    BootstrapConfig,
    ClusterDetails,
    ClusterScope,
    ClusterSummary,
    ProjectRecord,
    RbacRule,
)
from fleet_supplier.scheduler import PeriodicRunner
from fleet_supplier.service import SupplierService, build_service
from fleet_supplier.suppliers.base import ClustersSupplier
from fleet_supplier.suppliers.combined import CombinedClustersSupplier
from fleet_supplier.suppliers.fleet import FleetClusterSupplier
from fleet_supplier.suppliers.static import StaticClusterSupplier, StaticClustersError

__all__ = [
    "BootstrapConfig",
    "BootstrapExecutor",
    "ClusterDetails",
    "ClusterProviderConfig",
    "ClusterScope",
    "ClusterSummary",
    "ClustersSupplier",
    "CombinedClustersSupplier",
    "ConfigError",
    "FleetClient",
    "FleetClusterSupplier",
    "FleetInstanceConfig",
    "FleetSupplierConfig",
    "find_config",
    "load_config",
    "PeriodicRunner",
    "ProjectRecord",
    "RbacRule",
    "StaticClusterSupplier",
    "StaticClustersError",
    "SupplierService",
    "build_service",
    "__version__",
]
