"""Tests for assembling suppliers and runners from configuration."""

from __future__ import annotations

from unittest.mock import patch

from helpers import make_details, make_instance

from fleet_supplier.config import FleetSupplierConfig
from fleet_supplier.service import build_service
from fleet_supplier.suppliers.fleet import FleetClusterSupplier
from fleet_supplier.suppliers.static import StaticClusterSupplier


class TestBuildService:
    def test_empty_config(self) -> None:
        service = build_service(FleetSupplierConfig())
        assert service.fleet_suppliers == []
        assert service.runners == []
        assert service.static_supplier is None
        assert service.combined.get_clusters() == []

    def test_static_only(self) -> None:
        service = build_service(FleetSupplierConfig(clusters=[make_details("local")]))
        assert isinstance(service.static_supplier, StaticClusterSupplier)
        assert service.runners == []
        assert [c.name for c in service.combined.get_clusters()] == ["local"]

    def test_one_supplier_and_runner_per_instance(self) -> None:
        cfg = FleetSupplierConfig(fleet=[
            make_instance(name="prod", refresh_interval_seconds=120),
            make_instance(name="dev", refresh_interval_seconds=30),
        ])
        service = build_service(cfg)

        assert [s.name for s in service.fleet_suppliers] == ["prod", "dev"]
        assert [(r.name, r.interval) for r in service.runners] == [("prod", 120), ("dev", 30)]
        assert all(not r.is_running for r in service.runners)
        assert len(service.combined.suppliers) == 2

    def test_static_listed_before_fleet(self) -> None:
        cfg = FleetSupplierConfig(
            fleet=[make_instance(name="prod")],
            clusters=[make_details("local")],
        )
        service = build_service(cfg)
        suppliers = service.combined.suppliers
        assert isinstance(suppliers[0], StaticClusterSupplier)
        assert isinstance(suppliers[1], FleetClusterSupplier)


class TestSupplierService:
    def test_refresh_all(self) -> None:
        cfg = FleetSupplierConfig(fleet=[make_instance(name="prod"), make_instance(name="dev")])
        service = build_service(cfg)

        with patch.object(
            FleetClusterSupplier, "refresh_clusters", side_effect=[True, False],
        ) as mock_refresh:
            results = service.refresh_all()

        assert results == {"prod": True, "dev": False}
        assert mock_refresh.call_count == 2

    def test_start_and_stop(self) -> None:
        # Runners bind refresh_clusters at build time
        with patch.object(FleetClusterSupplier, "refresh_clusters", return_value=True):
            service = build_service(FleetSupplierConfig(fleet=[make_instance(name="prod")]))
            service.start()
            try:
                assert service.runners[0].is_running
            finally:
                service.stop(timeout=5)
        assert not service.runners[0].is_running
