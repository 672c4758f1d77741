"""Tests for FleetClusterSupplier reconciliation."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any
from unittest.mock import MagicMock

from helpers import make_details, make_instance, make_kubeconfig

from fleet_supplier.models import ClusterScope, ClusterSummary, ProjectRecord
from fleet_supplier.suppliers.fleet import FleetClusterSupplier

# --- Helpers ---


def _summary(
    name: str | None,
    uid: str | None = "uid",
    scope: ClusterScope | None = ClusterScope.PROJECT,
    project_uid: str | None = "p1",
) -> ClusterSummary:
    return ClusterSummary(
        uid=uid, name=name, scope=scope,
        project_uid=project_uid if scope == ClusterScope.PROJECT else None,
    )


def _client(
    clusters: list[ClusterSummary] | None = None,
    projects: dict[str, str] | None = None,
) -> MagicMock:
    client = MagicMock()
    client.list_clusters.return_value = clusters or []
    projects = projects if projects is not None else {"p1": "team-a"}

    def get_project(uid: str) -> ProjectRecord | None:
        if uid in projects:
            return ProjectRecord(uid=uid, name=projects[uid])
        return None

    client.get_project.side_effect = get_project
    client.get_admin_kubeconfig.return_value = "apiVersion: v1\n"
    client.parse_kubeconfig.return_value = make_kubeconfig()
    return client


def _executor() -> MagicMock:
    executor = MagicMock()
    executor.bootstrap.side_effect = lambda name, kubeconfig, deadline=None: make_details(name)
    return executor


def _supplier(
    clusters: list[ClusterSummary] | None = None,
    name: str | None = None,
    client: MagicMock | None = None,
    executor: MagicMock | None = None,
    **provider: Any,
) -> FleetClusterSupplier:
    return FleetClusterSupplier(
        make_instance(name=name, **provider),
        client=client or _client(clusters),
        executor=executor or _executor(),
    )


def _names(supplier: FleetClusterSupplier) -> list[str]:
    return [c.name for c in supplier.get_clusters()]


# --- Basic cycle ---


class TestRefresh:
    def test_empty_before_first_refresh(self) -> None:
        supplier = _supplier([_summary("a")])
        assert supplier.get_clusters() == []
        assert supplier.last_refresh is None

    def test_publishes_bootstrapped_clusters(self) -> None:
        supplier = _supplier([_summary("a", uid="u1"), _summary("b", uid="u2")])
        assert supplier.refresh_clusters() is True
        assert _names(supplier) == ["a", "b"]
        assert supplier.last_refresh is not None

    def test_empty_listing_publishes_empty_set(self) -> None:
        client = _client([_summary("a")])
        supplier = _supplier(client=client)
        supplier.refresh_clusters()
        client.list_clusters.return_value = []
        assert supplier.refresh_clusters() is True
        assert supplier.get_clusters() == []

    def test_failed_bootstrap_omitted(self) -> None:
        executor = MagicMock()
        executor.bootstrap.side_effect = (
            lambda name, kubeconfig, deadline=None: None if name == "b" else make_details(name)
        )
        supplier = _supplier([_summary("a"), _summary("b"), _summary("c")], executor=executor)
        supplier.refresh_clusters()
        assert _names(supplier) == ["a", "c"]

    def test_bootstrap_exception_contained(self) -> None:
        executor = MagicMock()
        executor.bootstrap.side_effect = RuntimeError("boom")
        supplier = _supplier([_summary("a")], executor=executor)
        assert supplier.refresh_clusters() is True
        assert supplier.get_clusters() == []

    def test_get_clusters_returns_copy(self) -> None:
        supplier = _supplier([_summary("a")])
        supplier.refresh_clusters()
        supplier.get_clusters().clear()
        assert _names(supplier) == ["a"]

    def test_credentials_ignored(self) -> None:
        supplier = _supplier([_summary("a")])
        supplier.refresh_clusters()
        assert _names(supplier) == [c.name for c in supplier.get_clusters(credentials="user")]


# --- Malformed entries ---


class TestMalformedEntries:
    def test_missing_name_skipped(self, caplog) -> None:
        client = _client([_summary(None, uid="u1"), _summary("b", uid="u2")])
        supplier = _supplier(client=client)
        with caplog.at_level(logging.WARNING):
            supplier.refresh_clusters()

        assert _names(supplier) == ["b"]
        assert "Cluster 0 has no name" in caplog.text
        client.get_admin_kubeconfig.assert_called_once_with("u2", "p1")

    def test_missing_uid_skipped(self, caplog) -> None:
        client = _client([_summary("a", uid=None)])
        supplier = _supplier(client=client)
        with caplog.at_level(logging.WARNING):
            supplier.refresh_clusters()

        assert supplier.get_clusters() == []
        assert "Cluster a has no UID" in caplog.text
        client.get_admin_kubeconfig.assert_not_called()

    def test_kubeconfig_unavailable(self, caplog) -> None:
        client = _client([_summary("a")])
        client.get_admin_kubeconfig.return_value = None
        executor = _executor()
        supplier = _supplier(client=client, executor=executor)
        with caplog.at_level(logging.WARNING):
            supplier.refresh_clusters()

        assert supplier.get_clusters() == []
        executor.bootstrap.assert_not_called()
        assert "Failed to fetch admin kubeconfig for a" in caplog.text

    def test_kubeconfig_unparseable(self) -> None:
        client = _client([_summary("a")])
        client.parse_kubeconfig.return_value = None
        executor = _executor()
        supplier = _supplier(client=client, executor=executor)
        supplier.refresh_clusters()

        assert supplier.get_clusters() == []
        executor.bootstrap.assert_not_called()


# --- Filtering ---


class TestFiltering:
    def test_tenant_scoped_excluded(self) -> None:
        client = _client([
            _summary("t1", uid="u1", scope=ClusterScope.TENANT),
            _summary("p1", uid="u2"),
        ])
        executor = _executor()
        supplier = _supplier(
            client=client, executor=executor, exclude_tenant_scoped_clusters=True,
        )
        supplier.refresh_clusters()

        assert _names(supplier) == ["p1"]
        assert [c.args[0] for c in executor.bootstrap.call_args_list] == ["p1"]
        client.get_admin_kubeconfig.assert_called_once_with("u2", "p1")

    def test_tenant_scoped_included_by_default(self) -> None:
        client = _client([_summary("t1", scope=ClusterScope.TENANT)])
        supplier = _supplier(client=client)
        supplier.refresh_clusters()

        assert _names(supplier) == ["t1"]
        client.get_project.assert_not_called()
        # No project uid for tenant-scoped clusters
        client.get_admin_kubeconfig.assert_called_once_with("uid", None)

    def test_include_projects(self) -> None:
        client = _client(
            [_summary("a", uid="u1", project_uid="p1"), _summary("b", uid="u2", project_uid="p2")],
            projects={"p1": "team-a", "p2": "team-b"},
        )
        supplier = _supplier(client=client, include_projects=["team-a"])
        supplier.refresh_clusters()
        assert _names(supplier) == ["a"]

    def test_exclude_projects(self) -> None:
        client = _client(
            [_summary("a", uid="u1", project_uid="p1"), _summary("b", uid="u2", project_uid="p2")],
            projects={"p1": "team-a", "p2": "team-b"},
        )
        supplier = _supplier(client=client, exclude_projects=["team-a"])
        supplier.refresh_clusters()
        assert _names(supplier) == ["b"]

    def test_exclude_wins_over_include(self) -> None:
        supplier = _supplier(include_projects=["team-a"], exclude_projects=["team-a"])
        reason = supplier.filter_cluster(_summary("a"))
        assert reason == "project team-a is excluded"

    def test_unresolved_project_not_filtered(self) -> None:
        client = _client(projects={})
        supplier = _supplier(client=client, include_projects=["team-a"])
        assert supplier.filter_cluster(_summary("a", project_uid="gone")) is None

    def test_filter_reason_for_include_miss(self) -> None:
        client = _client(projects={"p1": "team-z"})
        supplier = _supplier(client=client, include_projects=["team-a"])
        assert supplier.filter_cluster(_summary("a")) == "project team-z not in include_projects"

    def test_unscoped_cluster_included(self) -> None:
        supplier = _supplier(include_projects=["team-a"])
        assert supplier.filter_cluster(_summary("a", scope=None)) is None


# --- Naming ---


class TestNaming:
    def test_prefix_with_instance_name(self) -> None:
        supplier = _supplier([_summary("cluster-a")], name="prod")
        supplier.refresh_clusters()
        assert _names(supplier) == ["prod-cluster-a"]

    def test_no_prefix_without_name(self) -> None:
        supplier = _supplier()
        assert supplier.prefix_cluster_name("cluster-a") == "cluster-a"

    def test_display_name(self) -> None:
        assert _supplier(name="prod").name == "prod"
        assert _supplier().name == "acme@https://fleet.example.com"


# --- Timeout ---


class TestTimeout:
    def test_slow_cluster_abandoned(self, caplog) -> None:
        release = threading.Event()

        def bootstrap(name: str, kubeconfig: Any, deadline: float | None = None):
            if name == "slow":
                release.wait(5)
            return make_details(name)

        executor = MagicMock()
        executor.bootstrap.side_effect = bootstrap
        supplier = _supplier(
            [_summary("slow", uid="u1"), _summary("fast", uid="u2")],
            executor=executor, cluster_timeout_seconds=0.05,
        )
        try:
            with caplog.at_level(logging.WARNING):
                started = time.monotonic()
                supplier.refresh_clusters()
                elapsed = time.monotonic() - started
        finally:
            release.set()

        assert _names(supplier) == ["fast"]
        assert elapsed < 2
        assert "Timeout: slow unreachable (0.05s)" in caplog.text

    def test_deadline_passed_to_executor(self) -> None:
        executor = _executor()
        supplier = _supplier([_summary("a")], executor=executor, cluster_timeout_seconds=30)
        before = time.monotonic()
        supplier.refresh_clusters()

        deadline = executor.bootstrap.call_args.args[2]
        assert before + 30 <= deadline <= time.monotonic() + 30


# --- Listing failure ---


class TestListingFailure:
    def test_list_exception_keeps_previous_set(self) -> None:
        client = _client([_summary("a")])
        supplier = _supplier(client=client)
        supplier.refresh_clusters()
        first_refresh = supplier.last_refresh

        client.list_clusters.side_effect = RuntimeError("fleet down")
        assert supplier.refresh_clusters() is False
        assert _names(supplier) == ["a"]
        assert supplier.last_refresh == first_refresh

    def test_non_list_result_keeps_previous_set(self) -> None:
        client = _client([_summary("a")])
        supplier = _supplier(client=client)
        supplier.refresh_clusters()

        client.list_clusters.return_value = {"items": []}
        assert supplier.refresh_clusters() is False
        assert _names(supplier) == ["a"]


# --- Concurrency ---


class TestConcurrency:
    def test_overlapping_refresh_refused(self, caplog) -> None:
        entered = threading.Event()
        release = threading.Event()
        client = _client()

        def slow_list() -> list[ClusterSummary]:
            entered.set()
            release.wait(5)
            return [_summary("a")]

        client.list_clusters.side_effect = slow_list
        supplier = _supplier(client=client)

        results: list[bool] = []
        worker = threading.Thread(target=lambda: results.append(supplier.refresh_clusters()))
        worker.start()
        try:
            assert entered.wait(5)
            with caplog.at_level(logging.WARNING):
                assert supplier.refresh_clusters() is False
        finally:
            release.set()
            worker.join(5)

        assert results == [True]
        assert client.list_clusters.call_count == 1
        assert "Refresh already in progress" in caplog.text

    def test_parallel_processing_keeps_listing_order(self) -> None:
        delays = {"a": 0.05, "b": 0.0, "c": 0.02, "d": 0.0}

        def bootstrap(name: str, kubeconfig: Any, deadline: float | None = None):
            time.sleep(delays[name])
            return make_details(name)

        executor = MagicMock()
        executor.bootstrap.side_effect = bootstrap
        supplier = _supplier(
            [_summary(n, uid=f"u-{n}") for n in "abcd"],
            executor=executor, max_parallel_clusters=4,
        )
        supplier.refresh_clusters()
        assert _names(supplier) == ["a", "b", "c", "d"]

    def test_readers_see_old_set_during_refresh(self) -> None:
        entered = threading.Event()
        release = threading.Event()
        client = _client([_summary("old")])
        supplier = _supplier(client=client)
        supplier.refresh_clusters()

        def slow_list() -> list[ClusterSummary]:
            entered.set()
            release.wait(5)
            return [_summary("new")]

        client.list_clusters.side_effect = slow_list
        worker = threading.Thread(target=supplier.refresh_clusters)
        worker.start()
        try:
            assert entered.wait(5)
            assert _names(supplier) == ["old"]
        finally:
            release.set()
            worker.join(5)
        assert _names(supplier) == ["new"]


# --- Construction ---


class TestFromConfig:
    def test_builds_client_and_executor(self) -> None:
        supplier = FleetClusterSupplier.from_config(
            make_instance(request_timeout_seconds=4.0, skip_metrics_lookup=False),
        )
        assert supplier.client.base_url == "https://fleet.example.com"
        assert supplier.client.tenant == "acme"
        assert supplier._executor._request_timeout == 4.0
        assert supplier._executor._skip_metrics_lookup is False
