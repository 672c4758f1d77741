"""Fleet cluster supplier: discovers fleet clusters and bootstraps access.

One ``refresh_clusters()`` call is a reconciliation cycle:

1. List clusters from the fleet API.
2. Drop malformed entries and entries filtered out by scope or project.
3. Fetch each remaining cluster's admin kubeconfig.
4. Race the ServiceAccount bootstrap against the per-cluster deadline.
5. Publish every successful result as the new cluster set, in one swap.

Failures are contained per cluster; a cycle that cannot list clusters
leaves the previously published set in place.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any

from fleet_supplier.bootstrap.executor import BootstrapExecutor
from fleet_supplier.config import FleetInstanceConfig
from fleet_supplier.fleet.client import FleetClient
from fleet_supplier.models import ClusterDetails, ClusterSummary
from fleet_supplier.suppliers.state import PublishedClusters

logger = logging.getLogger(__name__)


class FleetClusterSupplier:
    """Cluster supplier backed by one fleet-management API instance.

    Usage::

        supplier = FleetClusterSupplier.from_config(instance_config)
        supplier.refresh_clusters()          # typically from a PeriodicRunner
        clusters = supplier.get_clusters()

    ``refresh_clusters()`` must not run concurrently with itself; a second
    call while a cycle is in progress is refused.
    """

    def __init__(
        self,
        config: FleetInstanceConfig,
        client: FleetClient | None = None,
        executor: BootstrapExecutor | None = None,
    ) -> None:
        provider = config.cluster_provider
        self._config = config
        self._provider = provider
        self._client = client or FleetClient(
            url=config.url,
            tenant=config.tenant,
            api_token=config.api_token,
        )
        self._executor = executor or BootstrapExecutor(
            bootstrap_config=provider.rbac,
            skip_metrics_lookup=provider.skip_metrics_lookup,
            settle_seconds=provider.settle_seconds,
            request_timeout=provider.request_timeout_seconds,
        )
        self._published = PublishedClusters()
        self._refresh_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: FleetInstanceConfig) -> FleetClusterSupplier:
        return cls(config)

    @property
    def name(self) -> str:
        return self._config.display_name

    @property
    def config(self) -> FleetInstanceConfig:
        return self._config

    @property
    def client(self) -> FleetClient:
        return self._client

    @property
    def last_refresh(self) -> datetime | None:
        """When the last cycle completed, or None if none has."""
        return self._published.updated_at

    def get_clusters(self, credentials: Any = None) -> list[ClusterDetails]:
        """Return the set published by the last completed cycle."""
        return self._published.snapshot()

    def refresh_clusters(self) -> bool:
        """Run one reconciliation cycle.

        Returns ``True`` if the cycle completed and its result was
        published, ``False`` if it was aborted or refused. Never raises.
        """
        if not self._refresh_lock.acquire(blocking=False):
            logger.warning("Refresh already in progress for %s, skipping", self.name)
            return False
        try:
            return self._refresh()
        except Exception:
            logger.exception("Failed to refresh fleet clusters for %s", self.name)
            return False
        finally:
            self._refresh_lock.release()

    def filter_cluster(self, summary: ClusterSummary) -> str | None:
        """Return why *summary* is out of scope, or None if it is included.

        Tenant-scope exclusion is checked first, then project filters by
        resolved project name. ``exclude_projects`` wins over
        ``include_projects``. A project that cannot be resolved does not
        filter the cluster out.
        """
        provider = self._provider
        if summary.is_tenant_scoped and provider.exclude_tenant_scoped_clusters:
            return "tenant-scoped clusters excluded"

        if summary.is_project_scoped and summary.project_uid:
            project = self._client.get_project(summary.project_uid)
            project_name = project.name if project is not None else None
            if project_name:
                if project_name in provider.exclude_projects:
                    return f"project {project_name} is excluded"
                if provider.include_projects and project_name not in provider.include_projects:
                    return f"project {project_name} not in include_projects"
        return None

    def prefix_cluster_name(self, cluster_name: str) -> str:
        """Apply the instance name prefix, if configured."""
        if self._config.name:
            return f"{self._config.name}-{cluster_name}"
        return cluster_name

    # --- Private ---

    def _refresh(self) -> bool:
        clusters = self._client.list_clusters()
        if not isinstance(clusters, list):
            logger.error(
                "Cluster listing for %s did not return a list: %s",
                self.name, type(clusters).__name__,
            )
            return False

        with ThreadPoolExecutor(
            max_workers=self._provider.max_parallel_clusters,
            thread_name_prefix="fleet-cluster",
        ) as pool:
            results = list(pool.map(self._process_cluster_safely, clusters, range(len(clusters))))

        new_clusters = [details for details in results if details is not None]
        self._published.replace(new_clusters)
        logger.info(
            "Refresh complete for %s: %d/%d cluster(s) configured",
            self.name, len(new_clusters), len(clusters),
        )
        return True

    def _process_cluster_safely(
        self, summary: ClusterSummary, index: int,
    ) -> ClusterDetails | None:
        try:
            return self._process_cluster(summary, index)
        except Exception as exc:
            label = summary.name or f"cluster {index}"
            logger.error("Error processing %s: %s", label, exc)
            return None

    def _process_cluster(
        self, summary: ClusterSummary, index: int,
    ) -> ClusterDetails | None:
        if not summary.name:
            logger.warning("Cluster %d has no name, skipping", index)
            return None
        if not summary.uid:
            logger.warning("Cluster %s has no UID, skipping", summary.name)
            return None

        reason = self.filter_cluster(summary)
        if reason is not None:
            logger.info("Skipping cluster %s (%s)", summary.name, reason)
            return None

        kubeconfig_text = self._client.get_admin_kubeconfig(
            summary.uid,
            summary.project_uid if summary.is_project_scoped else None,
        )
        if not kubeconfig_text:
            logger.warning("Failed to fetch admin kubeconfig for %s", summary.name)
            return None

        kubeconfig = self._client.parse_kubeconfig(kubeconfig_text)
        if kubeconfig is None:
            logger.warning("Unusable admin kubeconfig for %s, skipping", summary.name)
            return None

        return self._bootstrap_with_deadline(
            self.prefix_cluster_name(summary.name), kubeconfig,
        )

    def _bootstrap_with_deadline(
        self, cluster_name: str, kubeconfig: dict[str, Any],
    ) -> ClusterDetails | None:
        """Race the bootstrap against the cluster timeout.

        On timeout the result is discarded. The deadline is also handed to
        the executor so the abandoned bootstrap stops making remote calls.
        """
        timeout = self._provider.cluster_timeout_seconds
        deadline = time.monotonic() + timeout

        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="fleet-bootstrap")
        try:
            future = pool.submit(self._executor.bootstrap, cluster_name, kubeconfig, deadline)
            try:
                return future.result(timeout=timeout)
            except TimeoutError:
                logger.warning(
                    "Timeout: %s unreachable (%ss)", cluster_name, f"{timeout:g}",
                )
                return None
        finally:
            pool.shutdown(wait=False)
