"""Combines several cluster suppliers into one read view."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from fleet_supplier.models import ClusterDetails
from fleet_supplier.suppliers.base import ClustersSupplier

logger = logging.getLogger(__name__)


class CombinedClustersSupplier:
    """Fans ``get_clusters()`` out to every supplier and flattens the results.

    All-or-nothing: if any supplier raises, the whole read raises.
    Clusters sharing a name across suppliers are reported with one warning
    per name and passed through unchanged; choosing between them is left
    to the consumer.
    """

    def __init__(
        self,
        suppliers: Sequence[ClustersSupplier],
        max_workers: int | None = None,
    ) -> None:
        self._suppliers = list(suppliers)
        self._max_workers = max_workers

    @property
    def suppliers(self) -> list[ClustersSupplier]:
        return list(self._suppliers)

    def get_clusters(self, credentials: Any = None) -> list[ClusterDetails]:
        logger.debug("Fetching clusters from %d supplier(s)", len(self._suppliers))
        if not self._suppliers:
            return []

        with ThreadPoolExecutor(
            max_workers=self._max_workers or len(self._suppliers),
            thread_name_prefix="cluster-supplier",
        ) as pool:
            futures = [
                pool.submit(supplier.get_clusters, credentials)
                for supplier in self._suppliers
            ]
            try:
                results = [future.result() for future in futures]
            except Exception as exc:
                logger.error("Error fetching clusters from suppliers: %s", exc)
                raise

        clusters = [cluster for result in results for cluster in result]
        logger.debug("Got %d total cluster(s)", len(clusters))
        warn_duplicates(clusters)
        return clusters


def warn_duplicates(clusters: Sequence[ClusterDetails]) -> list[str]:
    """Log one warning per cluster name that appears more than once.

    Returns the duplicated names in first-seen order.
    """
    counts = Counter(cluster.name for cluster in clusters)
    duplicated = [name for name, count in counts.items() if count > 1]
    for name in duplicated:
        logger.warning("Duplicate cluster name '%s'", name)
    return duplicated
