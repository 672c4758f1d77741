"""Cluster supplier protocol.

Every cluster source (fleet discovery, static config, the combined view)
exposes the same read method so downstream code does not care how many
sources sit behind it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from fleet_supplier.models import ClusterDetails


@runtime_checkable
class ClustersSupplier(Protocol):
    """Protocol for cluster suppliers.

    Any object with a ``get_clusters(credentials)`` method satisfies this
    protocol.
    """

    def get_clusters(self, credentials: Any = None) -> list[ClusterDetails]:
        """Return the clusters this supplier currently knows about.

        Args:
            credentials: Caller credentials forwarded by the downstream
                consumer. Suppliers may ignore them.
        """
        ...
