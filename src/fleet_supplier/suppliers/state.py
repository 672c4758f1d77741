"""Single-writer holder for a supplier's published cluster set."""

from __future__ import annotations

import threading
from collections.abc import Iterable
from datetime import UTC, datetime

from fleet_supplier.models import ClusterDetails


class PublishedClusters:
    """The last complete cluster set produced by a reconciler.

    The set is stored as an immutable tuple and only ever replaced as a
    whole, so readers see either the previous cycle's set or the new one.
    Only the owning reconciler calls ``replace()``; the lock guards the
    (set, timestamp) pair, not the readers.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clusters: tuple[ClusterDetails, ...] = ()
        self._updated_at: datetime | None = None

    def snapshot(self) -> list[ClusterDetails]:
        """Return a copy of the current set."""
        return list(self._clusters)

    def replace(self, clusters: Iterable[ClusterDetails]) -> None:
        """Publish a new set, discarding the previous one."""
        new_clusters = tuple(clusters)
        with self._lock:
            self._clusters = new_clusters
            self._updated_at = datetime.now(tz=UTC)

    @property
    def updated_at(self) -> datetime | None:
        """When the set was last replaced, or ``None`` before the first cycle."""
        return self._updated_at

    def __len__(self) -> int:
        return len(self._clusters)
