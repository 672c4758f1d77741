"""Statically configured clusters.

Loads cluster definitions from the config file's ``clusters`` list or a
separate YAML file with a top-level ``clusters`` key, and serves them
unchanged on every read.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from fleet_supplier.models import (
    AUTH_PROVIDER_KEY,
    SERVICE_ACCOUNT_AUTH_PROVIDER,
    SERVICE_ACCOUNT_TOKEN_KEY,
    ClusterDetails,
)


class StaticClustersError(Exception):
    """Raised when static cluster definitions are invalid or cannot be loaded."""


class StaticClusterSupplier:
    """Serves a fixed list of clusters declared in configuration."""

    def __init__(self, clusters: list[ClusterDetails]) -> None:
        self._clusters = tuple(clusters)

    def __len__(self) -> int:
        return len(self._clusters)

    def get_clusters(self, credentials: Any = None) -> list[ClusterDetails]:
        return list(self._clusters)


def parse_cluster_entries(raw: Any, source: str | Path) -> list[ClusterDetails]:
    """Validate a list of raw cluster mappings.

    ``service_account_token`` is shorthand for a ServiceAccount
    ``auth_metadata`` block. Names must be unique within one source.

    Raises:
        StaticClustersError: If the list or any entry is invalid.
    """
    if not isinstance(raw, list):
        raise StaticClustersError(f"'clusters' must be a list: {source}")

    clusters: list[ClusterDetails] = []
    seen: set[str] = set()
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            raise StaticClustersError(f"Invalid cluster at index {i} in {source}")
        entry = dict(entry)
        token = entry.pop("service_account_token", None)
        if token is not None:
            entry["auth_metadata"] = {
                AUTH_PROVIDER_KEY: SERVICE_ACCOUNT_AUTH_PROVIDER,
                SERVICE_ACCOUNT_TOKEN_KEY: str(token),
                **(entry.get("auth_metadata") or {}),
            }
        try:
            cluster = ClusterDetails(**entry)
        except (ValidationError, TypeError) as e:
            raise StaticClustersError(f"Invalid cluster at index {i} in {source}: {e}") from e
        if cluster.name in seen:
            raise StaticClustersError(f"Duplicate cluster name '{cluster.name}' in {source}")
        seen.add(cluster.name)
        clusters.append(cluster)
    return clusters


def load_static_clusters(path: str | Path) -> list[ClusterDetails]:
    """Load cluster definitions from a YAML file with a top-level ``clusters`` key.

    Raises:
        StaticClustersError: If the file cannot be read, parsed, or validated.
    """
    path = Path(path)
    if not path.exists():
        raise StaticClustersError(f"Clusters file not found: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise StaticClustersError(f"Invalid YAML in {path}: {e}") from e

    if not isinstance(raw, dict) or "clusters" not in raw:
        raise StaticClustersError(f"Clusters file must have a top-level 'clusters' key: {path}")

    return parse_cluster_entries(raw["clusters"], path)
