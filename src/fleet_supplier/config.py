"""Config file loading and auto-discovery for fleet-supplier.

Searches for ``fleet-supplier.yaml`` in the current directory and parent
directories, parses it, validates the fleet instance sections and
resolves relative paths against the config file's location.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from fleet_supplier.models import BootstrapConfig, ClusterDetails
from fleet_supplier.suppliers.static import (
    StaticClustersError,
    load_static_clusters,
    parse_cluster_entries,
)

CONFIG_FILENAME = "fleet-supplier.yaml"


class ConfigError(Exception):
    """Raised when the config file is missing, malformed or invalid."""


class ClusterProviderConfig(BaseModel):
    """Per-instance discovery, filtering and bootstrap settings."""

    include_projects: list[str] = Field(default_factory=list)
    exclude_projects: list[str] = Field(default_factory=list)
    skip_metrics_lookup: bool = True
    exclude_tenant_scoped_clusters: bool = False

    refresh_interval_seconds: float = Field(600.0, gt=0)
    """Delay between the end of one reconciliation cycle and the next."""

    cluster_timeout_seconds: float = Field(15.0, gt=0)
    """Deadline for one cluster's bootstrap within a cycle."""

    max_parallel_clusters: int = Field(1, ge=1)
    settle_seconds: float = Field(2.0, ge=0)
    request_timeout_seconds: float = Field(10.0, gt=0)
    rbac: BootstrapConfig = Field(default_factory=BootstrapConfig)


class FleetInstanceConfig(BaseModel):
    """One fleet-management API instance."""

    url: str = Field(min_length=1)
    tenant: str = Field(min_length=1)
    api_token: str = Field(min_length=1, repr=False)
    name: str | None = None
    cluster_provider: ClusterProviderConfig = Field(default_factory=ClusterProviderConfig)

    @property
    def display_name(self) -> str:
        """The configured name, or ``tenant@url`` when unnamed."""
        return self.name or f"{self.tenant}@{self.url}"


class ServerConfig(BaseModel):
    """Bind address for the HTTP read surface."""

    host: str = "127.0.0.1"
    port: int = Field(8430, ge=1, le=65535)


@dataclass(frozen=True)
class FleetSupplierConfig:
    """Parsed fleet-supplier configuration."""

    config_path: Path | None = None
    fleet: list[FleetInstanceConfig] = field(default_factory=list)
    clusters: list[ClusterDetails] = field(default_factory=list)
    server: ServerConfig = field(default_factory=ServerConfig)


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``fleet-supplier.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> FleetSupplierConfig:
    """Load a fleet-supplier config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. Return an empty ``FleetSupplierConfig`` (no suppliers).
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise ConfigError(msg)
    elif auto_discover:
        config_path = find_config()

    if config_path is None:
        return FleetSupplierConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> FleetSupplierConfig:
    """Read and validate a YAML config file."""
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in {config_path}: {e}"
        raise ConfigError(msg) from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigError(msg)

    fleet = _parse_fleet(data.get("fleet"), config_path)
    clusters = _parse_static(data, config_path)

    try:
        server = ServerConfig(**(data.get("server") or {}))
    except (ValidationError, TypeError) as e:
        msg = f"Invalid 'server' section in {config_path}: {e}"
        raise ConfigError(msg) from e

    return FleetSupplierConfig(
        config_path=config_path,
        fleet=fleet,
        clusters=clusters,
        server=server,
    )


def _parse_fleet(raw: Any, config_path: Path) -> list[FleetInstanceConfig]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        msg = f"'fleet' must be a list: {config_path}"
        raise ConfigError(msg)

    instances: list[FleetInstanceConfig] = []
    for i, entry in enumerate(raw):
        if not isinstance(entry, dict):
            msg = f"Invalid fleet instance at index {i} in {config_path}"
            raise ConfigError(msg)
        entry = _resolve_api_token(dict(entry), i, config_path)
        try:
            instances.append(FleetInstanceConfig(**entry))
        except (ValidationError, TypeError) as e:
            msg = f"Invalid fleet instance at index {i} in {config_path}: {e}"
            raise ConfigError(msg) from e
    return instances


def _resolve_api_token(
    entry: dict[str, Any], index: int, config_path: Path,
) -> dict[str, Any]:
    """Replace ``api_token_env`` with the value of that environment variable."""
    env_var = entry.pop("api_token_env", None)
    if entry.get("api_token") or env_var is None:
        return entry
    value = os.environ.get(env_var)
    if not value:
        msg = (
            f"Fleet instance at index {index} in {config_path} reads its API "
            f"token from {env_var}, which is not set"
        )
        raise ConfigError(msg)
    entry["api_token"] = value
    return entry


def _parse_static(data: dict[str, Any], config_path: Path) -> list[ClusterDetails]:
    clusters: list[ClusterDetails] = []
    try:
        if data.get("clusters") is not None:
            clusters.extend(parse_cluster_entries(data["clusters"], config_path))
        if data.get("clusters_file") is not None:
            clusters_file = (config_path.parent / data["clusters_file"]).resolve()
            clusters.extend(load_static_clusters(clusters_file))
    except StaticClustersError as e:
        raise ConfigError(str(e)) from e
    return clusters
