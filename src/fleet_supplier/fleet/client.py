"""Fleet-management API client.

Lists clusters, resolves project names and fetches admin kubeconfigs.
Authentication is a static API key sent in the ``ApiKey`` header.

Every public method degrades to an empty/absent result on failure and
logs the cause; callers treat absence as "nothing to do this cycle".

Uses stdlib ``urllib.request``, no extra dependencies required.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

import yaml

from fleet_supplier.models import ClusterSummary, ProjectRecord

logger = logging.getLogger(__name__)

CLUSTERS_PATH = "/v1/dashboard/spectroclusters/meta"


class FleetApiError(Exception):
    """Raised internally for non-2xx fleet API responses."""

    def __init__(self, status: int, reason: str, body: str = "") -> None:
        super().__init__(f"Fleet API request failed: {status} {reason} - {body}")
        self.status = status
        self.reason = reason


class FleetClient:
    """HTTP client for one fleet-management API instance."""

    def __init__(
        self,
        url: str,
        tenant: str,
        api_token: str,
        timeout: float = 30.0,
    ) -> None:
        self._base_url = url.rstrip("/")
        self._tenant = tenant
        self._api_token = api_token
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def tenant(self) -> str:
        return self._tenant

    def list_clusters(self) -> list[ClusterSummary]:
        """List every cluster visible to the API key.

        Returns an empty list on any failure (logged). An empty result
        does not mean the fleet is empty.
        """
        try:
            raw = json.loads(self._request(CLUSTERS_PATH))
        except Exception:
            logger.exception("Failed to fetch fleet clusters from %s", self._base_url)
            return []

        if not isinstance(raw, list):
            logger.error(
                "Fleet cluster listing is not a list (got %s)", type(raw).__name__,
            )
            return []
        return [ClusterSummary.from_api(entry) for entry in raw]

    def get_project(self, project_uid: str) -> ProjectRecord | None:
        """Resolve a project by UID. Returns None on any failure."""
        path = f"/v1/projects/{urllib.parse.quote(project_uid, safe='')}"
        try:
            raw = json.loads(self._request(path))
            metadata = raw["metadata"]
            return ProjectRecord(uid=metadata.get("uid") or project_uid, name=metadata["name"])
        except Exception as exc:
            logger.debug("Failed to fetch project %s: %s", project_uid, exc)
            return None

    def get_admin_kubeconfig(
        self,
        cluster_uid: str,
        project_uid: str | None = None,
    ) -> str | None:
        """Fetch the admin kubeconfig for a cluster, optionally project-scoped.

        The returned text grants full access to the cluster and must never
        be logged.
        """
        path = (
            f"/v1/spectroclusters/{urllib.parse.quote(cluster_uid, safe='')}"
            f"/assets/adminKubeconfig"
        )
        if project_uid:
            path += "?" + urllib.parse.urlencode({"ProjectUid": project_uid})
        try:
            return self._request(path, json_headers=False)
        except Exception as exc:
            logger.debug(
                "Failed to fetch admin kubeconfig for cluster %s: %s", cluster_uid, exc,
            )
            return None

    def parse_kubeconfig(self, text: str) -> dict[str, Any] | None:
        """Parse kubeconfig YAML. Returns None (logged) on malformed input."""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            # str(exc) quotes the offending input, which holds credentials
            logger.error(
                "Failed to parse kubeconfig: %s",
                getattr(exc, "problem", None) or type(exc).__name__,
            )
            return None
        if not isinstance(data, dict):
            logger.error(
                "Failed to parse kubeconfig: expected a mapping, got %s",
                type(data).__name__,
            )
            return None
        return data

    def _request(self, path: str, *, json_headers: bool = True) -> str:
        """GET *path* and return the decoded body. Raises on non-2xx."""
        headers = {"ApiKey": self._api_token}
        if json_headers:
            headers["Accept"] = "application/json"
            headers["Content-Type"] = "application/json"

        req = urllib.request.Request(
            self._base_url + path,
            headers=headers,
            method="GET",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:  # noqa: S310
                return resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            body = e.read().decode("utf-8", errors="replace") if e.fp else ""
            raise FleetApiError(e.code, str(e.reason), body) from e
