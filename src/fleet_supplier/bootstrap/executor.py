"""BootstrapExecutor: provisions a read-only ServiceAccount in a fleet cluster.

Given a cluster's admin kubeconfig, idempotently ensures the following
exist, in order, each by a get-or-create:

1. Namespace
2. ServiceAccount in that namespace
3. ServiceAccount token Secret
4. ClusterRole (custom rules or read-everything)
5. ClusterRoleBinding from the role to the ServiceAccount

then waits for the token controller to populate the Secret and returns a
``ClusterDetails`` carrying the decoded token and CA bundle.

``bootstrap()`` never raises: every failure is logged and reported as
``None``. Connectivity failures log at warning, everything else at error.
"""

from __future__ import annotations

import base64
import errno
import logging
import time
from collections.abc import Callable
from typing import Any

import urllib3
from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from fleet_supplier.models import (
    AUTH_PROVIDER_KEY,
    SERVICE_ACCOUNT_AUTH_PROVIDER,
    SERVICE_ACCOUNT_TOKEN_KEY,
    BootstrapConfig,
    ClusterDetails,
)

logger = logging.getLogger(__name__)

SERVICE_ACCOUNT_TOKEN_TYPE = "kubernetes.io/service-account-token"
SERVICE_ACCOUNT_NAME_ANNOTATION = "kubernetes.io/service-account.name"
RBAC_API_GROUP = "rbac.authorization.k8s.io"

_NETWORK_ERRNOS = frozenset({
    errno.ETIMEDOUT,
    errno.ECONNREFUSED,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
})


class BootstrapError(Exception):
    """Raised inside the executor when a bootstrap step cannot complete."""


class DeadlineExceeded(BootstrapError):
    """The per-cluster deadline passed before the next remote call."""


def is_connectivity_error(exc: BaseException) -> bool:
    """True for errors that mean the cluster could not be reached in time."""
    if isinstance(exc, DeadlineExceeded):
        return True
    if isinstance(
        exc,
        (
            urllib3.exceptions.MaxRetryError,
            urllib3.exceptions.NewConnectionError,
            urllib3.exceptions.TimeoutError,
            urllib3.exceptions.ProtocolError,
        ),
    ):
        return True
    if isinstance(exc, (ConnectionError, TimeoutError)):
        return True
    return isinstance(exc, OSError) and exc.errno in _NETWORK_ERRNOS


class BootstrapExecutor:
    """Provisions ServiceAccount access in remote clusters.

    Each remote call is bounded by ``request_timeout``; when a deadline is
    passed to ``bootstrap()`` the bound shrinks to the time remaining, so a
    bootstrap abandoned by the reconciler stops issuing calls soon after.
    """

    def __init__(
        self,
        bootstrap_config: BootstrapConfig | None = None,
        skip_metrics_lookup: bool = True,
        settle_seconds: float = 2.0,
        request_timeout: float = 10.0,
        _clock: Callable[[], float] | None = None,
        _sleep: Callable[[float], None] | None = None,
    ) -> None:
        self._config = bootstrap_config or BootstrapConfig()
        self._skip_metrics_lookup = skip_metrics_lookup
        self._settle_seconds = settle_seconds
        self._request_timeout = request_timeout
        self._clock = _clock or time.monotonic
        self._sleep = _sleep or time.sleep

    @property
    def config(self) -> BootstrapConfig:
        return self._config

    def bootstrap(
        self,
        cluster_name: str,
        kubeconfig: dict[str, Any],
        deadline: float | None = None,
    ) -> ClusterDetails | None:
        """Ensure ServiceAccount access exists and return its details.

        Args:
            cluster_name: Name to publish the cluster under.
            kubeconfig: Parsed admin kubeconfig for the cluster.
            deadline: Optional ``time.monotonic()`` value after which no
                further remote calls are made.

        Returns:
            ClusterDetails on success, None on any failure (logged).
        """
        try:
            details = self._bootstrap(cluster_name, kubeconfig, deadline)
        except Exception as exc:
            if is_connectivity_error(exc):
                logger.warning("Network error for %s: %s", cluster_name, exc)
            else:
                logger.error("Failed to set up %s: %s", cluster_name, exc)
            return None

        logger.info("Configured %s (service account)", cluster_name)
        return details

    # --- Private: steps ---

    def _bootstrap(
        self,
        cluster_name: str,
        kubeconfig: dict[str, Any],
        deadline: float | None,
    ) -> ClusterDetails:
        cluster_entry = _current_cluster(kubeconfig)
        server = cluster_entry.get("server")
        if not server:
            raise BootstrapError("Kubeconfig has no cluster server URL")

        cfg = self._config
        with self._get_api_client(kubeconfig) as api_client:
            core, rbac = self._get_api_instances(api_client)

            self._get_or_create(
                "namespace", cfg.namespace, deadline,
                read=lambda **kw: core.read_namespace(name=cfg.namespace, **kw),
                create=lambda **kw: core.create_namespace(
                    body=self._build_namespace_body(), **kw,
                ),
            )
            self._get_or_create(
                "service account", cfg.service_account_name, deadline,
                read=lambda **kw: core.read_namespaced_service_account(
                    name=cfg.service_account_name, namespace=cfg.namespace, **kw,
                ),
                create=lambda **kw: core.create_namespaced_service_account(
                    namespace=cfg.namespace,
                    body=self._build_service_account_body(),
                    **kw,
                ),
            )
            self._get_or_create(
                "secret", cfg.secret_name, deadline,
                read=lambda **kw: core.read_namespaced_secret(
                    name=cfg.secret_name, namespace=cfg.namespace, **kw,
                ),
                create=lambda **kw: core.create_namespaced_secret(
                    namespace=cfg.namespace,
                    body=self._build_secret_body(),
                    **kw,
                ),
            )
            self._get_or_create(
                "cluster role", cfg.cluster_role_name, deadline,
                read=lambda **kw: rbac.read_cluster_role(name=cfg.cluster_role_name, **kw),
                create=lambda **kw: rbac.create_cluster_role(
                    body=self._build_cluster_role_body(), **kw,
                ),
            )
            self._get_or_create(
                "cluster role binding", cfg.cluster_role_binding_name, deadline,
                read=lambda **kw: rbac.read_cluster_role_binding(
                    name=cfg.cluster_role_binding_name, **kw,
                ),
                create=lambda **kw: rbac.create_cluster_role_binding(
                    body=self._build_cluster_role_binding_body(), **kw,
                ),
            )

            # Token population by the controller is asynchronous
            self._settle(deadline)

            secret = core.read_namespaced_secret(
                name=cfg.secret_name,
                namespace=cfg.namespace,
                _request_timeout=self._call_timeout(deadline),
            )

        data = secret.data or {}
        encoded_token = data.get("token")
        if not encoded_token:
            raise BootstrapError("Service account token not found in secret")

        encoded_ca = data.get("ca.crt") or cluster_entry.get("certificate-authority-data")
        return ClusterDetails(
            name=cluster_name,
            url=server,
            auth_metadata={
                AUTH_PROVIDER_KEY: SERVICE_ACCOUNT_AUTH_PROVIDER,
                SERVICE_ACCOUNT_TOKEN_KEY: _b64decode(encoded_token),
            },
            ca_data=_b64decode(encoded_ca) if encoded_ca else None,
            skip_tls_verify=True,
            skip_metrics_lookup=self._skip_metrics_lookup,
        )

    def _get_or_create(
        self,
        kind: str,
        name: str,
        deadline: float | None,
        read: Callable[..., Any],
        create: Callable[..., Any],
    ) -> bool:
        """Read a resource and create it on 404. Returns True if created."""
        try:
            read(_request_timeout=self._call_timeout(deadline))
            return False
        except ApiException as exc:
            if exc.status != 404:
                raise

        logger.debug("Creating %s %s", kind, name)
        try:
            create(_request_timeout=self._call_timeout(deadline))
        except ApiException as exc:
            # Created by a concurrent attempt between our read and create
            if exc.status != 409:
                raise
        return True

    def _call_timeout(self, deadline: float | None) -> float:
        if deadline is None:
            return self._request_timeout
        remaining = deadline - self._clock()
        if remaining <= 0:
            raise DeadlineExceeded("cluster deadline exceeded")
        return min(self._request_timeout, remaining)

    def _settle(self, deadline: float | None) -> None:
        delay = self._settle_seconds
        if deadline is not None:
            delay = min(delay, self._call_timeout(deadline))
        if delay > 0:
            self._sleep(delay)

    # --- Private: client setup ---

    def _get_api_client(self, kubeconfig: dict[str, Any]) -> Any:
        """Build an isolated ApiClient from a kubeconfig dict.

        TLS verification is disabled: fleet clusters present certificates
        signed by per-cluster CAs.

        The kubernetes loader writes inline certificate, key and CA data to
        temp files (mode 0600) keyed by content and removes them at
        interpreter exit. Its only cleanup hook is process-wide, so files
        are not removed per cluster while other bootstraps may share them.
        """
        configuration = client.Configuration()
        config.load_kube_config_from_dict(
            kubeconfig,
            client_configuration=configuration,
            persist_config=False,
        )
        configuration.verify_ssl = False
        return client.ApiClient(configuration)

    def _get_api_instances(self, api_client: Any) -> tuple[Any, Any]:
        return client.CoreV1Api(api_client), client.RbacAuthorizationV1Api(api_client)

    # --- Private: body builders ---

    def _build_namespace_body(self) -> Any:
        return client.V1Namespace(
            metadata=client.V1ObjectMeta(name=self._config.namespace),
        )

    def _build_service_account_body(self) -> Any:
        return client.V1ServiceAccount(
            metadata=client.V1ObjectMeta(name=self._config.service_account_name),
        )

    def _build_secret_body(self) -> Any:
        return client.V1Secret(
            metadata=client.V1ObjectMeta(
                name=self._config.secret_name,
                annotations={
                    SERVICE_ACCOUNT_NAME_ANNOTATION: self._config.service_account_name,
                },
            ),
            type=SERVICE_ACCOUNT_TOKEN_TYPE,
        )

    def _build_cluster_role_body(self) -> Any:
        return client.V1ClusterRole(
            metadata=client.V1ObjectMeta(name=self._config.cluster_role_name),
            rules=[
                client.V1PolicyRule(
                    api_groups=rule.normalized_api_groups(),
                    resources=list(rule.resources),
                    verbs=list(rule.verbs),
                )
                for rule in self._config.effective_rules()
            ],
        )

    def _build_cluster_role_binding_body(self) -> Any:
        return client.V1ClusterRoleBinding(
            metadata=client.V1ObjectMeta(name=self._config.cluster_role_binding_name),
            role_ref=client.V1RoleRef(
                api_group=RBAC_API_GROUP,
                kind="ClusterRole",
                name=self._config.cluster_role_name,
            ),
            subjects=[
                client.RbacV1Subject(
                    kind="ServiceAccount",
                    name=self._config.service_account_name,
                    namespace=self._config.namespace,
                ),
            ],
        )


# --- Helpers ---


def _current_cluster(kubeconfig: dict[str, Any]) -> dict[str, Any]:
    """Return the cluster entry of the current context, else the first cluster."""
    clusters = kubeconfig.get("clusters") or []
    if not clusters:
        raise BootstrapError("Kubeconfig has no clusters")

    cluster_name = None
    current = kubeconfig.get("current-context")
    for ctx in kubeconfig.get("contexts") or []:
        if ctx.get("name") == current:
            cluster_name = (ctx.get("context") or {}).get("cluster")
            break

    for entry in clusters:
        if entry.get("name") == cluster_name:
            return entry.get("cluster") or {}
    return clusters[0].get("cluster") or {}


def _b64decode(value: str) -> str:
    return base64.b64decode(value).decode("utf-8")
