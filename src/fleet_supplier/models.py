"""Core data models for fleet-supplier.

Defines the schemas for:
- Fleet API records (cluster summaries, projects)
- Bootstrap configuration (RBAC resource names and rules)
- Cluster details (the downstream-facing output record)
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

SERVICE_ACCOUNT_AUTH_PROVIDER = "serviceAccount"
AUTH_PROVIDER_KEY = "kubernetes.io/auth-provider"
SERVICE_ACCOUNT_TOKEN_KEY = "serviceAccountToken"

REDACTED = "***"

# --- Enums ---


class ClusterScope(enum.StrEnum):
    TENANT = "tenant"
    PROJECT = "project"


# --- Fleet API records ---


class ClusterSummary(BaseModel):
    """One entry of the fleet cluster listing.

    Every field is optional: malformed entries must survive parsing so
    the reconciler can skip them with a warning instead of failing the
    whole listing.
    """

    uid: str | None = None
    name: str | None = None
    scope: ClusterScope | None = None
    project_uid: str | None = None
    cloud_type: str | None = None
    state: str | None = None

    @property
    def is_tenant_scoped(self) -> bool:
        return self.scope == ClusterScope.TENANT

    @property
    def is_project_scoped(self) -> bool:
        return self.scope == ClusterScope.PROJECT

    @classmethod
    def from_api(cls, raw: Any) -> ClusterSummary:
        """Build a summary from the fleet API's nested metadata/spec/status shape."""
        if not isinstance(raw, dict):
            return cls()
        metadata = _mapping(raw.get("metadata"))
        annotations = _mapping(metadata.get("annotations"))
        spec = _mapping(raw.get("spec"))
        status = _mapping(raw.get("status"))

        scope_value = annotations.get("scope")
        try:
            scope = ClusterScope(scope_value) if scope_value else None
        except ValueError:
            scope = None

        return cls(
            uid=_text(metadata.get("uid")),
            name=_text(metadata.get("name")),
            scope=scope,
            project_uid=_text(annotations.get("projectUid")),
            cloud_type=_text(spec.get("cloudType")),
            state=_text(status.get("state")),
        )


class ProjectRecord(BaseModel):
    """A fleet project, used only for name-based filtering."""

    uid: str
    name: str


# --- Bootstrap configuration ---


class RbacRule(BaseModel):
    """A ClusterRole policy rule.

    ``core`` in ``api_groups`` names the built-in API group and is
    translated to ``""`` when the role is created.
    """

    model_config = ConfigDict(frozen=True)

    api_groups: list[str] = Field(min_length=1)
    resources: list[str] = Field(min_length=1)
    verbs: list[str] = Field(min_length=1)

    def normalized_api_groups(self) -> list[str]:
        return ["" if group == "core" else group for group in self.api_groups]


DEFAULT_RBAC_RULES: tuple[RbacRule, ...] = (
    RbacRule(api_groups=["*"], resources=["*"], verbs=["get", "list", "watch"]),
)


class BootstrapConfig(BaseModel):
    """Names of the resources provisioned in every fleet cluster."""

    model_config = ConfigDict(frozen=True)

    namespace: str = "backstage-system"
    service_account_name: str = "backstage-sa"
    secret_name: str = "backstage-sa-token"
    cluster_role_name: str = "backstage-read-only"
    cluster_role_binding_name: str = "backstage-read-only-binding"
    cluster_role_rules: list[RbacRule] | None = None

    def effective_rules(self) -> list[RbacRule]:
        """Custom rules when configured, otherwise the read-everything default.

        An explicit empty list is honoured and yields a role with no rules.
        """
        if self.cluster_role_rules is not None:
            return list(self.cluster_role_rules)
        return list(DEFAULT_RBAC_RULES)


# --- Output record ---


class ClusterDetails(BaseModel):
    """How to reach and authenticate to one cluster.

    This is the unit exchanged between every supplier and the combined
    view. Instances are immutable, ``auth_metadata`` included: it is held
    as a read-only mapping so records can be shared between readers.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    auth_metadata: Mapping[str, str] = Field(
        default_factory=dict, validate_default=True,
    )
    ca_data: str | None = None
    skip_tls_verify: bool = False
    skip_metrics_lookup: bool = False

    @field_validator("auth_metadata")
    @classmethod
    def _freeze_auth_metadata(cls, value: Mapping[str, str]) -> Mapping[str, str]:
        return MappingProxyType(dict(value))

    @field_serializer("auth_metadata")
    def _dump_auth_metadata(self, value: Mapping[str, str]) -> dict[str, str]:
        return dict(value)

    @property
    def auth_provider(self) -> str | None:
        return self.auth_metadata.get(AUTH_PROVIDER_KEY)

    def redacted(self) -> ClusterDetails:
        """Copy with every credential value in ``auth_metadata`` masked."""
        masked = {
            key: value if key == AUTH_PROVIDER_KEY else REDACTED
            for key, value in self.auth_metadata.items()
        }
        # model_copy skips validators
        return self.model_copy(update={"auth_metadata": MappingProxyType(masked)})


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str | None:
    return str(value) if value not in (None, "") else None
