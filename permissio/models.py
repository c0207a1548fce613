"""Wire and result models for the Permissio client."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from permissio.permissions import SEPARATOR

T = TypeVar("T")


class ApiModel(BaseModel):
    """Base model accepting camelCase wire fields and snake_case attributes."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Role(ApiModel):
    """A role definition: direct permissions plus the parent roles it extends."""

    key: str
    id: str | None = None
    name: str | None = None
    description: str | None = None
    permissions: list[str] = Field(default_factory=list)
    extends: list[str] = Field(default_factory=list)
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("permissions", "extends", mode="before")
    @classmethod
    def _null_list(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("attributes", mode="before")
    @classmethod
    def _null_attributes(cls, value: Any) -> Any:
        return {} if value is None else value


class RoleAssignment(ApiModel):
    """A role held by a user, optionally scoped to a tenant or resource."""

    user: str
    role: str
    id: str | None = None
    tenant: str | None = None
    resource: str | None = None
    resource_instance: str | None = None


class User(ApiModel):
    key: str
    id: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _null_attributes(cls, value: Any) -> Any:
        return {} if value is None else value


class ApiKeyScope(BaseModel):
    """Scope returned by the api-key scope endpoint (snake_case on the wire)."""

    model_config = ConfigDict(extra="ignore")

    organization_id: str | None = None
    project_id: str | None = None
    environment_id: str | None = None


class Page(ApiModel, Generic[T]):
    """Canonical paginated list shape."""

    data: list[T] = Field(default_factory=list)
    page: int = 1
    per_page: int = 0
    total: int = 0
    total_pages: int = 0


# =============================================================================
# Check requests and decisions
# =============================================================================


class CheckUser(ApiModel):
    key: str
    attributes: dict[str, Any] = Field(default_factory=dict)


class CheckResource(ApiModel):
    type: str
    key: str | None = None
    tenant: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class CheckRequest(ApiModel):
    """A single permission check.

    `user` may be a bare user key or a CheckUser. `resource` may be a bare
    resource type, a "type:instanceKey" string or a CheckResource.
    """

    user: str | CheckUser
    action: str
    resource: str | CheckResource
    tenant: str | None = None
    context: dict[str, Any] = Field(default_factory=dict)

    @property
    def user_key(self) -> str:
        return self.user if isinstance(self.user, str) else self.user.key

    @property
    def resource_type(self) -> str:
        if isinstance(self.resource, str):
            return self.resource.split(SEPARATOR, 1)[0]
        return self.resource.type

    @property
    def resource_instance_key(self) -> str | None:
        if isinstance(self.resource, str):
            parts = self.resource.split(SEPARATOR, 1)
            return parts[1] if len(parts) > 1 else None
        return self.resource.key

    @property
    def resource_key(self) -> str:
        """Display key of the resource, "type" or "type:instanceKey"."""
        if isinstance(self.resource, str):
            return self.resource
        if self.resource.key:
            return f"{self.resource.type}{SEPARATOR}{self.resource.key}"
        return self.resource.type


class DecisionDebug(ApiModel):
    model_config = ConfigDict(frozen=True)

    matched_roles: tuple[str, ...] = ()
    matched_permissions: tuple[str, ...] = ()
    evaluation_time: float = 0.0


class CheckDecision(ApiModel):
    """Outcome of a permission check. Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    allowed: bool
    reason: str
    debug: DecisionDebug | None = None


class BulkCheckResult(ApiModel):
    model_config = ConfigDict(frozen=True)

    request: CheckRequest
    response: CheckDecision


class PermissionsQuery(ApiModel):
    user: str
    tenant: str | None = None
    resource: str | None = None


class PermissionsResult(ApiModel):
    roles: list[str] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)


class RoleGrant(ApiModel):
    role: str
    tenant: str | None = None


class SyncUserRequest(User):
    """User fields to upsert plus the roles to assign afterwards."""

    roles: list[RoleGrant] = Field(default_factory=list)
