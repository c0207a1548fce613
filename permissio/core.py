import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from typing import Any

import httpx

from permissio.api import ApiClient, PermissioApi
from permissio.config import PermissioConfig, resolve_config
from permissio.exceptions import AccessDeniedError, PermissioError
from permissio.models import (
    BulkCheckResult,
    CheckDecision,
    CheckRequest,
    DecisionDebug,
    PermissionsQuery,
    PermissionsResult,
    Role,
    RoleAssignment,
    SyncUserRequest,
    User,
)
from permissio.permissions import is_granted, permission_for, resolve_permissions
from permissio.scope import ScopeResolver

logger = logging.getLogger(__name__)

# Roles are read as a single page, pagination is left to the store
ROLES_PAGE_SIZE = 100

ERROR_REASON = "Error during permission check"


class Permissio:
    """Client-side permission checks against a Permissio authorization store.

    Each check fetches the user's role assignments and the role table,
    resolves role inheritance locally and matches the required permission.
    Nothing is cached between calls.

    Args:
        token: API key, format "permis_key_<key>".
        project_id: Project partition. Fetched from the api-key scope when omitted.
        environment_id: Environment partition. Fetched from the api-key scope when omitted.
        throw_on_error: Raise store errors from public operations instead of
            degrading them to negative results.
        transport: Optional httpx transport, mainly for tests.
        **options: Any other PermissioConfig field (api_url, timeout, debug, ...).

    Example:
        async with Permissio("permis_key_...") as permissio:
            allowed = await permissio.check(
                CheckRequest(user="user@example.com", action="read", resource="document")
            )
    """

    def __init__(
        self,
        token: str,
        *,
        project_id: str | None = None,
        environment_id: str | None = None,
        throw_on_error: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        **options: Any,
    ) -> None:
        self.config: PermissioConfig = resolve_config(
            token,
            project_id=project_id,
            environment_id=environment_id,
            throw_on_error=throw_on_error,
            **options,
        )
        self.api = PermissioApi(ApiClient(self.config, transport=transport))
        self._scope = ScopeResolver(self.config, self.api.scope.fetch)

    async def __aenter__(self) -> "Permissio":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.api.aclose()

    # =========================================================================
    # Permission checks
    # =========================================================================

    async def check(self, request: CheckRequest) -> bool:
        """Check if a user may perform an action on a resource."""
        decision = await self.check_with_details(request)
        return decision.allowed

    async def check_with_details(self, request: CheckRequest) -> CheckDecision:
        """Check a permission and explain the decision.

        Returns:
            The decision with the matched roles and permissions.

        Raises:
            PermissioError: When the store cannot be reached and throw_on_error is set.
        """
        started = time.perf_counter()
        try:
            return await self._evaluate(request, started)
        except PermissioError as exc:
            if self.config.throw_on_error:
                raise
            logger.warning("Permission check failed, denying: %s", exc)
            return CheckDecision(allowed=False, reason=f"{ERROR_REASON}: {exc}")

    async def _evaluate(self, request: CheckRequest, started: float) -> CheckDecision:
        await self._scope.ensure()

        user_key = request.user_key
        resource_type = request.resource_type
        required = permission_for(resource_type, request.action)
        logger.debug(
            "Check: user=%s action=%s resource=%s required=%s",
            user_key,
            request.action,
            request.resource_key,
            required,
        )

        assignments = await self._list_assignments(user_key, request.tenant)
        if self.config.enforce_resource_scope:
            assignments = [
                a for a in assignments if _assignment_applies(a, resource_type, request.resource_instance_key)
            ]
        if not assignments:
            return CheckDecision(allowed=False, reason=f"User {user_key} has no role assignments")

        role_keys = _unique_roles(assignments)
        roles = await self._fetch_role_table()

        matched_roles: list[str] = []
        matched_permissions: list[str] = []
        for role_key in role_keys:
            permissions = resolve_permissions(role_key, roles)
            if self.config.debug:
                logger.debug("Role %r resolves to %s", role_key, sorted(permissions))
            if is_granted(required, permissions, resource_type=resource_type):
                matched_roles.append(role_key)
                matched_permissions.append(required)

        allowed = bool(matched_roles)
        logger.debug("Result: allowed=%s matched_roles=%s", allowed, matched_roles)
        return CheckDecision(
            allowed=allowed,
            reason=(
                f"Granted by role(s): {', '.join(matched_roles)}"
                if allowed
                else f"No role grants permission {required}"
            ),
            debug=DecisionDebug(
                matched_roles=tuple(matched_roles),
                matched_permissions=tuple(matched_permissions),
                evaluation_time=(time.perf_counter() - started) * 1000,
            ),
        )

    async def bulk_check(self, requests: Sequence[CheckRequest]) -> list[BulkCheckResult]:
        """Run several checks concurrently.

        Results are returned in the order of `requests`.
        """
        try:
            await self._scope.ensure()
            decisions = await asyncio.gather(*(self.check_with_details(request) for request in requests))
        except PermissioError:
            if self.config.throw_on_error:
                raise
            logger.warning("Bulk check failed, denying all %d checks", len(requests), exc_info=True)
            decisions = [CheckDecision(allowed=False, reason=ERROR_REASON) for _ in requests]

        return [
            BulkCheckResult(request=request, response=decision)
            for request, decision in zip(requests, decisions, strict=True)
        ]

    async def get_permissions(self, query: PermissionsQuery) -> PermissionsResult:
        """List the roles of a user and every permission they grant."""
        try:
            await self._scope.ensure()
            if self.config.enforce_resource_scope and query.resource is not None:
                # Unscoped assignments also cover the resource, so filter locally
                assignments = [
                    a
                    for a in await self._list_assignments(query.user, query.tenant)
                    if _assignment_applies(a, query.resource, None)
                ]
            else:
                assignments = await self._list_assignments(query.user, query.tenant, resource=query.resource)
            if not assignments:
                return PermissionsResult()

            role_keys = _unique_roles(assignments)
            roles = await self._fetch_role_table()
        except PermissioError as exc:
            if self.config.throw_on_error:
                raise
            logger.warning("Listing permissions of %s failed: %s", query.user, exc)
            return PermissionsResult()

        permissions: dict[str, None] = {}
        for role_key in role_keys:
            permissions.update(dict.fromkeys(sorted(resolve_permissions(role_key, roles))))
        return PermissionsResult(roles=role_keys, permissions=list(permissions))

    async def check_and_throw(self, request: CheckRequest) -> None:
        """Check a permission and raise if it is not granted.

        Raises:
            AccessDeniedError: If the decision is negative.
        """
        decision = await self.check_with_details(request)
        if not decision.allowed:
            raise AccessDeniedError(
                user_key=request.user_key,
                action=request.action,
                resource_key=request.resource_key,
                decision=decision,
                details={
                    "request": request.to_wire(),
                    "response": decision.to_wire(),
                },
            )

    # =========================================================================
    # Store helpers
    # =========================================================================

    async def sync_user(self, user: SyncUserRequest) -> User:
        """Upsert a user and assign the given roles."""
        await self._scope.ensure()
        synced = await self.api.users.sync(User.model_validate(user.model_dump(exclude={"roles"})))
        if user.roles:
            await asyncio.gather(
                *(
                    self.api.role_assignments.assign(
                        RoleAssignment(user=user.key, role=grant.role, tenant=grant.tenant)
                    )
                    for grant in user.roles
                )
            )
        return synced

    async def get_scope(self) -> dict[str, str | None]:
        """Return the project and environment ids, fetching them if needed."""
        await self._scope.ensure()
        return {
            "project_id": self.config.project_id,
            "environment_id": self.config.environment_id,
        }

    def get_config(self) -> dict[str, Any]:
        return self.config.model_dump(include={"token", "api_url", "project_id", "environment_id", "debug", "timeout"})

    async def _list_assignments(
        self,
        user_key: str,
        tenant: str | None,
        resource: str | None = None,
    ) -> list[RoleAssignment]:
        page = await self.api.role_assignments.list(user=user_key, tenant=tenant, resource=resource)
        return page.data

    async def _fetch_role_table(self) -> Mapping[str, Role]:
        page = await self.api.roles.list(per_page=ROLES_PAGE_SIZE)
        roles = {role.key: role for role in page.data}
        if self.config.debug:
            for key, role in roles.items():
                logger.debug("Role %r: permissions=%s extends=%s", key, role.permissions, role.extends)
        return roles


def _unique_roles(assignments: Sequence[RoleAssignment]) -> list[str]:
    """Role keys of the assignments, de-duplicated in first-seen order."""
    return list(dict.fromkeys(assignment.role for assignment in assignments))


def _assignment_applies(assignment: RoleAssignment, resource_type: str, instance_key: str | None) -> bool:
    """Check if an assignment's resource scope covers the checked resource.

    Unscoped assignments apply everywhere. A type-scoped assignment applies to
    that type, an instance-scoped one only to that instance.
    """
    if assignment.resource is None:
        return True
    if assignment.resource != resource_type:
        return False
    return assignment.resource_instance is None or assignment.resource_instance == instance_key

