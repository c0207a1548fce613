"""HTTP collaborators for the Permissio authorization store.

Thin request/response wrappers over the REST API. The only shaping done here
is turning transport failures into PermissioApiError and normalizing list
responses into a single Page shape before they reach the decision engine.
"""

from __future__ import annotations

import logging
from typing import Any, TypeVar
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ValidationError

from permissio.config import PermissioConfig
from permissio.exceptions import PermissioApiError
from permissio.models import ApiKeyScope, Page, Role, RoleAssignment, User

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

SCHEMA_PREFIX = "/schema"
SCOPE_PATH = "/v1/api-key/scope"


def _encode(key: str) -> str:
    return quote(key, safe="")


def normalize_list(payload: Any, item_model: type[ModelT]) -> Page[ModelT]:
    """Normalize a list response into a Page.

    The store may answer with a bare JSON array or with a wrapped
    `{"data": [...], "page": ...}` object. Anything else is an empty page.
    """
    if isinstance(payload, list):
        payload = {
            "data": payload,
            "page": 1,
            "perPage": len(payload),
            "total": len(payload),
            "totalPages": 1,
        }
    elif not isinstance(payload, dict) or "data" not in payload:
        return Page[item_model]()  # type: ignore[valid-type]

    return _validate(Page[item_model], payload)  # type: ignore[valid-type]


def _validate(model: type[ModelT], payload: Any) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise PermissioApiError(
            f"Unexpected response payload for {model.__name__}",
            code="INVALID_RESPONSE",
            details={"errors": exc.errors(include_url=False)},
        ) from exc


class ApiClient:
    """Shared HTTP client bound to one Permissio configuration.

    Args:
        config: The client configuration. Scope values are read on every
            request, so a scope resolved after construction is picked up.
        transport: Optional httpx transport, mainly for tests.
    """

    def __init__(self, config: PermissioConfig, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.config = config
        self._http = httpx.AsyncClient(
            base_url=config.api_url,
            timeout=config.timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
                "Authorization": f"Bearer {config.token}",
                **config.custom_headers,
            },
        )

    def build_path(self, path: str) -> str:
        """Map an API path onto the scoped schema or facts namespace."""
        project_id, environment_id = self.config.project_id, self.config.environment_id
        has_scope = bool(project_id and environment_id)

        if path.startswith(SCHEMA_PREFIX):
            if has_scope:
                return f"/v1/schema/{project_id}/{environment_id}{path[len(SCHEMA_PREFIX):]}"
            return f"/v1{path}"

        if has_scope:
            return f"/v1/facts/{project_id}/{environment_id}{path}"
        return f"/v1{path}"

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        scoped: bool = True,
    ) -> Any:
        """Send a request and return the decoded JSON body (None when empty).

        Raises:
            PermissioApiError: On transport failures and non-2xx responses.
        """
        url = self.build_path(path) if scoped else path
        if params:
            params = {name: value for name, value in params.items() if value is not None}

        logger.debug("Request: %s %s params=%s", method, url, params)
        try:
            response = await self._http.request(method, url, params=params, json=json)
        except httpx.HTTPError as exc:
            logger.error("Network error on %s %s: %s", method, url, exc)
            raise PermissioApiError(
                "Network error - no response received",
                code="NETWORK_ERROR",
                details={"error": str(exc)},
            ) from exc

        logger.debug("Response: %s %s", response.status_code, url)
        if response.is_error:
            raise self._to_api_error(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PermissioApiError(
                "Response body is not valid JSON",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            ) from exc

    @staticmethod
    def _to_api_error(response: httpx.Response) -> PermissioApiError:
        try:
            body = response.json()
        except ValueError:
            body = None
        details = body if isinstance(body, dict) else {}
        error = PermissioApiError(
            details.get("message") or f"HTTP {response.status_code} from {response.request.url.path}",
            status_code=response.status_code,
            code=details.get("code") or "API_ERROR",
            details=details,
        )
        logger.error("API error: %r", error)
        return error

    async def aclose(self) -> None:
        await self._http.aclose()


class RolesApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def list(self, *, page: int | None = None, per_page: int | None = None) -> Page[Role]:
        payload = await self.client.request("GET", "/schema/roles", params={"page": page, "perPage": per_page})
        return normalize_list(payload, Role)

    async def get(self, role_key: str) -> Role:
        payload = await self.client.request("GET", f"/schema/roles/{_encode(role_key)}")
        return _validate(Role, payload)


class RoleAssignmentsApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def list(
        self,
        *,
        user: str | None = None,
        tenant: str | None = None,
        role: str | None = None,
        resource: str | None = None,
        page: int | None = None,
        per_page: int | None = None,
    ) -> Page[RoleAssignment]:
        """List role assignments, filtered server-side by the given fields."""
        payload = await self.client.request(
            "GET",
            "/role_assignments",
            params={
                "user": user,
                "tenant": tenant,
                "role": role,
                "resource": resource,
                "page": page,
                "perPage": per_page,
            },
        )
        return normalize_list(payload, RoleAssignment)

    async def assign(self, assignment: RoleAssignment) -> RoleAssignment:
        payload = await self.client.request("POST", "/role_assignments", json=assignment.to_wire())
        return _validate(RoleAssignment, payload)

    async def unassign(self, assignment: RoleAssignment) -> None:
        params = assignment.to_wire()
        params.pop("id", None)
        await self.client.request("DELETE", "/role_assignments", params=params)


class UsersApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def get(self, user_key: str) -> User:
        payload = await self.client.request("GET", f"/users/{_encode(user_key)}")
        return _validate(User, payload)

    async def sync(self, user: User) -> User:
        """Create or update a user."""
        payload = await self.client.request("PUT", f"/users/{_encode(user.key)}", json=user.to_wire())
        return _validate(User, payload)


class ScopeApi:
    def __init__(self, client: ApiClient) -> None:
        self.client = client

    async def fetch(self) -> ApiKeyScope:
        """Fetch the project/environment scope of the configured API key."""
        payload = await self.client.request("GET", SCOPE_PATH, scoped=False)
        return _validate(ApiKeyScope, payload)


class PermissioApi:
    """All store API groups, sharing one HTTP client."""

    def __init__(self, client: ApiClient) -> None:
        self.client = client
        self.roles = RolesApi(client)
        self.role_assignments = RoleAssignmentsApi(client)
        self.users = UsersApi(client)
        self.scope = ScopeApi(client)

    async def aclose(self) -> None:
        await self.client.aclose()
