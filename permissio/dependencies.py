"""FastAPI integration - protect endpoints with Permissio checks."""

from collections.abc import Awaitable, Callable, Coroutine
from typing import Annotated, Any, Generic, TypeVar

from fastapi import Depends, FastAPI, Request

from permissio.core import Permissio
from permissio.exceptions import Forbidden
from permissio.models import CheckRequest, CheckResource, CheckUser

UserT = TypeVar("UserT")


async def _permissio_user_dependency_placeholder(request: Request) -> Any:
    """Placeholder dependency for user authentication.

    Replaced at runtime via FastAPI's dependency_overrides when PermissioAuthz
    is created with a user_dependency. Otherwise falls back to reading
    request.state.user, which must be set by the application's own auth.
    """
    return getattr(request.state, "user", None)


def _default_user_key(user: Any) -> str | CheckUser:
    if isinstance(user, (str, CheckUser)):
        return user
    return str(user.key)


class PermissioAuthz(Generic[UserT]):
    """Attaches a Permissio client to a FastAPI application.

    Args:
        app: The FastAPI application instance.
        client: The Permissio client used for checks.
        get_user_key: Callable that maps the authenticated user to a user key
            (or CheckUser). Defaults to the user's `key` attribute.
        user_dependency: Optional FastAPI dependency that returns the authenticated user.
            When provided, protected endpoints run it before the permission check.
    """

    def __init__(
        self,
        app: FastAPI,
        client: Permissio,
        get_user_key: Callable[[UserT], str | CheckUser] = _default_user_key,
        user_dependency: Callable[..., UserT] | Callable[..., Awaitable[UserT]] | None = None,
    ) -> None:
        self.app = app
        self.client = client
        self.get_user_key = get_user_key
        self.user_dependency = user_dependency

        app.state.permissio = self

        if user_dependency is not None:
            app.dependency_overrides[_permissio_user_dependency_placeholder] = user_dependency


def PermissioUser(request: Request) -> Any:
    """Get the authenticated user stored in request.state.user.

    Raises:
        Forbidden: If no user is found in request state.
    """
    user = getattr(request.state, "user", None)
    if user is None:
        raise Forbidden("User not authenticated")
    return user


def require_permission(
    action: str,
    resource: str,
    *,
    tenant: str | None = None,
    resource_key_param: str | None = None,
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Create a dependency that requires a permission for the current user.

    Args:
        action: The action to check (e.g. "read").
        resource: The resource type, or "type:instanceKey".
        tenant: Optional tenant to scope the role assignments to.
        resource_key_param: Name of a path parameter holding the resource
            instance key (e.g. "document_id" for "/documents/{document_id}").

    Returns:
        An async dependency for use with Depends() or a route's dependencies list.

    Example:
        @app.delete("/documents/{doc_id}", dependencies=[
            Depends(require_permission("delete", "document", resource_key_param="doc_id"))
        ])
        async def delete_document(doc_id: str): ...
    """

    async def permission_dependency(
        request: Request,
        user: Annotated[Any, Depends(_permissio_user_dependency_placeholder)],
    ) -> None:
        authz: PermissioAuthz[Any] | None = getattr(request.app.state, "permissio", None)
        if authz is None:
            raise RuntimeError(
                "PermissioAuthz not configured. Make sure to create a PermissioAuthz instance with your app."
            )

        if user is None:
            raise Forbidden("User not authenticated")
        request.state.user = user

        target: str | CheckResource = resource
        if resource_key_param is not None:
            target = CheckResource(type=resource, key=request.path_params.get(resource_key_param))

        decision = await authz.client.check_with_details(
            CheckRequest(user=authz.get_user_key(user), action=action, resource=target, tenant=tenant)
        )
        if not decision.allowed:
            raise Forbidden(decision.reason)

    return permission_dependency
