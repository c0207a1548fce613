from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from permissio.models import Role

WILDCARD = "*"
SEPARATOR = ":"
GLOBAL_WILDCARD = f"{WILDCARD}{SEPARATOR}{WILDCARD}"


def permission_for(resource_type: str, action: str) -> str:
    """Build the fully qualified permission string for an action on a resource type."""
    return f"{resource_type}{SEPARATOR}{action}"


def is_granted(required: str, granted: Iterable[str], resource_type: str | None = None) -> bool:
    """Check if a set of granted permissions satisfies a required permission.

    The required permission is always fully qualified ('document:read').
    It is satisfied by the exact string, by the type wildcard ('document:*')
    or by the global wildcard ('*:*'). Keys are compared byte-for-byte,
    there is no prefix or case-insensitive matching.

    Pass `resource_type` when the type itself may contain the separator
    ('org:doc'), otherwise it is taken from `required` up to the first one.
    """
    granted = granted if isinstance(granted, (set, frozenset)) else set(granted)
    if resource_type is None:
        resource_type = required.split(SEPARATOR, 1)[0]
    return (
        required in granted
        or permission_for(resource_type, WILDCARD) in granted
        or GLOBAL_WILDCARD in granted
    )


def resolve_permissions(role_key: str, roles: Mapping[str, "Role"]) -> frozenset[str]:
    """Resolve the permission closure of a role.

    Collects the role's direct permissions plus everything inherited through
    its `extends` chain. Each role is expanded at most once per call, so
    diamonds and cycles terminate and contribute their permissions only once.
    Unknown role keys grant nothing.

    Args:
        role_key: Key of the role to resolve.
        roles: Mapping of role key to role definition.

    Returns:
        The de-duplicated set of permission strings.
    """
    permissions: set[str] = set()
    visited: set[str] = set()
    stack = [role_key]

    while stack:
        key = stack.pop()
        if key in visited:
            continue
        visited.add(key)

        role = roles.get(key)
        if role is None:
            continue

        permissions.update(role.permissions)
        # Reversed so parents are expanded in declaration order
        stack.extend(parent for parent in reversed(role.extends) if parent not in visited)

    return frozenset(permissions)

