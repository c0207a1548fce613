from typing import TYPE_CHECKING, Any

from fastapi import HTTPException

if TYPE_CHECKING:
    from permissio.models import CheckDecision


class PermissioError(Exception):
    """Base class for all Permissio SDK errors."""


class ConfigurationError(PermissioError):
    """Missing or malformed client configuration."""


class ScopeResolutionError(PermissioError):
    """The project/environment scope could not be determined."""


class PermissioApiError(PermissioError):
    """A call to the authorization store failed.

    Args:
        message: Human-readable error message.
        status_code: HTTP status of the failed response, 0 when no response was received.
        code: Machine-readable error code (e.g. "API_ERROR", "NETWORK_ERROR").
        details: Structured error payload, usually the response body.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 0,
        code: str = "API_ERROR",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.details = details or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, status_code={self.status_code}, code={self.code!r})"


class AccessDeniedError(PermissioApiError):
    """Raised by check_and_throw when the decision is negative."""

    def __init__(
        self,
        user_key: str,
        action: str,
        resource_key: str,
        decision: "CheckDecision",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Access denied: User {user_key} is not allowed to perform {action} on {resource_key}",
            status_code=403,
            code="ACCESS_DENIED",
            details=details,
        )
        self.user_key = user_key
        self.action = action
        self.resource_key = resource_key
        self.decision = decision


class Forbidden(HTTPException):
    """403 Forbidden - user lacks required permissions."""

    def __init__(self, detail: str = "Forbidden") -> None:
        super().__init__(status_code=403, detail=detail)
