from permissio import (
    AccessDeniedError,
    CheckDecision,
    ConfigurationError,
    Forbidden,
    PermissioApiError,
    PermissioError,
    ScopeResolutionError,
)


class TestExceptions:
    def test_forbidden_has_403_status_code(self) -> None:
        exc = Forbidden()
        assert exc.status_code == 403

    def test_forbidden_has_default_detail(self) -> None:
        exc = Forbidden()
        assert exc.detail == "Forbidden"

    def test_forbidden_accepts_custom_detail(self) -> None:
        exc = Forbidden(detail="Custom message")
        assert exc.detail == "Custom message"

    def test_sdk_errors_share_a_base(self) -> None:
        assert issubclass(ConfigurationError, PermissioError)
        assert issubclass(ScopeResolutionError, PermissioError)
        assert issubclass(PermissioApiError, PermissioError)
        assert issubclass(AccessDeniedError, PermissioApiError)

    def test_api_error_defaults(self) -> None:
        exc = PermissioApiError("boom")
        assert str(exc) == "boom"
        assert exc.status_code == 0
        assert exc.code == "API_ERROR"
        assert exc.details == {}

    def test_access_denied_carries_decision(self) -> None:
        decision = CheckDecision(allowed=False, reason="No role grants permission document:delete")
        exc = AccessDeniedError("u1", "delete", "document:doc-1", decision)
        assert exc.status_code == 403
        assert exc.code == "ACCESS_DENIED"
        assert exc.user_key == "u1"
        assert exc.action == "delete"
        assert exc.resource_key == "document:doc-1"
        assert exc.decision is decision
        assert str(exc) == "Access denied: User u1 is not allowed to perform delete on document:doc-1"
