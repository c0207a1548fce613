from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from permissio.exceptions import ConfigurationError

DEFAULT_API_URL = "https://api.permissio.io"
TOKEN_PREFIX = "permis_key_"


class PermissioConfig(BaseModel):
    """Resolved client configuration.

    Args:
        token: API key, format "permis_key_<key>".
        api_url: Base URL of the authorization service.
        project_id: Project partition. Fetched from the api-key scope when omitted.
        environment_id: Environment partition. Fetched from the api-key scope when omitted.
        debug: Log role tables and per-role closures during checks.
        timeout: Request timeout in seconds.
        custom_headers: Extra headers sent with every request.
        throw_on_error: Raise upstream errors instead of degrading to negative results.
        enforce_resource_scope: Ignore resource-scoped role assignments that do not
            match the resource being checked.
    """

    model_config = ConfigDict(extra="forbid")

    token: str
    api_url: str = DEFAULT_API_URL
    project_id: str | None = None
    environment_id: str | None = None
    debug: bool = False
    timeout: float = 30.0
    custom_headers: dict[str, str] = Field(default_factory=dict)
    throw_on_error: bool = True
    enforce_resource_scope: bool = False

    def has_scope(self) -> bool:
        """Check if both project and environment are known."""
        return bool(self.project_id and self.environment_id)

    def has_partial_scope(self) -> bool:
        return bool(self.project_id or self.environment_id)

    def update_scope(self, project_id: str | None, environment_id: str | None) -> None:
        """Fill in missing scope values. Explicitly configured values are kept."""
        if project_id and not self.project_id:
            self.project_id = project_id
        if environment_id and not self.environment_id:
            self.environment_id = environment_id


def resolve_config(token: str, **options: Any) -> PermissioConfig:
    """Validate the token and build a configuration with defaults applied.

    Raises:
        ConfigurationError: If the token is missing or malformed.
    """
    if not token:
        raise ConfigurationError("Permissio SDK: API token is required")
    if not token.startswith(TOKEN_PREFIX):
        raise ConfigurationError(f"Permissio SDK: Invalid API key format. Expected format: {TOKEN_PREFIX}<key>")

    # None means "use the default"
    options = {name: value for name, value in options.items() if value is not None}
    try:
        return PermissioConfig(token=token, **options)
    except ValidationError as exc:
        raise ConfigurationError(f"Permissio SDK: Invalid configuration: {exc}") from exc
