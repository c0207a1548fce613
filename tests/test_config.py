import pytest

from permissio import ConfigurationError, Permissio, PermissioConfig, resolve_config
from permissio.config import DEFAULT_API_URL


class TestResolveConfig:
    def test_applies_defaults(self) -> None:
        config = resolve_config("permis_key_abc")
        assert config.api_url == DEFAULT_API_URL
        assert config.timeout == 30.0
        assert config.debug is False
        assert config.throw_on_error is True
        assert config.enforce_resource_scope is False
        assert config.custom_headers == {}

    def test_none_options_fall_back_to_defaults(self) -> None:
        config = resolve_config("permis_key_abc", throw_on_error=None, project_id=None)
        assert config.throw_on_error is True
        assert config.project_id is None

    def test_missing_token(self) -> None:
        with pytest.raises(ConfigurationError, match="token is required"):
            resolve_config("")

    def test_malformed_token(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid API key format"):
            resolve_config("sk_live_123")

    def test_unknown_option(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid configuration"):
            resolve_config("permis_key_abc", retries=3)

    def test_client_rejects_bad_token_at_construction(self) -> None:
        with pytest.raises(ConfigurationError):
            Permissio("not-a-key")


class TestScopeValues:
    def test_has_scope_requires_both(self) -> None:
        assert PermissioConfig(token="permis_key_a", project_id="p").has_scope() is False
        assert PermissioConfig(token="permis_key_a", project_id="p", environment_id="e").has_scope() is True

    def test_update_scope_fills_missing_values(self) -> None:
        config = PermissioConfig(token="permis_key_a")
        config.update_scope("p", "e")
        assert (config.project_id, config.environment_id) == ("p", "e")

    def test_update_scope_never_overwrites_explicit_values(self) -> None:
        config = PermissioConfig(token="permis_key_a", project_id="explicit")
        config.update_scope("fetched", "env")
        assert config.project_id == "explicit"
        assert config.environment_id == "env"

    def test_get_config_snapshot(self) -> None:
        client = Permissio("permis_key_abc", project_id="p", environment_id="e", timeout=5)
        assert client.get_config() == {
            "token": "permis_key_abc",
            "api_url": DEFAULT_API_URL,
            "project_id": "p",
            "environment_id": "e",
            "debug": False,
            "timeout": 5.0,
        }
