"""AuthConfig 테스트"""

import pytest

from oxa.config import (
    AUTH_URL,
    DEFAULT_PORT,
    PORT_RANGE,
    SCOPES,
    SERVER_TIMEOUT_SECS,
    AuthConfig,
)


class TestAuthConfig:

    def test_defaults(self):
        config = AuthConfig()

        assert config.authorize_url == AUTH_URL
        assert config.scopes == SCOPES
        assert config.port_start == DEFAULT_PORT
        assert config.port_range == PORT_RANGE
        assert config.server_timeout == SERVER_TIMEOUT_SECS
        assert config.max_retries == 3
        assert config.initial_retry_delay == 1.0

    def test_scopes_are_not_shared(self):
        a = AuthConfig()
        a.scopes.append("gist")

        assert AuthConfig().scopes == SCOPES

    def test_scope_string(self):
        config = AuthConfig(scopes=["repo", "read:org", "workflow"])
        assert config.scope_string == "repo read:org workflow"


class TestFromEnv:

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("OXA_CLIENT_ID", "env-client")
        monkeypatch.setenv("OXA_SCOPES", "repo  workflow")
        monkeypatch.setenv("OXA_PORT_START", "9000")
        monkeypatch.setenv("OXA_SERVER_TIMEOUT", "12.5")

        config = AuthConfig.from_env()

        assert config.client_id == "env-client"
        assert config.scopes == ["repo", "workflow"]
        assert config.port_start == 9000
        assert config.server_timeout == 12.5

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("OXA_CLIENT_ID", "env-client")

        config = AuthConfig.from_env(client_id="explicit")

        assert config.client_id == "explicit"

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("TEST_PORT_RANGE", "5")

        assert AuthConfig.from_env(prefix="TEST_").port_range == 5

    def test_invalid_number(self, monkeypatch):
        monkeypatch.setenv("OXA_PORT_RANGE", "many")

        with pytest.raises(ValueError) as exc_info:
            AuthConfig.from_env()

        assert "OXA_PORT_RANGE" in str(exc_info.value)
