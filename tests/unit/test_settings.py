"""Unit tests for environment-driven provider settings."""

from conditional_access_provider.settings import Settings


class TestSettings:
    """Test settings loading."""

    def test_defaults(self, monkeypatch):
        for name in ("ARM_TENANT_ID", "ARM_CLIENT_ID", "ARM_CLIENT_SECRET"):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv("GRAPH_API_VERSION", raising=False)
        monkeypatch.delenv("GRAPH_ENDPOINT", raising=False)

        settings = Settings(_env_file=None)

        assert not settings.has_credentials
        assert settings.graph_base_url == "https://graph.microsoft.com/beta"
        assert settings.update_timeout_seconds == 300
        assert settings.update_poll_min_interval_seconds == 5
        assert settings.delete_poll_min_interval_seconds == 1
        assert settings.continuous_target_occurrence == 5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("ARM_TENANT_ID", "tenant")
        monkeypatch.setenv("ARM_CLIENT_ID", "client")
        monkeypatch.setenv("ARM_CLIENT_SECRET", "secret")
        monkeypatch.setenv("GRAPH_API_VERSION", "v1.0")
        monkeypatch.setenv("DELETE_TIMEOUT_SECONDS", "90")
        monkeypatch.setenv("JSON_LOGS", "false")

        settings = Settings(_env_file=None)

        assert settings.has_credentials
        assert settings.graph_base_url.endswith("/v1.0")
        assert settings.delete_timeout_seconds == 90
        assert settings.json_logs is False
