"""Tests for application settings."""

import pytest

from audiocoach.config.settings import Settings


class TestEnvironmentFlags:
    def test_development(self) -> None:
        settings = Settings(environment="development")

        assert settings.is_development is True
        assert settings.is_production is False

    def test_production(self) -> None:
        settings = Settings(environment="production")

        assert settings.is_production is True
        assert settings.is_development is False


class TestEnvironmentVariables:
    def test_reads_cassandra_hosts(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CASSANDRA_HOSTS", '["db1", "db2"]')

        assert Settings().cassandra_hosts == ["db1", "db2"]

    def test_server_variables_are_ignored(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("API_PORT", "9000")

        settings = Settings()

        assert not hasattr(settings, "debug")
        assert not hasattr(settings, "api_port")
