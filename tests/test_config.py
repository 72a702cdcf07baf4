"""
Configuration Tests
===================
"""

import pytest
from pydantic import ValidationError

from taxi_simulator.config import Settings, load_config


ENV_VARS = [
    "TAXISIM_CONFIG",
    "TAXISIM_HUB_URL",
    "TAXISIM_BROADCAST_INTERVAL",
    "TAXISIM_TICK_INTERVAL",
    "TAXISIM_ROUTE_URL",
    "GOOGLE_MAPS_API_KEY",
    "TAXISIM_UUID_SERVICE_URL",
    "TAXISIM_RECONNECT_BACKOFF_MS",
    "TAXISIM_PORT",
    "PORT",
    "TAXISIM_LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestDefaults:
    def test_defaults(self):
        settings = Settings()
        assert settings.hub.url == "ws://127.0.0.1:4200"
        assert settings.hub.include_heading is False
        assert settings.streamer.tick_interval_seconds == 1.7
        assert settings.routing.precision == 5
        assert settings.client.reconnect_backoff_ms == 500
        assert settings.server.port == 4200


class TestLoadConfig:
    """YAML file plus environment overrides."""

    def test_yaml_values(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "hub:\n"
            "  url: ws://hub.local:9000\n"
            "  include_heading: true\n"
            "streamer:\n"
            "  tick_interval_seconds: 0.5\n"
        )

        settings = load_config(str(path))

        assert settings.hub.url == "ws://hub.local:9000"
        assert settings.hub.include_heading is True
        assert settings.streamer.tick_interval_seconds == 0.5
        assert settings.server.port == 4200

    def test_env_overrides_yaml(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("streamer:\n  tick_interval_seconds: 0.5\n")
        monkeypatch.setenv("TAXISIM_TICK_INTERVAL", "3")
        monkeypatch.setenv("TAXISIM_ROUTE_URL", "http://routes.local")
        monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "secret")

        settings = load_config(str(path))

        assert settings.streamer.tick_interval_seconds == 3.0
        assert settings.routing.url == "http://routes.local"
        assert settings.routing.google_maps_api_key == "secret"

    def test_port_precedence(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("")
        monkeypatch.setenv("TAXISIM_PORT", "5000")
        monkeypatch.setenv("PORT", "8080")

        assert load_config(str(path)).server.port == 8080

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("server:\n  port: 4300\n")
        monkeypatch.setenv("TAXISIM_CONFIG", str(path))

        assert load_config().server.port == 4300

    def test_invalid_value_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("streamer:\n  tick_interval_seconds: -1\n")

        with pytest.raises(ValidationError):
            load_config(str(path))
