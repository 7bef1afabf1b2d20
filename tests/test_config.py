"""
Tests for loading settings from the environment and .env files.
"""

from pathlib import Path

import pytest

from cdrhook.config import ConfigurationError, Settings, load_settings

ENV_VARS = [
    "WEBHOOK_URL",
    "WEBHOOK_HEADERS",
    "FREESWITCH_HOST",
    "FREESWITCH_PORT",
    "FREESWITCH_PASSWORD",
    "RECORDINGS_DIR",
    "TECH_PREFIX",
    "RECONNECT_DELAY",
    "DELIVERY_RETRIES",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Remove forwarder variables; setenv first so they are restored afterwards."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return tmp_path / "missing.env"


class TestLoadSettings:

    def test_defaults(self, clean_env, monkeypatch):
        monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/calls")

        settings = load_settings(clean_env)

        assert settings.webhook_url == "https://hooks.example.com/calls"
        assert settings.webhook_headers == {}
        assert settings.freeswitch_host == "127.0.0.1"
        assert settings.freeswitch_port == 8021
        assert settings.freeswitch_password == "ClueCon"
        assert settings.min_call_duration == 2
        assert settings.recording_grace_period == 2.0
        assert settings.reconnect_delay == 5.0
        assert settings.delivery_retries == 20

    def test_reads_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/calls")
        monkeypatch.setenv("WEBHOOK_HEADERS", '{"Authorization": "Bearer abc"}')
        monkeypatch.setenv("FREESWITCH_PORT", "8022")
        monkeypatch.setenv("RECORDINGS_DIR", "/srv/recordings")
        monkeypatch.setenv("TECH_PREFIX", "gw1-")

        settings = load_settings(clean_env)

        assert settings.webhook_headers == {"Authorization": "Bearer abc"}
        assert settings.freeswitch_port == 8022
        assert settings.recordings_dir == Path("/srv/recordings")
        assert settings.tech_prefix == "gw1-"

    def test_reads_dotenv_file(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("WEBHOOK_URL=https://dotenv.example.com/calls\nRECONNECT_DELAY=7.5\n")

        settings = load_settings(env_file)

        assert settings.webhook_url == "https://dotenv.example.com/calls"
        assert settings.reconnect_delay == 7.5

    def test_webhook_url_is_required(self, clean_env):
        with pytest.raises(ConfigurationError, match="WEBHOOK_URL"):
            load_settings(clean_env)

    @pytest.mark.parametrize(
        "name, value",
        [
            ("FREESWITCH_PORT", "eighty"),
            ("RECONNECT_DELAY", "soon"),
            ("WEBHOOK_HEADERS", "not json"),
            ("WEBHOOK_HEADERS", '["a", "b"]'),
        ],
    )
    def test_malformed_values(self, clean_env, monkeypatch, name, value):
        monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/calls")
        monkeypatch.setenv(name, value)
        with pytest.raises(ConfigurationError):
            load_settings(clean_env)

    def test_settings_are_frozen(self):
        settings = Settings(webhook_url="https://hooks.example.com/calls")
        with pytest.raises(Exception):
            settings.webhook_url = "https://elsewhere.example.com"
