#!/usr/bin/env python3
"""
Tests for explicit configuration: endpoints, timeouts and placeholder policy.
"""

import pytest
import yaml

from growthlab.config import PUBLISHABLE_KEY_ENV, SUPABASE_URL_ENV, Configuration
from growthlab.llm.models import PlaceholderPolicy

BASE_CONFIG = {
    "supabase": {"functions_path": "/functions/v1"},
    "assistants": {
        "navigator": {"function": "navigator-chat"},
        "coach": {"function": "model-assistant"},
    },
    "http_client": {
        "connect_timeout": 5,
        "read_timeout": 30.0,
        "write_timeout": 5.0,
        "pool_timeout": 5.0,
    },
    "logging": {"level": "INFO"},
}


@pytest.fixture
def env(monkeypatch):
    monkeypatch.setenv(SUPABASE_URL_ENV, "https://abc.supabase.co/")
    monkeypatch.setenv(PUBLISHABLE_KEY_ENV, "pk-test")


@pytest.fixture
def write_config(tmp_path):
    def _write(data) -> str:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)
    return _write


class TestPackagedConfig:
    """Test the config.yaml shipped with the package."""

    def test_loads_both_assistants(self, env):
        config = Configuration()
        assert config.get_assistant_config("navigator")["function"] == "navigator-chat"
        assert config.get_assistant_config("coach")["function"] == "model-assistant"
        assert config.get_placeholder_policy("navigator") is PlaceholderPolicy.ALWAYS_REMOVE
        assert config.get_placeholder_policy("coach") is PlaceholderPolicy.REMOVE_IF_EMPTY


class TestEndpointConfig:
    """Test building endpoint configuration."""

    def test_navigator_endpoint(self, env, write_config):
        config = Configuration(write_config(BASE_CONFIG))
        endpoint = config.get_endpoint_config("navigator")

        assert endpoint.endpoint == "https://abc.supabase.co/functions/v1/navigator-chat"
        assert endpoint.auth_token == "pk-test"
        assert endpoint.headers["Authorization"] == "Bearer pk-test"
        assert endpoint.connect_timeout == 5.0
        assert endpoint.read_timeout == 30.0

    def test_missing_url(self, env, monkeypatch, write_config):
        monkeypatch.delenv(SUPABASE_URL_ENV)
        config = Configuration(write_config(BASE_CONFIG))
        with pytest.raises(ValueError, match=SUPABASE_URL_ENV):
            config.get_endpoint_config("navigator")

    def test_missing_key(self, env, monkeypatch, write_config):
        monkeypatch.delenv(PUBLISHABLE_KEY_ENV)
        config = Configuration(write_config(BASE_CONFIG))
        with pytest.raises(ValueError, match=PUBLISHABLE_KEY_ENV):
            config.get_endpoint_config("coach")

    def test_unknown_assistant(self, env, write_config):
        config = Configuration(write_config(BASE_CONFIG))
        with pytest.raises(ValueError, match="Assistant 'helpdesk' not found"):
            config.get_endpoint_config("helpdesk")

    def test_assistant_without_function(self, env, write_config):
        data = {**BASE_CONFIG, "assistants": {"navigator": {}}}
        config = Configuration(write_config(data))
        with pytest.raises(ValueError, match="assistants.navigator.function"):
            config.get_endpoint_config("navigator")


class TestHttpClientConfig:
    """Test that timeouts must be explicit and positive."""

    @pytest.mark.parametrize("key", [
        "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
    ])
    def test_missing_timeout(self, write_config, key):
        http_client = {k: v for k, v in BASE_CONFIG["http_client"].items() if k != key}
        config = Configuration(write_config({**BASE_CONFIG, "http_client": http_client}))
        with pytest.raises(ValueError, match=f"http_client.{key} must be explicitly"):
            config.get_http_client_config()

    @pytest.mark.parametrize("value", [0, -1, "fast"])
    def test_invalid_timeout(self, write_config, value):
        http_client = {**BASE_CONFIG["http_client"], "read_timeout": value}
        config = Configuration(write_config({**BASE_CONFIG, "http_client": http_client}))
        with pytest.raises(ValueError, match="must be a positive number"):
            config.get_http_client_config()


class TestPlaceholderPolicy:
    """Test the failed-turn placeholder policy setting."""

    def test_none_when_absent(self, write_config):
        config = Configuration(write_config(BASE_CONFIG))
        assert config.get_placeholder_policy("navigator") is None
        assert config.get_placeholder_policy("coach") is None

    def test_shared_setting_applies_to_both(self, write_config):
        assistants = {**BASE_CONFIG["assistants"], "placeholder_policy": "keep"}
        config = Configuration(write_config({**BASE_CONFIG, "assistants": assistants}))
        assert config.get_placeholder_policy("navigator") is PlaceholderPolicy.KEEP
        assert config.get_placeholder_policy("coach") is PlaceholderPolicy.KEEP

    def test_assistant_setting_wins_over_shared(self, write_config):
        assistants = {
            "navigator": {"function": "n", "placeholder_policy": "remove_if_empty"},
            "coach": {"function": "c"},
            "placeholder_policy": "always_remove",
        }
        config = Configuration(write_config({**BASE_CONFIG, "assistants": assistants}))
        assert config.get_placeholder_policy("navigator") is PlaceholderPolicy.REMOVE_IF_EMPTY
        assert config.get_placeholder_policy("coach") is PlaceholderPolicy.ALWAYS_REMOVE

    def test_invalid(self, write_config):
        assistants = {
            **BASE_CONFIG["assistants"],
            "navigator": {"function": "n", "placeholder_policy": "sometimes"},
        }
        config = Configuration(write_config({**BASE_CONFIG, "assistants": assistants}))
        with pytest.raises(
            ValueError, match="assistants.navigator.placeholder_policy must be one of"
        ):
            config.get_placeholder_policy("navigator")

    def test_invalid_shared(self, write_config):
        assistants = {**BASE_CONFIG["assistants"], "placeholder_policy": "sometimes"}
        config = Configuration(write_config({**BASE_CONFIG, "assistants": assistants}))
        with pytest.raises(ValueError, match="^assistants.placeholder_policy must be one of"):
            config.get_placeholder_policy("coach")


class TestConfigFile:
    """Test YAML loading."""

    def test_non_mapping_rejected(self, write_config):
        with pytest.raises(ValueError, match="must be YAML dict"):
            Configuration(write_config(["not", "a", "mapping"]))

    def test_logging_config(self, write_config):
        config = Configuration(write_config(BASE_CONFIG))
        assert config.get_logging_config() == {"level": "INFO"}
