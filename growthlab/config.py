"""Configuration management for the Growth Lab assistant client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

from growthlab.llm.models import EndpointConfig, PlaceholderPolicy

SUPABASE_URL_ENV = "GROWTH_LAB_SUPABASE_URL"
PUBLISHABLE_KEY_ENV = "GROWTH_LAB_PUBLISHABLE_KEY"


class Configuration:
    """Manages configuration and environment variables for the assistants."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables.

        Args:
            config_path: Alternate YAML file; defaults to the packaged config.yaml.
        """
        self.load_env()  # Load .env for the Supabase URL and key
        self._config = self._load_yaml_config(config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    def _load_yaml_config(self, config_path: str | None) -> dict[str, Any]:
        """Load configuration from YAML file."""
        path = config_path or os.path.join(os.path.dirname(__file__), "config.yaml")
        with open(path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def supabase_url(self) -> str:
        """Get the Supabase project URL.

        Raises:
            ValueError: If the URL is not set in the environment.
        """
        url = os.getenv(SUPABASE_URL_ENV)
        if not url:
            raise ValueError(
                f"'{SUPABASE_URL_ENV}' not found in environment variables"
            )
        return url.rstrip("/")

    @property
    def publishable_key(self) -> str:
        """Get the publishable key used as the bearer token.

        Raises:
            ValueError: If the key is not set in the environment.
        """
        key = os.getenv(PUBLISHABLE_KEY_ENV)
        if not key:
            raise ValueError(
                f"'{PUBLISHABLE_KEY_ENV}' not found in environment variables"
            )
        return key

    def get_http_client_config(self) -> dict[str, float]:
        """Get HTTP client timeouts.

        Returns:
            Timeout configuration dictionary with validated values.

        Raises:
            ValueError: If a timeout is missing or not positive.
        """
        http_config = self._config.get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured in config.yaml"
                )
            if not isinstance(http_config[key], int | float) or http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be a positive number")

        return {key: float(http_config[key]) for key in required_keys}

    def get_assistant_config(self, name: str) -> dict[str, Any]:
        """Get one assistant's configuration block.

        Raises:
            ValueError: If the assistant or its function name is not configured.
        """
        assistants = self._config.get("assistants", {})
        if name not in assistants or not isinstance(assistants[name], dict):
            raise ValueError(
                f"Assistant '{name}' not found in assistants config"
            )

        assistant_config = assistants[name]
        if not assistant_config.get("function"):
            raise ValueError(
                f"assistants.{name}.function must be explicitly configured "
                "in config.yaml"
            )
        return assistant_config

    def get_placeholder_policy(self, name: str) -> PlaceholderPolicy | None:
        """Get the failed-turn placeholder policy for an assistant.

        `assistants.<name>.placeholder_policy` wins over the shared
        `assistants.placeholder_policy`. Returns None when neither is set, so
        the assistant keeps its own default.

        Raises:
            ValueError: If the configured value is not a known policy.
        """
        assistants = self._config.get("assistants", {})
        own = assistants.get(name, {})
        key, value = f"assistants.{name}.placeholder_policy", None
        if isinstance(own, dict) and "placeholder_policy" in own:
            value = own["placeholder_policy"]
        elif "placeholder_policy" in assistants:
            key, value = "assistants.placeholder_policy", assistants["placeholder_policy"]
        if value is None:
            return None

        try:
            return PlaceholderPolicy(value)
        except ValueError as e:
            allowed = ", ".join(p.value for p in PlaceholderPolicy)
            raise ValueError(f"{key} must be one of: {allowed}") from e

    def get_endpoint_config(self, name: str) -> EndpointConfig:
        """Build the endpoint configuration for an assistant.

        Args:
            name: Assistant name from config.yaml (e.g. 'navigator', 'coach').

        Returns:
            EndpointConfig with URL, bearer token and timeouts.
        """
        function = self.get_assistant_config(name)["function"]
        functions_path = self._config.get("supabase", {}).get(
            "functions_path", "/functions/v1"
        )
        endpoint = f"{self.supabase_url}/{functions_path.strip('/')}/{function}"

        return EndpointConfig(
            endpoint=endpoint,
            auth_token=self.publishable_key,
            **self.get_http_client_config(),
        )

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})
