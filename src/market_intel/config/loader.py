"""
Configuration loader with YAML file support and environment variable overrides.

Supports loading from:
1. Default values (defined in settings.py)
2. YAML configuration file
3. Environment variables (highest priority)

Environment variables use the pattern: MARKET_INTEL__{SECTION}__{KEY}
Example: MARKET_INTEL__SESSION__TTL_SECONDS=900

Provider credentials are never part of the settings file; they are read
from the environment variables named by each ProviderSettings.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from market_intel.config.settings import ProviderSettings, Settings
from market_intel.core.exceptions import ConfigurationError
from market_intel.core.models import ProviderCredentials


_settings_instance: Settings | None = None


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value

    return result


def _parse_env_value(value: str) -> Any:
    """
    Parse environment variable string into appropriate Python type.

    Numbers are tried before booleans so "0" and "1" stay numeric.
    """
    if value.lower() in ("none", "null", ""):
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    return value


def _load_env_overrides(prefix: str = "MARKET_INTEL") -> dict[str, Any]:
    """
    Load configuration overrides from environment variables.

    Environment variables should follow the pattern:
    {PREFIX}__{SECTION}__{KEY}

    For example:
    - MARKET_INTEL__EXTRACTION__PACING_DELAY_SECONDS=2.5
    - MARKET_INTEL__LOGGING__LEVEL=DEBUG
    """
    overrides: dict[str, Any] = {}
    prefix_with_sep = f"{prefix}__"

    for key, value in os.environ.items():
        if not key.startswith(prefix_with_sep):
            continue

        key_path = key[len(prefix_with_sep):].lower().split("__")

        if len(key_path) < 2:
            continue

        current = overrides
        for part in key_path[:-1]:
            if part not in current:
                current[part] = {}
            current = current[part]

        current[key_path[-1]] = _parse_env_value(value)

    return overrides


def _load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load configuration from a YAML file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        yaml.YAMLError: If the file contains invalid YAML
        ConfigurationError: If the document is not a mapping
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        content = yaml.safe_load(f)

    if content is None:
        return {}

    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration file must contain a mapping, got: {type(content).__name__}",
            details={"path": str(path)},
        )

    return content


def load_config(
    config_path: Path | str | None = None,
    env_prefix: str = "MARKET_INTEL",
) -> Settings:
    """
    Load configuration from YAML file with environment variable overrides.

    Priority (highest to lowest):
    1. Environment variables
    2. YAML configuration file
    3. Default values

    Raises:
        FileNotFoundError: If config_path is specified but doesn't exist
        ValidationError: If configuration values are invalid
    """
    config_data: dict[str, Any] = {}

    if config_path is not None:
        path = Path(config_path) if isinstance(
            config_path, str) else config_path
        yaml_config = _load_yaml_file(path)
        config_data = _deep_merge(config_data, yaml_config)

    env_overrides = _load_env_overrides(env_prefix)
    config_data = _deep_merge(config_data, env_overrides)

    return Settings(**config_data)


def get_settings(
    config_path: Path | str | None = None,
    reload: bool = False,
) -> Settings:
    """Get the global Settings instance, loading it if necessary."""
    global _settings_instance

    if _settings_instance is None or reload:
        _settings_instance = load_config(config_path)

    return _settings_instance


def reset_settings() -> None:
    """Reset the cached settings instance."""
    global _settings_instance
    _settings_instance = None


def load_credentials(
    provider: ProviderSettings,
    environ: dict[str, str] | None = None,
) -> ProviderCredentials:
    """
    Read a provider's login identifier and password from the environment.

    Args:
        provider: Provider settings naming the two environment variables
        environ: Mapping to read from (defaults to os.environ)

    Raises:
        ConfigurationError: If either variable is unset or empty
    """
    env = os.environ if environ is None else environ

    missing = [
        name for name in (provider.identifier_env, provider.password_env)
        if not name or not env.get(name)
    ]
    if missing:
        raise ConfigurationError(
            "Provider credentials are not configured",
            details={"provider": provider.base_url, "missing": missing},
        )

    return ProviderCredentials(
        identifier=env[provider.identifier_env],
        password=env[provider.password_env],
    )


@lru_cache(maxsize=1)
def get_default_config_path() -> Path | None:
    """
    Find the default configuration file path.

    Searches for config.yaml in the working directory, ./config and
    ~/.market_intel.
    """
    search_paths = [
        Path.cwd() / "config.yaml",
        Path.cwd() / "config" / "config.yaml",
        Path.home() / ".market_intel" / "config.yaml",
    ]

    for path in search_paths:
        if path.exists():
            return path

    return None
