"""Provides functions for loading and accessing configuration settings.

Supports loading from .env files, environment variables, a YAML configuration
file (e.g., ~/.compassone/config.yaml) and the JSON module config used by the
container deployment (pointed to by COMPASSONE_CONFIG). Builds the validated
ClientConfig consumed by the client facade.
"""

import json
import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from compassone.domain.errors import ConfigurationError
from compassone.domain.models.config import ClientConfig

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
DEFAULT_CONFIG_DIR = Path.home() / ".compassone"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"
ENV_FILE_NAME = ".env"
ENV_PREFIX = "COMPASSONE_"
MODULE_CONFIG_ENV = "COMPASSONE_CONFIG"
MODULE_CONFIG_FILE_NAME = "module.config"

# Keys of the deployment's module.config JSON and the settings they feed.
LEGACY_KEY_MAP = {
    "LogLevel": "log_level",
    "CacheEnabled": "cache_enabled",
    "CacheExpiration": "cache_expiration",
    "MaxRetries": "max_retries",
    "RetryInterval": "retry_delay",
    "MaxConcurrentOperations": "max_concurrent_operations",
    "DefaultPageSize": "default_page_size",
    "RequestTimeout": "timeout",
    "BulkOperationLimit": "bulk_operation_limit",
    "ApiEndpoint": "api_endpoint",
    "ApiVersion": "api_version",
}

# Settings keys that differ from ClientConfig field names.
CLIENT_CONFIG_KEYS = {
    "endpoint": "api_endpoint",
    "timeout": "api_timeout",
}

# --- Global Configuration Store (Simple Approach) ---
_config: Dict[str, Any] = {}
_test_config: Dict[str, Any] = {}  # For testing purposes
_loaded = False


def _coerce(value: Any) -> Any:
    """Converts common string representations (booleans, numbers) to Python types."""
    if not isinstance(value, str):
        return value
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    try:
        if "." in lowered:
            return float(lowered)
        return int(lowered)
    except (ValueError, TypeError):
        return value


def load_configuration(
    config_file: Path = DEFAULT_CONFIG_FILE,
    env_file: Optional[Path] = None,
    force: bool = False,
) -> None:
    """Loads configuration from the module config, YAML file and .env file.

    Priority order (highest to lowest):
    1. Environment Variables
    2. .env file
    3. YAML configuration file
    4. Module config (COMPASSONE_CONFIG)

    Args:
        config_file: Path to the YAML configuration file.
        env_file: Path to the .env file (searches upwards from cwd if None).
        force: Reload even if configuration was already loaded.
    """
    global _config, _loaded
    if _loaded and not force:
        logger.debug("Configuration already loaded.")
        return

    _config = {}

    # 1. Module config from the deployment (lowest priority)
    _config.update(_load_module_config())

    # 2. YAML file
    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load or parse YAML config {config_file}: {e}") from e
        if isinstance(yaml_config, dict):
            _config.update({str(k).lower(): v for k, v in yaml_config.items()})
            logger.info(f"Loaded configuration from YAML: {config_file}")
        elif yaml_config is not None:
            logger.warning(f"YAML config file {config_file} did not contain a dictionary.")
    else:
        logger.debug(f"YAML config file not found: {config_file}")

    # 3. .env file; override=False so real environment variables take precedence
    dotenv_path = env_file or find_dotenv_path()
    if dotenv_path:
        if load_dotenv(dotenv_path=dotenv_path, override=False):
            logger.info(f"Loaded environment variables from: {dotenv_path}")
    else:
        logger.debug("Skipping .env file loading (no file found).")

    # 4. Environment variables are handled by os.environ lookups in get_config

    _loaded = True
    logger.debug("Configuration loading process completed.")


def _load_module_config() -> Dict[str, Any]:
    """Reads the deployment's module.config (JSON or YAML) if COMPASSONE_CONFIG points at it."""
    location = os.environ.get(MODULE_CONFIG_ENV)
    if not location:
        return {}
    path = Path(location)
    if path.is_dir():
        path = path / MODULE_CONFIG_FILE_NAME
    if not path.is_file():
        logger.warning(f"{MODULE_CONFIG_ENV} is set but {path} does not exist.")
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
        data = json.loads(raw) if raw.lstrip().startswith("{") else yaml.safe_load(raw)
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to parse module config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Module config {path} must contain an object")
    mapped = {}
    for key, value in data.items():
        target = LEGACY_KEY_MAP.get(key)
        if target:
            mapped[target] = _coerce(value)
        else:
            logger.debug(f"Ignoring unknown module config key: {key}")
    logger.info(f"Loaded module configuration from: {path}")
    return mapped


def get_config(key: str, default: Any = None) -> Any:
    """
    Get a configuration value by key.

    Priority:
    1. Test configuration (if in testing mode)
    2. Environment variable (COMPASSONE_<KEY>)
    3. Loaded config (YAML / module config)
    4. Default value

    Args:
        key: The configuration key (e.g. 'api_endpoint')
        default: Default value if the key is not found

    Returns:
        The configuration value
    """
    if key in _test_config:
        return _test_config[key]

    if not _loaded:
        load_configuration()

    env_key = ENV_PREFIX + key.upper().replace(".", "_")
    if env_key in os.environ:
        return _coerce(os.environ[env_key])

    if key in _config:
        return _config[key]

    return default


def set_config(key: str, value: Any) -> None:
    """Sets a configuration value for the current process.

    Args:
        key: Configuration key (e.g., 'log_level')
        value: Value to set
    """
    logger.debug(f"Setting config: {key}")
    _config[key] = value
    os.environ[ENV_PREFIX + key.upper().replace(".", "_")] = str(value)


def find_dotenv_path() -> Optional[Path]:
    """Searches for the .env file upwards from the current directory."""
    cwd = Path.cwd()
    for path in [cwd] + list(cwd.parents):
        env_path = path / ENV_FILE_NAME
        if env_path.is_file():
            return env_path
    return None


def load_client_config(overrides: Optional[Dict[str, Any]] = None) -> ClientConfig:
    """Builds a ClientConfig from settings, applying explicit overrides last.

    The result is not validated here; ``CompassOneClient.connect`` does that
    eagerly.

    Raises:
        ConfigurationError: If no API endpoint is configured.
    """
    values: Dict[str, Any] = {}
    for f in fields(ClientConfig):
        if f.name == "extra_headers":
            continue
        key = CLIENT_CONFIG_KEYS.get(f.name, f.name)
        value = get_config(key)
        if value is None and key != f.name:
            value = get_config(f.name)
        if value is not None:
            values[f.name] = value
    for key, value in (overrides or {}).items():
        if value is not None:
            values[key] = value
    if "endpoint" in values and not isinstance(values["endpoint"], str):
        values["endpoint"] = str(values["endpoint"])
    return ClientConfig.from_mapping(values)


def set_config_for_testing(config_dict: Dict[str, Any]) -> None:
    """
    Set configuration values for testing purposes.
    These values will override any existing configuration.

    Args:
        config_dict: Dictionary of configuration values to set
    """
    _test_config.update(config_dict)
    logger.debug(f"Set testing configuration keys: {sorted(config_dict)}")


def clear_test_config() -> None:
    """Clear all testing configuration values."""
    _test_config.clear()
    logger.debug("Cleared testing configuration")


def reset_configuration() -> None:
    """Forgets everything loaded so the next lookup reloads (used by tests)."""
    global _loaded
    _config.clear()
    _loaded = False
