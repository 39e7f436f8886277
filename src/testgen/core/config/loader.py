"""Configuration file discovery, loading and saving.

Lookup order for the configuration file:
1. ``$TESTGEN_CONFIG`` if it points at an existing file
2. ``.testgen.yml`` in the start directory
3. ``.testgen.yml`` in the nearest ancestor containing ``go.mod``
4. ``testgen.yml`` in the user's home directory

When no file is found, built-in defaults are used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from testgen.core.config.models import Config
from testgen.core.exceptions import ConfigError, ConfigValidationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = ".testgen.yml"
GLOBAL_CONFIG_FILE = "testgen.yml"
CONFIG_ENV_VAR = "TESTGEN_CONFIG"

# Environment variables applied on top of file values
_ENV_OVERRIDES: dict[str, str] = {
    "TESTGEN_MODE": "mode",
}

# Maximum config file size (1MB)
MAX_CONFIG_SIZE = 1024 * 1024


def find_project_root(start: Path) -> Path | None:
    """Find the nearest directory at or above start that contains go.mod.

    Args:
        start: Directory to start searching from.

    Returns:
        Directory containing go.mod, or None.

    """
    current = start.resolve()
    for candidate in (current, *current.parents):
        if (candidate / "go.mod").is_file():
            return candidate
    return None


def find_config_file(start: Path | None = None) -> Path | None:
    """Locate the configuration file.

    Args:
        start: Directory to start from (defaults to the current directory).

    Returns:
        Path to the configuration file, or None if none exists.

    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidate = Path(env_path).expanduser()
        if candidate.is_file():
            return candidate
        logger.warning("%s points to missing file %s, ignoring", CONFIG_ENV_VAR, env_path)

    start = start or Path.cwd()
    local = start / DEFAULT_CONFIG_FILE
    if local.is_file():
        return local

    project_root = find_project_root(start)
    if project_root is not None:
        candidate = project_root / DEFAULT_CONFIG_FILE
        if candidate.is_file():
            return candidate

    home_candidate = Path.home() / GLOBAL_CONFIG_FILE
    if home_candidate.is_file():
        return home_candidate

    return None


def _read_config_data(path: Path) -> dict[str, Any]:
    """Read and parse a YAML config file into a mapping.

    Raises:
        ConfigError: On read, size, or YAML errors.

    """
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    try:
        with path.open("r", encoding="utf-8") as f:
            content = f.read(MAX_CONFIG_SIZE + 1)
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if len(content) > MAX_CONFIG_SIZE:
        raise ConfigError(f"Config file {path} exceeds 1MB limit")

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of data with environment overrides applied."""
    merged = dict(data)
    for env_var, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            logger.debug("Overriding config '%s' from %s", key, env_var)
            merged[key] = value
    return merged


def _validate(data: dict[str, Any], source: str) -> Config:
    try:
        return Config.model_validate(data)
    except ValidationError as e:
        errors = [
            {"loc": err["loc"], "msg": err["msg"], "type": err["type"]}
            for err in e.errors()
        ]
        raise ConfigValidationError(f"Invalid configuration in {source}: {e}", errors) from e


def load_config_from_file(path: Path) -> Config:
    """Load configuration from a specific file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Validated Config with environment overrides applied.

    Raises:
        ConfigError: On file, parse, or validation errors.

    """
    data = _read_config_data(path)
    config = _validate(_apply_env_overrides(data), str(path))
    logger.debug("Loaded configuration from %s", path)
    return config


def load_config(path: Path | None = None, start: Path | None = None) -> Config:
    """Load configuration, falling back to defaults when no file exists.

    Args:
        path: Explicit configuration file. Must exist when given.
        start: Directory used for discovery when path is None.

    Returns:
        Validated Config.

    Raises:
        ConfigError: If an explicit or discovered file is invalid.

    """
    if path is not None:
        return load_config_from_file(path)

    found = find_config_file(start)
    if found is None:
        logger.debug("No config file found, using defaults")
        return _validate(_apply_env_overrides({}), "defaults")
    return load_config_from_file(found)


def save_config(config: Config, path: Path) -> Path:
    """Write configuration to a YAML file.

    Args:
        config: Configuration to save.
        path: Destination file.

    Returns:
        The path written.

    Raises:
        ConfigError: If the file cannot be written.

    """
    content = yaml.safe_dump(config.model_dump(mode="json"), sort_keys=False)
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot write config file {path}: {e}") from e
    logger.info("Configuration saved to %s", path)
    return path
