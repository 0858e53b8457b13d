"""
Configuration loader for CraftDesk.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.craftdesk/config.yaml)
3. Project config (<project>/.craftdesk/config.yaml)
4. Environment variables (CRAFTDESK_*)
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from craftdesk.config.merger import deep_merge, set_nested_value
from craftdesk.config.schema import Config
from craftdesk.exceptions import ConfigurationError
from craftdesk.storage.paths import get_global_config_path, get_project_config_path

ENV_PREFIX = "CRAFTDESK_"

# Handled elsewhere, never mapped into the config tree
_RESERVED_ENV = {"CRAFTDESK_HOME"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary (empty if the file does not exist).

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(f"Configuration in {path} must be a YAML mapping")
    return content


def apply_env_overrides(
    config: dict[str, Any], environ: dict[str, str] | None = None
) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern CRAFTDESK_<SECTION>_<KEY>=<value>,
    where the section is the first word and the key keeps its underscores:
    CRAFTDESK_GIT_LS_REMOTE_TIMEOUT=30 sets git.ls_remote_timeout.

    Args:
        config: Configuration dictionary to modify.
        environ: Environment mapping. Defaults to os.environ.

    Returns:
        Configuration with environment overrides applied.
    """
    environ = os.environ if environ is None else environ

    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        section, _, field = key[len(ENV_PREFIX) :].lower().partition("_")
        if not section or not field:
            continue

        config = set_nested_value(config, f"{section}.{field}", _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """Parse an environment variable value to int, float, bool, or string."""
    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    return value


def load_config(
    project_root: Path | None = None,
    skip_env: bool = False,
) -> Config:
    """
    Load and merge configuration from all sources.

    Loading order (later overrides earlier):
    1. Default values from Config model
    2. Global config (~/.craftdesk/config.yaml)
    3. Project config (<project>/.craftdesk/config.yaml) if project_root given
    4. Environment variables (CRAFTDESK_*)

    Args:
        project_root: Project root whose config should be layered on top.
        skip_env: Skip environment variable overrides.

    Returns:
        Merged and validated Config object.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    config_dict = Config().model_dump()

    global_path = get_global_config_path()
    if global_path.exists():
        config_dict = deep_merge(config_dict, load_yaml_file(global_path))

    if project_root is not None:
        project_path = get_project_config_path(project_root)
        if project_path.exists():
            config_dict = deep_merge(config_dict, load_yaml_file(project_path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e
