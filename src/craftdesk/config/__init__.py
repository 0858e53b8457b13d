"""
CraftDesk configuration.

Usage:
    from craftdesk.config import load_config

    config = load_config(project_root)
    config.git.ls_remote_timeout
"""

from craftdesk.config.loader import apply_env_overrides, load_config, load_yaml_file
from craftdesk.config.merger import deep_merge, get_nested_value, set_nested_value
from craftdesk.config.schema import Config, GitConfig, InstallConfig, RegistryConfig

__all__ = [
    "Config",
    "GitConfig",
    "InstallConfig",
    "RegistryConfig",
    "apply_env_overrides",
    "deep_merge",
    "get_nested_value",
    "load_config",
    "load_yaml_file",
    "set_nested_value",
]
