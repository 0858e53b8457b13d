"""Storage utilities for CraftDesk."""

from craftdesk.storage.paths import (
    LOCKFILE_FILENAME,
    MANIFEST_FILENAME,
    METADATA_FILENAME,
    PLUGIN_MANIFEST_PATH,
    find_project_root,
    get_craftdesk_home,
    get_global_config_path,
    get_install_root,
    get_lockfile_path,
    get_manifest_path,
    get_project_config_path,
)

__all__ = [
    "LOCKFILE_FILENAME",
    "MANIFEST_FILENAME",
    "METADATA_FILENAME",
    "PLUGIN_MANIFEST_PATH",
    "find_project_root",
    "get_craftdesk_home",
    "get_global_config_path",
    "get_install_root",
    "get_lockfile_path",
    "get_manifest_path",
    "get_project_config_path",
]
