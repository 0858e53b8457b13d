"""
Path utilities for CraftDesk.

Provides consistent path resolution for configuration, project files, and
install locations.
"""

import os
from pathlib import Path

MANIFEST_FILENAME = "craftdesk.json"
LOCKFILE_FILENAME = "craftdesk.lock"
METADATA_FILENAME = ".craftdesk-metadata.json"
PLUGIN_MANIFEST_PATH = Path(".claude-plugin") / "plugin.json"


def get_craftdesk_home() -> Path:
    """
    Get the CraftDesk home directory.

    Resolution order:
    1. CRAFTDESK_HOME environment variable
    2. Default: ~/.craftdesk

    Returns:
        Path to the CraftDesk home directory.
    """
    env_home = os.environ.get("CRAFTDESK_HOME")
    if env_home:
        return Path(env_home).expanduser().resolve()
    return Path.home() / ".craftdesk"


def get_global_config_path() -> Path:
    """
    Get the path to the global configuration file.

    Returns:
        Path to ~/.craftdesk/config.yaml
    """
    return get_craftdesk_home() / "config.yaml"


def find_project_root(start_path: Path | None = None) -> Path | None:
    """
    Find the project root by traversing up the directory tree.

    The project root is the first directory containing craftdesk.json,
    starting from the given path (or current directory) and moving up.

    Args:
        start_path: Starting directory to search from. Defaults to cwd.

    Returns:
        Path to the project root if found, None otherwise.
    """
    if start_path is None:
        start_path = Path.cwd()
    else:
        start_path = Path(start_path).resolve()

    current = start_path
    while current != current.parent:
        if (current / MANIFEST_FILENAME).exists():
            return current
        current = current.parent

    if (current / MANIFEST_FILENAME).exists():
        return current

    return None


def get_project_config_path(project_root: Path) -> Path:
    """
    Get the project configuration file path.

    Returns:
        Path to <project>/.craftdesk/config.yaml
    """
    return project_root / ".craftdesk" / "config.yaml"


def get_manifest_path(project_root: Path, filename: str = MANIFEST_FILENAME) -> Path:
    """Get the path to the project's craftdesk.json."""
    return project_root / filename


def get_lockfile_path(project_root: Path, filename: str = LOCKFILE_FILENAME) -> Path:
    """Get the path to the project's lockfile."""
    return project_root / filename


def get_install_root(project_root: Path, install_path: str = ".claude") -> Path:
    """
    Get the directory crafts are installed into.

    Args:
        project_root: Project root directory.
        install_path: Install path relative to the project root.

    Returns:
        Path to <project>/.claude (or the configured install path).
    """
    return project_root / install_path
