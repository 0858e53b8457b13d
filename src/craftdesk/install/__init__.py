"""
CraftDesk install layer.

Provides:
- Registry and git installation into the project install root
- Archive integrity verification and extraction
- Plugin component discovery and registration
"""

from craftdesk.install.archive import extract_zip
from craftdesk.install.components import (
    PluginComponents,
    PluginManifest,
    load_mcp_servers,
    merge_components,
    read_plugin_manifest,
    scan_plugin_components,
)
from craftdesk.install.installer import (
    ArtifactInstaller,
    CraftMetadata,
    InstalledCraft,
    InstallResult,
)
from craftdesk.install.integrity import (
    format_checksum,
    normalize_checksum,
    verify_integrity,
)

__all__ = [
    # Installer
    "ArtifactInstaller",
    "CraftMetadata",
    "InstallResult",
    "InstalledCraft",
    # Components
    "PluginComponents",
    "PluginManifest",
    "load_mcp_servers",
    "merge_components",
    "read_plugin_manifest",
    "scan_plugin_components",
    # Archive and integrity
    "extract_zip",
    "format_checksum",
    "normalize_checksum",
    "verify_integrity",
]
