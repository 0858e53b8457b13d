"""
Plugin manifest and component discovery.

A plugin may declare its components in .claude-plugin/plugin.json; whatever
it does not declare is discovered by scanning its directories.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from craftdesk.storage.paths import PLUGIN_MANIFEST_PATH

logger = logging.getLogger(__name__)

# Component type -> True if components are directories, False for *.md files
COMPONENT_TYPES: dict[str, bool] = {
    "skills": True,
    "agents": True,
    "commands": False,
    "hooks": False,
}


class PluginComponents(BaseModel):
    """Components declared in plugin.json."""

    model_config = ConfigDict(extra="ignore")

    skills: list[str] | None = None
    agents: list[str] | None = None
    commands: list[str] | None = None
    hooks: list[str] | None = None


class PluginManifest(BaseModel):
    """.claude-plugin/plugin.json."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    version: str | None = None
    description: str | None = None
    author: str | dict[str, Any] | None = None
    license: str | None = None
    homepage: str | None = None
    repository: str | dict[str, Any] | None = None
    keywords: list[str] | None = None
    components: PluginComponents | None = None
    # Inline mapping, or a path to a JSON file relative to the plugin root
    mcp_servers: dict[str, Any] | str | None = Field(default=None, alias="mcpServers")
    scripts: dict[str, Any] | None = None


def read_plugin_manifest(plugin_dir: Path) -> PluginManifest | None:
    """Read a plugin manifest, best effort.

    Returns:
        The manifest, or None if it is missing or unreadable.
    """
    manifest_path = Path(plugin_dir) / PLUGIN_MANIFEST_PATH
    if not manifest_path.is_file():
        return None

    try:
        data = json.loads(manifest_path.read_text(encoding="utf-8"))
        return PluginManifest.model_validate(data)
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.debug(f"Failed to read plugin manifest {manifest_path}: {e}")
        return None


def scan_plugin_components(plugin_dir: Path) -> dict[str, list[str]]:
    """Discover components on disk.

    Skills and agents are subdirectories; commands and hooks are *.md files.
    Types with nothing found are left out.
    """
    components: dict[str, list[str]] = {}

    for component_type, is_directory in COMPONENT_TYPES.items():
        type_dir = Path(plugin_dir) / component_type
        if not type_dir.is_dir():
            continue

        if is_directory:
            items = sorted(p.name for p in type_dir.iterdir() if p.is_dir())
        else:
            items = sorted(
                p.name for p in type_dir.iterdir() if p.is_file() and p.suffix == ".md"
            )

        if items:
            components[component_type] = items

    return components


def merge_components(
    scanned: dict[str, list[str]], declared: PluginComponents | None
) -> dict[str, list[str]]:
    """Merge scanned components with those declared in the manifest.

    A declared list replaces the scanned list of the same type.
    """
    merged = {key: list(value) for key, value in scanned.items()}
    if declared is None:
        return merged

    for component_type in COMPONENT_TYPES:
        declared_items = getattr(declared, component_type)
        if declared_items is not None:
            merged[component_type] = list(declared_items)

    return merged


def load_mcp_servers(plugin_dir: Path, manifest: PluginManifest) -> dict[str, dict[str, Any]]:
    """Collect the MCP servers a plugin provides.

    Raises:
        OSError: If a referenced MCP file cannot be read.
        ValueError: If a referenced MCP file is not a JSON object.
    """
    servers = manifest.mcp_servers
    if servers is None:
        return {}
    if isinstance(servers, dict):
        return servers

    mcp_path = Path(plugin_dir) / servers
    if not mcp_path.is_file():
        logger.debug(f"MCP config {mcp_path} does not exist")
        return {}

    data = json.loads(mcp_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{servers} must contain a JSON object")
    # .mcp.json files wrap the servers in an "mcpServers" key
    if isinstance(data.get("mcpServers"), dict):
        return data["mcpServers"]
    return data
