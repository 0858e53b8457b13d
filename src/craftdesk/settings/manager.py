"""
Settings manager for CraftDesk.

Keeps the plugin and MCP server registry in <install_path>/settings.json.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from craftdesk.exceptions import RegistrationError
from craftdesk.settings.protocol import PluginRegistrar

logger = logging.getLogger(__name__)

SETTINGS_FILENAME = "settings.json"
SETTINGS_VERSION = "1.0.0"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SettingsManager(PluginRegistrar):
    """JSON file implementation of PluginRegistrar."""

    def __init__(self, install_root: Path):
        """Initialize the manager.

        Args:
            install_root: Install directory holding settings.json.
        """
        self.install_root = Path(install_root)
        self.settings_path = self.install_root / SETTINGS_FILENAME

    def read_settings(self) -> dict[str, Any]:
        """Read settings, returning defaults if the file does not exist.

        Raises:
            RegistrationError: If the file exists but cannot be parsed.
        """
        try:
            content = self.settings_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return self._default_settings()
        except OSError as e:
            raise RegistrationError(f"Failed to read {self.settings_path}: {e}") from e

        try:
            settings = json.loads(content)
        except json.JSONDecodeError as e:
            raise RegistrationError(f"Invalid JSON in {self.settings_path}: {e}") from e

        if not isinstance(settings, dict):
            raise RegistrationError(f"{self.settings_path} must contain a JSON object")

        settings.setdefault("plugins", {})
        return settings

    def write_settings(self, settings: dict[str, Any]) -> None:
        """Write settings, refreshing updatedAt.

        Raises:
            RegistrationError: If the file cannot be written.
        """
        settings["updatedAt"] = _now()
        try:
            self.install_root.mkdir(parents=True, exist_ok=True)
            self.settings_path.write_text(json.dumps(settings, indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise RegistrationError(f"Failed to write {self.settings_path}: {e}") from e

        logger.debug(f"Updated settings file: {self.settings_path}")

    async def register_plugin(self, config: dict[str, Any]) -> None:
        name = config.get("name")
        if not name:
            raise RegistrationError("Plugin configuration has no name")

        settings = self.read_settings()
        settings["plugins"][name] = {**config, "installedAt": config.get("installedAt") or _now()}
        self.write_settings(settings)
        logger.info(f"Registered plugin: {name}@{config.get('version', '')}")

    async def unregister_plugin(self, name: str) -> bool:
        settings = self.read_settings()
        if name not in settings["plugins"]:
            logger.warning(f"Plugin not found in settings: {name}")
            return False

        del settings["plugins"][name]
        self.write_settings(settings)
        logger.info(f"Unregistered plugin: {name}")
        return True

    async def register_mcp_server(self, name: str, config: dict[str, Any]) -> None:
        settings = self.read_settings()
        settings.setdefault("mcpServers", {})[name] = config
        self.write_settings(settings)
        logger.info(f"Registered MCP server: {name}")

    def get_plugin(self, name: str) -> dict[str, Any] | None:
        """Get a registered plugin entry."""
        return self.read_settings()["plugins"].get(name)

    def list_plugins(self) -> list[dict[str, Any]]:
        """List registered plugin entries."""
        return list(self.read_settings()["plugins"].values())

    def _default_settings(self) -> dict[str, Any]:
        return {
            "version": SETTINGS_VERSION,
            "installPath": str(self.install_root),
            "updatedAt": _now(),
            "plugins": {},
        }
