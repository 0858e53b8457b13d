"""Plugin settings registry for CraftDesk."""

from craftdesk.settings.manager import SETTINGS_FILENAME, SettingsManager
from craftdesk.settings.protocol import PluginRegistrar

__all__ = [
    "SETTINGS_FILENAME",
    "PluginRegistrar",
    "SettingsManager",
]
