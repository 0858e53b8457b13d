"""
Plugin registrar protocol.

The installer only talks to the settings store through this interface.
"""

from abc import ABC, abstractmethod
from typing import Any


class PluginRegistrar(ABC):
    """Abstract base class for plugin registration backends."""

    @abstractmethod
    async def register_plugin(self, config: dict[str, Any]) -> None:
        """Add or replace a plugin entry.

        Args:
            config: Plugin configuration; must contain "name".

        Raises:
            RegistrationError: If the entry cannot be persisted.
        """
        pass

    @abstractmethod
    async def unregister_plugin(self, name: str) -> bool:
        """Remove a plugin entry.

        Returns:
            True if an entry was removed.
        """
        pass

    @abstractmethod
    async def register_mcp_server(self, name: str, config: dict[str, Any]) -> None:
        """Add or replace an MCP server entry."""
        pass
