"""
Registry client for CraftDesk.

Looks up craft metadata and downloads craft archives over HTTP.
"""

import hashlib
import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from craftdesk.config.schema import RegistryConfig
from craftdesk.deps.models import CraftInfo, RegistryEntry
from craftdesk.exceptions import ConfigurationError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 8192


def parse_craft_name(craft_name: str) -> tuple[str, str]:
    """Split a registry craft name into (author, name).

    Accepts "author/name" and "@author/name".

    Raises:
        ConfigurationError: If the name has no author part.
    """
    parts = craft_name.removeprefix("@").split("/")
    if len(parts) == 2 and parts[0] and parts[1]:
        return parts[0], parts[1]

    raise ConfigurationError(
        f"Invalid craft name '{craft_name}'",
        hint="Registry crafts must be named author/name or @author/name.",
    )


class RegistryClient:
    """Minimal async client for the craft registry API."""

    def __init__(
        self,
        config: RegistryConfig | None = None,
        registries: dict[str, RegistryEntry] | None = None,
    ):
        """Initialize the client.

        Args:
            config: Registry configuration (default URL, timeout, scopes).
            registries: Named registries declared in the project craftdesk.json.
        """
        self.config = config or RegistryConfig()
        self.registries = registries or {}

    def resolve_registry_url(self, craft_name: str, registry: str | None = None) -> str:
        """Pick the registry URL for a craft.

        An explicit override is used first: a URL as-is, a registry name from
        craftdesk.json, or a bare hostname prefixed with https://. Otherwise
        the order is a scope match in craftdesk.json, a configured scope, the
        craftdesk.json "default" registry, then the configured default URL.
        """
        if registry:
            if registry.startswith(("http://", "https://")):
                return registry
            if registry in self.registries:
                return self.registries[registry].url
            return f"https://{registry}"

        if craft_name.startswith("@"):
            scope = craft_name.split("/")[0]
            for entry in self.registries.values():
                if entry.scope == scope:
                    return entry.url
            if scope in self.config.scopes:
                return self.config.scopes[scope]

        if "default" in self.registries:
            return self.registries["default"].url

        return self.config.default_url

    async def get_craft_info(
        self,
        craft_name: str,
        version: str | None = None,
        registry: str | None = None,
    ) -> CraftInfo | None:
        """Fetch metadata for a craft.

        Args:
            craft_name: Craft name (author/name or @author/name).
            version: Exact version; latest when omitted.
            registry: Registry override from the dependency spec.

        Returns:
            CraftInfo, or None if the registry does not know the craft.

        Raises:
            ConfigurationError: If the craft name is invalid.
            NetworkError: If the registry cannot be reached or answers badly.
        """
        author, name = parse_craft_name(craft_name)
        base_url = self.resolve_registry_url(craft_name, registry).rstrip("/")
        endpoint = f"/api/v1/crafts/{author}/{name}"
        if version:
            endpoint += f"/versions/{version}"

        logger.debug(f"Fetching craft info from {base_url}{endpoint}")

        try:
            async with httpx.AsyncClient(timeout=self.config.timeout) as client:
                response = await client.get(f"{base_url}{endpoint}")
                if response.status_code == 404:
                    logger.debug(f"Craft '{craft_name}' not found in registry")
                    return None
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to fetch craft info for {craft_name}: {e}") from e
        except ValueError as e:
            raise NetworkError(f"Registry returned invalid JSON for {craft_name}") from e

        if isinstance(data, dict) and isinstance(data.get("craft"), dict):
            data = data["craft"]

        try:
            return CraftInfo.model_validate(data)
        except ValidationError as e:
            raise NetworkError(f"Registry returned invalid craft info for {craft_name}: {e}") from e

    async def download(self, url: str, dest: Path) -> str:
        """Stream a craft archive to disk.

        Args:
            url: Download URL.
            dest: File to write.

        Returns:
            Hex SHA-256 of the downloaded bytes.

        Raises:
            NotFoundError: If the archive does not exist.
            NetworkError: If the download fails.
        """
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        hasher = hashlib.sha256()

        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout, follow_redirects=True
            ) as client:
                async with client.stream("GET", url) as response:
                    if response.status_code == 404:
                        raise NotFoundError(f"Download not found: {url}")
                    if response.status_code != 200:
                        raise NetworkError(f"Download failed with status {response.status_code}")

                    with open(dest, "wb") as f:
                        async for chunk in response.aiter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE):
                            f.write(chunk)
                            hasher.update(chunk)
        except httpx.HTTPError as e:
            raise NetworkError(f"Failed to download craft: {e}") from e

        logger.debug(f"Downloaded craft archive to {dest}")
        return hasher.hexdigest()
