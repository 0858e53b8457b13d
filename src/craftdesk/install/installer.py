"""
Artifact installer for CraftDesk.

Installs pinned crafts from the registry or git into
<project>/<install_path>/<kind dir>/<name>, writes install metadata, and
registers plugins with the settings store.
"""

import json
import logging
import shutil
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from craftdesk.config.schema import Config
from craftdesk.deps.git import GitCheckout
from craftdesk.deps.models import KIND_DIRECTORIES, CraftKind, get_kind_directory
from craftdesk.deps.registry import RegistryClient
from craftdesk.exceptions import (
    ConfigurationError,
    CraftDeskError,
    IntegrityError,
    RegistrationError,
    classify_error,
    is_fatal,
)
from craftdesk.install.archive import extract_zip
from craftdesk.install.components import (
    load_mcp_servers,
    merge_components,
    read_plugin_manifest,
    scan_plugin_components,
)
from craftdesk.install.integrity import format_checksum, verify_integrity
from craftdesk.lockfile.models import Lockfile, LockEntry
from craftdesk.settings.manager import SettingsManager
from craftdesk.settings.protocol import PluginRegistrar
from craftdesk.storage.paths import METADATA_FILENAME, get_install_root

logger = logging.getLogger(__name__)

ARCHIVE_FILENAME = "archive.zip"

# Copied from plugin.json into the settings entry when present
_MANIFEST_METADATA_FIELDS = ("description", "author", "license", "homepage", "repository", "keywords")


class CraftMetadata(BaseModel):
    """.craftdesk-metadata.json written into every installed craft."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    version: str
    type: str
    author: str = ""
    installed_at: str = Field(default="", alias="installedAt")
    registry: str | None = None
    dependencies: dict[str, Any] = Field(default_factory=dict)


@dataclass
class InstalledCraft:
    """A craft found on disk."""

    name: str
    version: str
    type: str


@dataclass
class InstallResult:
    """Outcome of installing one craft."""

    name: str
    path: Path
    registered: bool = False
    warnings: list[str] = field(default_factory=list)


class ArtifactInstaller:
    """Installs, lists and removes crafts on disk."""

    def __init__(
        self,
        project_root: Path,
        config: Config | None = None,
        registrar: PluginRegistrar | None = None,
        registry_client: RegistryClient | None = None,
        checkout: GitCheckout | None = None,
    ):
        """Initialize the installer.

        Args:
            project_root: Project root directory.
            config: Configuration (defaults when omitted).
            registrar: Plugin registration backend.
            registry_client: Used to download registry archives.
            checkout: Used to clone git crafts.
        """
        self.project_root = Path(project_root)
        self.config = config or Config()
        self.install_root = get_install_root(self.project_root, self.config.install.path)
        self.registrar = registrar or SettingsManager(self.install_root)
        self.registry_client = registry_client or RegistryClient(self.config.registry)
        self.checkout = checkout or GitCheckout(
            clone_timeout=self.config.git.clone_timeout,
            clone_depth=self.config.git.clone_depth,
        )

    def get_kind_directory(self, kind: str) -> str:
        """Get the install subdirectory for a craft kind."""
        return get_kind_directory(kind)

    def get_craft_dir(self, name: str, kind: str) -> Path:
        """Get the install directory of a craft.

        Raises:
            ConfigurationError: If the name would escape the install root.
        """
        kind_dir = self.install_root / self.get_kind_directory(kind)
        craft_dir = kind_dir / name
        resolved = craft_dir.resolve()
        if resolved == kind_dir.resolve() or not resolved.is_relative_to(kind_dir.resolve()):
            raise ConfigurationError(f"Invalid craft name '{name}'")
        return craft_dir

    async def install_from_lockfile(self, lockfile: Lockfile) -> list[InstallResult]:
        """Install every locked craft in order, stopping at the first failure.

        Crafts installed before a failure are left in place.
        """
        self.install_root.mkdir(parents=True, exist_ok=True)
        results: list[InstallResult] = []
        total = len(lockfile.crafts)

        for index, (name, entry) in enumerate(lockfile.crafts.items(), start=1):
            logger.debug(f"Installing {name}@{entry.version} ({index}/{total})")
            try:
                results.append(await self.install_craft(name, entry))
            except CraftDeskError as e:
                logger.error(f"Failed to install {name} ({classify_error(e).value}): {e}")
                raise

        logger.info(f"Installed {len(results)} crafts")
        return results

    async def install_craft(self, name: str, entry: LockEntry) -> InstallResult:
        """Install one craft.

        Args:
            name: Craft name.
            entry: The pinned lock entry.

        Returns:
            InstallResult with the install path and any warnings.

        Raises:
            IntegrityError: If a registry archive fails verification.
            ExtractionError: If a registry archive cannot be extracted.
            NetworkError: If the download or clone fails.
            NotFoundError: If the pinned source no longer exists.
        """
        craft_dir = self.get_craft_dir(name, entry.type)
        created = not craft_dir.exists()
        craft_dir.mkdir(parents=True, exist_ok=True)
        result = InstallResult(name=name, path=craft_dir)

        try:
            if entry.git:
                self.checkout.checkout_git_source(
                    entry.git,
                    craft_dir,
                    branch=entry.branch,
                    tag=entry.tag,
                    commit=entry.commit,
                    path=entry.path,
                    file=entry.file,
                )
            else:
                await self._install_from_registry(name, entry, craft_dir, result)
        except CraftDeskError:
            if created:
                shutil.rmtree(craft_dir, ignore_errors=True)
            raise

        self._write_metadata(craft_dir, name, entry)

        if entry.type == CraftKind.PLUGIN.value:
            try:
                await self._register_plugin(name, entry, craft_dir)
                result.registered = True
            except CraftDeskError as e:
                if is_fatal(classify_error(e)):
                    raise
                logger.warning(str(e))
                result.warnings.append(str(e))

        logger.info(f"Installed {name}@{entry.version}")
        return result

    async def _install_from_registry(
        self, name: str, entry: LockEntry, craft_dir: Path, result: InstallResult
    ) -> None:
        archive_path = craft_dir / ARCHIVE_FILENAME
        try:
            actual = await self.registry_client.download(entry.resolved or "", archive_path)

            if entry.integrity:
                if not verify_integrity(actual, entry.integrity):
                    raise IntegrityError(
                        f"Checksum verification failed for {name}@{entry.version}. "
                        f"Expected: {format_checksum(entry.integrity)}... "
                        "This may indicate a corrupted download or a security issue.",
                        hint="Try installing with no_lockfile to re-resolve dependencies.",
                        expected=entry.integrity,
                        actual=actual,
                    )
                logger.debug(f"Checksum verified: {format_checksum(entry.integrity)}...")
            else:
                message = (
                    f"No checksum available for {name}@{entry.version} - skipping verification"
                )
                logger.warning(message)
                result.warnings.append(message)

            extract_zip(archive_path, craft_dir)
        finally:
            archive_path.unlink(missing_ok=True)

    def _write_metadata(self, craft_dir: Path, name: str, entry: LockEntry) -> None:
        metadata = CraftMetadata(
            name=name,
            version=entry.version,
            type=entry.type,
            author=entry.author,
            installed_at=datetime.now(timezone.utc).isoformat(),
            registry=entry.registry,
            dependencies=entry.model_dump(mode="json")["dependencies"],
        )
        data = metadata.model_dump(mode="json", by_alias=True, exclude_none=True)
        (craft_dir / METADATA_FILENAME).write_text(json.dumps(data, indent=2), encoding="utf-8")

    def read_metadata(self, name: str, kind: str) -> CraftMetadata | None:
        """Read the metadata of an installed craft, if present and valid."""
        return self._load_metadata(self.get_craft_dir(name, kind) / METADATA_FILENAME)

    async def _register_plugin(self, name: str, entry: LockEntry, craft_dir: Path) -> None:
        """Register a plugin and its MCP servers.

        Raises:
            RegistrationError: If the plugin cannot be registered.
        """
        try:
            manifest = read_plugin_manifest(craft_dir)
            components = merge_components(
                scan_plugin_components(craft_dir),
                manifest.components if manifest else None,
            )

            plugin_config: dict[str, Any] = {
                "name": name,
                "version": entry.version,
                "type": CraftKind.PLUGIN.value,
                "enabled": True,
                "installPath": craft_dir.relative_to(self.install_root).as_posix(),
                "installedAt": datetime.now(timezone.utc).isoformat(),
                "dependencies": list(entry.dependencies),
                "isDependency": entry.installed_as == "dependency",
            }
            if manifest is not None:
                for key in _MANIFEST_METADATA_FIELDS:
                    value = getattr(manifest, key)
                    if value:
                        plugin_config[key] = value
            if components:
                plugin_config["components"] = components
            if manifest is not None and manifest.scripts:
                plugin_config["scripts"] = manifest.scripts

            await self.registrar.register_plugin(plugin_config)
            logger.debug(f"Registered plugin {name} in settings")

            if manifest is not None:
                for server_name, server_config in load_mcp_servers(craft_dir, manifest).items():
                    await self.registrar.register_mcp_server(server_name, server_config)
                    logger.debug(f"Registered MCP server: {server_name}")
        except RegistrationError:
            raise
        except Exception as e:
            raise RegistrationError(f"Failed to register plugin {name}: {e}") from e

    async def remove_craft(self, name: str, kind: str) -> bool:
        """Remove an installed craft.

        Plugins are unregistered first, best effort.

        Returns:
            True if the craft was installed and has been removed.
        """
        craft_dir = self.get_craft_dir(name, kind)
        if not craft_dir.exists():
            logger.warning(f"{name} is not installed")
            return False

        if kind == CraftKind.PLUGIN.value:
            try:
                await self.registrar.unregister_plugin(name)
            except Exception as e:
                logger.warning(f"Failed to unregister plugin {name}: {e}")

        shutil.rmtree(craft_dir)
        logger.info(f"Removed {name}")
        return True

    def list_installed(self) -> list[InstalledCraft]:
        """List crafts that have install metadata."""
        installed: list[InstalledCraft] = []

        for kind_dir_name in KIND_DIRECTORIES.values():
            kind_dir = self.install_root / kind_dir_name
            if not kind_dir.is_dir():
                continue

            for craft_dir in sorted(p for p in kind_dir.iterdir() if p.is_dir()):
                candidates = [craft_dir]
                if not (craft_dir / METADATA_FILENAME).is_file():
                    # author/name crafts are nested one level deeper
                    candidates = sorted(p for p in craft_dir.iterdir() if p.is_dir())

                for candidate in candidates:
                    metadata = self._load_metadata(candidate / METADATA_FILENAME)
                    if metadata is not None:
                        installed.append(
                            InstalledCraft(
                                name=metadata.name, version=metadata.version, type=metadata.type
                            )
                        )

        return installed

    @staticmethod
    def _load_metadata(path: Path) -> CraftMetadata | None:
        if not path.is_file():
            return None
        try:
            return CraftMetadata.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable metadata {path}: {e}")
            return None
