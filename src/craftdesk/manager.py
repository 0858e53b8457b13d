"""
Craft manager for CraftDesk.

Ties configuration, resolution, the lockfile and the installer together for
one project.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from craftdesk.config.loader import load_config
from craftdesk.config.schema import Config
from craftdesk.deps.git import GitCheckout, GitRefResolver
from craftdesk.deps.graph import DependencyGraphBuilder
from craftdesk.deps.models import (
    CraftKind,
    CraftManifest,
    DependencySpec,
    GitSpec,
    RegistrySpec,
)
from craftdesk.deps.parser import read_craft_manifest, write_craft_manifest
from craftdesk.deps.registry import RegistryClient
from craftdesk.deps.versions import is_newer_version, latest_tag, version_satisfies
from craftdesk.exceptions import CraftDeskError, DependencyInUseError, NotFoundError
from craftdesk.install.installer import ArtifactInstaller, InstalledCraft, InstallResult
from craftdesk.lockfile.models import Lockfile, LockEntry
from craftdesk.lockfile.store import LockfileStore
from craftdesk.settings.protocol import PluginRegistrar
from craftdesk.storage.paths import get_lockfile_path, get_manifest_path

logger = logging.getLogger(__name__)


@dataclass
class OutdatedCraft:
    """Update status of one locked craft."""

    name: str
    current: str
    latest: str
    type: str
    source: str  # "registry" or "git"
    has_update: bool = False


@dataclass
class UpdatedCraft:
    """Outcome of updating one craft."""

    name: str
    current: str
    target: str
    source: str
    updated: bool = False
    error: str | None = None


class CraftManager:
    """Installs, removes and inspects the crafts of a project."""

    def __init__(
        self,
        project_root: Path,
        config: Config | None = None,
        registrar: PluginRegistrar | None = None,
        registry_client: RegistryClient | None = None,
        ref_resolver: GitRefResolver | None = None,
        checkout: GitCheckout | None = None,
    ):
        """Initialize the manager.

        Args:
            project_root: Directory holding craftdesk.json.
            config: Configuration; loaded for the project when omitted.
            registrar: Plugin registration backend.
            registry_client: Registry client; built from craftdesk.json when omitted.
            ref_resolver: Git ref resolver.
            checkout: Git clone helper.
        """
        self.project_root = Path(project_root)
        self.config = config or load_config(self.project_root)
        self.ref_resolver = ref_resolver or GitRefResolver(self.config.git.ls_remote_timeout)
        self.checkout = checkout or GitCheckout(
            clone_timeout=self.config.git.clone_timeout,
            clone_depth=self.config.git.clone_depth,
        )
        self._registry_client = registry_client
        self.lockfile_store = LockfileStore(
            get_lockfile_path(self.project_root, self.config.install.lockfile)
        )
        self.installer = ArtifactInstaller(
            self.project_root,
            self.config,
            registrar=registrar,
            registry_client=registry_client,
            checkout=self.checkout,
        )

    @property
    def manifest_path(self) -> Path:
        """Path of the project manifest."""
        return get_manifest_path(self.project_root, self.config.install.manifest)

    def read_manifest(self) -> CraftManifest:
        """Read the project manifest.

        Raises:
            NotFoundError: If the project has no manifest.
            ConfigurationError: If the manifest is invalid.
        """
        return read_craft_manifest(self.project_root, self.config.install.manifest)

    def registry_client_for(self, manifest: CraftManifest | None) -> RegistryClient:
        """Get the registry client, honoring registries declared in the manifest."""
        if self._registry_client is not None:
            return self._registry_client
        return RegistryClient(self.config.registry, manifest.registries if manifest else None)

    async def install(self, no_lockfile: bool = False) -> list[InstallResult]:
        """Install the project's dependencies.

        A lockfile that pins every manifest dependency is installed as is.
        Otherwise dependencies are resolved (reusing pins that still match),
        the lockfile is rewritten, and the result is installed.

        Args:
            no_lockfile: Ignore any existing lockfile and re-resolve everything.

        Returns:
            One InstallResult per installed craft.
        """
        manifest = self.read_manifest()
        lockfile = None if no_lockfile else self.lockfile_store.read()

        if lockfile is not None and self._lockfile_covers(lockfile, manifest):
            logger.info(f"Installing {len(lockfile.crafts)} crafts from lockfile")
            return await self.installer.install_from_lockfile(lockfile)

        lockfile = await self.resolve(manifest, locked=lockfile.crafts if lockfile else None)
        self.lockfile_store.write(lockfile)
        return await self.installer.install_from_lockfile(lockfile)

    async def resolve(
        self, manifest: CraftManifest, locked: dict[str, LockEntry] | None = None
    ) -> Lockfile:
        """Resolve a manifest into a lockfile without installing anything."""
        builder = self._graph_builder(manifest, locked)
        await builder.resolve_manifest(manifest)
        return LockfileStore.build_lockfile(
            builder.get_lock_entries(),
            builder.build_plugin_tree(include_root=False),
            project_version=manifest.version,
        )

    def _graph_builder(
        self, manifest: CraftManifest | None, locked: dict[str, LockEntry] | None = None
    ) -> DependencyGraphBuilder:
        return DependencyGraphBuilder(
            self.ref_resolver,
            self.registry_client_for(manifest).get_craft_info,
            checkout=self.checkout,
            locked=locked,
        )

    @staticmethod
    def _lockfile_covers(lockfile: Lockfile, manifest: CraftManifest) -> bool:
        for name, spec in manifest.dependencies.items():
            entry = lockfile.crafts.get(name)
            if entry is None or not entry.matches(spec):
                logger.debug(f"Lockfile is stale for {name}")
                return False
        return True

    async def remove(self, name: str, force: bool = False) -> bool:
        """Remove a craft from disk, the lockfile and the manifest.

        Args:
            name: Craft name.
            force: Remove even if other crafts depend on it.

        Returns:
            True if anything was removed from disk.

        Raises:
            DependencyInUseError: If other crafts depend on it and force is False.
            NotFoundError: If neither the manifest nor the lockfile knows the craft.
        """
        manifest = self.read_manifest()
        lockfile = self.lockfile_store.read()

        if lockfile is not None and not force:
            dependents = LockfileStore.find_dependents(lockfile, name)
            if dependents:
                raise DependencyInUseError(name, dependents)

        entry = lockfile.crafts.get(name) if lockfile is not None else None
        if name not in manifest.dependencies and entry is None:
            raise NotFoundError(f"Craft '{name}' is not in {self.config.install.manifest}")

        # The manifest is written last so a failed removal leaves it unchanged
        if entry is not None:
            removed = await self.installer.remove_craft(name, entry.type)
            LockfileStore.remove_entry(lockfile, name)
            self.lockfile_store.write(lockfile)
        else:
            removed = False
            for kind in CraftKind:
                if self.installer.get_craft_dir(name, kind.value).exists():
                    removed = await self.installer.remove_craft(name, kind.value) or removed

        if name in manifest.dependencies:
            del manifest.dependencies[name]
            write_craft_manifest(manifest, self.project_root, self.config.install.manifest)
            logger.info(f"Removed {name} from {self.config.install.manifest}")

        return removed

    def list_installed(self) -> list[InstalledCraft]:
        """List installed crafts."""
        return self.installer.list_installed()

    async def check_outdated(self) -> list[OutdatedCraft]:
        """Check every locked craft for a newer version.

        Crafts that cannot be checked are logged and left out.
        """
        lockfile = self.lockfile_store.read()
        if lockfile is None:
            return []

        manifest = self.read_manifest() if self.manifest_path.is_file() else None
        registry = self.registry_client_for(manifest)
        results: list[OutdatedCraft] = []

        for name, entry in lockfile.crafts.items():
            try:
                if entry.git:
                    results.append(self._check_git_entry(name, entry))
                else:
                    results.append(await self._check_registry_entry(name, entry, registry))
            except CraftDeskError as e:
                logger.warning(f"Could not check {name} for updates: {e}")

        return results

    def _check_git_entry(self, name: str, entry: LockEntry) -> OutdatedCraft:
        url = entry.git or ""
        short_commit = (entry.commit or "")[:7] or "unknown"

        if entry.tag:
            newest = latest_tag(self.ref_resolver.list_remote_tags(url)) or entry.tag
            return OutdatedCraft(
                name=name,
                current=entry.tag,
                latest=newest,
                type=entry.type,
                source="git",
                has_update=newest != entry.tag and is_newer_version(entry.tag, newest),
            )

        if entry.branch:
            head = self.ref_resolver.get_remote_head(url, entry.branch)
            return OutdatedCraft(
                name=name,
                current=short_commit,
                latest=head[:7] if head else short_commit,
                type=entry.type,
                source="git",
                has_update=head is not None and head != entry.commit,
            )

        # Commit pins, including default-branch resolutions, are reported as current
        return OutdatedCraft(
            name=name, current=short_commit, latest=short_commit, type=entry.type, source="git"
        )

    async def _check_registry_entry(
        self, name: str, entry: LockEntry, registry: RegistryClient
    ) -> OutdatedCraft:
        info = await registry.get_craft_info(name, None, entry.registry)
        newest = info.version if info is not None else "unknown"
        return OutdatedCraft(
            name=name,
            current=entry.version,
            latest=newest,
            type=entry.type,
            source="registry",
            has_update=info is not None and is_newer_version(entry.version, newest),
        )

    async def update(
        self,
        name: str | None = None,
        dry_run: bool = False,
        git_only: bool = False,
        registry_only: bool = False,
        latest: bool = False,
    ) -> list[UpdatedCraft]:
        """Update locked crafts to newer versions.

        Registry crafts declared in craftdesk.json stay inside their declared
        range unless latest is set, in which case the range is rewritten to
        admit the new version. Git tags move to the newest tag and branches
        to their head; commit pins never move. A failed update is logged and
        the remaining crafts are still updated.

        Args:
            name: Only update this craft (full name or the part after the author).
            dry_run: Report planned updates without changing anything.
            git_only: Only update git crafts.
            registry_only: Only update registry crafts.
            latest: Ignore declared ranges of registry crafts.

        Returns:
            One UpdatedCraft per craft that has a newer allowed version.

        Raises:
            NotFoundError: If name is given but not locked.
        """
        manifest = self.read_manifest()
        lockfile = self.lockfile_store.read()
        if lockfile is None or not lockfile.crafts:
            logger.warning("No crafts installed, run install first")
            return []

        if name is not None and not any(_name_matches(n, name) for n in lockfile.crafts):
            raise NotFoundError(f"Craft '{name}' is not installed")

        candidates = [
            outdated
            for outdated in await self.check_outdated()
            if outdated.has_update
            and (name is None or _name_matches(outdated.name, name))
            and not (git_only and outdated.source != "git")
            and not (registry_only and outdated.source != "registry")
        ]

        builder = self._graph_builder(manifest, lockfile.crafts)
        results: list[UpdatedCraft] = []
        planned: list[tuple[UpdatedCraft, LockEntry]] = []

        for outdated in candidates:
            old = lockfile.crafts[outdated.name]
            declared = manifest.dependencies.get(outdated.name)
            if isinstance(declared, GitSpec) and declared.commit:
                logger.debug(f"{outdated.name} is pinned to a commit in craftdesk.json")
                continue

            result = UpdatedCraft(
                name=outdated.name,
                current=_display_version(old),
                target=outdated.latest,
                source=outdated.source,
            )
            try:
                spec = self._update_spec(outdated.name, old, outdated.latest, declared, latest)
                new = await builder.resolve_entry(outdated.name, spec)
            except CraftDeskError as e:
                logger.warning(f"Could not resolve an update for {outdated.name}: {e}")
                result.error = str(e)
                results.append(result)
                continue

            if not _is_upgrade(old, new):
                logger.debug(f"{outdated.name} is at the newest allowed version")
                continue

            result.target = _display_version(new)
            results.append(result)
            planned.append((result, new.model_copy(update={"installed_as": old.installed_as})))

        if not planned:
            if not results:
                logger.info("All crafts are up to date")
            return results

        if dry_run:
            logger.info(f"{len(planned)} crafts can be updated")
            return results

        manifest_changed = False
        for result, entry in planned:
            try:
                await self._apply_update(manifest, lockfile, result.name, entry)
            except CraftDeskError as e:
                logger.error(f"Failed to update {result.name}: {e}")
                result.error = str(e)
                continue

            result.updated = True
            if _update_declared_spec(manifest, result.name, entry):
                manifest_changed = True
            logger.info(f"Updated {result.name}: {result.current} -> {result.target}")

        self.lockfile_store.write(lockfile)
        if manifest_changed:
            write_craft_manifest(manifest, self.project_root, self.config.install.manifest)
        return results

    @staticmethod
    def _update_spec(
        name: str,
        entry: LockEntry,
        newest: str,
        declared: DependencySpec | None,
        latest: bool,
    ) -> DependencySpec:
        if entry.git:
            return GitSpec(
                name=name,
                url=entry.git,
                tag=newest if entry.tag else None,
                branch=None if entry.tag else entry.branch,
                path=entry.path,
                file=entry.file,
                kind=entry.type,
            )

        version_range = "latest"
        if not latest and isinstance(declared, RegistrySpec):
            version_range = declared.version_range
        return RegistrySpec(name=name, version_range=version_range, registry=entry.registry)

    async def _apply_update(
        self, manifest: CraftManifest, lockfile: Lockfile, name: str, entry: LockEntry
    ) -> None:
        """Reinstall one craft at its new pin and record it in the lockfile."""
        old = lockfile.crafts[name]
        await self.installer.remove_craft(name, old.type)
        await self.installer.install_craft(name, entry)
        lockfile.crafts[name] = entry

        node = lockfile.plugin_tree.get(name)
        if node is not None:
            node.version = entry.version
            node.dependencies = list(entry.dependencies)
        for dep_name in entry.dependencies:
            dep_node = lockfile.plugin_tree.get(dep_name)
            if dep_node is not None and name not in dep_node.required_by:
                dep_node.required_by.append(name)

        missing = {
            dep_name: spec
            for dep_name, spec in entry.dependencies.items()
            if dep_name not in lockfile.crafts
        }
        if not missing:
            return

        # Dependencies introduced by the new version are locked and installed
        builder = self._graph_builder(manifest, lockfile.crafts)
        await builder.resolve_manifest(
            CraftManifest(name=name, version=entry.version, dependencies=missing)
        )
        tree = builder.build_plugin_tree(include_root=False)
        for dep_name, dep_entry in builder.get_lock_entries().items():
            if dep_name in lockfile.crafts:
                continue
            dep_entry = dep_entry.model_copy(update={"installed_as": "dependency"})
            await self.installer.install_craft(dep_name, dep_entry)
            lockfile.crafts[dep_name] = dep_entry
            dep_node = tree[dep_name]
            dep_node.is_dependency = True
            lockfile.plugin_tree[dep_name] = dep_node


def _name_matches(craft_name: str, query: str) -> bool:
    return craft_name == query or craft_name.endswith(f"/{query}")


def _display_version(entry: LockEntry) -> str:
    if entry.git and not entry.tag:
        return (entry.commit or "")[:7] or entry.version
    return entry.tag or entry.version


def _is_upgrade(old: LockEntry, new: LockEntry) -> bool:
    if old.git:
        return new.commit != old.commit
    return is_newer_version(old.version, new.version)


def _update_declared_spec(manifest: CraftManifest, name: str, entry: LockEntry) -> bool:
    """Keep a direct dependency's declaration in line with its new pin.

    Returns:
        True if craftdesk.json needs rewriting.
    """
    declared = manifest.dependencies.get(name)

    if isinstance(declared, GitSpec):
        if declared.tag and entry.tag and declared.tag != entry.tag:
            manifest.dependencies[name] = declared.model_copy(update={"tag": entry.tag})
            return True
        return False

    if isinstance(declared, RegistrySpec) and not version_satisfies(
        entry.version, declared.version_range
    ):
        prefix = "^" if declared.version_range.startswith("^") else ""
        manifest.dependencies[name] = declared.model_copy(
            update={"version_range": f"{prefix}{entry.version}"}
        )
        return True

    return False
