"""
Dependency graph builder for CraftDesk.

Expands a manifest's transitive dependencies with an explicit work queue,
pinning each craft once and recording the plugin tree as it goes.
"""

import logging
import tempfile
from collections import deque
from collections.abc import Awaitable, Callable
from pathlib import Path

from craftdesk.deps.git import GitCheckout, GitRefResolver
from craftdesk.deps.models import (
    CraftInfo,
    CraftKind,
    CraftManifest,
    DependencySpec,
    GitSpec,
    RegistrySpec,
    ResolvedRef,
)
from craftdesk.deps.parser import parse_dependencies, read_craft_manifest
from craftdesk.exceptions import ConfigurationError, CraftDeskError, NotFoundError
from craftdesk.lockfile.models import GIT_INTEGRITY_PREFIX, LockEntry, PluginTreeNode

logger = logging.getLogger(__name__)

# (name, version or None for latest, registry override) -> info
RegistryLookup = Callable[[str, str | None, str | None], Awaitable[CraftInfo | None]]

_LATEST_RANGES = {"", "*", "latest"}


class DependencyGraphBuilder:
    """Resolves a manifest into pinned lock entries and a plugin tree.

    Each craft name is expanded at most once. An edge to a name that was
    already expanded is kept as a shared edge, which is also how cycles end.
    On conflicting specs for the same name, the last one visited wins.
    """

    def __init__(
        self,
        ref_resolver: GitRefResolver,
        registry_lookup: RegistryLookup | None = None,
        checkout: GitCheckout | None = None,
        locked: dict[str, LockEntry] | None = None,
    ):
        """Initialize the builder.

        Args:
            ref_resolver: Resolves git refs to commits.
            registry_lookup: Async registry metadata lookup.
            checkout: Used to read craftdesk.json out of git dependencies.
            locked: Existing pins to reuse when their source still matches.
        """
        self.ref_resolver = ref_resolver
        self.registry_lookup = registry_lookup
        self.checkout = checkout or GitCheckout()
        self.locked = locked or {}

        self._root: str | None = None
        self._direct: set[str] = set()
        self._flattened: dict[str, DependencySpec] = {}
        self._entries: dict[str, LockEntry] = {}
        self._nodes: dict[str, PluginTreeNode] = {}

    async def resolve_plugin_dependencies(self, root_dir: Path) -> dict[str, DependencySpec]:
        """Resolve the dependencies declared in root_dir/craftdesk.json.

        Raises:
            NotFoundError: If root_dir has no craftdesk.json.
            ConfigurationError: If the root manifest is invalid.
        """
        return await self.resolve_manifest(read_craft_manifest(root_dir))

    async def resolve_manifest(self, manifest: CraftManifest) -> dict[str, DependencySpec]:
        """Resolve an already parsed manifest.

        Returns:
            The flattened name -> spec mapping.

        Raises:
            ConfigurationError: If a dependency spec is invalid.
            NotFoundError: If a ref or registry craft does not exist.
            NetworkError: If a remote cannot be reached.
        """
        self._reset()
        root = manifest.name
        self._root = root
        self._direct = set(manifest.dependencies)
        self._nodes[root] = PluginTreeNode(
            name=root,
            version=manifest.version,
            dependencies=list(manifest.dependencies),
            is_dependency=False,
        )

        visited = {root}
        queue: deque[tuple[str, DependencySpec, str]] = deque(
            (name, spec, root) for name, spec in manifest.dependencies.items()
        )

        while queue:
            name, spec, parent = queue.popleft()

            if name in visited:
                self._record_shared_edge(name, parent)
                if name != root and self._flattened.get(name) != spec:
                    logger.debug(f"Conflicting specs for {name}, using the one from {parent}")
                    self._flattened[name] = spec
                    entry, children = await self._resolve(name, spec)
                    self._entries[name] = entry
                    node = self._nodes[name]
                    node.version = entry.version
                    node.dependencies = list(children)
                    # Only unseen children are queued, so conflicts cannot loop
                    for child_name, child_spec in children.items():
                        if child_name in visited:
                            self._record_shared_edge(child_name, name)
                        else:
                            queue.append((child_name, child_spec, name))
                continue

            visited.add(name)
            self._flattened[name] = spec
            entry, children = await self._resolve(name, spec)
            self._entries[name] = entry
            self._nodes[name] = PluginTreeNode(
                name=name,
                version=entry.version,
                dependencies=list(children),
                required_by=[parent],
                is_dependency=name not in self._direct,
            )

            for child_name, child_spec in children.items():
                queue.append((child_name, child_spec, name))

        logger.debug(f"Resolved {len(self._entries)} crafts for {root}")
        return self.get_flattened_dependencies()

    async def resolve_entry(self, name: str, spec: DependencySpec) -> LockEntry:
        """Pin a single spec without expanding it. Locked pins are ignored."""
        if isinstance(spec, GitSpec):
            entry, _ = self._resolve_git(name, spec)
        else:
            entry, _ = await self._resolve_registry(name, spec)
        return entry

    def get_flattened_dependencies(self) -> dict[str, DependencySpec]:
        """Get every transitive dependency by name."""
        return dict(self._flattened)

    def get_lock_entries(self) -> dict[str, LockEntry]:
        """Get the pinned entries, marked direct or dependency."""
        return {
            name: entry.model_copy(
                update={"installed_as": "direct" if name in self._direct else "dependency"}
            )
            for name, entry in self._entries.items()
        }

    def build_plugin_tree(self, include_root: bool = True) -> dict[str, PluginTreeNode]:
        """Get the dependency tree.

        Args:
            include_root: Include the node of the resolved manifest itself.
        """
        return {
            name: node.model_copy(deep=True)
            for name, node in self._nodes.items()
            if include_root or name != self._root
        }

    def _reset(self) -> None:
        self._root = None
        self._direct = set()
        self._flattened = {}
        self._entries = {}
        self._nodes = {}

    def _record_shared_edge(self, name: str, parent: str) -> None:
        parent_node = self._nodes.get(parent)
        if parent_node is not None and name not in parent_node.shared_dependencies:
            parent_node.shared_dependencies.append(name)

        node = self._nodes.get(name)
        if node is not None and parent not in node.required_by:
            node.required_by.append(parent)

    async def _resolve(
        self, name: str, spec: DependencySpec
    ) -> tuple[LockEntry, dict[str, DependencySpec]]:
        locked = self.locked.get(name)
        if locked is not None and locked.matches(spec):
            logger.debug(f"Reusing locked pin for {name}@{locked.version}")
            return locked.model_copy(deep=True), dict(locked.dependencies)

        if isinstance(spec, GitSpec):
            return self._resolve_git(name, spec)
        return await self._resolve_registry(name, spec)

    def _resolve_git(
        self, name: str, spec: GitSpec
    ) -> tuple[LockEntry, dict[str, DependencySpec]]:
        resolved = self.ref_resolver.resolve_git_dependency(spec)
        manifest = self._read_git_manifest(name, spec, resolved)

        kind = spec.kind or (manifest.type if manifest else None) or CraftKind.SKILL.value
        dependencies = dict(manifest.dependencies) if manifest else {}
        entry = LockEntry(
            version=manifest.version if manifest else f"0.0.0-{resolved.short_commit}",
            git=spec.url,
            branch=spec.branch,
            tag=spec.tag,
            commit=resolved.resolved_commit,
            path=spec.path,
            file=spec.file,
            integrity=f"{GIT_INTEGRITY_PREFIX}{resolved.resolved_commit}",
            type=kind,
            author=(manifest.author if manifest else None) or "",
            dependencies=dependencies,
        )
        logger.debug(f"Resolved {name} to {resolved.display_ref} ({resolved.short_commit})")
        return entry, dependencies

    def _read_git_manifest(
        self, name: str, spec: GitSpec, resolved: ResolvedRef
    ) -> CraftManifest | None:
        """Read craftdesk.json from a pinned checkout, best effort."""
        if spec.file:
            return None

        try:
            with tempfile.TemporaryDirectory(prefix="craftdesk-manifest-") as temp:
                repo_dir = Path(temp) / "repo"
                self.checkout.clone(
                    spec.url,
                    repo_dir,
                    branch=spec.branch,
                    tag=spec.tag,
                    commit=resolved.resolved_commit,
                )
                return read_craft_manifest(repo_dir / spec.path if spec.path else repo_dir)
        except CraftDeskError as e:
            logger.warning(f"Could not read manifest for {name}, skipping its dependencies: {e}")
            return None

    async def _resolve_registry(
        self, name: str, spec: RegistrySpec
    ) -> tuple[LockEntry, dict[str, DependencySpec]]:
        if self.registry_lookup is None:
            raise ConfigurationError(
                f"Dependency {name} needs a registry but none is configured",
                hint="Add a registry to craftdesk.json or use a git dependency.",
            )

        requested = None if spec.version_range.lower() in _LATEST_RANGES else spec.version_range
        info = await self.registry_lookup(name, requested, spec.registry)
        if info is None:
            raise NotFoundError(f"Craft '{name}' not found in registry")
        if not info.download_url:
            raise NotFoundError(f"Registry has no download for {name}@{info.version}")

        try:
            dependencies = parse_dependencies(info.dependencies)
        except ConfigurationError as e:
            logger.warning(f"Ignoring invalid dependencies of {name}@{info.version}: {e}")
            dependencies = {}

        entry = LockEntry(
            version=info.version,
            resolved=info.download_url,
            integrity=info.integrity,
            type=info.type,
            author=info.author,
            registry=spec.registry,
            dependencies=dependencies,
        )
        return entry, dependencies
