"""
CraftDesk dependency layer.

Provides:
- Dependency specs for registry and git crafts
- Git ref resolution and checkout
- Registry lookups and downloads
- Version range helpers

The graph builder lives in craftdesk.deps.graph and is imported from there.
"""

from craftdesk.deps.git import GitCheckout, GitRefResolver, extract_git_content, validate_commit
from craftdesk.deps.models import (
    CraftInfo,
    CraftKind,
    CraftManifest,
    DependencySpec,
    GitRefKind,
    GitSpec,
    RegistryEntry,
    RegistrySpec,
    ResolvedRef,
    get_kind_directory,
)
from craftdesk.deps.parser import (
    dump_dependencies,
    dump_dependency_spec,
    parse_craft_manifest,
    parse_dependencies,
    parse_dependency_spec,
    read_craft_manifest,
    write_craft_manifest,
)
from craftdesk.deps.registry import RegistryClient, parse_craft_name
from craftdesk.deps.versions import (
    is_newer_version,
    latest_tag,
    parse_version,
    sort_tags_by_version,
    version_satisfies,
)

__all__ = [
    # Models
    "CraftInfo",
    "CraftKind",
    "CraftManifest",
    "DependencySpec",
    "GitRefKind",
    "GitSpec",
    "RegistryEntry",
    "RegistrySpec",
    "ResolvedRef",
    "get_kind_directory",
    # Parser
    "dump_dependencies",
    "dump_dependency_spec",
    "parse_craft_manifest",
    "parse_dependencies",
    "parse_dependency_spec",
    "read_craft_manifest",
    "write_craft_manifest",
    # Git
    "GitCheckout",
    "GitRefResolver",
    "extract_git_content",
    "validate_commit",
    # Registry
    "RegistryClient",
    "parse_craft_name",
    # Versions
    "is_newer_version",
    "latest_tag",
    "parse_version",
    "sort_tags_by_version",
    "version_satisfies",
]
