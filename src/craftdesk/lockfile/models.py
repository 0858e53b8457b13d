"""
Lockfile models for CraftDesk.

The lockfile (craftdesk.lock) pins every craft to an exact version or commit
and records the plugin dependency tree.
"""

from typing import Any, Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)

from craftdesk.deps.models import CraftKind, DependencySpec, GitSpec, RegistrySpec
from craftdesk.deps.parser import dump_dependency_spec, parse_dependencies
from craftdesk.deps.versions import version_satisfies

LOCKFILE_VERSION = 1

GIT_INTEGRITY_PREFIX = "sha256-git:"


class LockEntry(BaseModel):
    """One pinned craft."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str
    resolved: str | None = Field(default=None, description="Registry download URL")
    git: str | None = Field(default=None, description="Repository URL")
    branch: str | None = None
    tag: str | None = None
    commit: str | None = None
    path: str | None = None
    file: str | None = None
    integrity: str | None = None
    type: str = CraftKind.SKILL.value
    author: str = ""
    registry: str | None = None
    dependencies: dict[str, DependencySpec] = Field(default_factory=dict)
    installed_as: Literal["direct", "dependency"] | None = Field(
        default=None, alias="installedAs"
    )

    @field_validator("dependencies", mode="before")
    @classmethod
    def _parse_dependencies(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return parse_dependencies(value)
        return value

    @field_serializer("dependencies")
    def _dump_dependencies(self, value: dict[str, Any]) -> dict[str, Any]:
        return {name: dump_dependency_spec(spec) for name, spec in value.items()}

    @model_validator(mode="after")
    def _check_source(self) -> "LockEntry":
        if bool(self.resolved) == bool(self.git):
            raise ValueError("lock entry must have exactly one of 'resolved' or 'git'")
        return self

    @property
    def is_git(self) -> bool:
        """Check whether the entry comes from a git repository."""
        return self.git is not None

    def matches(self, spec: RegistrySpec | GitSpec) -> bool:
        """Check whether this pin still satisfies a dependency spec.

        Git pins match on URL, extraction target and ref; a pinned commit in
        the spec must prefix the locked commit. Registry pins match when the
        locked version is inside the requested range.
        """
        if isinstance(spec, GitSpec):
            if not self.git or self.git != spec.url:
                return False
            if (self.path, self.file) != (spec.path, spec.file):
                return False
            if spec.commit:
                return bool(self.commit) and self.commit.startswith(spec.commit.lower())
            if spec.tag:
                return self.tag == spec.tag
            return self.tag is None and self.branch == spec.branch

        if not self.resolved or self.registry != spec.registry:
            return False
        return version_satisfies(self.version, spec.version_range)


class PluginTreeNode(BaseModel):
    """A node of the plugin dependency tree."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    version: str
    dependencies: list[str] = Field(default_factory=list)
    required_by: list[str] = Field(default_factory=list, alias="requiredBy")
    is_dependency: bool = Field(default=False, alias="isDependency")
    # Edges that pointed at an already expanded node
    shared_dependencies: list[str] = Field(default_factory=list, alias="sharedDependencies")


class LockfileMetadata(BaseModel):
    """Summary counters."""

    model_config = ConfigDict(populate_by_name=True)

    total_crafts: int = Field(default=0, alias="totalCrafts")


class Lockfile(BaseModel):
    """craftdesk.lock."""

    model_config = ConfigDict(populate_by_name=True)

    version: str = "1.0.0"
    lockfile_version: int = Field(default=LOCKFILE_VERSION, alias="lockfileVersion")
    generated_at: str = Field(default="", alias="generatedAt")
    crafts: dict[str, LockEntry] = Field(default_factory=dict)
    plugin_tree: dict[str, PluginTreeNode] = Field(default_factory=dict, alias="pluginTree")
    metadata: LockfileMetadata = Field(default_factory=LockfileMetadata)
