"""
Dependency models for CraftDesk.

Defines craft kinds, the dependency specification union, resolved git refs,
and the manifests crafts declare their dependencies in.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from craftdesk.exceptions import ConfigurationError


class CraftKind(str, Enum):
    """Installable craft kinds."""

    SKILL = "skill"
    AGENT = "agent"
    COMMAND = "command"
    HOOK = "hook"
    PLUGIN = "plugin"


KIND_DIRECTORIES: dict[str, str] = {
    CraftKind.SKILL.value: "skills",
    CraftKind.AGENT.value: "agents",
    CraftKind.COMMAND.value: "commands",
    CraftKind.HOOK.value: "hooks",
    CraftKind.PLUGIN.value: "plugins",
}

FALLBACK_KIND_DIRECTORY = "crafts"


def get_kind_directory(kind: str) -> str:
    """Map a craft kind to its install subdirectory.

    Unrecognized kinds go to the catch-all "crafts" directory.
    """
    return KIND_DIRECTORIES.get(str(kind), FALLBACK_KIND_DIRECTORY)


class GitRefKind(str, Enum):
    """Which field of a git spec is authoritative."""

    COMMIT = "commit"
    TAG = "tag"
    BRANCH = "branch"
    DEFAULT = "default"


class RegistrySpec(BaseModel):
    """A craft resolved through a registry by version range."""

    source: Literal["registry"] = "registry"
    name: str = Field(..., description="Craft name (author/name)")
    version_range: str = Field(default="latest", description="Semver range or exact version")
    registry: str | None = Field(default=None, description="Registry name or URL override")


class GitSpec(BaseModel):
    """A craft fetched from a git repository.

    Precedence when more than one ref is given: commit, then tag, then branch.
    With none of them the remote's default branch is used.
    """

    source: Literal["git"] = "git"
    name: str = Field(..., description="Craft name")
    url: str = Field(..., description="Repository URL or local path")
    branch: str | None = None
    tag: str | None = None
    commit: str | None = None
    path: str | None = Field(default=None, description="Subdirectory to extract")
    file: str | None = Field(default=None, description="Single file to extract")
    kind: str | None = Field(default=None, description="Craft kind override")

    @property
    def ref_kind(self) -> GitRefKind:
        """Get the authoritative ref field."""
        if self.commit:
            return GitRefKind.COMMIT
        if self.tag:
            return GitRefKind.TAG
        if self.branch:
            return GitRefKind.BRANCH
        return GitRefKind.DEFAULT

    @property
    def ref(self) -> str | None:
        """Get the authoritative ref value (None for the default branch)."""
        return self.commit or self.tag or self.branch

    def check_extraction(self) -> None:
        """Ensure at most one extraction mode is requested.

        Raises:
            ConfigurationError: If both path and file are set.
        """
        if self.path and self.file:
            raise ConfigurationError(
                f"Dependency {self.name} sets both 'path' and 'file'",
                hint="Use 'path' for a subdirectory or 'file' for a single file, not both.",
            )


DependencySpec = Annotated[RegistrySpec | GitSpec, Field(discriminator="source")]


class ResolvedRef(BaseModel):
    """An immutable commit pointer for a git dependency."""

    model_config = ConfigDict(frozen=True)

    url: str
    resolved_commit: str
    display_ref: str

    @property
    def short_commit(self) -> str:
        """Get the abbreviated commit."""
        return self.resolved_commit[:7]


class CraftInfo(BaseModel):
    """Registry metadata for one craft version."""

    model_config = ConfigDict(extra="ignore")

    name: str
    author: str = ""
    version: str
    type: str = CraftKind.SKILL.value
    description: str | None = None
    dependencies: dict[str, Any] = Field(default_factory=dict)
    download_url: str | None = None
    integrity: str | None = None


class RegistryEntry(BaseModel):
    """A named registry in craftdesk.json."""

    url: str
    scope: str | None = None


class CraftManifest(BaseModel):
    """craftdesk.json: a project's or craft's own declaration."""

    model_config = ConfigDict(extra="allow")

    name: str
    version: str = "1.0.0"
    type: str | None = None
    author: str | None = None
    description: str | None = None
    dependencies: dict[str, DependencySpec] = Field(default_factory=dict)
    registries: dict[str, RegistryEntry] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _parse_dependencies(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("dependencies"), dict):
            # Imported here: the parser depends on these models
            from craftdesk.deps.parser import parse_dependencies

            data = {**data, "dependencies": parse_dependencies(data["dependencies"])}
        return data
