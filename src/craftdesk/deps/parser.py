"""
Dependency parser for CraftDesk.

Turns the on-disk shapes found in craftdesk.json and the lockfile into
DependencySpec models, and back.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from craftdesk.deps.models import CraftManifest, GitSpec, RegistrySpec
from craftdesk.exceptions import ConfigurationError, NotFoundError
from craftdesk.storage.paths import MANIFEST_FILENAME

_GIT_FIELDS = ("branch", "tag", "commit", "path", "file")


def parse_dependency_spec(name: str, value: Any) -> RegistrySpec | GitSpec:
    """Parse one dependency value.

    Accepted shapes:
    - "^1.2.0": registry craft with a version range
    - {"version": "^1.2.0", "registry": "company"}: registry craft with override
    - {"git": "<url>", "branch"|"tag"|"commit": ..., "path"|"file": ...}: git craft

    Args:
        name: Dependency name (the mapping key).
        value: Raw value from the manifest or lockfile.

    Returns:
        A RegistrySpec or GitSpec.

    Raises:
        ConfigurationError: If the value has an unsupported shape.
    """
    if isinstance(value, (RegistrySpec, GitSpec)):
        return value

    try:
        if isinstance(value, str):
            if not value.strip():
                raise ConfigurationError(f"Empty version range for dependency {name}")
            return RegistrySpec(name=name, version_range=value.strip())

        if isinstance(value, dict) and "git" in value:
            url = value["git"]
            if not isinstance(url, str) or not url:
                raise ConfigurationError(f"Dependency {name} has an invalid 'git' URL")
            spec = GitSpec(
                name=name,
                url=url,
                kind=value.get("type"),
                **{key: value.get(key) for key in _GIT_FIELDS},
            )
            spec.check_extraction()
            return spec

        if isinstance(value, dict) and ("version" in value or "registry" in value):
            return RegistrySpec(
                name=name,
                version_range=value.get("version") or "latest",
                registry=value.get("registry"),
            )
    except ValidationError as e:
        raise ConfigurationError(f"Invalid dependency specification for {name}: {e}") from e

    raise ConfigurationError(f"Unsupported dependency specification for {name}: {value!r}")


def parse_dependencies(raw: dict[str, Any]) -> dict[str, RegistrySpec | GitSpec]:
    """Parse a name -> value dependency mapping."""
    return {name: parse_dependency_spec(name, value) for name, value in raw.items()}


def dump_dependency_spec(spec: RegistrySpec | GitSpec) -> str | dict[str, Any]:
    """Convert a spec back to its on-disk shape."""
    if isinstance(spec, RegistrySpec):
        if spec.registry:
            return {"version": spec.version_range, "registry": spec.registry}
        return spec.version_range

    data: dict[str, Any] = {"git": spec.url}
    for key in _GIT_FIELDS:
        value = getattr(spec, key)
        if value:
            data[key] = value
    if spec.kind:
        data["type"] = spec.kind
    return data


def dump_dependencies(specs: dict[str, RegistrySpec | GitSpec]) -> dict[str, Any]:
    """Convert a spec mapping back to its on-disk shape."""
    return {name: dump_dependency_spec(spec) for name, spec in specs.items()}


def parse_craft_manifest(content: str, path: Path | None = None) -> CraftManifest:
    """Parse craftdesk.json content.

    Raises:
        ConfigurationError: If the content is not a valid manifest.
    """
    location = f" ({path})" if path else ""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {MANIFEST_FILENAME}{location}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"{MANIFEST_FILENAME}{location} must be a JSON object")

    try:
        return CraftManifest.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {MANIFEST_FILENAME}{location}: {e}") from e


def read_craft_manifest(directory: Path, filename: str = MANIFEST_FILENAME) -> CraftManifest:
    """Read craftdesk.json from a directory.

    Raises:
        NotFoundError: If the directory has no craftdesk.json.
        ConfigurationError: If the manifest is invalid.
    """
    manifest_path = Path(directory) / filename
    try:
        content = manifest_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise NotFoundError(f"No {filename} found in {directory}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {manifest_path}: {e}") from e

    return parse_craft_manifest(content, manifest_path)


def write_craft_manifest(
    manifest: CraftManifest, directory: Path, filename: str = MANIFEST_FILENAME
) -> Path:
    """Write craftdesk.json back, keeping fields this package does not model."""
    data = manifest.model_dump(mode="json", exclude_none=True)
    data["dependencies"] = dump_dependencies(manifest.dependencies)
    if not data["dependencies"]:
        del data["dependencies"]
    if not data.get("registries"):
        data.pop("registries", None)

    manifest_path = Path(directory) / filename
    manifest_path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    return manifest_path
