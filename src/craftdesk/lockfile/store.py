"""
Lockfile persistence for CraftDesk.

Reads and writes craftdesk.lock and edits its dependency tree.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import ValidationError

from craftdesk.exceptions import ConfigurationError, LockfileError
from craftdesk.lockfile.models import Lockfile, LockEntry, LockfileMetadata, PluginTreeNode

logger = logging.getLogger(__name__)


class LockfileStore:
    """Reads and writes a single lockfile."""

    def __init__(self, path: Path):
        """Initialize the store.

        Args:
            path: Location of craftdesk.lock.
        """
        self.path = Path(path)

    def exists(self) -> bool:
        """Check whether the lockfile exists."""
        return self.path.is_file()

    def read(self) -> Lockfile | None:
        """Read the lockfile.

        Returns:
            The parsed lockfile, or None if it does not exist.

        Raises:
            LockfileError: If the file is not valid JSON or has an invalid shape.
        """
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise LockfileError(f"Failed to read {self.path}: {e}") from e

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise LockfileError(
                f"Invalid JSON in {self.path}: {e}",
                hint="Delete the lockfile and install again to regenerate it.",
            ) from e

        if not isinstance(data, dict):
            raise LockfileError(f"{self.path} must contain a JSON object")

        try:
            return Lockfile.model_validate(data)
        except (ValidationError, ConfigurationError) as e:
            raise LockfileError(
                f"Invalid lockfile {self.path}: {e}",
                hint="Delete the lockfile and install again to regenerate it.",
            ) from e

    def write(self, lockfile: Lockfile) -> Path:
        """Write the lockfile, refreshing generatedAt and totals.

        Returns:
            The path written.
        """
        lockfile.generated_at = datetime.now(timezone.utc).isoformat()
        lockfile.metadata = LockfileMetadata(total_crafts=len(lockfile.crafts))

        data = lockfile.model_dump(mode="json", by_alias=True, exclude_none=True)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

        logger.debug(f"Wrote lockfile with {len(lockfile.crafts)} crafts to {self.path}")
        return self.path

    @staticmethod
    def find_dependents(lockfile: Lockfile, name: str) -> list[str]:
        """List the crafts whose tree node depends on name.

        Returns:
            Dependents formatted as "name@version".
        """
        return [
            f"{node_name}@{node.version}"
            for node_name, node in lockfile.plugin_tree.items()
            if node_name != name and name in node.dependencies
        ]

    @staticmethod
    def remove_entry(lockfile: Lockfile, name: str) -> LockEntry | None:
        """Remove a craft and every tree edge naming it.

        Returns:
            The removed entry, or None if the craft was not locked.
        """
        entry = lockfile.crafts.pop(name, None)
        lockfile.plugin_tree.pop(name, None)

        for node in lockfile.plugin_tree.values():
            node.dependencies = [dep for dep in node.dependencies if dep != name]
            node.required_by = [dep for dep in node.required_by if dep != name]
            node.shared_dependencies = [dep for dep in node.shared_dependencies if dep != name]

        lockfile.metadata = LockfileMetadata(total_crafts=len(lockfile.crafts))
        return entry

    @staticmethod
    def build_lockfile(
        entries: dict[str, LockEntry],
        plugin_tree: dict[str, PluginTreeNode] | None = None,
        project_version: str = "1.0.0",
    ) -> Lockfile:
        """Assemble a lockfile from resolved entries."""
        return Lockfile(
            version=project_version,
            generated_at=datetime.now(timezone.utc).isoformat(),
            crafts=dict(entries),
            plugin_tree=dict(plugin_tree or {}),
            metadata=LockfileMetadata(total_crafts=len(entries)),
        )
