"""
Unit tests for lockfile models and persistence.
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from craftdesk.deps.models import GitSpec, RegistrySpec
from craftdesk.exceptions import LockfileError
from craftdesk.lockfile import Lockfile, LockEntry, LockfileStore, PluginTreeNode

COMMIT = "0123456789abcdef0123456789abcdef01234567"


@pytest.fixture
def store(temp_dir: Path) -> LockfileStore:
    """Create a store for a lockfile in the temp directory."""
    return LockfileStore(temp_dir / "craftdesk.lock")


@pytest.fixture
def lockfile() -> Lockfile:
    """Build a lockfile with a plugin depending on a skill."""
    return LockfileStore.build_lockfile(
        {
            "suite": LockEntry(
                version="1.0.0",
                git="https://example.com/suite.git",
                branch="main",
                commit=COMMIT,
                integrity=f"sha256-git:{COMMIT}",
                type="plugin",
                dependencies={"a/lint": "^1.0.0"},
                installed_as="direct",
            ),
            "a/lint": LockEntry(
                version="1.2.0",
                resolved="https://craftdesk.example/dl/lint-1.2.0.zip",
                integrity="sha256-" + "f" * 64,
                installed_as="dependency",
            ),
        },
        plugin_tree={
            "suite": PluginTreeNode(
                name="suite", version="1.0.0", dependencies=["a/lint"], is_dependency=True
            ),
            "a/lint": PluginTreeNode(
                name="a/lint",
                version="1.2.0",
                required_by=["suite"],
                is_dependency=True,
                shared_dependencies=["suite"],
            ),
        },
    )


# =============================================================================
# Model Tests
# =============================================================================


class TestLockEntry:
    """Tests for LockEntry validation and matching."""

    def test_requires_exactly_one_source(self):
        with pytest.raises(ValidationError):
            LockEntry(version="1.0.0")
        with pytest.raises(ValidationError):
            LockEntry(version="1.0.0", resolved="https://x/a.zip", git="https://x/a.git")

    def test_is_git(self):
        assert LockEntry(version="1.0.0", git="u", commit=COMMIT).is_git is True
        assert LockEntry(version="1.0.0", resolved="https://x/a.zip").is_git is False

    def test_git_matches_branch(self):
        entry = LockEntry(version="1.0.0", git="u", branch="main", commit=COMMIT)
        assert entry.matches(GitSpec(name="x", url="u", branch="main"))
        assert not entry.matches(GitSpec(name="x", url="u", branch="dev"))
        assert not entry.matches(GitSpec(name="x", url="other", branch="main"))
        assert not entry.matches(GitSpec(name="x", url="u", branch="main", path="sub"))

    def test_git_matches_commit_prefix(self):
        entry = LockEntry(version="1.0.0", git="u", commit=COMMIT)
        assert entry.matches(GitSpec(name="x", url="u", commit="0123456"))
        assert entry.matches(GitSpec(name="x", url="u", commit="0123456789ABCDEF"))
        assert not entry.matches(GitSpec(name="x", url="u", commit="fffffff"))

    def test_git_matches_tag(self):
        entry = LockEntry(version="1.0.0", git="u", tag="v1.0.0", commit=COMMIT)
        assert entry.matches(GitSpec(name="x", url="u", tag="v1.0.0"))
        assert not entry.matches(GitSpec(name="x", url="u", tag="v1.1.0"))
        assert not entry.matches(GitSpec(name="x", url="u"))

    def test_registry_matches_range_and_registry(self):
        entry = LockEntry(version="1.2.0", resolved="https://x/a.zip", registry="corp")
        assert entry.matches(RegistrySpec(name="a/b", version_range="^1.0.0", registry="corp"))
        assert not entry.matches(RegistrySpec(name="a/b", version_range="^1.0.0"))
        assert not entry.matches(
            RegistrySpec(name="a/b", version_range="^2.0.0", registry="corp")
        )
        assert not entry.matches(GitSpec(name="a/b", url="u"))


# =============================================================================
# Store Tests
# =============================================================================


class TestLockfileStore:
    """Tests for reading and writing craftdesk.lock."""

    def test_read_missing_returns_none(self, store):
        assert store.exists() is False
        assert store.read() is None

    def test_write_uses_camel_case_keys(self, store, lockfile):
        store.write(lockfile)
        data = json.loads(store.path.read_text())

        assert data["lockfileVersion"] == 1
        assert data["generatedAt"]
        assert data["metadata"] == {"totalCrafts": 2}
        assert data["pluginTree"]["a/lint"]["requiredBy"] == ["suite"]
        assert data["pluginTree"]["a/lint"]["sharedDependencies"] == ["suite"]
        assert data["crafts"]["suite"]["installedAs"] == "direct"
        assert data["crafts"]["suite"]["dependencies"] == {"a/lint": "^1.0.0"}
        assert "resolved" not in data["crafts"]["suite"]
        assert store.path.read_text().endswith("\n")

    def test_write_then_read(self, store, lockfile):
        store.write(lockfile)
        loaded = store.read()

        assert loaded.crafts["suite"].commit == COMMIT
        assert isinstance(loaded.crafts["suite"].dependencies["a/lint"], RegistrySpec)
        assert loaded.plugin_tree["suite"].dependencies == ["a/lint"]

    def test_read_invalid_json(self, store):
        store.path.write_text("{broken")
        with pytest.raises(LockfileError, match="Invalid JSON"):
            store.read()

    def test_read_non_object(self, store):
        store.path.write_text("[]")
        with pytest.raises(LockfileError):
            store.read()

    def test_read_entry_with_both_sources(self, store):
        store.path.write_text(
            json.dumps(
                {
                    "crafts": {
                        "x": {"version": "1.0.0", "resolved": "https://x", "git": "https://y"}
                    }
                }
            )
        )
        with pytest.raises(LockfileError, match="Invalid lockfile"):
            store.read()

    def test_read_entry_with_invalid_dependency(self, store):
        store.path.write_text(
            json.dumps(
                {
                    "crafts": {
                        "x": {"version": "1.0.0", "resolved": "https://x", "dependencies": {"y": 3}}
                    }
                }
            )
        )
        with pytest.raises(LockfileError):
            store.read()


class TestTreeEditing:
    """Tests for dependents lookup and entry removal."""

    def test_find_dependents(self, lockfile):
        assert LockfileStore.find_dependents(lockfile, "a/lint") == ["suite@1.0.0"]
        assert LockfileStore.find_dependents(lockfile, "suite") == []

    def test_remove_entry_prunes_edges(self, lockfile):
        removed = LockfileStore.remove_entry(lockfile, "a/lint")

        assert removed.version == "1.2.0"
        assert "a/lint" not in lockfile.crafts
        assert "a/lint" not in lockfile.plugin_tree
        assert lockfile.plugin_tree["suite"].dependencies == []
        assert lockfile.metadata.total_crafts == 1

    def test_remove_entry_prunes_required_by(self, lockfile):
        LockfileStore.remove_entry(lockfile, "suite")

        node = lockfile.plugin_tree["a/lint"]
        assert node.required_by == []
        assert node.shared_dependencies == []

    def test_remove_unknown_entry(self, lockfile):
        assert LockfileStore.remove_entry(lockfile, "nope") is None
        assert len(lockfile.crafts) == 2
