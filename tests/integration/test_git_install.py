"""
Integration tests for git resolution and installation.

These run real git commands against local repositories served over file://.
"""

import json
from pathlib import Path

import pytest

from craftdesk.config import Config
from craftdesk.deps.git import GitCheckout, GitRefResolver
from craftdesk.deps.models import GitSpec
from craftdesk.exceptions import NotFoundError
from craftdesk.manager import CraftManager


def _url(repo) -> str:
    return Path(repo.working_tree_dir).as_uri()


def _snapshot(root: Path) -> dict[str, str]:
    return {
        path.relative_to(root).as_posix(): path.read_text()
        for path in sorted(root.rglob("*"))
        if path.is_file() and path.name != ".craftdesk-metadata.json"
    }


@pytest.fixture
def crafts_repo(git_repo_factory):
    """Create a repository holding a skill and an agent."""
    return git_repo_factory(
        "crafts",
        {
            "README.md": "# crafts\n",
            "skills/review/SKILL.md": "review v1\n",
            "agents/helper.md": "helper v1\n",
        },
    )


@pytest.fixture
def resolver() -> GitRefResolver:
    """Create a resolver with a short timeout."""
    return GitRefResolver(ls_remote_timeout=30)


# =============================================================================
# Resolution
# =============================================================================


@pytest.mark.integration
def test_branch_resolves_to_head(resolver, crafts_repo):
    """Test that a branch resolves to the exact head commit."""
    resolved = resolver.resolve_git_dependency(
        GitSpec(name="crafts", url=_url(crafts_repo), branch="main")
    )

    assert resolved.resolved_commit == crafts_repo.head.commit.hexsha
    assert resolved.display_ref == "main"


@pytest.mark.integration
def test_annotated_tag_resolves_to_commit(resolver, crafts_repo, commit_files):
    """Test that annotated tags are peeled to their commit."""
    tagged = crafts_repo.head.commit.hexsha
    crafts_repo.create_tag("v1.0.0", message="Release 1.0.0")
    commit_files(crafts_repo, {"skills/review/SKILL.md": "review v2\n"}, "Update review")

    resolved = resolver.resolve_git_dependency(
        GitSpec(name="crafts", url=_url(crafts_repo), tag="v1.0.0")
    )

    assert resolved.resolved_commit == tagged
    assert resolver.list_remote_tags(_url(crafts_repo)) == ["v1.0.0"]


@pytest.mark.integration
def test_default_branch(resolver, git_repo_factory):
    """Test that a spec without a ref follows the remote default branch."""
    repo = git_repo_factory("trunk-repo", {"SKILL.md": "x\n"}, branch="trunk")

    resolved = resolver.resolve_git_dependency(GitSpec(name="t", url=_url(repo)))

    assert resolved.display_ref == "trunk"
    assert resolved.resolved_commit == repo.head.commit.hexsha


@pytest.mark.integration
def test_missing_branch(resolver, crafts_repo):
    """Test that an unknown branch is reported as not found."""
    with pytest.raises(NotFoundError):
        resolver.resolve_git_dependency(
            GitSpec(name="crafts", url=_url(crafts_repo), branch="does-not-exist")
        )


# =============================================================================
# Checkout
# =============================================================================


@pytest.mark.integration
def test_checkout_subdirectory(crafts_repo, temp_dir):
    """Test extracting one directory of the repository."""
    target = temp_dir / "install" / "review"

    commit = GitCheckout().checkout_git_source(
        _url(crafts_repo), target, branch="main", path="skills/review"
    )

    assert commit == crafts_repo.head.commit.hexsha
    assert _snapshot(target) == {"SKILL.md": "review v1\n"}
    assert [p.name for p in target.parent.iterdir()] == ["review"]


@pytest.mark.integration
def test_checkout_single_file(crafts_repo, temp_dir):
    """Test extracting a single file under its basename."""
    target = temp_dir / "install" / "helper"

    GitCheckout().checkout_git_source(_url(crafts_repo), target, file="agents/helper.md")

    assert _snapshot(target) == {"helper.md": "helper v1\n"}


@pytest.mark.integration
def test_checkout_older_commit(crafts_repo, commit_files, temp_dir):
    """Test that a pinned commit behind the branch head is checked out."""
    old = crafts_repo.head.commit.hexsha
    commit_files(crafts_repo, {"skills/review/SKILL.md": "review v2\n"}, "Update review")
    target = temp_dir / "install" / "review"

    commit = GitCheckout().checkout_git_source(
        _url(crafts_repo), target, branch="main", commit=old, path="skills/review"
    )

    assert commit == old
    assert (target / "SKILL.md").read_text() == "review v1\n"


@pytest.mark.integration
def test_checkout_whole_repository_skips_git_dir(crafts_repo, temp_dir):
    """Test that the repository is copied without its .git directory."""
    target = temp_dir / "install" / "crafts"

    GitCheckout().checkout_git_source(_url(crafts_repo), target)

    assert not (target / ".git").exists()
    assert set(_snapshot(target)) == {"README.md", "skills/review/SKILL.md", "agents/helper.md"}


# =============================================================================
# End to End
# =============================================================================


@pytest.fixture
def plugin_project(git_repo_factory, project_dir, write_json):
    """Create a project depending on a git plugin that depends on a git skill."""
    lint_repo = git_repo_factory("lint", {"SKILL.md": "# Lint\n"})
    suite_repo = git_repo_factory(
        "suite",
        {
            "craftdesk.json": json.dumps(
                {
                    "name": "suite",
                    "version": "0.2.0",
                    "type": "plugin",
                    "dependencies": {"lint": {"git": _url(lint_repo), "branch": "main"}},
                }
            ),
            ".claude-plugin/plugin.json": json.dumps({"name": "suite", "license": "MIT"}),
            "skills/check/SKILL.md": "check\n",
        },
    )
    write_json(
        project_dir / "craftdesk.json",
        {"name": "test-project", "dependencies": {"suite": {"git": _url(suite_repo)}}},
    )
    return project_dir, suite_repo, lint_repo


@pytest.mark.integration
@pytest.mark.asyncio
async def test_install_git_plugin_with_nested_dependency(plugin_project):
    """Test resolving, locking and installing a nested git graph."""
    project_dir, suite_repo, lint_repo = plugin_project
    manager = CraftManager(project_dir, config=Config())

    await manager.install()

    lockfile = manager.lockfile_store.read()
    assert lockfile.crafts["suite"].commit == suite_repo.head.commit.hexsha
    assert lockfile.crafts["suite"].version == "0.2.0"
    assert lockfile.crafts["suite"].type == "plugin"
    assert lockfile.crafts["lint"].commit == lint_repo.head.commit.hexsha
    assert lockfile.crafts["lint"].installed_as == "dependency"
    assert lockfile.plugin_tree["lint"].required_by == ["suite"]

    install_root = project_dir / ".claude"
    assert (install_root / "plugins" / "suite" / "skills" / "check" / "SKILL.md").exists()
    assert (install_root / "skills" / "lint" / "SKILL.md").read_text() == "# Lint\n"
    settings = json.loads((install_root / "settings.json").read_text())
    assert settings["plugins"]["suite"]["components"] == {"skills": ["check"]}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reinstall_is_idempotent(plugin_project, commit_files):
    """Test that a second install from the lockfile changes nothing."""
    project_dir, _, lint_repo = plugin_project
    manager = CraftManager(project_dir, config=Config())
    await manager.install()
    before = _snapshot(project_dir / ".claude" / "skills")
    lockfile_before = manager.lockfile_store.read().crafts

    commit_files(lint_repo, {"SKILL.md": "# Lint v2\n"}, "Update lint")
    await manager.install()

    assert _snapshot(project_dir / ".claude" / "skills") == before
    assert manager.lockfile_store.read().crafts == lockfile_before
