"""
Unit tests for git ref resolution and content extraction.
"""

from pathlib import Path
from unittest.mock import MagicMock

import pytest
from git import GitCommandError

from craftdesk.deps.git import GitRefResolver, extract_git_content, validate_commit
from craftdesk.deps.models import GitSpec
from craftdesk.exceptions import ConfigurationError, NetworkError, NotFoundError

URL = "https://github.com/acme/crafts.git"
SHA_MAIN = "1" * 40
SHA_TAG_OBJECT = "2" * 40
SHA_TAG_COMMIT = "3" * 40
SHA_LIGHT = "4" * 40

TAGS_OUTPUT = "\n".join(
    [
        f"{SHA_TAG_OBJECT}\trefs/tags/v1.1.0",
        f"{SHA_TAG_COMMIT}\trefs/tags/v1.1.0^{{}}",
        f"{SHA_LIGHT}\trefs/tags/v1.0.0",
    ]
)


@pytest.fixture
def mock_git():
    """Create a mocked git command wrapper."""
    return MagicMock()


@pytest.fixture
def resolver(mock_git):
    """Create a resolver using the mocked git."""
    return GitRefResolver(ls_remote_timeout=5, git=mock_git)


# =============================================================================
# Resolution Tests
# =============================================================================


class TestResolveGitDependency:
    """Tests for GitRefResolver.resolve_git_dependency."""

    def test_commit_resolves_without_remote(self, resolver, mock_git):
        spec = GitSpec(name="x", url=URL, branch="main", commit="ABCDEF1234567")

        resolved = resolver.resolve_git_dependency(spec)

        assert resolved.resolved_commit == "abcdef1234567"
        assert resolved.display_ref == "abcdef1"
        mock_git.ls_remote.assert_not_called()

    @pytest.mark.parametrize("commit", ["abc12", "xyz1234", "a" * 41])
    def test_invalid_commit(self, resolver, commit):
        with pytest.raises(ConfigurationError, match="Invalid commit"):
            resolver.resolve_git_dependency(GitSpec(name="x", url=URL, commit=commit))

    def test_annotated_tag_is_peeled(self, resolver, mock_git):
        mock_git.ls_remote.return_value = TAGS_OUTPUT

        resolved = resolver.resolve_git_dependency(GitSpec(name="x", url=URL, tag="v1.1.0"))

        assert resolved.resolved_commit == SHA_TAG_COMMIT
        assert resolved.display_ref == "v1.1.0"
        mock_git.ls_remote.assert_called_once_with("--tags", URL, kill_after_timeout=5)

    def test_lightweight_tag(self, resolver, mock_git):
        mock_git.ls_remote.return_value = TAGS_OUTPUT
        resolved = resolver.resolve_git_dependency(GitSpec(name="x", url=URL, tag="v1.0.0"))
        assert resolved.resolved_commit == SHA_LIGHT

    def test_missing_tag(self, resolver, mock_git):
        mock_git.ls_remote.return_value = TAGS_OUTPUT
        with pytest.raises(NotFoundError, match="v9.9.9"):
            resolver.resolve_git_dependency(GitSpec(name="x", url=URL, tag="v9.9.9"))

    def test_branch(self, resolver, mock_git):
        mock_git.ls_remote.return_value = f"{SHA_MAIN}\trefs/heads/main\n"

        resolved = resolver.resolve_git_dependency(GitSpec(name="x", url=URL, branch="main"))

        assert resolved.resolved_commit == SHA_MAIN
        assert resolved.display_ref == "main"
        mock_git.ls_remote.assert_called_once_with(URL, "refs/heads/main", kill_after_timeout=5)

    def test_missing_branch(self, resolver, mock_git):
        mock_git.ls_remote.return_value = ""
        with pytest.raises(NotFoundError, match="Branch 'gone'"):
            resolver.resolve_git_dependency(GitSpec(name="x", url=URL, branch="gone"))

    def test_default_branch(self, resolver, mock_git):
        mock_git.ls_remote.return_value = f"ref: refs/heads/trunk\tHEAD\n{SHA_MAIN}\tHEAD\n"

        resolved = resolver.resolve_git_dependency(GitSpec(name="x", url=URL))

        assert resolved.resolved_commit == SHA_MAIN
        assert resolved.display_ref == "trunk"

    def test_remote_failure_is_network_error(self, resolver, mock_git):
        mock_git.ls_remote.side_effect = GitCommandError("ls-remote", 128, b"fatal: unreachable")
        with pytest.raises(NetworkError):
            resolver.resolve_git_dependency(GitSpec(name="x", url=URL, branch="main"))

    def test_path_and_file_rejected_before_remote(self, resolver, mock_git):
        spec = GitSpec(name="x", url=URL, branch="main", path="a", file="b.md")
        with pytest.raises(ConfigurationError):
            resolver.resolve_git_dependency(spec)
        mock_git.ls_remote.assert_not_called()


class TestRemoteQueries:
    """Tests for tag listing and branch heads."""

    def test_list_remote_tags_deduplicates_peeled(self, resolver, mock_git):
        mock_git.ls_remote.return_value = TAGS_OUTPUT
        assert resolver.list_remote_tags(URL) == ["v1.1.0", "v1.0.0"]

    def test_get_remote_head_missing(self, resolver, mock_git):
        mock_git.ls_remote.return_value = ""
        assert resolver.get_remote_head(URL, "main") is None

    def test_validate_commit_lowercases(self):
        assert validate_commit("ABCDEF0") == "abcdef0"


# =============================================================================
# Extraction Tests
# =============================================================================


@pytest.fixture
def checkout_dir(temp_dir: Path) -> Path:
    """Create a fake checkout with a .git directory."""
    repo = temp_dir / "checkout"
    (repo / ".git").mkdir(parents=True)
    (repo / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    (repo / "README.md").write_text("# crafts")
    (repo / "skills" / "review").mkdir(parents=True)
    (repo / "skills" / "review" / "SKILL.md").write_text("review skill")
    (repo / "agents").mkdir()
    (repo / "agents" / "helper.md").write_text("helper agent")
    return repo


class TestExtractGitContent:
    """Tests for extract_git_content."""

    def test_whole_repo_without_git_dir(self, checkout_dir: Path, temp_dir: Path):
        target = temp_dir / "target"
        extract_git_content(checkout_dir, target)

        assert (target / "README.md").exists()
        assert (target / "skills" / "review" / "SKILL.md").exists()
        assert not (target / ".git").exists()

    def test_subdirectory(self, checkout_dir: Path, temp_dir: Path):
        target = temp_dir / "target"
        extract_git_content(checkout_dir, target, path="skills/review")

        assert (target / "SKILL.md").read_text() == "review skill"
        assert not (target / "README.md").exists()

    def test_single_file_uses_basename(self, checkout_dir: Path, temp_dir: Path):
        target = temp_dir / "target"
        extract_git_content(checkout_dir, target, file="agents/helper.md")

        assert (target / "helper.md").read_text() == "helper agent"
        assert [p.name for p in target.iterdir()] == ["helper.md"]

    def test_overwrites_existing_files(self, checkout_dir: Path, temp_dir: Path):
        target = temp_dir / "target"
        target.mkdir()
        (target / "SKILL.md").write_text("old")

        extract_git_content(checkout_dir, target, path="skills/review")

        assert (target / "SKILL.md").read_text() == "review skill"

    def test_missing_path(self, checkout_dir: Path, temp_dir: Path):
        with pytest.raises(NotFoundError):
            extract_git_content(checkout_dir, temp_dir / "target", path="nope")

    def test_missing_file(self, checkout_dir: Path, temp_dir: Path):
        with pytest.raises(NotFoundError):
            extract_git_content(checkout_dir, temp_dir / "target", file="nope.md")

    def test_path_escaping_repo(self, checkout_dir: Path, temp_dir: Path):
        with pytest.raises(ConfigurationError):
            extract_git_content(checkout_dir, temp_dir / "target", path="../..")

    def test_path_and_file(self, checkout_dir: Path, temp_dir: Path):
        with pytest.raises(ConfigurationError):
            extract_git_content(checkout_dir, temp_dir / "target", path="a", file="b")
