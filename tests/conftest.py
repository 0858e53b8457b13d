"""
Pytest configuration and fixtures for craftdesk tests.
"""

import hashlib
import io
import json
import tempfile
import zipfile
from collections.abc import Callable, Generator
from pathlib import Path

import pytest
from git import Actor, Repo

from craftdesk.config import Config

TEST_ACTOR = Actor("CraftDesk Tests", "tests@craftdesk.test")


def _write_json(path: Path, data: dict) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2))
    return path


def _make_zip(files: dict[str, str]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    return buffer.getvalue()


def _commit_files(repo: Repo, files: dict[str, str], message: str) -> str:
    work_tree = Path(repo.working_tree_dir)
    for relative, content in files.items():
        target = work_tree / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)

    repo.index.add(list(files))
    commit = repo.index.commit(message, author=TEST_ACTOR, committer=TEST_ACTOR)
    return commit.hexsha


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_craftdesk_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point CRAFTDESK_HOME at an empty temporary directory."""
    home = temp_dir / ".craftdesk"
    home.mkdir()
    monkeypatch.setenv("CRAFTDESK_HOME", str(home))
    return home


@pytest.fixture
def project_dir(temp_dir: Path) -> Path:
    """Provide a project directory with an empty craftdesk.json."""
    project = temp_dir / "project"
    project.mkdir()
    _write_json(project / "craftdesk.json", {"name": "test-project", "version": "1.0.0"})
    return project


@pytest.fixture
def config() -> Config:
    """Provide a default configuration."""
    return Config()


@pytest.fixture
def write_json() -> Callable[[Path, dict], Path]:
    """Provide a helper that writes a JSON file, creating parent directories."""
    return _write_json


@pytest.fixture
def make_zip() -> Callable[[dict[str, str]], bytes]:
    """Provide a helper that builds an in-memory zip archive."""
    return _make_zip


@pytest.fixture
def sha256_hex() -> Callable[[bytes], str]:
    """Provide a helper computing the hex SHA-256 of bytes."""
    return lambda data: hashlib.sha256(data).hexdigest()


@pytest.fixture
def commit_files() -> Callable[[Repo, dict[str, str], str], str]:
    """Provide a helper that writes files into a repository and commits them."""
    return _commit_files


@pytest.fixture
def git_repo_factory(temp_dir: Path) -> Callable[..., Repo]:
    """Build local git repositories to use as remotes.

    Returns a function taking (name, files, branch="main") that creates a
    repository with one commit containing the given files.
    """
    remotes = temp_dir / "remotes"

    def factory(name: str, files: dict[str, str], branch: str = "main") -> Repo:
        repo = Repo.init(remotes / name, initial_branch=branch)
        with repo.config_writer() as writer:
            writer.set_value("user", "name", TEST_ACTOR.name)
            writer.set_value("user", "email", TEST_ACTOR.email)
        _commit_files(repo, files, "Initial commit")
        return repo

    return factory
