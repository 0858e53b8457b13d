"""
Git resolution and checkout for CraftDesk.

Resolves branch, tag, or commit specs to immutable commits without cloning,
and performs the shallow clone, checkout, and extraction used at install time.
"""

import logging
import re
import shutil
import tempfile
from pathlib import Path

from git import Git, GitCommandError, GitCommandNotFound, Repo

from craftdesk.deps.models import GitRefKind, GitSpec, ResolvedRef
from craftdesk.exceptions import ConfigurationError, NetworkError, NotFoundError

logger = logging.getLogger(__name__)

COMMIT_PATTERN = re.compile(r"^[0-9a-fA-F]{7,40}$")

DEFAULT_LS_REMOTE_TIMEOUT = 15.0
DEFAULT_CLONE_TIMEOUT = 120.0


def validate_commit(commit: str) -> str:
    """Validate a full or abbreviated commit hash.

    Returns:
        The lowercased commit.

    Raises:
        ConfigurationError: If the value is not 7-40 hex characters.
    """
    if not COMMIT_PATTERN.fullmatch(commit):
        raise ConfigurationError(
            f"Invalid commit '{commit}'",
            hint="Use a 7-40 character hexadecimal commit hash.",
        )
    return commit.lower()


def _parse_ls_remote(output: str) -> dict[str, str]:
    """Parse ls-remote output into a ref -> sha mapping."""
    refs: dict[str, str] = {}
    for line in output.splitlines():
        parts = line.strip().split("\t")
        if len(parts) != 2 or parts[0].startswith("ref:"):
            continue
        sha, ref = parts
        refs.setdefault(ref, sha)
    return refs


class GitRefResolver:
    """Resolves git dependency specs to immutable commits.

    Only ls-remote is used here; nothing is cloned until install time.
    """

    def __init__(
        self,
        ls_remote_timeout: float = DEFAULT_LS_REMOTE_TIMEOUT,
        git: Git | None = None,
    ):
        """Initialize the resolver.

        Args:
            ls_remote_timeout: Seconds before a remote query is killed.
            git: Git command wrapper (injected in tests).
        """
        self.ls_remote_timeout = ls_remote_timeout
        self._git = git or Git()

    def resolve_git_dependency(self, spec: GitSpec) -> ResolvedRef:
        """Resolve a git spec to a commit.

        Args:
            spec: The git dependency specification.

        Returns:
            ResolvedRef with the commit and a human-readable ref.

        Raises:
            ConfigurationError: If the spec is invalid.
            NotFoundError: If the tag or branch does not exist.
            NetworkError: If the remote cannot be queried.
        """
        spec.check_extraction()
        ref_kind = spec.ref_kind

        if ref_kind is GitRefKind.COMMIT:
            commit = validate_commit(spec.commit or "")
            return ResolvedRef(url=spec.url, resolved_commit=commit, display_ref=commit[:7])

        if ref_kind is GitRefKind.TAG:
            commit = self.get_remote_tag_commit(spec.url, spec.tag or "")
            if commit is None:
                raise NotFoundError(f"Tag '{spec.tag}' not found in {spec.url}")
            return ResolvedRef(url=spec.url, resolved_commit=commit, display_ref=spec.tag or "")

        if ref_kind is GitRefKind.BRANCH:
            commit = self.get_remote_head(spec.url, spec.branch or "")
            if commit is None:
                raise NotFoundError(f"Branch '{spec.branch}' not found in {spec.url}")
            return ResolvedRef(
                url=spec.url, resolved_commit=commit, display_ref=spec.branch or ""
            )

        branch, commit = self.get_default_branch_head(spec.url)
        return ResolvedRef(url=spec.url, resolved_commit=commit, display_ref=branch)

    def list_remote_tags(self, url: str) -> list[str]:
        """List tag names on the remote."""
        refs = _parse_ls_remote(self._ls_remote("--tags", url))
        tags: list[str] = []
        for ref in refs:
            name = ref.removeprefix("refs/tags/").removesuffix("^{}")
            if name not in tags:
                tags.append(name)
        return tags

    def get_remote_tag_commit(self, url: str, tag: str) -> str | None:
        """Get the commit a remote tag points at.

        Annotated tags are peeled to the commit they reference.
        """
        refs = _parse_ls_remote(self._ls_remote("--tags", url))
        tag_ref = f"refs/tags/{tag}"
        return refs.get(f"{tag_ref}^{{}}") or refs.get(tag_ref)

    def get_remote_head(self, url: str, branch: str) -> str | None:
        """Get the head commit of a remote branch."""
        branch_ref = f"refs/heads/{branch}"
        refs = _parse_ls_remote(self._ls_remote(url, branch_ref))
        return refs.get(branch_ref)

    def get_default_branch_head(self, url: str) -> tuple[str, str]:
        """Get the remote default branch and its head commit.

        Returns:
            Tuple of (branch name, commit).

        Raises:
            NotFoundError: If the remote has no HEAD (empty repository).
        """
        output = self._ls_remote("--symref", url, "HEAD")
        branch = "HEAD"
        for line in output.splitlines():
            if line.startswith("ref:"):
                symref = line[len("ref:") :].split("\t")[0].strip()
                branch = symref.removeprefix("refs/heads/")

        commit = _parse_ls_remote(output).get("HEAD")
        if commit is None:
            raise NotFoundError(f"Remote {url} has no default branch")
        return branch, commit

    def _ls_remote(self, *args: str) -> str:
        logger.debug(f"git ls-remote {' '.join(args)}")
        try:
            return self._git.ls_remote(*args, kill_after_timeout=self.ls_remote_timeout)
        except (GitCommandError, GitCommandNotFound) as e:
            raise NetworkError(
                f"Failed to query remote: {e}",
                hint="Check the repository URL, your network, and git credentials.",
            ) from e


class GitCheckout:
    """Clones a repository at a pinned ref and extracts craft content."""

    def __init__(
        self,
        clone_timeout: float = DEFAULT_CLONE_TIMEOUT,
        clone_depth: int = 1,
        git: Git | None = None,
    ):
        self.clone_timeout = clone_timeout
        self.clone_depth = clone_depth
        self._git = git or Git()

    def clone(
        self,
        url: str,
        dest: Path,
        branch: str | None = None,
        tag: str | None = None,
        commit: str | None = None,
    ) -> str:
        """Clone a repository and check out the requested ref.

        A shallow clone is used; it is unshallowed only when a pinned commit
        is missing from the shallow history.

        Args:
            url: Repository URL or local path.
            dest: Empty or missing directory to clone into.
            branch: Branch to clone.
            tag: Tag to clone (takes precedence over branch).
            commit: Commit to check out after cloning.

        Returns:
            The checked out HEAD commit.

        Raises:
            NetworkError: If clone or fetch fails.
            NotFoundError: If the commit cannot be checked out.
        """
        args = ["--depth", str(self.clone_depth)]
        if tag or branch:
            args += ["--branch", tag or branch or ""]

        logger.debug(f"Cloning {url} into {dest}")
        try:
            self._git.clone(*args, "--", url, str(dest), kill_after_timeout=self.clone_timeout)
        except (GitCommandError, GitCommandNotFound) as e:
            raise NetworkError(f"Failed to clone {url}: {e}") from e

        repo = Repo(dest)
        if commit:
            self._checkout_commit(repo, Path(dest), commit)

        return repo.head.commit.hexsha

    def _checkout_commit(self, repo: Repo, repo_dir: Path, commit: str) -> None:
        if not self._has_commit(repo, commit):
            try:
                if (repo_dir / ".git" / "shallow").exists():
                    logger.debug(f"Unshallowing clone to reach {commit}")
                    repo.git.fetch("--unshallow", kill_after_timeout=self.clone_timeout)
                if not self._has_commit(repo, commit):
                    repo.git.fetch("origin", commit, kill_after_timeout=self.clone_timeout)
            except GitCommandError as e:
                raise NetworkError(f"Failed to fetch commit {commit}: {e}") from e

        try:
            repo.git.checkout(commit, kill_after_timeout=self.clone_timeout)
        except GitCommandError as e:
            raise NotFoundError(f"Commit {commit} could not be checked out: {e}") from e

    def checkout_git_source(
        self,
        url: str,
        target_dir: Path,
        branch: str | None = None,
        tag: str | None = None,
        commit: str | None = None,
        path: str | None = None,
        file: str | None = None,
    ) -> str:
        """Clone into a temporary sibling of target_dir and extract into it.

        The temporary clone is removed on every exit path.

        Returns:
            The commit the content was extracted from.
        """
        target_dir = Path(target_dir)
        target_dir.parent.mkdir(parents=True, exist_ok=True)

        with tempfile.TemporaryDirectory(
            prefix=f".{target_dir.name}-clone-", dir=target_dir.parent
        ) as temp:
            repo_dir = Path(temp) / "repo"
            checked_out = self.clone(url, repo_dir, branch=branch, tag=tag, commit=commit)
            extract_git_content(repo_dir, target_dir, path=path, file=file)

        return checked_out

    @staticmethod
    def _has_commit(repo: Repo, commit: str) -> bool:
        try:
            repo.git.cat_file("-e", f"{commit}^{{commit}}")
        except GitCommandError:
            return False
        return True


def extract_git_content(
    repo_dir: Path,
    target_dir: Path,
    path: str | None = None,
    file: str | None = None,
) -> list[Path]:
    """Copy craft content out of a checkout.

    Exactly one mode applies: a single file (copied under its basename), a
    single subdirectory, or the whole repository without .git.

    Args:
        repo_dir: The checkout.
        target_dir: Install directory (existing files are overwritten).
        path: Subdirectory to copy.
        file: Single file to copy.

    Returns:
        Paths written into target_dir.

    Raises:
        ConfigurationError: If both path and file are given or escape the repo.
        NotFoundError: If the path or file does not exist.
    """
    if path and file:
        raise ConfigurationError("Git dependency sets both 'path' and 'file'")

    repo_root = Path(repo_dir).resolve()
    target_dir.mkdir(parents=True, exist_ok=True)

    if file:
        source_file = _inside(repo_root, file)
        if not source_file.is_file():
            raise NotFoundError(f"File not found in repository: {file}")
        dest = target_dir / Path(file).name
        shutil.copy2(source_file, dest)
        return [dest]

    source_dir = _inside(repo_root, path) if path else repo_root
    if not source_dir.is_dir():
        raise NotFoundError(f"Path not found in repository: {path}")

    written: list[Path] = []
    for item in source_dir.iterdir():
        if item.name == ".git":
            continue
        dest = target_dir / item.name
        if item.is_dir():
            shutil.copytree(item, dest, dirs_exist_ok=True)
        else:
            shutil.copy2(item, dest)
        written.append(dest)
    return written


def _inside(root: Path, relative: str) -> Path:
    candidate = (root / relative).resolve()
    if not candidate.is_relative_to(root):
        raise ConfigurationError(f"Path escapes the repository: {relative}")
    return candidate
