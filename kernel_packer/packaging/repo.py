"""Git operations for the packaging repository and the source tree.

This module handles:
- Cloning the AnyKernel3 repository, or resetting and pulling an existing one
- Reading the source tree's HEAD commit for the zip name
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from kernel_packer.types import RepoAction

logger = logging.getLogger(__name__)

SHORT_COMMIT_LENGTH = 8


class RepositoryError(Exception):
    """Raised when the packaging repository cannot be obtained."""

    def __init__(self, message: str, code: str = "repository_error") -> None:
        super().__init__(message)
        self.code = code


def _git(
    args: list[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    capture: bool = False,
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        capture_output=capture,
        text=True,
        check=False,
    )


def clone_repo(
    url: str,
    branch: str,
    dest: Path,
    env: dict[str, str] | None = None,
) -> None:
    """Clone ``url`` at ``branch`` into ``dest``.

    Raises:
        RepositoryError: If git fails or cannot be run.
    """
    try:
        result = _git(["clone", url, "-b", branch, str(dest)], dest.parent, env)
    except OSError as e:
        raise RepositoryError(f"Failed to run git: {e}", code="clone_failed") from e
    if result.returncode != 0:
        raise RepositoryError(
            f"Failed to clone {dest.name} repo. Aborting...",
            code="clone_failed",
        )


def update_repo(repo_dir: Path, env: dict[str, str] | None = None) -> bool:
    """Discard local changes and pull.

    Returns:
        True if both steps succeeded.
    """
    try:
        reset = _git(["reset", "--hard", "HEAD"], repo_dir, env)
        if reset.returncode != 0:
            return False
        pull = _git(["pull"], repo_dir, env)
    except OSError as e:
        logger.debug("git failed to start: %s", e)
        return False
    return pull.returncode == 0


def ensure_repo(
    url: str,
    branch: str,
    repo_dir: Path,
    env: dict[str, str] | None = None,
) -> RepoAction:
    """Make the packaging repository available at ``repo_dir``.

    An existing checkout is reset and pulled; failing that the current copy
    is used as is. A missing checkout is cloned.

    Returns:
        What was done to the repository.

    Raises:
        RepositoryError: If the repository was absent and cloning failed.
    """
    if repo_dir.is_dir():
        logger.info("Using existing %s repository...", repo_dir.name)
        if update_repo(repo_dir, env):
            return RepoAction.UPDATED
        logger.warning(
            "Failed to update %s repository. Proceeding with the current version.",
            repo_dir.name,
        )
        return RepoAction.STALE

    logger.info("%s not found locally. Attempting to clone...", repo_dir.name)
    clone_repo(url, branch, repo_dir, env)
    return RepoAction.CLONED


def get_head_commit(
    source_dir: Path,
    env: dict[str, str] | None = None,
    length: int = SHORT_COMMIT_LENGTH,
) -> str | None:
    """Return the abbreviated HEAD commit of the source tree.

    Only the top of a work tree counts: a directory nested inside some
    other repository yields None, as does a tree without commits or a
    directory outside git.

    Args:
        source_dir: Directory to inspect.
        env: Environment for git.
        length: Number of hex digits to keep.

    Returns:
        Commit prefix, or None.
    """
    try:
        cdup = _git(["rev-parse", "--show-cdup"], source_dir, env, capture=True)
        if cdup.returncode != 0 or cdup.stdout.strip():
            return None
        head = _git(["rev-parse", "--verify", "HEAD"], source_dir, env, capture=True)
    except OSError as e:
        logger.debug("git failed to start: %s", e)
        return None
    if head.returncode != 0:
        return None
    commit = head.stdout.strip()
    return commit[:length] or None


__all__ = [
    "SHORT_COMMIT_LENGTH",
    "RepositoryError",
    "clone_repo",
    "ensure_repo",
    "get_head_commit",
    "update_repo",
]
