"""Git repository discovery helpers."""

from __future__ import annotations

import threading
from pathlib import Path

import structlog

from ctxbundle.exceptions import CommandError, RepoNotFoundError
from ctxbundle.infra.command import CommandRunner

logger = structlog.get_logger()

GITDIR_PREFIX = "gitdir:"


def _is_git_marker(candidate: Path) -> bool:
    """Check for a .git directory, or a .git file pointing elsewhere."""
    if candidate.is_dir():
        return True
    if candidate.is_file():
        try:
            return candidate.read_text(errors="replace").startswith(GITDIR_PREFIX)
        except OSError:
            return False
    return False


def find_git_repository(start_dir: Path | None = None) -> Path:
    """Find the root of the git repository enclosing a directory.

    Walks upward looking for ``.git``. A ``.git`` file counts when it starts
    with ``gitdir:`` (worktrees and submodules).

    Args:
        start_dir: Directory to start from (defaults to the process cwd).

    Returns:
        Absolute path of the repository root.

    Raises:
        RepoNotFoundError: If the filesystem root is reached without a marker.
    """
    current = (start_dir or Path.cwd()).absolute()

    while True:
        if _is_git_marker(current / ".git"):
            return current

        parent = current.parent
        if parent == current:
            msg = f"Not a git repository (or any parent up to {current}): {start_dir}"
            raise RepoNotFoundError(msg, path=start_dir)
        current = parent


def get_git_remote(
    repo_path: Path,
    cmd: CommandRunner | None = None,
    *,
    remote: str = "origin",
    cancel_event: threading.Event | None = None,
) -> str:
    """Get a remote URL for a repository.

    A missing remote is not an error.

    Returns:
        The remote URL, or an empty string if it cannot be determined.
    """
    runner = cmd or CommandRunner()
    try:
        returncode, stdout, _ = runner.run_git(
            ["remote", "get-url", remote],
            cwd=repo_path,
            check=False,
            cancel_event=cancel_event,
        )
    except CommandError as e:
        logger.debug("Remote lookup failed", repo=str(repo_path), error=str(e))
        return ""

    if returncode != 0:
        return ""
    return stdout.strip()
