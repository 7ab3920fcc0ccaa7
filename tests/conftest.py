"""Pytest fixtures for ctxbundle tests."""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Iterator
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

import pytest
import structlog

from ctxbundle.context.models import FileRecord
from ctxbundle.infra.command import CommandRunner


def git(repo: Path, *args: str) -> str:
    """Run a git command in a test repository and return stdout."""
    result = subprocess.run(
        ["git", *args],
        cwd=repo,
        check=True,
        capture_output=True,
        text=True,
    )
    return result.stdout


def init_repo(repo: Path) -> Path:
    """Initialize a git repository with a committer identity and main branch."""
    repo.mkdir(parents=True, exist_ok=True)
    git(repo, "init")
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test User")
    return repo


def commit_all(repo: Path, message: str) -> None:
    """Stage everything and commit."""
    git(repo, "add", "-A")
    git(repo, "commit", "-m", message)


def make_record(relative_path: str, content: str = "", size: int | None = None) -> FileRecord:
    """Build a FileRecord; size defaults to the UTF-8 length of content."""
    return FileRecord(
        path=Path("/repo") / relative_path,
        relative_path=relative_path,
        content=content,
        size=len(content.encode("utf-8")) if size is None else size,
    )


class FakeCommandRunner(CommandRunner):
    """CommandRunner that records git invocations and replays canned results.

    ``responses`` maps the first git argument (``"clone"``, ``"fetch"``, ...)
    to a (returncode, stdout, stderr) tuple, an exception instance to raise,
    or a callable taking the argument list. Unlisted commands succeed with
    empty output. ``clone`` creates the destination's ``.git`` directory so
    the mirror looks real.
    """

    def __init__(self, responses: dict[str, object] | None = None) -> None:
        super().__init__()
        self.responses = dict(responses or {})
        self.calls: list[list[str]] = []

    def run_git(
        self,
        args: list[str],
        *,
        cwd: Path | None = None,
        check: bool = True,
        timeout: float | None = None,
        cancel_event: object | None = None,
    ) -> tuple[int, str, str]:
        self.calls.append(list(args))
        response = self.responses.get(args[0], (0, "", ""))
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            response = response(args)
        if args[0] == "clone" and response[0] == 0:
            (Path(args[-1]) / ".git").mkdir(parents=True, exist_ok=True)
        return response

    def subcommands(self) -> list[str]:
        """First argument of every recorded call, in order."""
        return [call[0] for call in self.calls]


@pytest.fixture(autouse=True)
def reset_structlog() -> Iterator[None]:
    """Restore default structlog config so CLI tests do not leak captured streams."""
    structlog.reset_defaults()
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_runner() -> FakeCommandRunner:
    """Create a FakeCommandRunner with default (successful) responses."""
    return FakeCommandRunner()


@pytest.fixture
def command_runner() -> CommandRunner:
    """Create a CommandRunner instance."""
    return CommandRunner()


@pytest.fixture
def tmp_git_repo(tmp_path: Path) -> Path:
    """Create a temporary git repository.

    Creates a committed repo on ``main`` with:
    - flake.nix at the root
    - src/main.py
    - README.md (excluded from reading by extension)
    """
    repo = init_repo(tmp_path / "repo")

    (repo / "flake.nix").write_text("{ outputs = _: {}; }\n")
    src = repo / "src"
    src.mkdir()
    (src / "main.py").write_text("print('hello')\n")
    (repo / "README.md").write_text("# Test repo\n")

    commit_all(repo, "Initial commit")
    git(repo, "branch", "-M", "main")
    return repo


@pytest.fixture
def origin_repo(tmp_git_repo: Path) -> str:
    """A committed repository addressed by a file:// URL, usable as a remote."""
    return tmp_git_repo.as_uri()
