"""Tests for the Gatherer orchestrator."""

import threading
from datetime import UTC, datetime
from pathlib import Path

import pytest
from conftest import FakeCommandRunner
from structlog.testing import capture_logs

from ctxbundle.config import BundleConfig, FetcherConfig, RepositoryDescriptor
from ctxbundle.context.fetcher import RepoFetcher
from ctxbundle.context.gatherer import Gatherer
from ctxbundle.context.models import GatherOptions, RepoKind
from ctxbundle.context.reader import ContentReader
from ctxbundle.exceptions import (
    GatherError,
    OperationCancelled,
    SourceNotImplementedError,
)
from ctxbundle.paths import LAST_UPDATE_FILE

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=UTC)


def local_repo(root: Path, name: str, files: dict[str, str]) -> RepositoryDescriptor:
    repo = root / name
    repo.mkdir(parents=True)
    for rel, content in files.items():
        path = repo / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return RepositoryDescriptor(source=str(repo), kind=RepoKind.LOCAL)


def make_gatherer(
    tmp_path: Path,
    repos: list[RepositoryDescriptor],
    runner: FakeCommandRunner,
    **kwargs: object,
) -> Gatherer:
    return Gatherer(
        repos,
        RepoFetcher(tmp_path / "cache", runner, clock=lambda: NOW),
        ContentReader(),
        clock=lambda: NOW,
        **kwargs,  # type: ignore[arg-type]
    )


class TestConfiguredRepos:
    """Tests for gathering configured repositories."""

    def test_repos_in_config_order(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Each configured repository is read, in order."""
        repos = [
            local_repo(tmp_path, "zeta", {"flake.nix": "{}"}),
            local_repo(tmp_path, "alpha", {"src/main.py": "pass"}),
        ]

        ctx = make_gatherer(tmp_path, repos, fake_runner).gather()

        assert [r.source for r in ctx.configured_repos] == [r.source for r in repos]
        assert ctx.configured_repos[0].contents is not None
        assert [f.relative_path for f in ctx.configured_repos[0].contents.files] == ["flake.nix"]
        assert ctx.timestamp == NOW

    def test_failed_repo_is_skipped(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """A missing repository does not prevent the others from loading."""
        good = local_repo(tmp_path, "good", {"main.py": "pass"})
        missing = RepositoryDescriptor(source=str(tmp_path / "missing"), kind=RepoKind.LOCAL)

        ctx = make_gatherer(tmp_path, [missing, good], fake_runner).gather()

        assert [r.source for r in ctx.configured_repos] == [good.source]

    def test_skipped_repo_is_logged(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Each skipped repository produces a warning naming its source."""
        missing = RepositoryDescriptor(source=str(tmp_path / "missing"), kind=RepoKind.LOCAL)

        with capture_logs() as logs:
            make_gatherer(tmp_path, [missing], fake_runner).gather()

        skipped = [e for e in logs if e["event"] == "Skipping repository"]
        assert len(skipped) == 1
        assert skipped[0]["log_level"] == "warning"
        assert skipped[0]["source"] == missing.source

    def test_failed_clone_is_skipped(self, tmp_path: Path) -> None:
        """A remote that cannot be cloned is left out."""
        runner = FakeCommandRunner({"clone": (128, "", "fatal: repository not found")})
        good = local_repo(tmp_path, "good", {"main.py": "pass"})
        remote = RepositoryDescriptor(
            source="https://example.com/gone.git",
            kind=RepoKind.REMOTE,
            cache_path=tmp_path / "cache" / "gone",
        )

        ctx = make_gatherer(tmp_path, [remote, good], runner).gather()

        assert [r.source for r in ctx.configured_repos] == [good.source]

    def test_corrupt_sentinel_does_not_abort(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """An undecodable sentinel in one mirror leaves the other repositories intact."""
        mirror = tmp_path / "cache" / "dotfiles"
        (mirror / ".git").mkdir(parents=True)
        (mirror / "tmux.conf").write_text("set -g prefix C-a\n")
        (mirror / LAST_UPDATE_FILE).write_bytes(b"\xff\xfe\x00garbage")
        remote = RepositoryDescriptor(
            source="https://example.com/dotfiles.git",
            kind=RepoKind.REMOTE,
            cache_path=mirror,
        )
        good = local_repo(tmp_path, "good", {"main.py": "pass"})

        ctx = make_gatherer(tmp_path, [remote, good], fake_runner).gather()

        assert [r.source for r in ctx.configured_repos] == [remote.source, good.source]

    def test_remote_url_recorded(
self, tmp_path: Path) -> None:
        """The origin URL is looked up for each repository."""
        runner = FakeCommandRunner({"remote": (0, "https://example.com/r.git\n", "")})
        repo = local_repo(tmp_path, "r", {"main.py": "pass"})

        ctx = make_gatherer(tmp_path, [repo], runner).gather()

        assert ctx.configured_repos[0].remote == "https://example.com/r.git"
        assert ctx.configured_repos[0].kind == RepoKind.LOCAL

    def test_cancellation_propagates(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Cancellation is not treated as a per-repository failure."""
        repo = local_repo(tmp_path, "r", {"main.py": "pass"})
        event = threading.Event()
        event.set()

        with pytest.raises(OperationCancelled):
            make_gatherer(tmp_path, [repo], fake_runner).gather(cancel_event=event)

    def test_no_repos(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Gathering with nothing configured yields an empty aggregate."""
        ctx = make_gatherer(tmp_path, [], fake_runner).gather()

        assert ctx.configured_repos == []
        assert ctx.current_repo is None
        assert ctx.filesystem is None
        assert ctx.repo_count == 0


class TestOptionalSources:
    """Tests for current repo, filesystem and unimplemented sources."""

    def test_current_repo(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """The enclosing repository is read as kind CURRENT."""
        work = tmp_path / "work"
        (work / ".git").mkdir(parents=True)
        (work / "pkg").mkdir()
        (work / "pkg" / "mod.py").write_text("x = 1\n")

        ctx = make_gatherer(tmp_path, [], fake_runner).gather(
            GatherOptions(include_current_repo=True, working_dir=work / "pkg")
        )

        assert ctx.current_repo is not None
        assert ctx.current_repo.kind == RepoKind.CURRENT
        assert ctx.current_repo.path == work
        assert ctx.current_repo.contents is not None
        assert [f.relative_path for f in ctx.current_repo.contents.files] == ["pkg/mod.py"]
        assert ctx.repo_count == 1

    def test_current_repo_outside_git_is_soft(
        self,
        tmp_path: Path,
        fake_runner: FakeCommandRunner,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Outside a repository the current repo is simply absent."""
        monkeypatch.setattr("ctxbundle.context.git._is_git_marker", lambda candidate: False)

        ctx = make_gatherer(tmp_path, [], fake_runner).gather(
            GatherOptions(include_current_repo=True, working_dir=tmp_path)
        )

        assert ctx.current_repo is None

    def test_filesystem(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Working directory, parents and sorted entries are recorded."""
        work = tmp_path / "work"
        work.mkdir()
        (work / "b.txt").write_text("")
        (work / "a").mkdir()

        ctx = make_gatherer(tmp_path, [], fake_runner).gather(
            GatherOptions(include_filesystem=True, working_dir=work)
        )

        assert ctx.filesystem is not None
        assert ctx.filesystem.current_dir == work
        assert ctx.filesystem.files == ["a", "b.txt"]
        assert ctx.filesystem.parent_dirs[0] == tmp_path

    def test_filesystem_failure_is_fatal(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """An unlistable working directory aborts gathering."""
        with pytest.raises(GatherError):
            make_gatherer(tmp_path, [], fake_runner).gather(
                GatherOptions(include_filesystem=True, working_dir=tmp_path / "missing")
            )

    def test_nix_config_not_implemented_is_soft(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """Nix parsing is skipped and logged."""
        gatherer = make_gatherer(tmp_path, [], fake_runner, nix_config_path=tmp_path)

        with capture_logs() as logs:
            ctx = gatherer.gather(GatherOptions(include_nix_config=True))

        assert ctx.nix_config is None
        skipped = [e for e in logs if e["event"] == "Nix config not gathered"]
        assert [e["log_level"] for e in skipped] == ["info"]

    def test_nix_config_requires_path(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """Without a configured path, Nix parsing is not attempted."""
        ctx = make_gatherer(tmp_path, [], fake_runner).gather(
            GatherOptions(include_nix_config=True, include_dotfiles=True)
        )

        assert ctx.nix_config is None
        assert ctx.dotfiles is None

    def test_dotfiles_not_implemented_is_soft(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """Dotfiles parsing is skipped and logged."""
        gatherer = make_gatherer(tmp_path, [], fake_runner, dotfiles_path=tmp_path)

        assert gatherer.gather(GatherOptions(include_dotfiles=True)).dotfiles is None

    def test_screenshot_not_implemented(
        self, tmp_path: Path, fake_runner: FakeCommandRunner
    ) -> None:
        """Requesting a screenshot reports that it is unavailable."""
        with pytest.raises(SourceNotImplementedError) as exc_info:
            make_gatherer(tmp_path, [], fake_runner).gather(
                GatherOptions(capture_screenshot=True)
            )

        assert exc_info.value.source == "screenshot"


class TestFromConfig:
    """Tests for wiring from configuration."""

    def test_from_config(self, tmp_path: Path, fake_runner: FakeCommandRunner) -> None:
        """Repositories, paths and limits come from BundleConfig."""
        config = BundleConfig(
            fetcher=FetcherConfig(cache_dir=tmp_path / "cache"),
            nix_config_path=tmp_path / "nix",
        )
        config.add_repo("https://example.com/dotfiles.git")

        gatherer = Gatherer.from_config(config, fake_runner)

        assert gatherer.repos == config.repos
        assert gatherer.cmd is fake_runner
        assert gatherer.fetcher.cmd is fake_runner
        assert gatherer.fetcher.cache_dir == tmp_path / "cache"
        assert gatherer.reader.max_file_size == config.reader.max_file_size
        assert gatherer.nix_config_path == tmp_path / "nix"
