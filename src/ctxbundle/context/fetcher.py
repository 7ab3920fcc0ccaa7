"""Fetching and caching of tracked repositories."""

from __future__ import annotations

import shutil
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ctxbundle.context.models import RepoKind
from ctxbundle.exceptions import (
    CommandError,
    FetchError,
    OperationCancelled,
    RepoNotFoundError,
)
from ctxbundle.infra.command import CommandRunner
from ctxbundle.paths import LAST_UPDATE_FILE, derive_cache_name

if TYPE_CHECKING:
    from ctxbundle.config import FetcherConfig, RepositoryDescriptor

DEFAULT_FRESHNESS = timedelta(hours=1)
FALLBACK_BRANCHES = ("main", "master")


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class RepoFetcher:
    """Resolves repository descriptors to local paths.

    Local repositories are verified and returned as-is. Remote repositories
    are mirrored under ``cache_dir`` and refreshed when the mirror's
    last-update sentinel is older than ``freshness``. A failed refresh falls
    back to the existing mirror.

    Example:
        >>> fetcher = RepoFetcher(Path("~/.cache/ctxbundle/repos").expanduser())
        >>> fetcher.fetch(descriptor)
        PosixPath('/home/me/.cache/ctxbundle/repos/dotfiles')
    """

    def __init__(
        self,
        cache_dir: Path,
        cmd: CommandRunner | None = None,
        *,
        freshness: timedelta = DEFAULT_FRESHNESS,
        timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        """Initialize the fetcher.

        Args:
            cache_dir: Root directory holding remote mirrors.
            cmd: CommandRunner used for git operations.
            freshness: Mirrors refreshed within this window are reused.
            timeout: Timeout in seconds for each git operation.
            clock: Returns the current time (timezone-aware).
            logger: Logger to report to (defaults to the module logger).
        """
        self.cache_dir = cache_dir
        self.cmd = cmd or CommandRunner()
        self.freshness = freshness
        self.timeout = timeout
        self.clock = clock
        self._log = logger if logger is not None else structlog.get_logger()

    @classmethod
    def from_config(
        cls,
        config: FetcherConfig,
        cmd: CommandRunner | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> RepoFetcher:
        """Create a fetcher from configuration."""
        return cls(
            config.resolved_cache_dir(),
            cmd,
            freshness=timedelta(seconds=config.freshness_seconds),
            timeout=config.timeout,
            logger=logger,
        )

    def mirror_path(self, descriptor: RepositoryDescriptor) -> Path:
        """Mirror directory for a remote descriptor."""
        if descriptor.cache_path is not None:
            return descriptor.cache_path
        return self.cache_dir / derive_cache_name(descriptor.source)

    def fetch(
        self,
        descriptor: RepositoryDescriptor,
        cancel_event: threading.Event | None = None,
    ) -> Path:
        """Fetch a repository and return its local path.

        Args:
            descriptor: Repository to fetch.
            cancel_event: When set, in-flight git operations are killed.

        Returns:
            Path to the repository content.

        Raises:
            RepoNotFoundError: If a local repository path does not exist.
            FetchError: If a remote repository cannot be cloned.
            OperationCancelled: If cancel_event is set during a git operation.
        """
        if descriptor.kind == RepoKind.LOCAL:
            path = Path(descriptor.source).expanduser()
            if not path.exists():
                msg = f"Local repository not found: {descriptor.source}"
                raise RepoNotFoundError(msg, path=path)
            return path

        return self._fetch_remote(descriptor, cancel_event)

    def _fetch_remote(
        self,
        descriptor: RepositoryDescriptor,
        cancel_event: threading.Event | None,
    ) -> Path:
        mirror = self.mirror_path(descriptor)
        log = self._log.bind(source=descriptor.source, mirror=str(mirror))

        try:
            mirror.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Failed to create cache directory {mirror.parent}: {e}"
            raise FetchError(msg, source=descriptor.source, cache_path=mirror) from e

        if (mirror / ".git").exists():
            if not self.is_stale(mirror):
                log.debug("Using fresh cached mirror")
                return mirror
            try:
                self._refresh(mirror, cancel_event)
            except (CommandError, FetchError) as e:
                log.warning("Refresh failed, using stale mirror", error=str(e))
            return mirror

        if mirror.exists():
            # left behind by an interrupted clone; git refuses to clone into it
            log.warning("Removing incomplete mirror")
            shutil.rmtree(mirror, ignore_errors=True)

        self._clone(descriptor.source, mirror, cancel_event)
        return mirror

    def _clone(
        self,
        url: str,
        dest: Path,
        cancel_event: threading.Event | None,
    ) -> None:
        log = self._log.bind(source=url, mirror=str(dest))
        log.info("Cloning repository")
        try:
            returncode, _, stderr = self.cmd.run_git(
                ["clone", url, str(dest)],
                check=False,
                timeout=self.timeout,
                cancel_event=cancel_event,
            )
        except OperationCancelled:
            shutil.rmtree(dest, ignore_errors=True)
            raise
        except CommandError as e:
            shutil.rmtree(dest, ignore_errors=True)
            msg = f"Failed to clone repository {url}: {e}"
            raise FetchError(msg, source=url, cache_path=dest) from e

        if returncode != 0:
            shutil.rmtree(dest, ignore_errors=True)
            msg = f"Failed to clone repository {url}: {stderr.strip()}"
            raise FetchError(msg, source=url, cache_path=dest)

        self._write_timestamp(dest)
        log.info("Repository cloned")

    def _refresh(self, mirror: Path, cancel_event: threading.Event | None) -> None:
        """Fetch from origin and hard-reset to the remote default branch.

        Raises:
            CommandError: If git fails to run or times out.
            FetchError: If fetching or every reset candidate fails.
        """
        log = self._log.bind(mirror=str(mirror))
        log.info("Refreshing cached mirror")

        returncode, _, stderr = self.cmd.run_git(
            ["fetch", "origin"],
            cwd=mirror,
            check=False,
            timeout=self.timeout,
            cancel_event=cancel_event,
        )
        if returncode != 0:
            msg = f"Failed to fetch updates: {stderr.strip()}"
            raise FetchError(msg, cache_path=mirror)

        candidates: list[str] = []
        detected = self._default_branch(mirror, cancel_event)
        for branch in (detected, *FALLBACK_BRANCHES):
            if branch and branch not in candidates:
                candidates.append(branch)

        for branch in candidates:
            returncode, _, _ = self.cmd.run_git(
                ["reset", "--hard", f"origin/{branch}"],
                cwd=mirror,
                check=False,
                timeout=self.timeout,
                cancel_event=cancel_event,
            )
            if returncode == 0:
                self._write_timestamp(mirror)
                log.info("Mirror refreshed", branch=branch)
                return

        msg = f"Failed to reset repository to any of {candidates}"
        raise FetchError(msg, cache_path=mirror)

    def _default_branch(
        self,
        mirror: Path,
        cancel_event: threading.Event | None,
    ) -> str | None:
        """Best-effort default branch from the remote HEAD symbolic ref."""
        returncode, stdout, _ = self.cmd.run_git(
            ["symbolic-ref", "refs/remotes/origin/HEAD"],
            cwd=mirror,
            check=False,
            timeout=self.timeout,
            cancel_event=cancel_event,
        )
        if returncode != 0:
            return None
        # refs/remotes/origin/main -> main
        ref = stdout.strip()
        prefix = "refs/remotes/origin/"
        return ref[len(prefix) :] if ref.startswith(prefix) else ref.rsplit("/", 1)[-1] or None

    def last_update(self, mirror: Path) -> datetime | None:
        """Time of the last successful clone or refresh.

        Reads the RFC3339 timestamp stored in the sentinel, falling back to
        the sentinel's modification time when the content does not decode or
        parse.

        Returns:
            Timezone-aware timestamp, or None if there is no sentinel.
        """
        sentinel = mirror / LAST_UPDATE_FILE
        try:
            raw = sentinel.read_text(encoding="utf-8").strip()
        except UnicodeDecodeError:
            raw = ""
        except OSError:
            return None

        try:
            stamp = datetime.fromisoformat(raw)
        except ValueError:
            try:
                return datetime.fromtimestamp(sentinel.stat().st_mtime, tz=UTC)
            except OSError:
                return None

        if stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=UTC)
        return stamp

    def is_stale(self, mirror: Path) -> bool:
        """Check if a mirror should be refreshed."""
        updated = self.last_update(mirror)
        if updated is None:
            return True
        return self.clock() - updated > self.freshness

    def _write_timestamp(self, mirror: Path) -> None:
        sentinel = mirror / LAST_UPDATE_FILE
        try:
            sentinel.write_text(self.clock().isoformat(timespec="seconds"))
        except OSError as e:
            self._log.warning("Failed to write update timestamp", path=str(sentinel), error=str(e))
