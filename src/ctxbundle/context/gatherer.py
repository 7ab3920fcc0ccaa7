"""Context gatherer - coordinates fetching and reading of every source.

This is the primary entry point for building an aggregate context.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ctxbundle.context.fetcher import RepoFetcher
from ctxbundle.context.git import find_git_repository, get_git_remote
from ctxbundle.context.models import (
    AggregateContext,
    DotfilesContext,
    FilesystemContext,
    GatherOptions,
    NixContext,
    RepoKind,
    RepositoryContext,
    Screenshot,
)
from ctxbundle.context.reader import ContentReader
from ctxbundle.exceptions import (
    CtxBundleError,
    GatherError,
    OperationCancelled,
    SourceNotImplementedError,
)
from ctxbundle.infra.command import CommandRunner

if TYPE_CHECKING:
    from ctxbundle.config import BundleConfig, RepositoryDescriptor


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


class Gatherer:
    """Collects context from configured repositories and optional sources.

    Repositories are processed one at a time in configuration order. A
    failure in one repository is logged and skipped; only filesystem and
    screenshot failures abort gathering.

    Example:
        >>> gatherer = Gatherer.from_config(BundleConfig.load_or_default())
        >>> ctx = gatherer.gather(GatherOptions(include_current_repo=True))
        >>> len(ctx.configured_repos)
        2
    """

    def __init__(
        self,
        repos: Sequence[RepositoryDescriptor],
        fetcher: RepoFetcher,
        reader: ContentReader,
        *,
        cmd: CommandRunner | None = None,
        nix_config_path: Path | None = None,
        dotfiles_path: Path | None = None,
        clock: Callable[[], datetime] = _utcnow,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        """Initialize the gatherer.

        Args:
            repos: Repositories always included, in order.
            fetcher: Resolves descriptors to local paths.
            reader: Reads repository contents.
            cmd: CommandRunner used for remote URL lookups.
            nix_config_path: Nix configuration to parse, if any.
            dotfiles_path: Dotfiles repository to parse, if any.
            clock: Returns the gathering timestamp.
            logger: Logger to report to (defaults to the module logger).
        """
        self.repos = list(repos)
        self.fetcher = fetcher
        self.reader = reader
        self.cmd = cmd or fetcher.cmd
        self.nix_config_path = nix_config_path
        self.dotfiles_path = dotfiles_path
        self.clock = clock
        self._log = logger if logger is not None else structlog.get_logger()

    @classmethod
    def from_config(
        cls,
        config: BundleConfig,
        cmd: CommandRunner | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> Gatherer:
        """Create a gatherer wired from configuration."""
        runner = cmd or CommandRunner(logger=logger)
        return cls(
            config.repos,
            RepoFetcher.from_config(config.fetcher, runner, logger=logger),
            ContentReader.from_config(config.reader, logger=logger),
            cmd=runner,
            nix_config_path=config.nix_config_path,
            dotfiles_path=config.dotfiles_path,
            logger=logger,
        )

    def gather(
        self,
        options: GatherOptions | None = None,
        cancel_event: threading.Event | None = None,
    ) -> AggregateContext:
        """Collect all requested context.

        Args:
            options: Which optional sources to include.
            cancel_event: When set, gathering is aborted.

        Returns:
            AggregateContext stamped with the gathering time.

        Raises:
            GatherError: If filesystem context was requested and failed.
            SourceNotImplementedError: If a screenshot was requested.
            OperationCancelled: If cancel_event is set.
        """
        opts = options or GatherOptions()
        ctx = AggregateContext(timestamp=self.clock())

        ctx.configured_repos = self.gather_configured_repos(cancel_event)

        if opts.include_current_repo:
            try:
                ctx.current_repo = self.gather_current_repo(opts.working_dir, cancel_event)
            except OperationCancelled:
                raise
            except CtxBundleError as e:
                self._log.info("Current repository not included", reason=str(e))

        if opts.include_filesystem:
            ctx.filesystem = self.gather_filesystem(opts.working_dir)

        if opts.include_nix_config and self.nix_config_path is not None:
            try:
                ctx.nix_config = self.gather_nix_config()
            except SourceNotImplementedError as e:
                self._log.info("Nix config not gathered", reason=str(e))

        if opts.include_dotfiles and self.dotfiles_path is not None:
            try:
                ctx.dotfiles = self.gather_dotfiles()
            except SourceNotImplementedError as e:
                self._log.info("Dotfiles not gathered", reason=str(e))

        if opts.capture_screenshot:
            ctx.screenshot = self.capture_screenshot()

        self._log.info(
            "Context gathered",
            configured_repos=len(ctx.configured_repos),
            has_current_repo=ctx.current_repo is not None,
            has_filesystem=ctx.filesystem is not None,
        )
        return ctx

    def gather_configured_repos(
        self,
        cancel_event: threading.Event | None = None,
    ) -> list[RepositoryContext]:
        """Fetch and read every configured repository.

        Repositories that fail are logged and left out.
        """
        repos: list[RepositoryContext] = []
        for descriptor in self.repos:
            try:
                repos.append(self.gather_repo(descriptor, cancel_event))
            except OperationCancelled:
                raise
            except CtxBundleError as e:
                self._log.warning(
                    "Skipping repository",
                    source=descriptor.source,
                    error=str(e),
                )
        return repos

    def gather_repo(
        self,
        descriptor: RepositoryDescriptor,
        cancel_event: threading.Event | None = None,
    ) -> RepositoryContext:
        """Fetch one repository, read its contents and look up its remote."""
        log = self._log.bind(source=descriptor.source, kind=descriptor.kind.value)

        path = self.fetcher.fetch(descriptor, cancel_event)
        contents = self.reader.read(path, cancel_event)
        remote = get_git_remote(path, self.cmd, cancel_event=cancel_event)

        log.debug("Repository gathered", path=str(path), files=contents.total_files)
        return RepositoryContext(
            path=path,
            kind=descriptor.kind,
            source=descriptor.source,
            remote=remote,
            contents=contents,
        )

    def gather_current_repo(
        self,
        working_dir: Path | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RepositoryContext:
        """Read the repository enclosing the working directory.

        Raises:
            RepoNotFoundError: If the working directory is not inside a git repository.
            RepoReadError: If the repository cannot be read.
        """
        path = find_git_repository(working_dir)
        contents = self.reader.read(path, cancel_event)
        remote = get_git_remote(path, self.cmd, cancel_event=cancel_event)
        return RepositoryContext(
            path=path,
            kind=RepoKind.CURRENT,
            remote=remote,
            contents=contents,
        )

    def gather_filesystem(self, working_dir: Path | None = None) -> FilesystemContext:
        """Describe the working directory, its parents and its entries.

        Raises:
            GatherError: If the working directory cannot be listed.
        """
        try:
            current = (working_dir or Path.cwd()).absolute()
            files = sorted(entry.name for entry in current.iterdir())
        except OSError as e:
            msg = f"Failed to gather filesystem context: {e}"
            raise GatherError(msg, source="filesystem") from e

        return FilesystemContext(
            current_dir=current,
            parent_dirs=list(current.parents),
            files=files,
        )

    def gather_nix_config(self) -> NixContext:
        """Parse the configured Nix configuration."""
        msg = f"Nix config parsing is not implemented: {self.nix_config_path}"
        raise SourceNotImplementedError(msg, source="nix_config")

    def gather_dotfiles(self) -> DotfilesContext:
        """Parse the configured dotfiles repository."""
        msg = f"Dotfiles parsing is not implemented: {self.dotfiles_path}"
        raise SourceNotImplementedError(msg, source="dotfiles")

    def capture_screenshot(self) -> Screenshot:
        """Capture a screenshot of the current display."""
        msg = "Screenshot capture is not implemented"
        raise SourceNotImplementedError(msg, source="screenshot")
