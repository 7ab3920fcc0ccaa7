"""Repository content reader with noise filtering."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from ctxbundle.context.filters import is_binary, should_skip_dir, should_skip_file
from ctxbundle.context.models import FileRecord, RepoContents
from ctxbundle.exceptions import OperationCancelled, RepoReadError

if TYPE_CHECKING:
    from ctxbundle.config import ReaderConfig

# 100KB per file
DEFAULT_MAX_FILE_SIZE = 100 * 1024
# 2MB total (~500K tokens)
DEFAULT_MAX_TOTAL_SIZE = 2 * 1024 * 1024


class ContentReader:
    """Reads text files from a repository tree.

    The walk visits entries in lexical order so the resulting file order is
    reproducible. Excluded directories are pruned without recursing; the
    walk stops entirely once the accumulated size passes ``max_total_size``.

    Example:
        >>> reader = ContentReader(max_file_size=50_000)
        >>> contents = reader.read(Path("/repo"))
        >>> contents.total_files
        12
    """

    def __init__(
        self,
        *,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
        max_total_size: int = DEFAULT_MAX_TOTAL_SIZE,
        include_hidden: bool = True,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        """Initialize the reader.

        Args:
            max_file_size: Files larger than this many bytes are skipped.
            max_total_size: The walk stops once this many bytes were read.
            include_hidden: Whether dot-files and dot-directories are read.
            logger: Logger to report to (defaults to the module logger).
        """
        self.max_file_size = max_file_size
        self.max_total_size = max_total_size
        self.include_hidden = include_hidden
        self._log = logger if logger is not None else structlog.get_logger()

    @classmethod
    def from_config(
        cls,
        config: ReaderConfig,
        logger: structlog.BoundLogger | None = None,
    ) -> ContentReader:
        """Create a reader from configuration."""
        return cls(
            max_file_size=config.max_file_size,
            max_total_size=config.max_total_size,
            include_hidden=config.include_hidden,
            logger=logger,
        )

    def read(
        self,
        repo_root: Path,
        cancel_event: threading.Event | None = None,
    ) -> RepoContents:
        """Read all relevant files from a repository.

        Args:
            repo_root: Root directory of the repository.
            cancel_event: When set, reading stops and nothing is returned.

        Returns:
            RepoContents with included files in walk order.

        Raises:
            RepoReadError: If the root cannot be listed.
            OperationCancelled: If cancel_event is set during the walk.
        """
        root = Path(repo_root).absolute()
        log = self._log.bind(repo=str(root))

        if not root.is_dir():
            msg = f"Repository root is not a readable directory: {root}"
            raise RepoReadError(msg, path=root)

        contents = RepoContents()
        completed = self._walk(root, root, contents, cancel_event)

        log.debug(
            "Repository contents read",
            files=contents.total_files,
            bytes=contents.total_size,
            truncated_walk=not completed,
        )
        return contents

    def _walk(
        self,
        root: Path,
        directory: Path,
        contents: RepoContents,
        cancel_event: threading.Event | None,
    ) -> bool:
        """Visit one directory; returns False once the walk must stop."""
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            if directory == root:
                msg = f"Failed to read repository contents: {e}"
                raise RepoReadError(msg, path=root) from e
            self._log.debug("Skipping unreadable directory", path=str(directory), error=str(e))
            return True

        for entry in entries:
            if cancel_event is not None and cancel_event.is_set():
                msg = f"Reading cancelled: {root}"
                raise OperationCancelled(msg)

            if contents.total_size > self.max_total_size:
                return False

            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError:
                continue

            if is_dir:
                if should_skip_dir(entry.name, include_hidden=self.include_hidden):
                    continue
                if not self._walk(root, Path(entry.path), contents, cancel_event):
                    return False
                continue

            record = self._read_file(root, entry)
            if record is not None:
                contents.add(record)

        return True

    def _read_file(self, root: Path, entry: os.DirEntry[str]) -> FileRecord | None:
        """Read a single file, or return None if it is excluded or unreadable."""
        try:
            if not entry.is_file():
                return None
            size = entry.stat().st_size
        except OSError:
            return None

        if should_skip_file(
            entry.name,
            size,
            max_file_size=self.max_file_size,
            include_hidden=self.include_hidden,
        ):
            return None

        path = Path(entry.path)
        try:
            data = path.read_bytes()
        except OSError as e:
            self._log.debug("Skipping unreadable file", path=str(path), error=str(e))
            return None

        if is_binary(data):
            return None

        content = data.decode("utf-8", errors="replace")
        return FileRecord(
            path=path,
            relative_path=path.relative_to(root).as_posix(),
            content=content,
            size=len(content.encode("utf-8")),
        )
