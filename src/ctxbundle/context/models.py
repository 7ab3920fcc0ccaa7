"""Data models for gathered context."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class RepoKind(str, Enum):
    """Where a repository's content comes from."""

    LOCAL = "local"
    REMOTE = "remote"
    CURRENT = "current"


@dataclass(frozen=True)
class FileRecord:
    """A single included file.

    Attributes:
        path: Absolute path of the file on disk.
        relative_path: Path relative to the repository root (posix separators).
        content: Decoded text content.
        size: Size of the content in bytes.
    """

    path: Path
    relative_path: str
    content: str
    size: int


@dataclass
class RepoContents:
    """All included files from one repository snapshot.

    Attributes:
        files: Included files in walk order.
        total_size: Sum of included file sizes in bytes.
        total_files: Number of files the reader included. A summarized copy
            keeps the original count so "included/total" can be reported.
    """

    files: list[FileRecord] = field(default_factory=list)
    total_size: int = 0
    total_files: int = 0

    def add(self, record: FileRecord) -> None:
        """Append a file and update the aggregates."""
        self.files.append(record)
        self.total_size += record.size
        self.total_files += 1


@dataclass
class RepositoryContext:
    """A repository resolved to a local path, plus its contents."""

    path: Path
    kind: RepoKind
    source: str = ""
    remote: str = ""
    contents: RepoContents | None = None


@dataclass
class FilesystemContext:
    """Current directory information."""

    current_dir: Path
    parent_dirs: list[Path] = field(default_factory=list)
    files: list[str] = field(default_factory=list)


@dataclass
class Keybind:
    """A keyboard binding extracted from a dotfile."""

    key: str
    command: str
    description: str = ""
    mode: str = ""


@dataclass
class NixContext:
    """Parsed Nix configuration."""

    config_path: Path
    is_flake: bool = False
    packages: list[str] = field(default_factory=list)
    system_config: dict[str, Any] = field(default_factory=dict)
    last_parsed: datetime | None = None
    cache_key: str = ""


@dataclass
class DotfilesContext:
    """Parsed dotfiles configuration."""

    dotfiles_path: Path
    is_home_manager: bool = False
    configs: dict[str, Any] = field(default_factory=dict)
    keybindings: dict[str, list[Keybind]] = field(default_factory=dict)
    last_parsed: datetime | None = None
    cache_key: str = ""


@dataclass
class Screenshot:
    """Captured screenshot data."""

    path: Path
    mime_type: str
    tool: str
    data: bytes = b""


@dataclass
class AggregateContext:
    """Everything gathered for a single query.

    Attributes:
        timestamp: When gathering started.
        configured_repos: Repositories from configuration, in config order.
        current_repo: Repository enclosing the working directory, if requested.
        filesystem: Working directory details, if requested.
        nix_config: Parsed Nix configuration, if available.
        dotfiles: Parsed dotfiles, if available.
        screenshot: Captured screenshot, if requested.
    """

    timestamp: datetime
    configured_repos: list[RepositoryContext] = field(default_factory=list)
    current_repo: RepositoryContext | None = None
    filesystem: FilesystemContext | None = None
    nix_config: NixContext | None = None
    dotfiles: DotfilesContext | None = None
    screenshot: Screenshot | None = None

    @property
    def repo_count(self) -> int:
        """Number of repository contexts (configured plus current)."""
        return len(self.configured_repos) + (1 if self.current_repo is not None else 0)

    def all_repos(self) -> list[RepositoryContext]:
        """Configured repositories followed by the current one."""
        repos = list(self.configured_repos)
        if self.current_repo is not None:
            repos.append(self.current_repo)
        return repos


@dataclass
class GatherOptions:
    """Which context sources to gather.

    Attributes:
        include_current_repo: Include the repository enclosing working_dir.
        include_filesystem: Include working directory details.
        include_nix_config: Parse the configured Nix config path.
        include_dotfiles: Parse the configured dotfiles path.
        capture_screenshot: Capture a screenshot.
        working_dir: Directory to start from (defaults to the process cwd).
    """

    include_current_repo: bool = False
    include_filesystem: bool = False
    include_nix_config: bool = False
    include_dotfiles: bool = False
    capture_screenshot: bool = False
    working_dir: Path | None = None
