"""Static relevance heuristic for repository files."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from ctxbundle.context.models import FileRecord

CONFIG_FILENAMES: frozenset[str] = frozenset(
    {
        "flake.nix",
        "configuration.nix",
        "home.nix",
        "hardware-configuration.nix",
        ".bashrc",
        ".zshrc",
        ".vimrc",
        ".nvimrc",
        "init.vim",
        "init.lua",
        "config.toml",
        "config.yaml",
        "config.yml",
        "config.json",
        ".gitconfig",
        ".tmux.conf",
        "alacritty.yml",
        "kitty.conf",
    }
)

SHELL_EXTENSIONS: frozenset[str] = frozenset({".sh", ".bash", ".zsh", ".fish"})
SOURCE_EXTENSIONS: frozenset[str] = frozenset(
    {".go", ".rs", ".py", ".js", ".ts", ".c", ".cpp", ".h", ".hpp"}
)
DOC_EXTENSIONS: frozenset[str] = frozenset({".md", ".txt", ".rst"})

SMALL_FILE_BYTES = 5000
LARGE_FILE_BYTES = 50000


def _name(record: FileRecord) -> str:
    return PurePosixPath(record.relative_path).name


def _ext(record: FileRecord) -> str:
    return PurePosixPath(record.relative_path).suffix.lower()


@dataclass(frozen=True)
class ScoreRule:
    """One independent predicate contributing a fixed score delta."""

    name: str
    applies: Callable[[FileRecord], bool]
    delta: int


DEFAULT_RULES: tuple[ScoreRule, ...] = (
    ScoreRule("config-file", lambda f: _name(f) in CONFIG_FILENAMES, 1000),
    ScoreRule("nix", lambda f: _ext(f) == ".nix", 800),
    ScoreRule("shell", lambda f: _ext(f) in SHELL_EXTENSIONS, 600),
    ScoreRule("source", lambda f: _ext(f) in SOURCE_EXTENSIONS, 400),
    ScoreRule("docs", lambda f: _ext(f) in DOC_EXTENSIONS, 200),
    ScoreRule("repo-root", lambda f: "/" not in f.relative_path, 100),
    ScoreRule("readme", lambda f: _name(f).lower().startswith("readme"), 150),
    ScoreRule("test", lambda f: "test" in _name(f).lower(), -50),
    ScoreRule("small", lambda f: f.size < SMALL_FILE_BYTES, 50),
    ScoreRule("large", lambda f: f.size > LARGE_FILE_BYTES, -50),
)


def calculate_priority(
    record: FileRecord,
    rules: Sequence[ScoreRule] = DEFAULT_RULES,
) -> int:
    """Sum the deltas of every rule that applies to a file.

    Example:
        >>> calculate_priority(FileRecord(Path("/r/flake.nix"), "flake.nix", "{}", 2))
        1950
    """
    return sum(rule.delta for rule in rules if rule.applies(record))


def prioritize_files(
    files: Sequence[FileRecord],
    rules: Sequence[ScoreRule] = DEFAULT_RULES,
) -> list[FileRecord]:
    """Order files by descending score.

    The sort is stable: files with equal scores keep their walk order.
    """
    return sorted(files, key=lambda f: calculate_priority(f, rules), reverse=True)
