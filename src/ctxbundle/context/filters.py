"""Inclusion rules for repository content.

Everything here is pure data plus small predicates so the reader's walk
stays a loop over the filesystem and nothing else.
"""

from __future__ import annotations

from pathlib import PurePath

from ctxbundle.paths import LAST_UPDATE_FILE

# Bytes inspected when sniffing for binary content
BINARY_SNIFF_BYTES = 512

SKIP_DIRS: frozenset[str] = frozenset(
    {
        # Version control
        ".git",
        # Dependencies
        "node_modules",
        "vendor",
        # Build/dist output
        "dist",
        "build",
        "target",
        ".next",
        ".nuxt",
        "out",
        # Caches
        ".cache",
        ".npm",
        ".yarn",
        ".gradle",
        ".m2",
        ".turbo",
        "tmp",
        "temp",
        ".tmp",
        # Python
        "__pycache__",
        ".pytest_cache",
        ".mypy_cache",
        ".venv",
        "venv",
        ".tox",
        # Coverage
        "coverage",
        ".coverage",
        ".nyc_output",
        # IDE/editor
        ".idea",
        ".vscode",
        ".DS_Store",
        # Browser/Electron profile data
        "Cache",
        "GPUCache",
        "Code Cache",
        "DawnCache",
        "DawnGraphiteCache",
        "DawnWebGPUCache",
        "IndexedDB",
        "LocalStorage",
        "SessionStorage",
        "Service Worker",
        "WebStorage",
        "Partitions",
        "Dictionaries",
        "adblock",
        # Nix result symlinks
        "result",
    }
)

SKIP_EXTENSIONS: frozenset[str] = frozenset(
    {
        # Images
        ".png", ".jpg", ".jpeg", ".gif", ".ico", ".svg",
        ".webp", ".bmp", ".tiff", ".tif",
        # Documents
        ".pdf", ".doc", ".docx", ".md", ".txt",
        # Archives
        ".zip", ".tar", ".gz", ".bz2", ".xz", ".rar", ".7z",
        # Executables/libraries
        ".exe", ".dll", ".so", ".dylib", ".o", ".a", ".pyc", ".class",
        # Lockfiles/checksums
        ".lock", ".sum",
        # Compiled/bundled artifacts
        ".wasm", ".map", ".asar", ".pak",
        # Databases
        ".db", ".sqlite", ".sqlite3", ".mdb", ".accdb",
        ".ldb", ".leveldb", ".indexeddb",
        # Media
        ".mp4", ".mov", ".avi", ".mkv", ".webm",
        ".mp3", ".wav", ".flac", ".ogg", ".m4a",
        # Fonts
        ".woff", ".woff2", ".ttf", ".eot", ".otf",
        # Design files
        ".psd", ".ai", ".sketch", ".fig", ".xd",
        # Editor files
        ".iml", ".swp", ".swo",
        # Logs and generic data
        ".log", ".bdic", ".dat", ".bin", ".data", ".cache",
    }
)  # fmt: skip

# Multi-dot suffixes matched against the end of the lowercase file name
SKIP_COMPOUND_SUFFIXES: tuple[str, ...] = (
    ".min.js",
    ".min.css",
    ".bundle.js",
    ".chunk.js",
)

SKIP_FILENAMES: frozenset[str] = frozenset(
    {
        # Package manager lockfiles
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "Cargo.lock",
        "Gemfile.lock",
        "composer.lock",
        "poetry.lock",
        "go.sum",
        # OS metadata
        ".DS_Store",
        "Thumbs.db",
        "desktop.ini",
        # Browser profile/state
        "Cookies",
        "Cookies-journal",
        "History",
        "History-journal",
        "Preferences",
        "Current Session",
        "Current Tabs",
        "Last Session",
        "Last Tabs",
        "Network Persistent State",
        "TransportSecurity",
        "Web Data",
        "Web Data-journal",
        "DIPS",
        "DIPS-wal",
        "Trust Tokens",
        "Shared Dictionary",
        "QuotaManager",
        "QuotaManager-journal",
        # Mirror refresh sentinel
        LAST_UPDATE_FILE,
    }
)


def is_hidden(name: str) -> bool:
    """Check if a file or directory name is hidden."""
    return name.startswith(".")


def is_binary(content: bytes) -> bool:
    """Check if content looks binary.

    Only the first ``BINARY_SNIFF_BYTES`` are inspected; a single NUL byte
    marks the content as binary.

    Example:
        >>> is_binary(bytes([0x00, 0x01, 0x02]))
        True
        >>> is_binary(b"abc")
        False
    """
    return b"\x00" in content[:BINARY_SNIFF_BYTES]


def should_skip_dir(name: str, *, include_hidden: bool) -> bool:
    """Check if a directory's whole subtree should be pruned.

    Args:
        name: Directory base name.
        include_hidden: Whether hidden directories are walked.

    Returns:
        True if the directory must not be recursed into.
    """
    if not include_hidden and is_hidden(name):
        return True
    return name in SKIP_DIRS


def has_skipped_extension(name: str) -> bool:
    """Check a file name against the extension deny-lists."""
    lowered = name.lower()
    if PurePath(lowered).suffix in SKIP_EXTENSIONS:
        return True
    return lowered.endswith(SKIP_COMPOUND_SUFFIXES)


def should_skip_file(
    name: str,
    size: int,
    *,
    max_file_size: int,
    include_hidden: bool,
) -> bool:
    """Check if a file is excluded before its content is read.

    Rules are evaluated in order and short-circuit: size cap, hidden,
    extension, exact file name. Binary sniffing needs the content and is
    applied separately with ``is_binary``.

    Args:
        name: File base name.
        size: File size in bytes.
        max_file_size: Per-file size ceiling in bytes.
        include_hidden: Whether hidden files are included.

    Returns:
        True if the file must be skipped.
    """
    if size > max_file_size:
        return True
    if not include_hidden and is_hidden(name):
        return True
    if has_skipped_extension(name):
        return True
    return name in SKIP_FILENAMES
