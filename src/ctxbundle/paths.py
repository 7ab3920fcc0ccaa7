"""Filesystem layout for ctxbundle configuration and caches."""

from __future__ import annotations

import os
import re
from pathlib import Path

CONFIG_ENV_VAR = "CTXBUNDLE_CONFIG"
CACHE_ENV_VAR = "CTXBUNDLE_CACHE_DIR"

DEFAULT_CONFIG_DIR = Path(".config") / "ctxbundle"
DEFAULT_CONFIG_FILE = "config.yaml"
DEFAULT_CACHE_DIR = Path(".cache") / "ctxbundle" / "repos"

# Sentinel written into a mirror after each successful clone or refresh
LAST_UPDATE_FILE = ".codex_last_update"

_REMOTE_PREFIXES = ("http://", "https://", "ssh://", "git://", "file://")
_SCP_STYLE = re.compile(r"^[\w.-]+@[\w.-]+:")


def default_config_path() -> Path:
    """Path of the YAML config file.

    Returns:
        ``$CTXBUNDLE_CONFIG`` if set, else ``~/.config/ctxbundle/config.yaml``.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE


def default_cache_dir() -> Path:
    """Root directory for remote repository mirrors.

    Returns:
        ``$CTXBUNDLE_CACHE_DIR`` if set, else ``~/.cache/ctxbundle/repos``.
    """
    override = os.environ.get(CACHE_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / DEFAULT_CACHE_DIR


def is_remote_source(source: str) -> bool:
    """Check if a repository source is a remote git URL.

    Example:
        >>> is_remote_source("git@github.com:user/repo.git")
        True
        >>> is_remote_source("/home/me/src/repo")
        False
    """
    return source.startswith(_REMOTE_PREFIXES) or bool(_SCP_STYLE.match(source))


def derive_cache_name(url: str) -> str:
    """Derive a mirror directory name from a remote URL.

    Uses the final path segment with any ``.git`` suffix removed.

    Example:
        >>> derive_cache_name("https://github.com/user/dotfiles.git")
        'dotfiles'
        >>> derive_cache_name("git@github.com:user/nix-config")
        'nix-config'
    """
    trimmed = url.rstrip("/")
    name = re.split(r"[/:]", trimmed)[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repo"


def cache_path_for(url: str, cache_dir: Path | None = None) -> Path:
    """Mirror directory for a remote URL under the cache root."""
    return (cache_dir or default_cache_dir()) / derive_cache_name(url)
