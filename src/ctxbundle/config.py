"""Configuration schema for ctxbundle."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ctxbundle.context.models import RepoKind
from ctxbundle.exceptions import ConfigError
from ctxbundle.paths import cache_path_for, default_cache_dir, default_config_path, is_remote_source

# ~100K tokens across all repositories
DEFAULT_MAX_CONTEXT_BYTES = 400_000


class RepositoryDescriptor(BaseModel):
    """Identity and location of a tracked repository.

    Attributes:
        source: Absolute local path or remote URL; unique across the config.
        kind: Whether the source is a local path or a remote URL.
        cache_path: Mirror directory for remote repositories.
    """

    model_config = ConfigDict(frozen=True)

    source: str
    kind: RepoKind
    cache_path: Path | None = None

    @field_validator("kind")
    @classmethod
    def validate_kind(cls, v: RepoKind) -> RepoKind:
        """Only local and remote repositories can be configured."""
        if v == RepoKind.CURRENT:
            msg = "Configured repositories must be 'local' or 'remote'"
            raise ValueError(msg)
        return v


class ReaderConfig(BaseModel):
    """Limits applied while reading repository contents.

    Attributes:
        max_file_size: Files larger than this many bytes are skipped.
        max_total_size: Reading a repository stops after this many bytes.
        include_hidden: Whether dot-files and dot-directories are read.
    """

    max_file_size: int = Field(default=100 * 1024, ge=1)
    max_total_size: int = Field(default=2 * 1024 * 1024, ge=1)
    include_hidden: bool = True


class FetcherConfig(BaseModel):
    """Remote repository cache settings.

    Attributes:
        cache_dir: Root directory for mirrors (defaults to ~/.cache/ctxbundle/repos).
        freshness_seconds: Mirrors refreshed more recently than this are reused.
        timeout: Timeout in seconds for each git operation.
    """

    cache_dir: Path | None = None
    freshness_seconds: int = Field(default=3600, ge=0)
    timeout: int = Field(default=300, ge=1)

    def resolved_cache_dir(self) -> Path:
        """Cache root with the default applied."""
        return self.cache_dir or default_cache_dir()


class BundleConfig(BaseModel):
    """Complete ctxbundle configuration.

    Attributes:
        version: Config schema version.
        repos: Repositories always included as context, in order.
        nix_config_path: Path to a Nix configuration repository.
        dotfiles_path: Path to a dotfiles or home-manager repository.
        max_context_bytes: Global byte budget across all repositories.
        reader: Content reader limits.
        fetcher: Remote cache settings.

    Example:
        >>> config = BundleConfig()
        >>> config.add_repo("https://github.com/user/dotfiles.git").kind
        <RepoKind.REMOTE: 'remote'>
    """

    version: str = "1.0"
    repos: list[RepositoryDescriptor] = Field(default_factory=list)
    nix_config_path: Path | None = None
    dotfiles_path: Path | None = None
    max_context_bytes: int = Field(default=DEFAULT_MAX_CONTEXT_BYTES, ge=1)
    reader: ReaderConfig = Field(default_factory=ReaderConfig)
    fetcher: FetcherConfig = Field(default_factory=FetcherConfig)

    @field_validator("repos")
    @classmethod
    def validate_unique_sources(
        cls, v: list[RepositoryDescriptor]
    ) -> list[RepositoryDescriptor]:
        """Ensure repository sources are unique."""
        sources = [r.source for r in v]
        if len(sources) != len(set(sources)):
            msg = "Repository sources must be unique"
            raise ValueError(msg)
        return v

    def find_repo(self, source: str) -> RepositoryDescriptor | None:
        """Look up a configured repository by source.

        Local sources also match by their resolved absolute path.
        """
        candidates = {source}
        if not is_remote_source(source):
            candidates.add(str(Path(source).expanduser().resolve()))
        for repo in self.repos:
            if repo.source in candidates:
                return repo
        return None

    def add_repo(self, source: str) -> RepositoryDescriptor:
        """Add a repository to the configuration.

        Args:
            source: Local path or remote git URL.

        Returns:
            The new descriptor.

        Raises:
            ConfigError: If the repository is already configured, or a local
                path is not a directory.
        """
        if self.find_repo(source) is not None:
            msg = f"Repository already configured: {source}"
            raise ConfigError(msg, field="repos")

        if is_remote_source(source):
            descriptor = RepositoryDescriptor(
                source=source,
                kind=RepoKind.REMOTE,
                cache_path=cache_path_for(source, self.fetcher.resolved_cache_dir()),
            )
        else:
            path = Path(source).expanduser().resolve()
            if not path.is_dir():
                msg = f"Local repository path is not a directory: {source}"
                raise ConfigError(msg, field="repos")
            descriptor = RepositoryDescriptor(source=str(path), kind=RepoKind.LOCAL)

        self.repos.append(descriptor)
        return descriptor

    def remove_repo(self, source: str) -> RepositoryDescriptor:
        """Remove a repository from the configuration.

        Raises:
            ConfigError: If the repository is not configured.
        """
        descriptor = self.find_repo(source)
        if descriptor is None:
            msg = f"Repository not configured: {source}"
            raise ConfigError(msg, field="repos")
        self.repos.remove(descriptor)
        return descriptor

    def apply_env_overrides(self, environ: dict[str, str] | None = None) -> None:
        """Override settings from CTXBUNDLE_* environment variables.

        Raises:
            ConfigError: If an override has an invalid value.
        """
        env = os.environ if environ is None else environ
        if val := env.get("CTXBUNDLE_NIX_CONFIG"):
            self.nix_config_path = Path(val).expanduser()
        if val := env.get("CTXBUNDLE_DOTFILES"):
            self.dotfiles_path = Path(val).expanduser()
        if val := env.get("CTXBUNDLE_MAX_CONTEXT_BYTES"):
            try:
                budget = int(val)
            except ValueError as e:
                msg = f"CTXBUNDLE_MAX_CONTEXT_BYTES must be an integer, got {val!r}"
                raise ConfigError(msg, field="max_context_bytes") from e
            if budget < 1:
                msg = "CTXBUNDLE_MAX_CONTEXT_BYTES must be positive"
                raise ConfigError(msg, field="max_context_bytes")
            self.max_context_bytes = budget

    def to_yaml(self) -> str:
        """Serialize the config to YAML."""
        data = self.model_dump(mode="json")
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def save(self, path: Path | None = None) -> Path:
        """Save the config to a YAML file.

        Args:
            path: Destination (defaults to the standard config path).

        Returns:
            The path written.
        """
        target = path or default_config_path()
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(self.to_yaml())
        return target

    @classmethod
    def from_yaml(cls, yaml_content: str) -> BundleConfig:
        """Parse config from YAML content.

        Raises:
            ValueError: If the YAML is invalid.
        """
        try:
            data: Any = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            msg = f"Invalid YAML: {e}"
            raise ValueError(msg) from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            msg = "Config YAML must be a mapping"
            raise ValueError(msg)

        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Path) -> BundleConfig:
        """Load config from a YAML file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            ConfigError: If the file cannot be parsed.
        """
        if not path.exists():
            msg = f"Config file not found: {path}"
            raise FileNotFoundError(msg)
        try:
            return cls.from_yaml(path.read_text())
        except ValueError as e:
            msg = f"Invalid config file {path}: {e}"
            raise ConfigError(msg, config_path=path) from e

    @classmethod
    def load_or_default(
        cls,
        path: Path | None = None,
        *,
        apply_env: bool = True,
    ) -> BundleConfig:
        """Load the config file if present.

        Args:
            path: Config file (defaults to the standard config path).
            apply_env: Whether CTXBUNDLE_* overrides are applied. Disable when
                the result will be saved back to disk.
        """
        target = path or default_config_path()
        config = cls.load(target) if target.exists() else cls()
        if apply_env:
            config.apply_env_overrides()
        return config
