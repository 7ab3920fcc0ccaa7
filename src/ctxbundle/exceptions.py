"""Custom exceptions for ctxbundle."""

from pathlib import Path


class CtxBundleError(Exception):
    """Base exception for all ctxbundle errors."""

    pass


class RepoNotFoundError(CtxBundleError):
    """Raised when a local repository or enclosing git root is missing."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class FetchError(CtxBundleError):
    """Raised when cloning a remote repository fails."""

    def __init__(
        self,
        message: str,
        *,
        source: str = "",
        cache_path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.source = source
        self.cache_path = cache_path


class RepoReadError(CtxBundleError):
    """Raised when a repository root cannot be walked."""

    def __init__(self, message: str, *, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class GatherError(CtxBundleError):
    """Raised when a required context source fails during gathering."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class SourceNotImplementedError(CtxBundleError):
    """Raised when a context source is requested but not available yet."""

    def __init__(self, message: str, *, source: str = "") -> None:
        super().__init__(message)
        self.source = source


class OperationCancelled(CtxBundleError):
    """Raised when the caller's cancel event is set mid-operation."""

    pass


class ConfigError(CtxBundleError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        config_path: Path | None = None,
        field: str = "",
    ) -> None:
        super().__init__(message)
        self.config_path = config_path
        self.field = field


class CommandError(CtxBundleError):
    """Raised when a subprocess command fails."""

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        returncode: int | None = None,
        cwd: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.command = command or []
        self.returncode = returncode
        self.cwd = cwd
