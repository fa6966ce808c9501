"""Exception types for pybaseline.

Every error carries a ``code`` tag from a closed set. Callers that need to
decide between per-file capture and aborting the run branch on that tag.
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal

ErrorCode = Literal[
    "FILE_SYSTEM_ERROR",
    "FILE_SIZE_ERROR",
    "PARSING_ERROR",
    "CONFIGURATION_ERROR",
    "DATASET_ERROR",
    "NETWORK_ERROR",
    "HTTP_STATUS_ERROR",
    "TIMEOUT_ERROR",
]

# Codes that stay local to a single scanned file.
FILE_LOCAL_CODES: frozenset[str] = frozenset(
    {"FILE_SYSTEM_ERROR", "FILE_SIZE_ERROR", "PARSING_ERROR"}
)


class BaselineError(Exception):
    """Base exception for expected application errors."""

    code: ClassVar[ErrorCode]

    def __init__(self, message: str, *, file_path: str | None = None) -> None:
        self.file_path = file_path
        super().__init__(message)

    @property
    def file_local(self) -> bool:
        return self.code in FILE_LOCAL_CODES

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        if self.file_path is not None:
            payload["filePath"] = self.file_path
        return payload


class FileSystemError(BaselineError):
    """Raised when a source file cannot be found or read."""

    code = "FILE_SYSTEM_ERROR"

    def __init__(self, file_path: str, operation: str, *, cause: str | None = None) -> None:
        self.operation = operation
        detail = f"Cannot {operation} {file_path}"
        if cause:
            detail = f"{detail} ({cause})"
        super().__init__(detail, file_path=file_path)


class FileSizeError(BaselineError):
    """Raised before parsing when a file exceeds the size limit."""

    code = "FILE_SIZE_ERROR"

    def __init__(self, file_path: str, size: int, max_size: int) -> None:
        self.size = size
        self.max_size = max_size
        super().__init__(
            f"File size ({size / 1024 / 1024:.2f}MB) exceeds maximum allowed size "
            f"({max_size / 1024 / 1024:.2f}MB)",
            file_path=file_path,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload.update({"size": self.size, "maxSize": self.max_size})
        return payload


class ParsingError(BaselineError):
    """Raised when a source file cannot be turned into a syntax tree."""

    code = "PARSING_ERROR"

    def __init__(self, file_path: str, language: str, *, cause: str | None = None) -> None:
        self.language = language
        detail = f"Failed to parse {language.upper()} file"
        if cause:
            detail = f"{detail}: {cause}"
        super().__init__(detail, file_path=file_path)


class ConfigurationError(BaselineError):
    """Raised when a configuration file is malformed or has invalid values."""

    code = "CONFIGURATION_ERROR"

    def __init__(
        self, message: str, *, config_path: str | None = None, config_key: str | None = None
    ) -> None:
        self.config_key = config_key
        if config_key:
            message = f"{message} (key: {config_key})"
        super().__init__(message, file_path=config_path)


class DatasetError(BaselineError):
    """Raised when the feature dataset cannot be loaded."""

    code = "DATASET_ERROR"

    def __init__(self, source: str, *, cause: str | None = None) -> None:
        self.source = source
        detail = f"Unable to load feature dataset from {source}"
        if cause:
            detail = f"{detail} ({cause})"
        super().__init__(detail)


class NetworkError(BaselineError):
    """Raised when a network operation fails."""

    code = "NETWORK_ERROR"

    def __init__(self, url: str, *, cause: str | None = None) -> None:
        self.url = url
        detail = f"Unable to connect to {url}"
        if cause:
            detail = f"{detail} ({cause})"
        super().__init__(detail)


class RequestTimeoutError(BaselineError):
    """Raised when a request times out."""

    code = "TIMEOUT_ERROR"

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Request timed out for {url}")


class HttpStatusError(BaselineError):
    """Raised when a non-200 HTTP response is returned."""

    code = "HTTP_STATUS_ERROR"

    def __init__(self, status_code: int, url: str) -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"Request failed with HTTP {status_code} for {url}")


def format_error(error: BaseException) -> str:
    """Return a one-line, user-facing description of ``error``."""
    if isinstance(error, BaselineError):
        location = f" at {error.file_path}" if error.file_path else ""
        return f"[{error.code}] {error}{location}"
    return f"{error.__class__.__name__}: {error}"
