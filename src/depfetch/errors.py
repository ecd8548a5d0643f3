"""Exception hierarchy for resolution and download failures.

None of these abort a resolution run. The engine and the download manager
catch them, report them through the event sink, and truncate the affected
branch (or skip the affected file). Only configuration problems reach the
caller.
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "DepfetchError",
    "ConfigError",
    "TransportError",
    "RepositoryNotFound",
    "DescriptorFetchFailed",
    "DescriptorDecodeError",
    "VersionUnresolvable",
    "DownloadFailed",
]


class DepfetchError(RuntimeError):
    """Base exception for resolver failures."""


class ConfigError(DepfetchError):
    """Raised when configuration values are missing or malformed."""


class TransportError(DepfetchError):
    """Raised when an HTTP request keeps failing after the retry budget."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class RepositoryNotFound(DepfetchError):
    """Raised when no configured repository hosts a coordinate."""


class DescriptorFetchFailed(DepfetchError):
    """Raised when a POM or metadata document cannot be retrieved."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DescriptorDecodeError(DescriptorFetchFailed):
    """Raised when a fetched document is not well-formed XML of the expected shape."""


class VersionUnresolvable(DepfetchError):
    """Raised when a placeholder, range or latest version cannot be determined."""


class DownloadFailed(DepfetchError):
    """Raised when an artifact binary cannot be written to disk."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
