"""Application exception classes."""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class WeatherProviderError(Exception):
    """Raised inside weather providers when a request or normalization fails.

    Public provider operations convert this into a ``Failure`` value; it only
    escapes the provider for invalid caller input, where no request was made.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: str = "malformed-response",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.status_code = status_code


class LocationStoreError(Exception):
    """Raised when the saved-location store is misused or the database fails."""


class JournalError(Exception):
    """Raised when writing to journal files fails."""
