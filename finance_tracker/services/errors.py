"""
Error taxonomy for external data providers.

DESIGN DECISION: Providers raise typed errors; the resolution chain and
the bulk refresh runs catch them. Nothing in this module ever reaches
the caller of a bulk run, which only sees counts and diagnostics.

Retry behaviour is decided by type:
- RateLimitedError, TransientProviderError: retried by the primary provider
- ConfigurationError: never retried, surfaced as an actionable diagnostic
- MalformedDataError, DataUnavailableError: per-record skip
"""

from typing import Optional


class ProviderError(Exception):
    """Base exception for price and NAV providers."""

    retryable = False

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class RateLimitedError(ProviderError):
    """Provider answered HTTP 429."""

    retryable = True

    def __init__(self, message: str, provider: Optional[str] = None, status_code: int = 429):
        super().__init__(message, provider)
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Network failure, 5xx or an undecodable body."""

    retryable = True


class ConfigurationError(ProviderError):
    """A provider cannot be used until the operator configures it."""


class MalformedDataError(ProviderError):
    """Response or line could not be parsed."""


class DataUnavailableError(ProviderError):
    """Every provider came back empty for one record."""
