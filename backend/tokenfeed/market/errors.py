"""Exception hierarchy for the token market subsystem."""

from __future__ import annotations


class TokenFeedError(Exception):
    """Base exception for all tokenfeed errors."""


class SourceError(TokenFeedError):
    """A market data provider call failed."""


class SourceHTTPError(SourceError):
    """Provider answered with a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str = ""):
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")


class SourceConnectionError(SourceError):
    """Connection to the provider was reset or dropped before a response arrived."""


class SourcesUnavailableError(TokenFeedError):
    """Every configured source failed for one aggregate call."""


class InvalidQueryError(TokenFeedError, ValueError):
    """Search query rejected before any provider was contacted."""


class InvalidMessageError(TokenFeedError, ValueError):
    """Malformed real-time client frame."""


class CacheError(TokenFeedError):
    """Cache backend is unreachable or returned garbage."""
