"""
Error Taxonomy

Every failure the quote service can surface belongs to one of these classes:

    QuoteServiceError
    ├── ProviderError          network failure, timeout, non-2xx, provider-level error code
    ├── ParseError             malformed JSON, column/row mismatch, missing or null field
    ├── ConfigError            bad time/timezone/period at startup, broken pair catalog
    └── QuotesUnavailableError what a reader gets when no usable quote set exists

ParseError and ConfigError also derive from ValueError so callers that only
care about "bad value" can catch them generically.

Propagation:
    Provider clients and the pair catalog raise ProviderError / ParseError
    synchronously to the refresh leader in QuoteCache. The cache never
    retries; it converts the failure into QuotesUnavailableError for readers
    (or serves the previous snapshot, depending on its policy).
"""

from typing import Optional


class QuoteServiceError(Exception):
    """Base class for all quote service errors."""


class ProviderError(QuoteServiceError):
    """
    A market-data provider could not be reached or answered with an error.

    Attributes:
        provider: Provider identifier ("moex", "bybit")
        status: HTTP status code when the provider answered, None otherwise
    """

    def __init__(self, provider: str, message: str, status: Optional[int] = None):
        self.provider = provider
        self.status = status
        status_str = f" (HTTP {status})" if status is not None else ""
        super().__init__(f"{provider}: {message}{status_str}")


class ParseError(QuoteServiceError, ValueError):
    """A provider payload was not in the expected shape."""


class ConfigError(QuoteServiceError, ValueError):
    """Invalid configuration detected at startup."""


class QuotesUnavailableError(QuoteServiceError):
    """
    No quote set can be served right now.

    Raised by QuoteCache when a refresh fails and there is no previous
    snapshot to fall back on (or stale serving is disabled). The underlying
    ProviderError / ParseError is chained as __cause__.
    """

    def __init__(self, group: str, reason: str = ""):
        self.group = group
        self.reason = reason
        message = f"{group} quotes temporarily unavailable"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
