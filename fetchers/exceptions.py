"""
Exceptions raised by the upstream fetchers.
"""

from typing import Optional


class FetcherError(Exception):
    """Base class for fetcher errors."""
    pass


class UpstreamError(FetcherError):
    """An upstream API returned a non-2xx response, malformed JSON, or was unreachable."""

    def __init__(self, provider: str, detail: str, status_code: Optional[int] = None):
        self.provider = provider
        self.detail = detail
        self.status_code = status_code
        status = f" {status_code}" if status_code is not None else ""
        super().__init__(f"{provider} API error{status}: {detail}")


class ConfigurationError(FetcherError):
    """A required setting (e.g. an API key) is missing."""
    pass
