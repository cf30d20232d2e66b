"""Public shared HTTP client API for Stash components."""

from .client import AsyncHttpClient, is_retryable_status, json_or_none
from .errors import (
    HttpClientError,
    HttpJsonDecodeError,
    HttpRequestError,
    HttpStatusError,
)

__all__ = [
    "AsyncHttpClient",
    "HttpClientError",
    "HttpJsonDecodeError",
    "HttpRequestError",
    "HttpStatusError",
    "is_retryable_status",
    "json_or_none",
]
