"""Typed errors for the shared outbound HTTP client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping


@dataclass(eq=False)
class HttpClientError(Exception):
    """Base error for outbound HTTP client call failures."""

    message: str
    method: str
    url: str
    retryable: bool = False

    def __str__(self) -> str:
        """Return the human-readable error message."""
        return self.message


@dataclass(eq=False)
class HttpRequestError(HttpClientError):
    """Transport-level failure (DNS, connect, read timeout)."""

    cause: Exception | None = None


@dataclass(eq=False)
class HttpStatusError(HttpClientError):
    """Non-success status code."""

    status_code: int = 0
    response_body: str = ""
    response_headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(eq=False)
class HttpJsonDecodeError(HttpClientError):
    """Successful response whose body is not valid JSON."""

    status_code: int = 0
    response_body: str = ""
    cause: Exception | None = None
