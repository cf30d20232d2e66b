"""Asynchronous HTTP client for calls to the remote user API."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx

from .errors import HttpJsonDecodeError, HttpRequestError, HttpStatusError


def is_retryable_status(status_code: int) -> bool:
    """Return whether a failed status is worth replaying later."""
    return status_code >= 500 or status_code == 429


def json_or_none(response: httpx.Response) -> Any:
    """Decode a response body leniently; empty or non-JSON bodies give ``None``."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


class AsyncHttpClient:
    """``httpx.AsyncClient`` wrapper raising typed, retry-aware failures.

    Every call accepts an optional ``bearer_token``; when it is truthy an
    ``Authorization: Bearer`` header is added for that request only, so a
    rotated credential takes effect on the next call.
    """

    def __init__(
        self,
        *,
        base_url: str = "",
        timeout_seconds: float = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._borrowed = client is not None
        if client is None:
            client = httpx.AsyncClient(
                base_url=base_url,
                timeout=timeout_seconds,
                headers={"Accept": "application/json", **dict(headers or {})},
                transport=transport,
            )
        self._client = client

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def aclose(self) -> None:
        """Close the pooled connections unless the httpx client was passed in."""
        if not self._borrowed:
            await self._client.aclose()

    async def __aenter__(self) -> AsyncHttpClient:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        bearer_token: str | None = None,
        raise_for_status: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request.

        Transport failures raise ``HttpRequestError`` (always retryable).
        Error statuses raise ``HttpStatusError`` unless ``raise_for_status``
        is false.
        """
        if bearer_token:
            kwargs["headers"] = {
                **dict(kwargs.get("headers") or {}),
                "Authorization": f"Bearer {bearer_token}",
            }
        verb = method.upper()
        try:
            response = await self._client.request(verb, url, **kwargs)
        except httpx.RequestError as exc:
            target = _failed_url(exc, fallback=url)
            raise HttpRequestError(
                message=f"{verb} {target} failed: {type(exc).__name__}",
                method=verb,
                url=target,
                retryable=True,
                cause=exc,
            ) from exc

        if raise_for_status and response.is_error:
            raise HttpStatusError(
                message=f"{verb} {response.request.url} returned HTTP {response.status_code}",
                method=verb,
                url=str(response.request.url),
                retryable=is_retryable_status(response.status_code),
                status_code=response.status_code,
                response_body=_safe_text(response),
                response_headers=dict(response.headers.items()),
            )
        return response

    async def request_json(self, method: str, url: str, **kwargs: Any) -> Any:
        """Send one request and decode its JSON body; an empty body is ``None``."""
        response = await self.request(method, url, **kwargs)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise HttpJsonDecodeError(
                message=f"{response.request.method} {response.request.url} returned invalid JSON",
                method=response.request.method,
                url=str(response.request.url),
                status_code=response.status_code,
                response_body=_safe_text(response),
                cause=exc,
            ) from exc

    async def get_json(self, url: str, **kwargs: Any) -> Any:
        return await self.request_json("GET", url, **kwargs)


def _failed_url(exc: httpx.RequestError, *, fallback: str) -> str:
    try:
        return str(exc.request.url)
    except RuntimeError:
        # httpx raises when the error was created without a request.
        return fallback


def _safe_text(response: httpx.Response) -> str:
    try:
        return response.text
    except (LookupError, UnicodeDecodeError, httpx.ResponseNotRead):
        return ""
