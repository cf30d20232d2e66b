"""Replay transports that deliver queued operations to the remote API."""

from __future__ import annotations

from typing import Protocol

from packages.stash_shared.errors import ReplayFailure
from packages.stash_shared.http import (
    AsyncHttpClient,
    HttpClientError,
    HttpStatusError,
    json_or_none,
)
from resources.adapters.session import CredentialProvider
from services.action.sync_queue.domain import QueuedOperation, ReplayResponse


class ReplayTransport(Protocol):
    """Deliver one queued operation; raise ``ReplayFailure`` when not acknowledged."""

    async def replay(self, operation: QueuedOperation) -> ReplayResponse:
        """Send one operation to the remote API."""


class HttpReplayTransport(ReplayTransport):
    """Replay over HTTP: ``kind`` picks the verb, payload is the JSON body."""

    def __init__(
        self, *, client: AsyncHttpClient, credentials: CredentialProvider
    ) -> None:
        self._client = client
        self._credentials = credentials

    async def replay(self, operation: QueuedOperation) -> ReplayResponse:
        method = operation.kind.http_method
        try:
            response = await self._client.request(
                method,
                operation.endpoint,
                json=operation.payload,
                bearer_token=self._credentials.access_token(),
            )
        except HttpStatusError as exc:
            raise ReplayFailure(
                message=f"{method} {operation.endpoint} returned HTTP {exc.status_code}",
                retryable=exc.retryable,
                operation_id=operation.id,
                method=method,
                url=exc.url,
                status_code=exc.status_code,
            ) from exc
        except HttpClientError as exc:
            raise ReplayFailure(
                message=f"{method} {operation.endpoint} failed: {exc.message}",
                retryable=exc.retryable,
                operation_id=operation.id,
                method=method,
                url=exc.url,
            ) from exc

        return ReplayResponse(status_code=response.status_code, body=json_or_none(response))
