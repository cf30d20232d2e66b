"""Remote source of current user data."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol
from urllib.parse import quote

from packages.stash_shared.clock import Clock, SystemClock, parse_timestamp
from packages.stash_shared.errors import RemoteFetchFailure
from packages.stash_shared.http import AsyncHttpClient, HttpClientError, HttpStatusError
from resources.adapters.session import CredentialProvider
from services.action.offline_data.domain import RemoteUserSnapshot


class UserSource(Protocol):
    """Fetch the authoritative copy of one user's data."""

    async def fetch_user(self, user_id: str) -> RemoteUserSnapshot | None:
        """Return current data, or ``None`` when the remote has none."""


class HttpUserSource:
    """``UserSource`` backed by ``GET <user_fetch_path>`` on the remote API.

    Responses shaped as ``{"data": {...}}`` are unwrapped. A 404 or a body
    without an object payload yields ``None``; other failures raise
    ``RemoteFetchFailure``.
    """

    def __init__(
        self,
        *,
        client: AsyncHttpClient,
        credentials: CredentialProvider,
        fetch_path: str = "/users/{user_id}",
        clock: Clock | None = None,
    ) -> None:
        self._client = client
        self._credentials = credentials
        self._fetch_path = fetch_path
        self._clock = clock or SystemClock()

    async def fetch_user(self, user_id: str) -> RemoteUserSnapshot | None:
        url = self._fetch_path.format(user_id=quote(user_id, safe=""))
        try:
            body = await self._client.get_json(
                url, bearer_token=self._credentials.access_token()
            )
        except HttpStatusError as exc:
            if exc.status_code == 404:
                return None
            raise RemoteFetchFailure(
                message=f"fetching user {user_id!r} failed with HTTP {exc.status_code}",
                retryable=exc.retryable,
                user_id=user_id,
            ) from exc
        except HttpClientError as exc:
            raise RemoteFetchFailure(
                message=f"fetching user {user_id!r} failed: {exc}",
                retryable=exc.retryable,
                user_id=user_id,
            ) from exc

        if isinstance(body, Mapping) and "data" in body:
            body = body["data"]
        if not isinstance(body, Mapping) or not body:
            return None
        data = dict(body)
        return RemoteUserSnapshot(
            user_id=user_id,
            data=data,
            updated_at=parse_timestamp(data.get("updated_at")),
            fetched_at=self._clock.now(),
        )
