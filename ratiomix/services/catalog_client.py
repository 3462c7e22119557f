from __future__ import annotations

import asyncio
import logging
import random
from typing import Any, Sequence

import httpx

from ratiomix.core.config import settings


class CatalogError(RuntimeError):
    """The music catalog failed or returned something unusable."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class CatalogAuthError(CatalogError):
    """The caller's token was rejected by the catalog."""


def normalize_catalog_track(raw: dict[str, Any] | None) -> dict[str, Any] | None:
    """
    Flatten one catalog track object into the snapshot shape:
      {track_id, uri, name, artist_name, album_name, duration_ms, popularity, release_date}
    Returns None for entries that cannot be played (null, local files, missing id).
    """
    if not raw or not isinstance(raw, dict):
        return None
    track_id = raw.get("id")
    if not track_id:
        return None
    artists = raw.get("artists") or []
    album = raw.get("album") or {}
    popularity = raw.get("popularity")
    return {
        "track_id": str(track_id),
        "uri": raw.get("uri"),
        "name": raw.get("name") or "",
        "artist_name": ", ".join(a.get("name", "") for a in artists if isinstance(a, dict) and a.get("name")),
        "album_name": album.get("name") or "",
        "duration_ms": int(raw.get("duration_ms") or 0),
        "popularity": int(popularity) if isinstance(popularity, (int, float)) else None,
        "release_date": album.get("release_date"),
    }


class CatalogClient:
    """
    Async client for the remote music catalog.

    Every request carries the caller's bearer token. 429 and 5xx responses are
    retried with exponential backoff; Retry-After wins when the catalog sends it.
    """

    RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})
    MAX_BACKOFF_S = 16.0

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str | None = None,
        page_size: int | None = None,
        max_items_per_request: int | None = None,
        timeout_s: float | None = None,
        max_retries: int | None = None,
        retry_backoff_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.access_token = access_token
        self.base_url = (base_url or settings.CATALOG_API_BASE_URL).rstrip("/")
        self.page_size = page_size or settings.CATALOG_PAGE_SIZE
        self.max_items_per_request = max_items_per_request or settings.CATALOG_MAX_ITEMS_PER_REQUEST
        self.timeout_s = timeout_s if timeout_s is not None else settings.CATALOG_TIMEOUT_S
        self.max_retries = max_retries if max_retries is not None else settings.CATALOG_MAX_RETRIES
        self.retry_backoff_s = retry_backoff_s if retry_backoff_s is not None else settings.CATALOG_RETRY_BACKOFF_S
        self.transport = transport
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    # ---------- public API ----------

    async def fetch_playlist_tracks(self, playlist_id: str) -> list[dict[str, Any]]:
        """Every playable track of a playlist, in playlist order."""
        tracks: list[dict[str, Any]] = []
        offset = 0
        async with self._client() as client:
            while True:
                data = await self._request(
                    client,
                    "GET",
                    f"/playlists/{playlist_id}/tracks",
                    params={"offset": offset, "limit": self.page_size},
                )
                items = data.get("items") or []
                for item in items:
                    tr = normalize_catalog_track((item or {}).get("track"))
                    if tr is not None:
                        tracks.append(tr)
                if len(items) < self.page_size:
                    break
                offset += self.page_size

        self.logger.info("Fetched %d tracks from playlist %s", len(tracks), playlist_id)
        return tracks

    async def get_playlist(self, playlist_id: str) -> dict[str, Any]:
        async with self._client() as client:
            data = await self._request(client, "GET", f"/playlists/{playlist_id}")
        return {"id": data.get("id") or playlist_id, "name": data.get("name") or ""}

    async def create_playlist(
        self,
        *,
        user_id: str,
        name: str,
        description: str = "",
        public: bool = False,
    ) -> str:
        async with self._client() as client:
            data = await self._request(
                client,
                "POST",
                f"/users/{user_id}/playlists",
                json={"name": name, "description": description, "public": public},
            )
        playlist_id = data.get("id")
        if not playlist_id:
            raise CatalogError("catalog did not return a playlist id")
        self.logger.info("Created playlist %s (%s) for user %s", playlist_id, name, user_id)
        return str(playlist_id)

    async def add_tracks(self, playlist_id: str, uris: Sequence[str]) -> int:
        """Append uris in order, chunked to the catalog's per-request limit. Returns the number sent."""
        sent = 0
        async with self._client() as client:
            for start in range(0, len(uris), self.max_items_per_request):
                chunk = list(uris[start:start + self.max_items_per_request])
                await self._request(client, "POST", f"/playlists/{playlist_id}/tracks", json={"uris": chunk})
                sent += len(chunk)
        self.logger.info("Added %d tracks to playlist %s", sent, playlist_id)
        return sent

    # ---------- internals ----------

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            headers={"Authorization": f"Bearer {self.access_token}", "Accept": "application/json"},
            transport=self.transport,
        )

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> dict[str, Any]:
        backoff = self.retry_backoff_s
        attempt = 0
        while True:
            try:
                resp = await client.request(method, path, params=params, json=json)
            except httpx.HTTPError as e:
                if attempt >= self.max_retries:
                    raise CatalogError(f"{method} {path} failed: {e}") from e
                self.logger.warning("Catalog %s %s transport error (%s); retrying", method, path, e)
                await self._sleep(backoff)
                backoff = min(backoff * 2, self.MAX_BACKOFF_S)
                attempt += 1
                continue

            if 200 <= resp.status_code < 300:
                if not resp.content:
                    return {}
                try:
                    data = resp.json()
                except ValueError as e:
                    raise CatalogError(f"{method} {path} returned invalid JSON", status_code=resp.status_code) from e
                return data if isinstance(data, dict) else {"items": data}

            if resp.status_code in (401, 403):
                raise CatalogAuthError(
                    f"{method} {path} rejected the access token ({resp.status_code})",
                    status_code=resp.status_code,
                )

            if resp.status_code in self.RETRY_STATUSES and attempt < self.max_retries:
                delay = self._retry_after(resp) if resp.status_code == 429 else None
                if delay is None:
                    delay = backoff + random.random() * backoff
                self.logger.warning(
                    "Catalog %s %s returned %d; retry %d/%d in %.2fs",
                    method,
                    path,
                    resp.status_code,
                    attempt + 1,
                    self.max_retries,
                    delay,
                )
                await self._sleep(delay)
                backoff = min(backoff * 2, self.MAX_BACKOFF_S)
                attempt += 1
                continue

            raise CatalogError(
                f"{method} {path} failed with status {resp.status_code}",
                status_code=resp.status_code,
            )

    @staticmethod
    def _retry_after(resp: httpx.Response) -> float | None:
        value = resp.headers.get("Retry-After")
        if value is None:
            return None
        try:
            return max(0.0, float(value))
        except ValueError:
            return None

    async def _sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
