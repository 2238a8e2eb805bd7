from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from moodflix.client.migration import MigrationResult, migrate_local_watchlist
from moodflix.client.storage import (
    WATCHLIST_STORAGE_KEY,
    StoragePort,
    read_local_items,
    write_local_items,
)
from moodflix.core.models import WATCHLIST_STATUSES, utc_now_iso
from moodflix.core.watchlist import percentage

logger = logging.getLogger(__name__)

LOCAL_EXPORT_VERSION = "1.0"
REMOTE_EXPORT_VERSION = "2.0"

_WATCH_STATE_KEYS = ("status", "status_before_completed", "watched_at")


class WatchlistBackend(Protocol):
    def get_watchlist(self) -> list[dict[str, Any]]: ...

    def add_item(self, movie: dict[str, Any]) -> bool: ...

    def remove_item(self, tmdb_id: int | str) -> bool: ...

    def toggle_watched(self, tmdb_id: int | str) -> bool: ...

    def is_in_watchlist(self, tmdb_id: int | str) -> bool: ...

    def get_stats(self) -> dict[str, int]: ...

    def clear(self) -> bool: ...

    def export(self) -> dict[str, Any]: ...


def catalog_id(movie: dict[str, Any]) -> str | None:
    """The movie's TMDb id as a string, read from ``tmdb_id`` or else ``id``."""

    value = movie.get("tmdb_id")
    if value is None or value == "":
        value = movie.get("id")
    if value is None or value == "":
        return None
    return str(value)


def _json_object(resp: httpx.Response) -> dict[str, Any]:
    """The response body as a dict; an empty dict when it is not a JSON object."""

    try:
        body = resp.json()
    except ValueError:
        logger.error("%s %s returned a non-JSON body", resp.request.method, resp.request.url)
        return {}
    return body if isinstance(body, dict) else {}


def empty_stats() -> dict[str, int]:
    return {"total": 0, **{s: 0 for s in WATCHLIST_STATUSES}, "completed_percentage": 0}


def _stats_for(items: list[dict[str, Any]]) -> dict[str, int]:
    stats = empty_stats()
    for item in items:
        status = item.get("status") or "pending"
        if status in WATCHLIST_STATUSES:
            stats[status] += 1
    stats["total"] = len(items)
    stats["completed_percentage"] = percentage(stats["completed"], stats["total"])
    return stats


class LocalWatchlist:
    """Watchlist kept on the device for anonymous users."""

    def __init__(self, storage: StoragePort) -> None:
        self._storage = storage

    def get_watchlist(self) -> list[dict[str, Any]]:
        return read_local_items(self._storage)

    def add_item(self, movie: dict[str, Any]) -> bool:
        key = catalog_id(movie)
        if key is None:
            logger.warning("Refusing to add a movie without a catalog id")
            return False

        items = self.get_watchlist()
        now = utc_now_iso()
        for item in items:
            if catalog_id(item) == key:
                # Re-adding refreshes movie details; watch state stays put.
                item.update({k: v for k, v in movie.items() if k not in _WATCH_STATE_KEYS})
                item["added_at"] = now
                break
        else:
            items.append(
                {
                    **movie,
                    "tmdb_id": movie.get("tmdb_id") or movie.get("id"),
                    "status": "pending",
                    "added_at": now,
                    "watched_at": None,
                }
            )
        write_local_items(self._storage, items)
        return True

    def remove_item(self, tmdb_id: int | str) -> bool:
        items = self.get_watchlist()
        kept = [i for i in items if catalog_id(i) != str(tmdb_id)]
        write_local_items(self._storage, kept)
        return True

    def toggle_watched(self, tmdb_id: int | str) -> bool:
        items = self.get_watchlist()
        for item in items:
            if catalog_id(item) != str(tmdb_id):
                continue
            if item.get("status") == "completed":
                item["status"] = item.pop("status_before_completed", None) or "pending"
                item["watched_at"] = None
            else:
                item["status_before_completed"] = item.get("status") or "pending"
                item["status"] = "completed"
                item["watched_at"] = utc_now_iso()
            write_local_items(self._storage, items)
            return True
        return False

    def is_in_watchlist(self, tmdb_id: int | str) -> bool:
        return any(catalog_id(i) == str(tmdb_id) for i in self.get_watchlist())

    def get_stats(self) -> dict[str, int]:
        return _stats_for(self.get_watchlist())

    def clear(self) -> bool:
        self._storage.remove(WATCHLIST_STORAGE_KEY)
        return True

    def export(self) -> dict[str, Any]:
        items = self.get_watchlist()
        return {
            "watchlist": items,
            "stats": _stats_for(items),
            "exported_at": utc_now_iso(),
            "version": LOCAL_EXPORT_VERSION,
        }


class RemoteWatchlist:
    """Watchlist backed by the HTTP API for signed-in users.

    ``client`` is any ``httpx.Client`` rooted at the API (FastAPI's
    ``TestClient`` works too). Failures are logged and reported as ``False``
    or empty results.
    """

    def __init__(self, client: httpx.Client, token: str) -> None:
        self._client = client
        self._headers = {"Authorization": f"Bearer {token}"}

    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response | None:
        try:
            return self._client.request(method, url, headers=self._headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, url, e)
            return None

    def get_watchlist(self) -> list[dict[str, Any]]:
        resp = self._request("GET", "/api/watchlist")
        if resp is None or resp.status_code != 200:
            return []
        return list(_json_object(resp).get("watchlist") or [])

    def _find(self, tmdb_id: int | str) -> dict[str, Any] | None:
        for item in self.get_watchlist():
            if catalog_id(item) == str(tmdb_id):
                return item
        return None

    def add_item(self, movie: dict[str, Any]) -> bool:
        key = catalog_id(movie)
        if key is None:
            logger.warning("Refusing to add a movie without a catalog id")
            return False

        resp = self._request("POST", "/api/watchlist", json={"tmdb_id": key, "movie_data": movie})
        if resp is None:
            return False
        if resp.status_code == 409:
            return True
        if resp.status_code >= 400:
            logger.warning("Adding movie %s failed with HTTP %d", key, resp.status_code)
            return False
        return True

    def remove_item(self, tmdb_id: int | str) -> bool:
        item = self._find(tmdb_id)
        if item is None:
            return False
        resp = self._request("DELETE", f"/api/watchlist/{item['id']}")
        return resp is not None and resp.status_code == 200

    def toggle_watched(self, tmdb_id: int | str) -> bool:
        item = self._find(tmdb_id)
        if item is None:
            return False
        if item.get("status") == "completed":
            status = item.get("status_before_completed") or "pending"
        else:
            status = "completed"
        resp = self._request("PATCH", f"/api/watchlist/{item['id']}", json={"status": status})
        return resp is not None and resp.status_code == 200

    def is_in_watchlist(self, tmdb_id: int | str) -> bool:
        return self._find(tmdb_id) is not None

    def get_stats(self) -> dict[str, int]:
        resp = self._request("GET", "/api/watchlist/stats")
        if resp is None or resp.status_code != 200:
            return empty_stats()
        return _json_object(resp) or empty_stats()

    def clear(self) -> bool:
        resp = self._request("DELETE", "/api/watchlist")
        return resp is not None and resp.status_code == 200

    def export(self) -> dict[str, Any]:
        return {
            "watchlist": self.get_watchlist(),
            "stats": self.get_stats(),
            "exported_at": utc_now_iso(),
            "version": REMOTE_EXPORT_VERSION,
        }


def is_authenticated(client: httpx.Client | None, token: str | None) -> bool:
    if client is None or not token:
        return False
    try:
        resp = client.get("/api/auth/session", headers={"Authorization": f"Bearer {token}"})
    except httpx.HTTPError as e:
        logger.error("Session check failed: %s", e)
        return False
    return resp.status_code == 200 and bool(_json_object(resp).get("user"))


def open_watchlist(
    storage: StoragePort,
    client: httpx.Client | None = None,
    token: str | None = None,
) -> WatchlistBackend:
    """Pick the backend for this session: remote when signed in, local otherwise."""

    if client is not None and token and is_authenticated(client, token):
        return RemoteWatchlist(client, token)
    return LocalWatchlist(storage)


class WatchlistSession:
    def __init__(
        self,
        storage: StoragePort,
        client: httpx.Client | None = None,
        token: str | None = None,
    ) -> None:
        self._storage = storage
        self.backend = open_watchlist(storage, client, token)

    @property
    def is_remote(self) -> bool:
        return isinstance(self.backend, RemoteWatchlist)

    def sign_in(self, client: httpx.Client, token: str) -> MigrationResult | None:
        """Switch to the server watchlist and move any local items across.

        Returns None when the token is not accepted; the session stays local.
        """

        if not is_authenticated(client, token):
            logger.warning("Sign-in token rejected; staying on the local watchlist")
            return None
        remote = RemoteWatchlist(client, token)
        self.backend = remote
        return migrate_local_watchlist(self._storage, remote)

    def sign_out(self) -> None:
        self.backend = LocalWatchlist(self._storage)
