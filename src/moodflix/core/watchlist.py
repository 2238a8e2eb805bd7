from __future__ import annotations

import logging
from typing import Any, Final

from moodflix.core import activity
from moodflix.core.models import (
    WATCHLIST_PRIORITIES,
    WATCHLIST_SOURCES,
    WATCHLIST_STATUSES,
    Movie,
    WatchlistItem,
    map_genres,
    to_document,
    utc_now_iso,
)
from moodflix.core.store import DocumentStore, DuplicateError

logger = logging.getLogger(__name__)

ALLOWED_UPDATES: Final[tuple[str, ...]] = (
    "status",
    "user_rating",
    "notes",
    "watch_progress",
    "priority",
    "tags",
    "reminder",
    "mood_when_added",
    "situation_when_added",
    "time_available",
)

# Movie fields embedded in serialised watchlist items.
_MOVIE_SUMMARY_FIELDS: Final[tuple[str, ...]] = (
    "id",
    "tmdb_id",
    "title",
    "poster_path",
    "overview",
    "runtime",
    "release_date",
    "genres",
    "average_rating",
)


def percentage(part: int, total: int) -> int:
    # Half-up rounding, so 1 of 8 reads as 13%.
    return int(part * 100 / total + 0.5) if total else 0


class WatchlistError(RuntimeError):
    pass


class MovieNotFound(WatchlistError):
    pass


class WatchlistItemNotFound(WatchlistError):
    pass


class AlreadyInWatchlist(WatchlistError):
    def __init__(self, item: dict[str, Any]) -> None:
        super().__init__("Movie already in watchlist")
        self.item = item


def coerce_tmdb_id(value: Any) -> int:
    if isinstance(value, bool) or value is None or value == "":
        raise ValueError("TMDb ID is required")
    try:
        tmdb_id = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError("TMDb ID must be numeric") from e
    if tmdb_id <= 0:
        raise ValueError("TMDb ID must be positive")
    return tmdb_id


def movie_from_tmdb_data(tmdb_id: int, data: dict[str, Any]) -> Movie:
    return Movie(
        tmdb_id=tmdb_id,
        title=data.get("title") or "Unknown Title",
        overview=data.get("overview") or "No overview available",
        poster_path=data.get("poster_path"),
        backdrop_path=data.get("backdrop_path"),
        release_date=data.get("release_date") or None,
        runtime=data.get("runtime") or None,
        genres=map_genres(data.get("genres")),
        average_rating=float(data.get("vote_average") or 0),
        vote_count=int(data.get("vote_count") or 0),
        popularity=float(data.get("popularity") or 0),
    )


def ensure_movie(
    store: DocumentStore, tmdb_id: int, movie_data: dict[str, Any] | None
) -> dict[str, Any] | None:
    """Return the cached Movie document, creating it from ``movie_data`` on first sight."""

    movie = store.find_one("movies", tmdb_id=tmdb_id)
    if movie is not None or not movie_data:
        return movie

    try:
        return store.insert("movies", to_document(movie_from_tmdb_data(tmdb_id, movie_data)))
    except DuplicateError:
        # Another request cached it first.
        return store.find_one("movies", tmdb_id=tmdb_id)


def serialize_item(store: DocumentStore, doc: dict[str, Any]) -> dict[str, Any]:
    movie = store.get("movies", doc["movie_id"]) or {}
    out = dict(doc)
    out["movie"] = {k: movie.get(k) for k in _MOVIE_SUMMARY_FIELDS} if movie else None
    return out


def add_to_watchlist(
    store: DocumentStore,
    user_id: str,
    *,
    tmdb_id: Any,
    movie_data: dict[str, Any] | None = None,
) -> dict[str, Any]:
    tmdb_id = coerce_tmdb_id(tmdb_id)
    movie = ensure_movie(store, tmdb_id, movie_data)
    if movie is None:
        raise MovieNotFound("Movie not found")

    existing = store.find_one("watchlist", user_id=user_id, movie_id=movie["id"])
    if existing is not None:
        raise AlreadyInWatchlist(serialize_item(store, existing))

    source = (movie_data or {}).get("source") or "manual"
    if source not in WATCHLIST_SOURCES:
        source = "manual"

    item = WatchlistItem(user_id=user_id, movie_id=movie["id"], tmdb_id=tmdb_id, source=source)
    try:
        doc = store.insert("watchlist", to_document(item))
    except DuplicateError as e:
        existing = store.find_one("watchlist", user_id=user_id, movie_id=movie["id"])
        raise AlreadyInWatchlist(serialize_item(store, existing or {})) from e

    activity.try_record_activity(
        store,
        user_id,
        type=activity.WATCHLIST_ADD,
        description=activity.added_to_watchlist(movie["title"]),
        movie_id=movie["id"],
        movie_title=movie["title"],
    )
    return serialize_item(store, doc)


def list_watchlist(
    store: DocumentStore,
    user_id: str,
    *,
    status: str | None = None,
    limit: int | None = None,
    skip: int = 0,
) -> list[dict[str, Any]]:
    filters: dict[str, Any] = {"user_id": user_id}
    if status is not None:
        if status not in WATCHLIST_STATUSES:
            raise ValueError(f"Unknown status: {status}")
        filters["status"] = status
    docs = store.find("watchlist", limit=limit, skip=skip, **filters)
    return [serialize_item(store, d) for d in docs]


def _owned_item(store: DocumentStore, user_id: str, item_id: str) -> dict[str, Any]:
    doc = store.get("watchlist", item_id)
    if doc is None or doc.get("user_id") != user_id:
        raise WatchlistItemNotFound("Watchlist item not found")
    return doc


def _validate_updates(updates: dict[str, Any]) -> None:
    status = updates.get("status")
    if status is not None and status not in WATCHLIST_STATUSES:
        raise ValueError(f"Invalid status: {status}")

    priority = updates.get("priority")
    if priority is not None and priority not in WATCHLIST_PRIORITIES:
        raise ValueError(f"Invalid priority: {priority}")

    progress = updates.get("watch_progress")
    if progress is not None and not (0 <= progress <= 100):
        raise ValueError("watch_progress must be between 0 and 100")

    rating = updates.get("user_rating")
    if rating is not None and not (0 <= rating <= 5):
        raise ValueError("user_rating must be between 0 and 5")


def update_item(
    store: DocumentStore, user_id: str, item_id: str, body: dict[str, Any]
) -> dict[str, Any]:
    current = _owned_item(store, user_id, item_id)

    updates = {k: body[k] for k in ALLOWED_UPDATES if k in body and body[k] is not None}
    _validate_updates(updates)

    if updates.get("status") == "completed" and not current.get("completed_at"):
        updates["completed_at"] = utc_now_iso()
    if updates.get("status") == "completed" and current.get("status") != "completed":
        # Lets a later un-complete restore where the item was.
        updates["status_before_completed"] = current.get("status") or "pending"
    updates["updated_at"] = utc_now_iso()

    doc = store.update("watchlist", item_id, updates)
    if doc is None:
        raise WatchlistItemNotFound("Watchlist item not found")

    out = serialize_item(store, doc)
    title = (out["movie"] or {}).get("title") or "Unknown Movie"
    if updates.get("status") == "completed" and current.get("status") != "completed":
        activity.try_record_activity(
            store,
            user_id,
            type=activity.MOVIE_WATCHED,
            description=activity.watched_movie(title),
            movie_id=doc["movie_id"],
            movie_title=title,
        )
    if "user_rating" in updates:
        activity.try_record_activity(
            store,
            user_id,
            type=activity.MOVIE_RATED,
            description=activity.rated_movie(title, updates["user_rating"]),
            movie_id=doc["movie_id"],
            movie_title=title,
        )
    return out


def remove_item(store: DocumentStore, user_id: str, item_id: str) -> None:
    doc = _owned_item(store, user_id, item_id)
    store.delete("watchlist", item_id)

    movie = store.get("movies", doc["movie_id"]) or {}
    activity.try_record_activity(
        store,
        user_id,
        type=activity.WATCHLIST_REMOVE,
        description=activity.removed_from_watchlist(movie.get("title") or "Unknown Movie"),
        movie_id=doc["movie_id"],
        movie_title=movie.get("title"),
    )


def clear_watchlist(store: DocumentStore, user_id: str) -> int:
    deleted = store.delete_many("watchlist", user_id=user_id)
    logger.info("Deleted %d watchlist items for user %s", deleted, user_id)
    return deleted


def watchlist_stats(store: DocumentStore, user_id: str) -> dict[str, int]:
    counts = {status: store.count("watchlist", user_id=user_id, status=status) for status in WATCHLIST_STATUSES}
    total = sum(counts.values())
    completed_pct = percentage(counts["completed"], total)
    return {"total": total, **counts, "completed_percentage": completed_pct}
