from __future__ import annotations

import logging
from typing import Any, Final

from moodflix.core.models import Activity, to_document
from moodflix.core.store import DocumentStore

logger = logging.getLogger(__name__)

WATCHLIST_ADD: Final = "watchlist"
WATCHLIST_REMOVE: Final = "watchlist_remove"
MOVIE_WATCHED: Final = "watched"
MOVIE_RATED: Final = "rated"
MOOD_TRACKED: Final = "mood"
RECOMMENDATION_GOT: Final = "recommendation"


def added_to_watchlist(title: str) -> str:
    return f'Added "{title}" to watchlist'


def removed_from_watchlist(title: str) -> str:
    return f'Removed "{title}" from watchlist'


def watched_movie(title: str) -> str:
    return f'Watched "{title}"'


def rated_movie(title: str, rating: float) -> str:
    return f'Rated "{title}" {rating:g}/5 stars'


def tracked_mood(mood: str) -> str:
    return f'Tracked mood as "{mood}"'


def got_recommendations(mood: str) -> str:
    return f'Got recommendations for "{mood}" mood'


def record_activity(
    store: DocumentStore,
    user_id: str,
    *,
    type: str,
    description: str,
    movie_id: str | None = None,
    movie_title: str | None = None,
) -> dict[str, Any]:
    if not type or not description:
        raise ValueError("Type and description are required")

    if movie_id and not movie_title:
        movie = store.get("movies", movie_id)
        movie_title = movie.get("title") if movie else None
        if movie is None:
            movie_id = None

    activity = Activity(
        user_id=user_id,
        type=type,
        description=description,
        movie_id=movie_id,
        movie_title=movie_title or "Unknown Movie",
    )
    return store.insert("activities", to_document(activity))


def try_record_activity(store: DocumentStore, user_id: str, **kwargs: Any) -> None:
    """Best-effort variant used as a side effect of other operations."""

    try:
        record_activity(store, user_id, **kwargs)
    except Exception:
        logger.exception("Error tracking activity for user %s", user_id)


def list_activities(
    store: DocumentStore, user_id: str, *, limit: int = 20, skip: int = 0
) -> list[dict[str, Any]]:
    return store.find("activities", user_id=user_id, limit=limit, skip=skip)
