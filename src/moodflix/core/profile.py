from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import pandas as pd

from moodflix.core.activity import list_activities
from moodflix.core.models import User, parse_iso
from moodflix.core.moods import recent_moods
from moodflix.core.store import DocumentStore
from moodflix.core.watchlist import percentage, watchlist_stats

FAVORITE_GENRES_TOP_N = 5
RECENT_LIMIT = 10

# Share of lifetime watch time attributed to the current month.
MONTHLY_WATCH_SHARE = 0.3


@dataclass(frozen=True)
class ProfileStats:
    user: dict[str, Any]
    stats: dict[str, int]
    recent_moods: list[dict[str, Any]]
    favorite_genres: list[dict[str, Any]]
    recent_activities: list[dict[str, Any]]


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


def time_ago(value: str | None, *, now: datetime | None = None) -> str:
    then = parse_iso(value)
    if then is None:
        return "unknown"

    now = now or datetime.now(timezone.utc)
    diff_s = max(0.0, (now - then).total_seconds())
    days = int(diff_s // 86400)

    if days == 0:
        hours = int(diff_s // 3600)
        if hours == 0:
            return f"{int(diff_s // 60)} minutes ago"
        return f"{hours} hours ago"
    if days == 1:
        return "1 day ago"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        weeks = days // 7
        return f"{weeks} week{'s' if weeks > 1 else ''} ago"
    months = days // 30
    return f"{months} month{'s' if months > 1 else ''} ago"


def watchlist_frame(store: DocumentStore, user_id: str) -> pd.DataFrame:
    """One row per watchlist item, joined with the cached movie's genres and runtime."""

    rows = []
    for item in store.find("watchlist", user_id=user_id):
        movie = store.get("movies", item["movie_id"]) or {}
        rows.append(
            {
                "item_id": item["id"],
                "status": item.get("status"),
                "genres": movie.get("genres") or [],
                "runtime": movie.get("runtime") or 0,
                "has_movie": bool(movie),
            }
        )
    return pd.DataFrame(rows, columns=["item_id", "status", "genres", "runtime", "has_movie"])


def favorite_genres(df: pd.DataFrame, *, top_n: int = FAVORITE_GENRES_TOP_N) -> list[dict[str, Any]]:
    with_movie = df[df["has_movie"]] if not df.empty else df
    total = len(with_movie)
    if total == 0:
        return []

    counts = with_movie["genres"].explode().dropna().value_counts()
    out = [{"genre": str(genre), "percentage": percentage(int(n), total)} for genre, n in counts.items()]
    out.sort(key=lambda g: g["percentage"], reverse=True)
    return out[:top_n]


def watch_time(df: pd.DataFrame) -> dict[str, int]:
    completed = df[df["status"] == "completed"] if not df.empty else df
    total = int(completed["runtime"].fillna(0).sum()) if not completed.empty else 0
    monthly = _round_half_up(total * MONTHLY_WATCH_SHARE)
    return {
        "total_watch_time": total,
        "monthly_watch_time": monthly,
        "weekly_watch_time": _round_half_up(monthly / 4),
        "daily_average": _round_half_up(monthly / 30),
    }


def build_profile_stats(
    store: DocumentStore, user: User, *, now: datetime | None = None
) -> ProfileStats:
    if user.id is None:
        raise ValueError("user has not been saved")
    counts = watchlist_stats(store, user.id)
    df = watchlist_frame(store, user.id)

    moods = recent_moods(store, user.id, limit=RECENT_LIMIT)
    activities = list_activities(store, user.id, limit=RECENT_LIMIT)

    return ProfileStats(
        user={"name": user.name, "email": user.email, "member_since": user.created_at},
        stats={
            "movies_watched": counts["completed"],
            "watchlist_count": counts["total"],
            "moods_tracked": store.count("mood_entries", user_id=user.id),
            **watch_time(df),
        },
        recent_moods=[
            {"mood": m["mood"], "date": m["created_at"], "time_ago": time_ago(m["created_at"], now=now)}
            for m in moods
        ],
        favorite_genres=favorite_genres(df),
        recent_activities=[
            {
                "type": a["type"],
                "description": a["description"],
                "movie_title": a.get("movie_title") or "Unknown Movie",
                "date": a["created_at"],
                "time_ago": time_ago(a["created_at"], now=now),
            }
            for a in activities
        ],
    )
