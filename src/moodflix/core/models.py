from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Final, TypeVar

WATCHLIST_STATUSES: Final[tuple[str, ...]] = ("pending", "watching", "completed", "abandoned")
WATCHLIST_PRIORITIES: Final[tuple[str, ...]] = ("low", "medium", "high", "urgent")
WATCHLIST_SOURCES: Final[tuple[str, ...]] = (
    "manual",
    "recommendation",
    "friend",
    "search",
    "trending",
    "popular",
    "migration",
)

APP_GENRES: Final[tuple[str, ...]] = (
    "Action",
    "Adventure",
    "Animation",
    "Comedy",
    "Crime",
    "Documentary",
    "Drama",
    "Family",
    "Fantasy",
    "Horror",
    "Mystery",
    "Romance",
    "Sci-Fi",
    "Thriller",
    "War",
    "Western",
)

# TMDb genre names that differ from the app vocabulary.
_GENRE_ALIASES: Final[dict[str, str]] = {"Science Fiction": "Sci-Fi"}

MAX_MOVIE_GENRES = 3
DEFAULT_MOVIE_GENRE = "Drama"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def map_genres(raw: Any) -> list[str]:
    """Map TMDb genres (names or ``{"name": ...}`` dicts) onto APP_GENRES."""

    names: list[str] = []
    for g in raw if isinstance(raw, list) else []:
        if isinstance(g, str):
            names.append(g)
        elif isinstance(g, dict) and isinstance(g.get("name"), str):
            names.append(g["name"])

    mapped: list[str] = []
    for name in names:
        name = _GENRE_ALIASES.get(name.strip(), name.strip())
        if name in APP_GENRES and name not in mapped:
            mapped.append(name)
    return mapped[:MAX_MOVIE_GENRES] or [DEFAULT_MOVIE_GENRE]


@dataclass
class User:
    email: str
    first_name: str
    last_name: str
    password_hash: str | None = None
    google_id: str | None = None
    avatar: str | None = None
    bio: str | None = None
    favorite_genres: list[str] = field(default_factory=list)
    preferred_languages: list[str] = field(default_factory=list)
    content_rating: str = "PG-13"
    profile_visibility: str = "public"
    activity_visibility: str = "public"
    subscription: str = "free"
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    last_active: str = field(default_factory=utc_now_iso)
    id: str | None = None

    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or "User"

    def public_profile(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "avatar": self.avatar,
            "profile_visibility": self.profile_visibility,
        }


@dataclass
class Movie:
    tmdb_id: int
    title: str = "Unknown Title"
    overview: str = "No overview available"
    poster_path: str | None = None
    backdrop_path: str | None = None
    release_date: str | None = None
    runtime: int | None = None
    genres: list[str] = field(default_factory=lambda: [DEFAULT_MOVIE_GENRE])
    average_rating: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    created_at: str = field(default_factory=utc_now_iso)
    id: str | None = None


@dataclass
class WatchlistItem:
    user_id: str
    movie_id: str
    tmdb_id: int
    status: str = "pending"
    priority: str = "medium"
    source: str = "manual"
    user_rating: float | None = None
    notes: str | None = None
    watch_progress: int = 0
    tags: list[str] = field(default_factory=list)
    reminder: dict[str, Any] | None = None
    mood_when_added: str | None = None
    situation_when_added: str | None = None
    time_available: str | None = None
    completed_at: str | None = None
    status_before_completed: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    updated_at: str = field(default_factory=utc_now_iso)
    id: str | None = None


@dataclass
class MoodEntry:
    user_id: str
    mood: str
    situation: str
    time_available: str
    created_at: str = field(default_factory=utc_now_iso)
    id: str | None = None


@dataclass
class Activity:
    user_id: str
    type: str
    description: str
    movie_id: str | None = None
    movie_title: str | None = None
    created_at: str = field(default_factory=utc_now_iso)
    id: str | None = None


@dataclass
class Recommendation:
    mood: str
    time_available: str
    situation: str
    user_id: str | None = None
    titles: list[str] = field(default_factory=list)
    overall_analysis: str | None = None
    source: str = "openrouter"
    created_at: str = field(default_factory=utc_now_iso)
    id: str | None = None


RecordT = TypeVar("RecordT")


def to_document(record: Any) -> dict[str, Any]:
    doc = asdict(record)
    if doc.get("id") is None:
        doc.pop("id", None)
    return doc


def from_document(cls: type[RecordT], doc: dict[str, Any]) -> RecordT:
    known = {f.name for f in fields(cls)}  # type: ignore[arg-type]
    return cls(**{k: v for k, v in doc.items() if k in known})
