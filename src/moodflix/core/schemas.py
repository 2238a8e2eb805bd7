from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

WatchlistStatus = Literal["pending", "watching", "completed", "abandoned"]
WatchlistPriority = Literal["low", "medium", "high", "urgent"]


class SignupRequest(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    password: str = ""


class LoginRequest(BaseModel):
    email: str
    password: str


class GoogleLoginRequest(BaseModel):
    id_token: str = Field(min_length=1)


class PublicUser(BaseModel):
    id: str
    name: str
    email: str
    first_name: str
    last_name: str
    avatar: str | None = None
    profile_visibility: str = "public"


class SignupResponse(BaseModel):
    message: str
    user: PublicUser


class TokenResponse(BaseModel):
    token: str
    user: PublicUser


class SessionResponse(BaseModel):
    user: PublicUser | None = None


class AddToWatchlistRequest(BaseModel):
    tmdb_id: int | str | None = None
    # Raw TMDb fields (title, overview, poster_path, genres, ...) plus "source".
    movie_data: dict[str, Any] | None = None


class WatchlistUpdateRequest(BaseModel):
    status: WatchlistStatus | None = None
    user_rating: float | None = Field(default=None, ge=0, le=5)
    notes: str | None = None
    watch_progress: int | None = Field(default=None, ge=0, le=100)
    priority: WatchlistPriority | None = None
    tags: list[str] | None = None
    reminder: dict[str, Any] | None = None
    mood_when_added: str | None = None
    situation_when_added: str | None = None
    time_available: str | None = None


class WatchlistResponse(BaseModel):
    watchlist: list[dict[str, Any]]


class WatchlistItemResponse(BaseModel):
    message: str
    watchlist_item: dict[str, Any]


class WatchlistClearResponse(BaseModel):
    message: str
    deleted_count: int = Field(ge=0)


class WatchlistStatsResponse(BaseModel):
    total: int = Field(ge=0)
    pending: int = Field(ge=0)
    watching: int = Field(ge=0)
    completed: int = Field(ge=0)
    abandoned: int = Field(ge=0)
    completed_percentage: int = Field(ge=0, le=100)


class ActivityRequest(BaseModel):
    type: str = ""
    description: str = ""
    movie_id: str | None = None
    movie_title: str | None = None


class ActivityResponse(BaseModel):
    message: str
    activity: dict[str, Any]


class ActivityListResponse(BaseModel):
    activities: list[dict[str, Any]]


class RecommendRequest(BaseModel):
    mood: str | None = None
    time: str | None = None
    situation: str | None = None


class RecommendResponse(BaseModel):
    success: bool = True
    data: dict[str, Any]
    source: str


class GenreShare(BaseModel):
    genre: str
    percentage: int = Field(ge=0, le=100)


class ProfileStatsResponse(BaseModel):
    user: dict[str, Any]
    stats: dict[str, int]
    recent_moods: list[dict[str, Any]]
    favorite_genres: list[GenreShare]
    recent_activities: list[dict[str, Any]]
