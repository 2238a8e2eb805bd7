# ruff: noqa: E501

from __future__ import annotations

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from moodflix.api.session import get_store, issue_token, optional_user, require_user
from moodflix.core import tmdb
from moodflix.core.activity import list_activities, record_activity
from moodflix.core.llm import LlmError, check_connection
from moodflix.core.models import User
from moodflix.core.moods import recommendation_history
from moodflix.core.profile import build_profile_stats
from moodflix.core.recommender import AI_SOURCE, recommend_movies
from moodflix.core.schemas import (
    ActivityListResponse,
    ActivityRequest,
    ActivityResponse,
    AddToWatchlistRequest,
    GoogleLoginRequest,
    LoginRequest,
    ProfileStatsResponse,
    PublicUser,
    RecommendRequest,
    RecommendResponse,
    SessionResponse,
    SignupRequest,
    SignupResponse,
    TokenResponse,
    WatchlistClearResponse,
    WatchlistItemResponse,
    WatchlistResponse,
    WatchlistStatsResponse,
    WatchlistUpdateRequest,
)
from moodflix.core.store import DocumentStore
from moodflix.core.users import (
    AuthError,
    InvalidCredentials,
    UserExistsError,
    authenticate,
    register_user,
    upsert_google_user,
    verify_google_id_token,
)
from moodflix.core.watchlist import (
    AlreadyInWatchlist,
    MovieNotFound,
    WatchlistItemNotFound,
    add_to_watchlist,
    clear_watchlist,
    list_watchlist,
    remove_item,
    update_item,
    watchlist_stats,
)

logger = logging.getLogger(__name__)

router = APIRouter()

CurrentUser = Annotated[User, Depends(require_user)]
MaybeUser = Annotated[Optional[User], Depends(optional_user)]
Store = Annotated[DocumentStore, Depends(get_store)]


def _public(user: User) -> PublicUser:
    return PublicUser(**user.public_profile())


@router.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


# --- auth -------------------------------------------------------------------


@router.post("/api/auth/signup", response_model=SignupResponse, status_code=201)
def signup(req: SignupRequest, store: Store) -> SignupResponse:
    try:
        user = register_user(
            store,
            first_name=req.first_name,
            last_name=req.last_name,
            email=req.email,
            password=req.password,
        )
    except UserExistsError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return SignupResponse(message="User registered successfully", user=_public(user))


@router.post("/api/auth/login", response_model=TokenResponse)
def login(req: LoginRequest, store: Store) -> TokenResponse:
    try:
        user = authenticate(store, email=req.email, password=req.password)
    except InvalidCredentials as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    return TokenResponse(token=issue_token(user), user=_public(user))


@router.post("/api/auth/oauth/google", response_model=TokenResponse)
def google_login(req: GoogleLoginRequest, store: Store) -> TokenResponse:
    try:
        claims = verify_google_id_token(req.id_token)
    except InvalidCredentials as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except AuthError as e:
        logger.error("Google sign-in failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e)) from e

    user = upsert_google_user(store, claims)
    return TokenResponse(token=issue_token(user), user=_public(user))


@router.get("/api/auth/session", response_model=SessionResponse)
def session(user: MaybeUser) -> SessionResponse:
    return SessionResponse(user=_public(user) if user else None)


# --- watchlist --------------------------------------------------------------


@router.get("/api/watchlist", response_model=WatchlistResponse)
def get_watchlist(
    user: CurrentUser,
    store: Store,
    status: str | None = Query(default=None, pattern="^(pending|watching|completed|abandoned)$"),
    limit: int | None = Query(default=None, ge=1, le=500),
    skip: int = Query(default=0, ge=0),
) -> WatchlistResponse:
    items = list_watchlist(store, user.id, status=status, limit=limit, skip=skip)
    return WatchlistResponse(watchlist=items)


@router.post("/api/watchlist", response_model=WatchlistItemResponse)
def post_watchlist(req: AddToWatchlistRequest, user: CurrentUser, store: Store):
    try:
        item = add_to_watchlist(store, user.id, tmdb_id=req.tmdb_id, movie_data=req.movie_data)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except MovieNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except AlreadyInWatchlist as e:
        # The existing entry travels with the conflict so clients can reconcile.
        return JSONResponse(status_code=409, content={"error": str(e), "watchlist_item": e.item})

    return WatchlistItemResponse(message="Movie added to watchlist", watchlist_item=item)


@router.delete("/api/watchlist", response_model=WatchlistClearResponse)
def delete_watchlist(user: CurrentUser, store: Store) -> WatchlistClearResponse:
    deleted = clear_watchlist(store, user.id)
    return WatchlistClearResponse(message="Watchlist cleared successfully", deleted_count=deleted)


@router.get("/api/watchlist/stats", response_model=WatchlistStatsResponse)
def get_watchlist_stats(user: CurrentUser, store: Store) -> WatchlistStatsResponse:
    return WatchlistStatsResponse(**watchlist_stats(store, user.id))


@router.patch("/api/watchlist/{item_id}", response_model=WatchlistItemResponse)
def patch_watchlist_item(
    item_id: str, req: WatchlistUpdateRequest, user: CurrentUser, store: Store
) -> WatchlistItemResponse:
    try:
        item = update_item(store, user.id, item_id, req.model_dump(exclude_none=True))
    except WatchlistItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return WatchlistItemResponse(message="Watchlist item updated", watchlist_item=item)


@router.delete("/api/watchlist/{item_id}")
def delete_watchlist_item(item_id: str, user: CurrentUser, store: Store) -> dict[str, str]:
    try:
        remove_item(store, user.id, item_id)
    except WatchlistItemNotFound as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return {"message": "Movie removed from watchlist"}


# --- activity & profile -----------------------------------------------------


@router.post("/api/activity", response_model=ActivityResponse)
def post_activity(req: ActivityRequest, user: CurrentUser, store: Store) -> ActivityResponse:
    try:
        doc = record_activity(
            store,
            user.id,
            type=req.type,
            description=req.description,
            movie_id=req.movie_id,
            movie_title=req.movie_title,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return ActivityResponse(message="Activity created successfully", activity=doc)


@router.get("/api/activity", response_model=ActivityListResponse)
def get_activity(
    user: CurrentUser,
    store: Store,
    limit: int = Query(default=20, ge=1, le=100),
    skip: int = Query(default=0, ge=0),
) -> ActivityListResponse:
    return ActivityListResponse(activities=list_activities(store, user.id, limit=limit, skip=skip))


@router.get("/api/profile/stats", response_model=ProfileStatsResponse)
def profile_stats(user: CurrentUser, store: Store) -> ProfileStatsResponse:
    stats = build_profile_stats(store, user)
    return ProfileStatsResponse(
        user=stats.user,
        stats=stats.stats,
        recent_moods=stats.recent_moods,
        favorite_genres=stats.favorite_genres,
        recent_activities=stats.recent_activities,
    )


# --- third-party proxies ----------------------------------------------------


def _recommend(mood: str | None, time: str | None, situation: str | None, request: Request, user: User | None) -> RecommendResponse:
    if not mood or not time or not situation:
        raise HTTPException(status_code=400, detail="Please provide mood, time, and situation")

    try:
        data = recommend_movies(
            mood,
            time,
            situation,
            store=get_store(request),
            user_id=user.id if user else None,
        )
    except LlmError as e:
        logger.error("Recommendation request failed: %s", e)
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e

    return RecommendResponse(success=True, data=data, source=AI_SOURCE)


@router.post("/api/recommendations", response_model=RecommendResponse)
def post_recommendations(req: RecommendRequest, request: Request, user: MaybeUser) -> RecommendResponse:
    return _recommend(req.mood, req.time, req.situation, request, user)


@router.get("/api/recommendations", response_model=RecommendResponse)
def get_recommendations(
    request: Request,
    user: MaybeUser,
    mood: str | None = None,
    time: str | None = None,
    situation: str | None = None,
) -> RecommendResponse:
    return _recommend(mood, time, situation, request, user)


@router.get("/api/recommendations/health")
def recommendations_health() -> dict[str, Any]:
    try:
        reply = check_connection()
    except LlmError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from e
    return {"success": True, "message": "OpenRouter API is working!", "test_response": reply}


@router.get("/api/recommendations/history")
def get_recommendation_history(
    user: CurrentUser, store: Store, limit: int = Query(default=20, ge=1, le=100)
) -> dict[str, list]:
    return {"recommendations": recommendation_history(store, user.id, limit=limit)}


def _tmdb_call(what: str, fn, *args, **kwargs) -> dict:
    try:
        return fn(*args, **kwargs)
    except tmdb.TmdbNotConfigured as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    except tmdb.TmdbError as e:
        logger.error("%s failed: %s", what, e)
        raise HTTPException(status_code=502, detail=f"Failed to fetch {what}") from e


@router.get("/api/movies/search")
def movies_search(q: str | None = None, page: int = Query(default=1, ge=1, le=500)) -> dict:
    if not q or not q.strip():
        raise HTTPException(status_code=400, detail='Query parameter "q" is required')
    return tmdb.transform_search_results(_tmdb_call("movie search results", tmdb.search_movies, q, page))


@router.get("/api/movies/popular")
def movies_popular(page: int = Query(default=1, ge=1, le=500)) -> dict:
    return tmdb.transform_search_results(_tmdb_call("popular movies", tmdb.get_popular_movies, page))


@router.get("/api/movies/mood")
def movies_by_mood(mood: str | None = None, page: int = Query(default=1, ge=1, le=500)) -> dict:
    if not mood or not mood.strip():
        raise HTTPException(status_code=400, detail="Mood parameter is required")
    return tmdb.transform_search_results(_tmdb_call("movies by mood", tmdb.get_movies_by_mood, mood, page))


@router.get("/api/movies/top-rated")
def movies_top_rated(page: int = Query(default=1, ge=1, le=500)) -> dict:
    return tmdb.transform_search_results(_tmdb_call("top rated movies", tmdb.get_top_rated_movies, page))


@router.get("/api/movies/genres")
def movie_genres() -> dict:
    return _tmdb_call("genres", tmdb.get_genres)


@router.get("/api/movies/genre/{genre_id}")
def movies_by_genre(genre_id: int, page: int = Query(default=1, ge=1, le=500)) -> dict:
    return tmdb.transform_search_results(_tmdb_call("movies by genre", tmdb.get_movies_by_genre, genre_id, page))


@router.get("/api/movies/{movie_id}/recommendations")
def similar_movies(movie_id: int, page: int = Query(default=1, ge=1, le=500)) -> dict:
    return tmdb.transform_search_results(
        _tmdb_call("movie recommendations", tmdb.get_movie_recommendations, movie_id, page)
    )


# Registered last so the fixed /api/movies/... paths above take precedence.
@router.get("/api/movies/{movie_id}")
def movie_details(movie_id: str) -> dict:
    if not movie_id.isdigit() or int(movie_id) <= 0:
        raise HTTPException(status_code=400, detail="Valid movie ID is required")
    return tmdb.transform_movie_details(_tmdb_call("movie details", tmdb.get_movie_details, int(movie_id)))
