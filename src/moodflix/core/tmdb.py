from __future__ import annotations

import logging
from typing import Any, Final

import httpx

from moodflix.core.config import tmdb_settings

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = "/images/placeholder.svg"

# TMDb genre ids per mood; unknown moods fall back to comedy.
MOOD_TO_GENRE_IDS: Final[dict[str, tuple[int, ...]]] = {
    "happy": (35, 10751, 16),
    "sad": (18, 10749),
    "excited": (28, 12, 878),
    "relaxed": (14, 16, 10751),
    "romantic": (10749, 18),
    "adventurous": (12, 28, 14),
    "nostalgic": (18, 36, 10402),
    "inspired": (18, 99, 36),
}
DEFAULT_MOOD_GENRE_IDS: Final[tuple[int, ...]] = (35,)
MOOD_MIN_VOTE_AVERAGE = 6.0


class TmdbError(RuntimeError):
    pass


class TmdbNotConfigured(TmdbError):
    pass


def tmdb_request(
    endpoint: str,
    params: dict[str, Any] | None = None,
    *,
    client: httpx.Client | None = None,
    timeout_s: float = 15.0,
) -> dict[str, Any]:
    settings = tmdb_settings()
    if not settings.api_key:
        raise TmdbNotConfigured("TMDb API key is not configured")

    query: dict[str, Any] = {"api_key": settings.api_key, "language": "en-US"}
    for key, value in (params or {}).items():
        if value is None:
            continue
        query[key] = str(value).lower() if isinstance(value, bool) else value

    close_client = False
    if client is None:
        client = httpx.Client(headers={"Accept": "application/json"}, timeout=timeout_s)
        close_client = True

    try:
        resp = client.get(f"{settings.base_url}{endpoint}", params=query)
    except httpx.HTTPError as e:
        logger.error("TMDb request to %s failed: %s", endpoint, e)
        raise TmdbError(f"TMDb request failed: {e}") from e
    finally:
        if close_client:
            client.close()

    if resp.status_code >= 400:
        raise TmdbError(f"TMDb API error: {resp.status_code} {resp.reason_phrase}")
    try:
        return resp.json()
    except ValueError as e:
        raise TmdbError("TMDb returned a non-JSON body") from e


def poster_url(poster_path: str | None, size: str = "w500") -> str:
    if not poster_path:
        return PLACEHOLDER_IMAGE
    return f"{tmdb_settings().image_base_url}/{size}{poster_path}"


def backdrop_url(backdrop_path: str | None, size: str = "original") -> str:
    if not backdrop_path:
        return PLACEHOLDER_IMAGE
    return f"{tmdb_settings().image_base_url}/{size}{backdrop_path}"


def search_movies(query: str, page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request(
        "/search/movie", {"query": query, "page": page, "include_adult": False}, **kwargs
    )


def get_movie_details(movie_id: int, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request(
        f"/movie/{movie_id}", {"append_to_response": "credits,videos,similar"}, **kwargs
    )


def get_popular_movies(page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request("/movie/popular", {"page": page}, **kwargs)


def get_top_rated_movies(page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request("/movie/top_rated", {"page": page}, **kwargs)


def get_movies_by_genre(genre_id: int, page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request(
        "/discover/movie",
        {"with_genres": genre_id, "page": page, "sort_by": "popularity.desc"},
        **kwargs,
    )


def get_movie_recommendations(movie_id: int, page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request(f"/movie/{movie_id}/recommendations", {"page": page}, **kwargs)


def get_genres(**kwargs: Any) -> dict[str, Any]:
    return tmdb_request("/genre/movie/list", **kwargs)


def mood_genre_ids(mood: str) -> tuple[int, ...]:
    return MOOD_TO_GENRE_IDS.get(mood.strip().lower(), DEFAULT_MOOD_GENRE_IDS)


def get_movies_by_mood(mood: str, page: int = 1, **kwargs: Any) -> dict[str, Any]:
    return tmdb_request(
        "/discover/movie",
        {
            # "|" means OR in TMDb's discover filters.
            "with_genres": "|".join(str(g) for g in mood_genre_ids(mood)),
            "page": page,
            "sort_by": "popularity.desc",
            "vote_average.gte": MOOD_MIN_VOTE_AVERAGE,
        },
        **kwargs,
    )


def _release_year(release_date: str | None) -> int | None:
    if not isinstance(release_date, str) or len(release_date) < 4:
        return None
    try:
        return int(release_date[:4])
    except ValueError:
        return None


def transform_movie(movie: dict[str, Any]) -> dict[str, Any]:
    """Shape a raw TMDb movie into the app's response format."""

    runtime = movie.get("runtime")
    genre_ids = movie.get("genre_ids")
    return {
        "id": movie.get("id"),
        "title": movie.get("title"),
        "original_title": movie.get("original_title"),
        "overview": movie.get("overview"),
        "poster": poster_url(movie.get("poster_path")),
        "backdrop": backdrop_url(movie.get("backdrop_path")),
        "release_date": movie.get("release_date"),
        "year": _release_year(movie.get("release_date")),
        "duration": f"{runtime} min" if runtime else None,
        "rating": movie.get("vote_average"),
        "vote_count": movie.get("vote_count"),
        "genre": ", ".join(str(g) for g in genre_ids) if genre_ids else None,
        "popularity": movie.get("popularity"),
        "adult": movie.get("adult"),
        "video": movie.get("video"),
    }


def transform_search_results(results: dict[str, Any]) -> dict[str, Any]:
    return {
        "page": results.get("page", 1),
        "total_pages": results.get("total_pages", 0),
        "total_results": results.get("total_results", 0),
        "results": [transform_movie(m) for m in results.get("results") or []],
    }


def transform_movie_details(details: dict[str, Any]) -> dict[str, Any]:
    out = transform_movie(details)
    out.update(
        {
            "runtime": details.get("runtime"),
            "budget": details.get("budget"),
            "revenue": details.get("revenue"),
            "status": details.get("status"),
            "tagline": details.get("tagline"),
            "genres": [g.get("name") for g in details.get("genres") or [] if isinstance(g, dict)],
            "credits": details.get("credits"),
            "videos": details.get("videos"),
            "similar": details.get("similar"),
        }
    )
    return out
