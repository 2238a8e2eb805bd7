from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import asdict
from typing import Any

from moodflix.core.llm import AiRecommendations, AiSuggestion, ask_for_recommendations
from moodflix.core.moods import record_mood, record_recommendation
from moodflix.core.store import DocumentStore
from moodflix.core.tmdb import TmdbError, get_movie_details, search_movies

logger = logging.getLogger(__name__)

AI_SOURCE = "deepseek-via-openrouter"


def search_confidence(ai_title: str | None, tmdb_title: str | None) -> float:
    """How well a TMDb title matches the title the model suggested, in [0, 1]."""

    if not ai_title or not tmdb_title:
        return 0.0

    ai_lower = ai_title.lower()
    tmdb_lower = tmdb_title.lower()
    if ai_lower == tmdb_lower:
        return 1.0
    if ai_lower in tmdb_lower or tmdb_lower in ai_lower:
        return 0.9

    ai_words = ai_lower.split()
    tmdb_words = tmdb_lower.split()
    common = [w for w in ai_words if w in tmdb_words]
    if common:
        return min(0.8, len(common) / max(len(ai_words), len(tmdb_words)))
    return 0.3


def _ai_fields(suggestion: AiSuggestion) -> dict[str, Any]:
    out = asdict(suggestion)
    out["ai_recommendation"] = {
        "reason": suggestion.reason,
        "mood_match": suggestion.mood_match,
        "time_suitable": suggestion.time_suitable,
    }
    return out


def placeholder_recommendation(suggestion: AiSuggestion, *, error: str | None = None) -> dict[str, Any]:
    out = _ai_fields(suggestion)
    out.update(
        {
            "tmdb_id": None,
            "poster_path": None,
            "backdrop_path": None,
            "release_date": None,
            "vote_average": None,
            "vote_count": None,
            "overview": None,
            "runtime": None,
            "genres": [suggestion.genre] if suggestion.genre else [],
            "search_confidence": 0.0,
        }
    )
    if error:
        out["error"] = error
    return out


def enrich_suggestion(suggestion: AiSuggestion) -> dict[str, Any]:
    """Attach TMDb metadata to one model suggestion, degrading to a placeholder."""

    try:
        results = search_movies(suggestion.title).get("results") or []
        if not results:
            return placeholder_recommendation(suggestion)

        best = results[0]
        details = get_movie_details(best["id"])
    except TmdbError as e:
        logger.error("Error searching for movie %r: %s", suggestion.title, e)
        return placeholder_recommendation(suggestion, error="Failed to fetch TMDb data")

    out = _ai_fields(suggestion)
    out.update(
        {
            "tmdb_id": best.get("id"),
            "poster_path": best.get("poster_path"),
            "backdrop_path": best.get("backdrop_path"),
            "release_date": best.get("release_date"),
            "vote_average": best.get("vote_average"),
            "vote_count": best.get("vote_count"),
            "popularity": best.get("popularity"),
            "overview": best.get("overview"),
            "runtime": details.get("runtime"),
            "genres": [g.get("name") for g in details.get("genres") or [] if isinstance(g, dict)],
            "search_confidence": search_confidence(suggestion.title, best.get("title")),
        }
    )
    return out


def recommend_movies(
    mood: str,
    time: str,
    situation: str,
    *,
    store: DocumentStore | None = None,
    user_id: str | None = None,
    ask: Callable[[str, str, str], AiRecommendations] | None = None,
) -> dict[str, Any]:
    """Ask the model for titles, look them up on TMDb and log the request.

    When ``user_id`` is given the mood and the suggested titles are stored so
    they show up in profile statistics.
    """

    ai = (ask or ask_for_recommendations)(mood, time, situation)
    movies = [enrich_suggestion(s) for s in ai.suggestions]

    if store is not None:
        record_recommendation(
            store,
            user_id,
            mood=mood,
            time_available=time,
            situation=situation,
            titles=[s.title for s in ai.suggestions],
            overall_analysis=ai.overall_analysis,
            source=AI_SOURCE,
        )
        if user_id:
            record_mood(store, user_id, mood=mood, situation=situation, time_available=time)

    return {
        "recommendations": movies,
        "overall_analysis": ai.overall_analysis,
        "user_preferences": {"mood": mood, "time": time, "situation": situation},
        "total_results": len(movies),
        "ai_source": AI_SOURCE,
        "tmdb_integration": True,
    }
