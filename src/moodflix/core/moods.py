from __future__ import annotations

from typing import Any

from moodflix.core import activity
from moodflix.core.models import MoodEntry, Recommendation, to_document
from moodflix.core.store import DocumentStore


def record_mood(
    store: DocumentStore, user_id: str, *, mood: str, situation: str, time_available: str
) -> dict[str, Any]:
    entry = MoodEntry(user_id=user_id, mood=mood, situation=situation, time_available=time_available)
    doc = store.insert("mood_entries", to_document(entry))
    activity.try_record_activity(
        store, user_id, type=activity.MOOD_TRACKED, description=activity.tracked_mood(mood)
    )
    return doc


def recent_moods(store: DocumentStore, user_id: str, *, limit: int = 10) -> list[dict[str, Any]]:
    return store.find("mood_entries", user_id=user_id, limit=limit)


def record_recommendation(
    store: DocumentStore,
    user_id: str | None,
    *,
    mood: str,
    time_available: str,
    situation: str,
    titles: list[str],
    overall_analysis: str | None,
    source: str,
) -> dict[str, Any]:
    rec = Recommendation(
        user_id=user_id,
        mood=mood,
        time_available=time_available,
        situation=situation,
        titles=titles,
        overall_analysis=overall_analysis,
        source=source,
    )
    doc = store.insert("recommendations", to_document(rec))
    if user_id:
        activity.try_record_activity(
            store,
            user_id,
            type=activity.RECOMMENDATION_GOT,
            description=activity.got_recommendations(mood),
        )
    return doc


def recommendation_history(
    store: DocumentStore, user_id: str, *, limit: int = 20
) -> list[dict[str, Any]]:
    return store.find("recommendations", user_id=user_id, limit=limit)
