from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pandas as pd
from fastapi.testclient import TestClient

from moodflix.api.app import create_app
from moodflix.core.profile import favorite_genres, time_ago, watch_time


def _client(tmp_path: Path, monkeypatch) -> TestClient:
    monkeypatch.setenv("MOODFLIX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("MOODFLIX_DB", raising=False)
    monkeypatch.setenv("MOODFLIX_RL_GLOBAL", "1000")
    monkeypatch.setenv("MOODFLIX_SESSION_SECRET", "test-secret")
    return TestClient(create_app())


def _auth(client: TestClient) -> dict[str, str]:
    client.post(
        "/api/auth/signup",
        json={"first_name": "Alice", "last_name": "Smith", "email": "alice@example.com", "password": "secret123"},
    )
    token = client.post("/api/auth/login", json={"email": "alice@example.com", "password": "secret123"}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


def test_activity_create_and_list(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)

    bad = client.post("/api/activity", json={"type": "mood"}, headers=h)
    assert bad.status_code == 400
    assert bad.json() == {"error": "Type and description are required"}

    r = client.post("/api/activity", json={"type": "mood", "description": 'Tracked mood as "happy"'}, headers=h)
    assert r.status_code == 200
    assert r.json()["activity"]["movie_title"] == "Unknown Movie"

    for i in range(3):
        client.post("/api/activity", json={"type": "mood", "description": f"entry {i}"}, headers=h)

    page = client.get("/api/activity", params={"limit": 2, "skip": 1}, headers=h).json()["activities"]
    assert [a["description"] for a in page] == ["entry 1", "entry 0"]


def test_profile_stats_aggregate_watchlist(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)

    movies = [
        (603, {"title": "The Matrix", "runtime": 136, "genres": ["Action", "Science Fiction"]}),
        (949, {"title": "Heat", "runtime": 170, "genres": ["Action", "Crime"]}),
        (680, {"title": "Pulp Fiction", "runtime": 154, "genres": ["Crime"]}),
    ]
    ids = []
    for tmdb_id, data in movies:
        r = client.post("/api/watchlist", json={"tmdb_id": tmdb_id, "movie_data": data}, headers=h)
        ids.append(r.json()["watchlist_item"]["id"])
    client.patch(f"/api/watchlist/{ids[0]}", json={"status": "completed"}, headers=h)
    client.patch(f"/api/watchlist/{ids[1]}", json={"status": "completed"}, headers=h)

    body = client.get("/api/profile/stats", headers=h).json()
    assert body["user"]["name"] == "Alice Smith"

    stats = body["stats"]
    assert stats["movies_watched"] == 2
    assert stats["watchlist_count"] == 3
    assert stats["moods_tracked"] == 0
    assert stats["total_watch_time"] == 306
    assert stats["monthly_watch_time"] == 92
    assert stats["weekly_watch_time"] == 23
    assert stats["daily_average"] == 3

    genres = {g["genre"]: g["percentage"] for g in body["favorite_genres"]}
    assert genres == {"Action": 67, "Crime": 67, "Sci-Fi": 33}

    assert body["recent_activities"][0]["type"] == "watched"
    assert body["recent_activities"][0]["time_ago"].endswith("minutes ago")


def test_favorite_genres_and_watch_time_on_empty_frame() -> None:
    df = pd.DataFrame(columns=["item_id", "status", "genres", "runtime", "has_movie"])
    assert favorite_genres(df) == []
    assert watch_time(df) == {
        "total_watch_time": 0,
        "monthly_watch_time": 0,
        "weekly_watch_time": 0,
        "daily_average": 0,
    }


def test_time_ago_buckets() -> None:
    now = datetime(2024, 6, 30, 12, 0, tzinfo=timezone.utc)

    def ago(**kw) -> str:
        return time_ago((now - timedelta(**kw)).isoformat(), now=now)

    assert ago(minutes=5) == "5 minutes ago"
    assert ago(hours=3) == "3 hours ago"
    assert ago(days=1) == "1 day ago"
    assert ago(days=4) == "4 days ago"
    assert ago(days=7) == "1 week ago"
    assert ago(days=20) == "2 weeks ago"
    assert ago(days=65) == "2 months ago"
    assert time_ago(None) == "unknown"
