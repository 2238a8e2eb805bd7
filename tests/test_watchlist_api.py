from __future__ import annotations

from pathlib import Path

from fastapi.testclient import TestClient

from moodflix.api.app import create_app

MATRIX = {
    "title": "The Matrix",
    "overview": "A hacker learns the truth.",
    "poster_path": "/matrix.jpg",
    "release_date": "1999-03-31",
    "runtime": 136,
    "genres": [{"id": 28, "name": "Action"}, {"id": 878, "name": "Science Fiction"}],
    "vote_average": 8.2,
}
HEAT = {"title": "Heat", "runtime": 170, "genres": ["Crime", "Thriller"], "source": "recommendation"}


def _client(tmp_path: Path, monkeypatch) -> TestClient:
    monkeypatch.setenv("MOODFLIX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("MOODFLIX_DB", raising=False)
    monkeypatch.setenv("MOODFLIX_RL_GLOBAL", "1000")
    monkeypatch.setenv("MOODFLIX_SESSION_SECRET", "test-secret")
    return TestClient(create_app())


def _auth(client: TestClient, email: str = "alice@example.com") -> dict[str, str]:
    client.post(
        "/api/auth/signup",
        json={"first_name": "Alice", "last_name": "Smith", "email": email, "password": "secret123"},
    )
    token = client.post("/api/auth/login", json={"email": email, "password": "secret123"}).json()["token"]
    return {"Authorization": f"Bearer {token}"}


def test_add_list_and_duplicate(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)

    r = client.post("/api/watchlist", json={"tmdb_id": 603, "movie_data": MATRIX}, headers=h)
    assert r.status_code == 200
    item = r.json()["watchlist_item"]
    assert item["tmdb_id"] == 603
    assert item["status"] == "pending"
    assert item["priority"] == "medium"
    assert item["movie"]["title"] == "The Matrix"
    assert item["movie"]["genres"] == ["Action", "Sci-Fi"]

    # Same movie again, id given as a string this time.
    dup = client.post("/api/watchlist", json={"tmdb_id": "603", "movie_data": MATRIX}, headers=h)
    assert dup.status_code == 409
    assert dup.json()["error"] == "Movie already in watchlist"
    assert dup.json()["watchlist_item"]["id"] == item["id"]

    listed = client.get("/api/watchlist", headers=h).json()["watchlist"]
    assert [i["id"] for i in listed] == [item["id"]]


def test_add_validates_tmdb_id(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)

    missing = client.post("/api/watchlist", json={"movie_data": MATRIX}, headers=h)
    assert missing.status_code == 400
    assert missing.json() == {"error": "TMDb ID is required"}

    bad = client.post("/api/watchlist", json={"tmdb_id": "abc"}, headers=h)
    assert bad.status_code == 400

    # Unknown movie with no metadata to cache.
    unknown = client.post("/api/watchlist", json={"tmdb_id": 42}, headers=h)
    assert unknown.status_code == 404


def test_watchlists_are_per_user(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    alice = _auth(client, "alice@example.com")
    bob = _auth(client, "bob@example.com")

    item = client.post("/api/watchlist", json={"tmdb_id": 603, "movie_data": MATRIX}, headers=alice).json()["watchlist_item"]
    assert client.post("/api/watchlist", json={"tmdb_id": 603}, headers=bob).status_code == 200

    assert client.patch(f"/api/watchlist/{item['id']}", json={"status": "completed"}, headers=bob).status_code == 404
    assert client.delete(f"/api/watchlist/{item['id']}", headers=bob).status_code == 404
    assert len(client.get("/api/watchlist", headers=alice).json()["watchlist"]) == 1


def test_update_sets_completed_at_once_and_logs_activity(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)
    item = client.post("/api/watchlist", json={"tmdb_id": 603, "movie_data": MATRIX}, headers=h).json()["watchlist_item"]

    r = client.patch(
        f"/api/watchlist/{item['id']}",
        json={"status": "completed", "user_rating": 4.5, "notes": "again soon"},
        headers=h,
    )
    assert r.status_code == 200
    updated = r.json()["watchlist_item"]
    assert updated["status"] == "completed"
    assert updated["notes"] == "again soon"
    first_completed = updated["completed_at"]
    assert first_completed

    again = client.patch(f"/api/watchlist/{item['id']}", json={"status": "completed"}, headers=h).json()
    assert again["watchlist_item"]["completed_at"] == first_completed

    types = [a["type"] for a in client.get("/api/activity", headers=h).json()["activities"]]
    assert types.count("watched") == 1
    assert "rated" in types
    assert "watchlist" in types


def test_update_rejects_invalid_values(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)
    item = client.post("/api/watchlist", json={"tmdb_id": 603, "movie_data": MATRIX}, headers=h).json()["watchlist_item"]

    assert client.patch(f"/api/watchlist/{item['id']}", json={"status": "binged"}, headers=h).status_code == 400
    assert client.patch(f"/api/watchlist/{item['id']}", json={"user_rating": 9}, headers=h).status_code == 400
    assert client.patch(f"/api/watchlist/{item['id']}", json={"watch_progress": 101}, headers=h).status_code == 400


def test_filter_remove_clear_and_stats(tmp_path: Path, monkeypatch) -> None:
    client = _client(tmp_path, monkeypatch)
    h = _auth(client)
    a = client.post("/api/watchlist", json={"tmdb_id": 603, "movie_data": MATRIX}, headers=h).json()["watchlist_item"]
    b = client.post("/api/watchlist", json={"tmdb_id": 949, "movie_data": HEAT}, headers=h).json()["watchlist_item"]
    assert b["source"] == "recommendation"
    client.post("/api/watchlist", json={"tmdb_id": 680, "movie_data": {"title": "Pulp Fiction"}}, headers=h)

    client.patch(f"/api/watchlist/{a['id']}", json={"status": "completed"}, headers=h)

    completed = client.get("/api/watchlist", params={"status": "completed"}, headers=h).json()["watchlist"]
    assert [i["id"] for i in completed] == [a["id"]]

    stats = client.get("/api/watchlist/stats", headers=h).json()
    assert stats == {
        "total": 3,
        "pending": 2,
        "watching": 0,
        "completed": 1,
        "abandoned": 0,
        "completed_percentage": 33,
    }

    assert client.delete(f"/api/watchlist/{b['id']}", headers=h).json() == {"message": "Movie removed from watchlist"}
    assert client.get("/api/watchlist/stats", headers=h).json()["completed_percentage"] == 50

    cleared = client.delete("/api/watchlist", headers=h).json()
    assert cleared["deleted_count"] == 2
    assert client.get("/api/watchlist", headers=h).json() == {"watchlist": []}
    assert client.get("/api/watchlist/stats", headers=h).json()["completed_percentage"] == 0
