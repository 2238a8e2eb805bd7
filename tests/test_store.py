from __future__ import annotations

from pathlib import Path

import pytest

from moodflix.core.store import DocumentStore, DuplicateError, StoreError


def _store(tmp_path: Path) -> DocumentStore:
    return DocumentStore(db_path=tmp_path / "db.sqlite3")


def test_insert_assigns_id_and_round_trips(tmp_path: Path) -> None:
    store = _store(tmp_path)
    doc = store.insert("movies", {"tmdb_id": 603, "title": "The Matrix", "created_at": "2024-01-01T00:00:00+00:00"})

    assert doc["id"]
    assert store.get("movies", doc["id"]) == doc
    assert store.find_one("movies", tmdb_id="603")["title"] == "The Matrix"


def test_unique_constraints_raise_duplicate(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.insert("watchlist", {"user_id": "u1", "movie_id": "m1", "tmdb_id": 1})

    with pytest.raises(DuplicateError):
        store.insert("watchlist", {"user_id": "u1", "movie_id": "m1", "tmdb_id": 1})

    # Same movie for a different user is fine.
    store.insert("watchlist", {"user_id": "u2", "movie_id": "m1", "tmdb_id": 1})
    assert store.count("watchlist") == 2


def test_find_orders_newest_first_with_insertion_tiebreak(tmp_path: Path) -> None:
    store = _store(tmp_path)
    for i in range(3):
        store.insert("activities", {"user_id": "u1", "type": "mood", "n": i, "created_at": "2024-05-01T10:00:00+00:00"})
    store.insert("activities", {"user_id": "u1", "type": "mood", "n": 3, "created_at": "2023-01-01T00:00:00+00:00"})

    docs = store.find("activities", user_id="u1")
    assert [d["n"] for d in docs] == [2, 1, 0, 3]

    page = store.find("activities", user_id="u1", limit=2, skip=1)
    assert [d["n"] for d in page] == [1, 0]


def test_update_refreshes_mirrored_columns(tmp_path: Path) -> None:
    store = _store(tmp_path)
    doc = store.insert("watchlist", {"user_id": "u1", "movie_id": "m1", "status": "pending"})

    updated = store.update("watchlist", doc["id"], {"status": "completed"})
    assert updated is not None and updated["status"] == "completed"
    assert store.count("watchlist", user_id="u1", status="completed") == 1
    assert store.update("watchlist", "missing", {"status": "completed"}) is None


def test_delete_and_delete_many(tmp_path: Path) -> None:
    store = _store(tmp_path)
    a = store.insert("watchlist", {"user_id": "u1", "movie_id": "m1"})
    store.insert("watchlist", {"user_id": "u1", "movie_id": "m2"})
    store.insert("watchlist", {"user_id": "u2", "movie_id": "m1"})

    assert store.delete("watchlist", a["id"]) is True
    assert store.delete("watchlist", a["id"]) is False
    assert store.delete_many("watchlist", user_id="u1") == 1
    assert store.count("watchlist") == 1


def test_filters_are_restricted_to_indexed_columns(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(StoreError):
        store.find("movies", title="Heat")
    with pytest.raises(StoreError):
        store.find("not_a_collection")


def test_documents_survive_reopen(tmp_path: Path) -> None:
    store = _store(tmp_path)
    doc = store.insert("users", {"email": "a@example.com", "first_name": "A"})
    store.close()

    reopened = _store(tmp_path)
    assert reopened.get("users", doc["id"])["first_name"] == "A"
