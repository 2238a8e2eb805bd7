from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any
from uuid import uuid4

from moodflix.core.config import database_path

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    pass


class DuplicateError(StoreError):
    pass


@dataclass(frozen=True)
class _Collection:
    # Top-level document fields mirrored into real columns so they can be
    # filtered, sorted and constrained.
    columns: tuple[str, ...]
    unique: tuple[tuple[str, ...], ...] = ()


COLLECTIONS: dict[str, _Collection] = {
    "users": _Collection(
        columns=("email", "google_id", "created_at"),
        unique=(("email",), ("google_id",)),
    ),
    "movies": _Collection(columns=("tmdb_id", "created_at"), unique=(("tmdb_id",),)),
    "watchlist": _Collection(
        columns=("user_id", "movie_id", "tmdb_id", "status", "completed_at", "created_at"),
        unique=(("user_id", "movie_id"),),
    ),
    "mood_entries": _Collection(columns=("user_id", "mood", "created_at")),
    "activities": _Collection(columns=("user_id", "type", "created_at")),
    "recommendations": _Collection(columns=("user_id", "mood", "created_at")),
}


def new_id() -> str:
    return uuid4().hex


class DocumentStore:
    """SQLite-backed document store.

    Every collection is a table holding the JSON document plus a handful of
    mirrored columns used for lookups, ordering and uniqueness. Documents are
    plain dicts with a string ``id``.
    """

    def __init__(self, *, db_path: Path | None = None) -> None:
        self._db_path = Path(db_path or database_path()).resolve()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = Lock()
        # check_same_thread=False because TestClient may access across threads.
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        for name, spec in COLLECTIONS.items():
            cols = "".join(f", {c} TEXT" for c in spec.columns)
            uniques = "".join(f", UNIQUE ({', '.join(u)})" for u in spec.unique)
            self._conn.execute(
                f"CREATE TABLE IF NOT EXISTS {name} (id TEXT PRIMARY KEY, doc TEXT NOT NULL{cols}{uniques})"
            )
        self._conn.commit()
        logger.debug("Opened document store at %s", self._db_path)

    @property
    def path(self) -> Path:
        return self._db_path

    def close(self) -> None:
        with self._lock:
            self._conn.close()

    def insert(self, collection: str, doc: dict[str, Any]) -> dict[str, Any]:
        spec = self._spec(collection)
        doc = dict(doc)
        doc.setdefault("id", new_id())

        cols = ("id", "doc", *spec.columns)
        values = (doc["id"], json.dumps(doc), *(_column_value(doc.get(c)) for c in spec.columns))
        placeholders = ", ".join("?" for _ in cols)
        with self._lock:
            try:
                self._conn.execute(
                    f"INSERT INTO {collection} ({', '.join(cols)}) VALUES ({placeholders})",
                    values,
                )
                self._conn.commit()
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                raise DuplicateError(f"Duplicate {collection} document") from e
        return doc

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        self._spec(collection)
        with self._lock:
            row = self._conn.execute(
                f"SELECT doc FROM {collection} WHERE id = ?", (doc_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def find_one(self, collection: str, **filters: Any) -> dict[str, Any] | None:
        docs = self.find(collection, limit=1, **filters)
        return docs[0] if docs else None

    def find(
        self,
        collection: str,
        *,
        order_by: str = "created_at",
        descending: bool = True,
        limit: int | None = None,
        skip: int = 0,
        **filters: Any,
    ) -> list[dict[str, Any]]:
        spec = self._spec(collection)
        if order_by not in spec.columns and order_by != "id":
            raise StoreError(f"Cannot order {collection} by {order_by!r}")

        where, params = self._where(collection, spec, filters)
        sql = f"SELECT doc FROM {collection}{where} ORDER BY {order_by} {'DESC' if descending else 'ASC'}, rowid {'DESC' if descending else 'ASC'}"
        if limit is not None:
            sql += " LIMIT ? OFFSET ?"
            params.extend([int(limit), int(skip)])
        elif skip:
            sql += " LIMIT -1 OFFSET ?"
            params.append(int(skip))

        with self._lock:
            rows = self._conn.execute(sql, params).fetchall()
        return [json.loads(r[0]) for r in rows]

    def count(self, collection: str, **filters: Any) -> int:
        spec = self._spec(collection)
        where, params = self._where(collection, spec, filters)
        with self._lock:
            (n,) = self._conn.execute(
                f"SELECT COUNT(*) FROM {collection}{where}", params
            ).fetchone() or (0,)
        return int(n)

    def update(
        self, collection: str, doc_id: str, fields: dict[str, Any]
    ) -> dict[str, Any] | None:
        spec = self._spec(collection)
        with self._lock:
            row = self._conn.execute(
                f"SELECT doc FROM {collection} WHERE id = ?", (doc_id,)
            ).fetchone()
            if row is None:
                return None

            doc = json.loads(row[0])
            doc.update(fields)
            doc["id"] = doc_id

            assignments = ", ".join(["doc = ?", *(f"{c} = ?" for c in spec.columns)])
            values = [json.dumps(doc), *(_column_value(doc.get(c)) for c in spec.columns)]
            try:
                self._conn.execute(
                    f"UPDATE {collection} SET {assignments} WHERE id = ?",
                    (*values, doc_id),
                )
                self._conn.commit()
            except sqlite3.IntegrityError as e:
                self._conn.rollback()
                raise DuplicateError(f"Duplicate {collection} document") from e
        return doc

    def delete(self, collection: str, doc_id: str) -> bool:
        self._spec(collection)
        with self._lock:
            cur = self._conn.execute(f"DELETE FROM {collection} WHERE id = ?", (doc_id,))
            self._conn.commit()
        return cur.rowcount > 0

    def delete_many(self, collection: str, **filters: Any) -> int:
        spec = self._spec(collection)
        where, params = self._where(collection, spec, filters)
        with self._lock:
            cur = self._conn.execute(f"DELETE FROM {collection}{where}", params)
            self._conn.commit()
        return cur.rowcount

    def _spec(self, collection: str) -> _Collection:
        spec = COLLECTIONS.get(collection)
        if spec is None:
            raise StoreError(f"Unknown collection: {collection}")
        return spec

    @staticmethod
    def _where(
        collection: str, spec: _Collection, filters: dict[str, Any]
    ) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        for key, value in filters.items():
            if key not in spec.columns and key != "id":
                raise StoreError(f"Cannot filter {collection} by {key!r}")
            if value is None:
                clauses.append(f"{key} IS NULL")
            else:
                clauses.append(f"{key} = ?")
                params.append(_column_value(value))
        where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params


def _column_value(value: Any) -> str | None:
    # Catalog ids arrive as ints or strings; columns compare them as text.
    if value is None:
        return None
    return str(value)


def create_document_store() -> DocumentStore:
    return DocumentStore()
