from __future__ import annotations

import sqlite3
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import anyio
import anyio.to_thread

from .logging import get_logger
from .model import Event, EventListing, Media, NewEvent, NewMedia, Session, User

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    username TEXT NOT NULL UNIQUE,
    password TEXT,
    admin INTEGER NOT NULL DEFAULT 0,
    phone TEXT
);
CREATE TABLE IF NOT EXISTS experiences (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date INTEGER NOT NULL,
    ttime INTEGER,
    title TEXT NOT NULL DEFAULT '',
    notes TEXT,
    panicmsg TEXT,
    rating_id INTEGER,
    owner INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS drugs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    unit TEXT,
    notes TEXT,
    classification TEXT,
    family TEXT,
    rarity TEXT,
    owner INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS methods (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    icon TEXT,
    owner INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS consumptions (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    date INTEGER NOT NULL,
    count REAL NOT NULL,
    experience_id INTEGER NOT NULL,
    drug_id INTEGER NOT NULL,
    method_id INTEGER NOT NULL,
    location TEXT,
    owner INTEGER NOT NULL
);
CREATE TABLE IF NOT EXISTS media (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    title TEXT,
    tags TEXT,
    date INTEGER NOT NULL,
    association_type TEXT,
    association INTEGER,
    explicit INTEGER NOT NULL DEFAULT 0,
    favorite INTEGER NOT NULL DEFAULT 0,
    owner INTEGER NOT NULL
);
"""


class StoreError(RuntimeError):
    pass


class JournalStore(Protocol):
    """Owner-scoped data access used by the interpreter."""

    async def find_users_by_contact(self, phone: str) -> list[User]: ...

    async def find_current_session(self, owner: int) -> Session | None: ...

    async def find_events(self, owner: int, event_id: int) -> list[Event]: ...

    async def list_session_events(
        self, owner: int, session_id: int
    ) -> list[EventListing]: ...

    async def update_event_count(
        self, owner: int, event_id: int, count: float
    ) -> None: ...

    async def update_event_date(self, owner: int, event_id: int, date: int) -> None: ...

    async def insert_event(self, event: NewEvent) -> int: ...

    async def find_latest_media(self, owner: int) -> Media | None: ...

    async def update_media_title(
        self, owner: int, media_id: int, title: str
    ) -> None: ...

    async def insert_media(self, media: NewMedia) -> int: ...

    async def update_session_notes(
        self, owner: int, session_id: int, notes: str
    ) -> None: ...


def _session_from_row(row: sqlite3.Row) -> Session:
    return Session(
        id=row["id"],
        title=row["title"] or "",
        date=int(row["date"]),
        notes=row["notes"],
        ttime=row["ttime"],
        owner=row["owner"],
    )


def _event_from_row(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        date=int(row["date"]),
        count=row["count"],
        experience_id=row["experience_id"],
        drug_id=row["drug_id"],
        method_id=row["method_id"],
        location=row["location"],
        owner=row["owner"],
    )


def _media_from_row(row: sqlite3.Row) -> Media:
    return Media(
        id=row["id"],
        filename=row["filename"],
        title=row["title"] or "",
        date=int(row["date"]),
        association_type=row["association_type"] or "",
        association=row["association"],
        owner=row["owner"],
        explicit=bool(row["explicit"]),
        favorite=bool(row["favorite"]),
    )


class SqliteJournalStore:
    """JournalStore backed by a single sqlite3 connection.

    Calls run on worker threads and are serialized by a lock, so concurrent
    messages see one linear sequence of reads and writes.
    """

    __slots__ = ("_path", "_conn", "_lock")

    def __init__(self, path: Path | str) -> None:
        self._path = str(path)
        self._conn: sqlite3.Connection | None = None
        self._lock = anyio.Lock()

    @property
    def path(self) -> str:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(self._path, check_same_thread=False)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._conn = conn
        return self._conn

    def _run_query(self, sql: str, params: Sequence[Any]) -> list[sqlite3.Row]:
        conn = self._connect()
        return conn.execute(sql, tuple(params)).fetchall()

    def _run_write(self, sql: str, params: Sequence[Any]) -> int:
        conn = self._connect()
        with conn:
            cursor = conn.execute(sql, tuple(params))
        return int(cursor.lastrowid or 0)

    def _run_script(self, script: str) -> None:
        conn = self._connect()
        conn.executescript(script)
        conn.commit()

    async def _fetchall(self, sql: str, *params: Any) -> list[sqlite3.Row]:
        async with self._lock:
            try:
                return await anyio.to_thread.run_sync(self._run_query, sql, params)
            except sqlite3.Error as exc:
                raise StoreError(f"query failed: {exc}") from exc

    async def _write(self, sql: str, *params: Any) -> int:
        async with self._lock:
            try:
                return await anyio.to_thread.run_sync(self._run_write, sql, params)
            except sqlite3.Error as exc:
                raise StoreError(f"write failed: {exc}") from exc

    async def init_schema(self) -> None:
        async with self._lock:
            try:
                await anyio.to_thread.run_sync(self._run_script, SCHEMA)
            except sqlite3.Error as exc:
                raise StoreError(f"schema setup failed: {exc}") from exc
        logger.debug("store.schema.ready", path=self._path)

    async def close(self) -> None:
        async with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    async def find_users_by_contact(self, phone: str) -> list[User]:
        rows = await self._fetchall(
            "SELECT id, username, phone FROM users WHERE phone = ?", phone
        )
        return [
            User(id=row["id"], username=row["username"], phone=row["phone"])
            for row in rows
        ]

    async def find_current_session(self, owner: int) -> Session | None:
        rows = await self._fetchall(
            "SELECT * FROM experiences WHERE owner = ? "
            "ORDER BY date DESC, id DESC LIMIT 1",
            owner,
        )
        return _session_from_row(rows[0]) if rows else None

    async def find_events(self, owner: int, event_id: int) -> list[Event]:
        rows = await self._fetchall(
            "SELECT * FROM consumptions WHERE owner = ? AND id = ? "
            "ORDER BY date DESC",
            owner,
            event_id,
        )
        return [_event_from_row(row) for row in rows]

    async def list_session_events(
        self, owner: int, session_id: int
    ) -> list[EventListing]:
        rows = await self._fetchall(
            "SELECT C.id AS cid, C.count AS count, D.unit AS unit, D.name AS name "
            "FROM consumptions C LEFT JOIN drugs D ON C.drug_id = D.id "
            "WHERE C.owner = ? AND C.experience_id = ? "
            "ORDER BY C.date DESC, C.id DESC",
            owner,
            session_id,
        )
        return [
            EventListing(
                id=row["cid"], count=row["count"], unit=row["unit"], name=row["name"]
            )
            for row in rows
        ]

    async def update_event_count(self, owner: int, event_id: int, count: float) -> None:
        await self._write(
            "UPDATE consumptions SET count = ? WHERE id = ? AND owner = ?",
            count,
            event_id,
            owner,
        )

    async def update_event_date(self, owner: int, event_id: int, date: int) -> None:
        await self._write(
            "UPDATE consumptions SET date = ? WHERE id = ? AND owner = ?",
            date,
            event_id,
            owner,
        )

    async def insert_event(self, event: NewEvent) -> int:
        return await self._write(
            "INSERT INTO consumptions "
            "(date, experience_id, count, drug_id, method_id, location, owner) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            event.date,
            event.experience_id,
            event.count,
            event.drug_id,
            event.method_id,
            event.location,
            event.owner,
        )

    async def find_latest_media(self, owner: int) -> Media | None:
        rows = await self._fetchall(
            "SELECT * FROM media WHERE owner = ? ORDER BY date DESC, id DESC LIMIT 1",
            owner,
        )
        return _media_from_row(rows[0]) if rows else None

    async def update_media_title(self, owner: int, media_id: int, title: str) -> None:
        await self._write(
            "UPDATE media SET title = ? WHERE id = ? AND owner = ?",
            title,
            media_id,
            owner,
        )

    async def insert_media(self, media: NewMedia) -> int:
        return await self._write(
            "INSERT INTO media "
            "(filename, title, date, association_type, association, "
            "explicit, favorite, owner) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
            media.filename,
            media.title,
            media.date,
            media.association_type,
            media.association,
            int(media.explicit),
            int(media.favorite),
            media.owner,
        )

    async def update_session_notes(
        self, owner: int, session_id: int, notes: str
    ) -> None:
        await self._write(
            "UPDATE experiences SET notes = ? WHERE id = ? AND owner = ?",
            notes,
            session_id,
            owner,
        )
