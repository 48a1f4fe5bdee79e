from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator, Iterable
from pathlib import Path
from typing import Any

import pytest
import structlog

from smsjournal.store import SqliteJournalStore, StoreError


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _reset_structlog() -> Any:
    # CLI tests configure structlog against CliRunner's temporary stderr;
    # restore the defaults so later tests don't log to a closed stream.
    yield
    structlog.reset_defaults()


class Seeder:
    """Writes fixture rows straight into the journal database."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def _insert(self, table: str, values: dict[str, Any]) -> int:
        columns = ", ".join(values)
        marks = ", ".join("?" for _ in values)
        with sqlite3.connect(self.path) as conn:
            cursor = conn.execute(
                f"INSERT INTO {table} ({columns}) VALUES ({marks})",
                tuple(values.values()),
            )
            return int(cursor.lastrowid or 0)

    def user(self, username: str, phone: str | None) -> int:
        return self._insert("users", {"username": username, "phone": phone})

    def session(
        self,
        owner: int,
        *,
        date: int,
        notes: str | None = None,
        ttime: int | None = None,
        title: str = "",
    ) -> int:
        return self._insert(
            "experiences",
            {
                "owner": owner,
                "date": date,
                "notes": notes,
                "ttime": ttime,
                "title": title,
            },
        )

    def drug(self, owner: int, name: str, unit: str) -> int:
        return self._insert("drugs", {"owner": owner, "name": name, "unit": unit})

    def method(self, owner: int, name: str = "oral") -> int:
        return self._insert("methods", {"owner": owner, "name": name})

    def event(
        self,
        owner: int,
        session: int,
        *,
        drug: int,
        method: int,
        count: float,
        date: int,
        location: str | None = None,
        event_id: int | None = None,
    ) -> int:
        values: dict[str, Any] = {
            "owner": owner,
            "experience_id": session,
            "drug_id": drug,
            "method_id": method,
            "count": count,
            "date": date,
            "location": location,
        }
        if event_id is not None:
            values["id"] = event_id
        return self._insert("consumptions", values)

    def media(self, owner: int, *, title: str, date: int, session: int = 0) -> int:
        return self._insert(
            "media",
            {
                "owner": owner,
                "title": title,
                "date": date,
                "filename": "/uploads/seed",
                "association_type": "experience",
                "association": session,
            },
        )

    def set_ttime(self, session_id: int, event_id: int) -> None:
        with sqlite3.connect(self.path) as conn:
            conn.execute(
                "UPDATE experiences SET ttime = ? WHERE id = ?", (event_id, session_id)
            )

    def row(self, table: str, row_id: int) -> dict[str, Any]:
        with sqlite3.connect(self.path) as conn:
            conn.row_factory = sqlite3.Row
            found = conn.execute(
                f"SELECT * FROM {table} WHERE id = ?", (row_id,)
            ).fetchone()
        assert found is not None, f"{table} row {row_id} missing"
        return dict(found)

    def rows(self, table: str) -> list[dict[str, Any]]:
        with sqlite3.connect(self.path) as conn:
            conn.row_factory = sqlite3.Row
            found = conn.execute(f"SELECT * FROM {table} ORDER BY id").fetchall()
        return [dict(row) for row in found]


class RecordingStore:
    """Forwards to a real store, recording every call and failing on request."""

    def __init__(
        self, inner: SqliteJournalStore, *, fail_on: Iterable[str] = ()
    ) -> None:
        self.inner = inner
        self.calls: list[str] = []
        self.fail_on = set(fail_on)

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)

        async def _call(*args: Any, **kwargs: Any) -> Any:
            self.calls.append(name)
            if name in self.fail_on:
                raise StoreError(f"{name} failed")
            return await target(*args, **kwargs)

        return _call


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "journal.db"


@pytest.fixture
async def store(db_path: Path) -> AsyncIterator[SqliteJournalStore]:
    journal = SqliteJournalStore(db_path)
    await journal.init_schema()
    yield journal
    await journal.close()


@pytest.fixture
def seed(store: SqliteJournalStore, db_path: Path) -> Seeder:
    return Seeder(db_path)


@pytest.fixture
def recording_store(store: SqliteJournalStore) -> Any:
    def _make(*, fail_on: Iterable[str] = ()) -> RecordingStore:
        return RecordingStore(store, fail_on=fail_on)

    return _make
