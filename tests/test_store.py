from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from smsjournal.model import NewEvent, NewMedia
from smsjournal.store import SqliteJournalStore, StoreError

if TYPE_CHECKING:
    from conftest import Seeder

pytestmark = pytest.mark.anyio


async def test_find_users_by_contact_returns_every_match(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    seed.user("a", "+1555")
    seed.user("b", "+1555")
    seed.user("c", "+1666")

    users = await store.find_users_by_contact("+1555")

    assert sorted(user.username for user in users) == ["a", "b"]
    assert await store.find_users_by_contact("+1777") == []


async def test_current_session_is_latest_by_date(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    other = seed.user("b", "+1666")
    newest = seed.session(owner, date=300, title="newest")
    seed.session(owner, date=100)
    seed.session(other, date=900)

    session = await store.find_current_session(owner)

    assert session is not None
    assert session.id == newest
    assert session.title == "newest"
    assert await store.find_current_session(12345) is None


async def test_current_session_ties_break_on_id(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    seed.session(owner, date=100)
    later = seed.session(owner, date=100)

    session = await store.find_current_session(owner)

    assert session is not None
    assert session.id == later


async def test_find_events_is_owner_scoped(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    other = seed.user("b", "+1666")
    session = seed.session(other, date=1)
    drug = seed.drug(other, "Caffeine", "mg")
    method = seed.method(other)
    event = seed.event(other, session, drug=drug, method=method, count=1, date=1)

    assert await store.find_events(owner, event) == []
    found = await store.find_events(other, event)
    assert [item.id for item in found] == [event]


async def test_writes_ignore_other_owners_rows(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    other = seed.user("b", "+1666")
    session = seed.session(other, date=1, notes="mine")
    drug = seed.drug(other, "Caffeine", "mg")
    method = seed.method(other)
    event = seed.event(other, session, drug=drug, method=method, count=1, date=1)
    media = seed.media(other, title="orig", date=1)

    await store.update_event_count(owner, event, 9)
    await store.update_event_date(owner, event, 9)
    await store.update_media_title(owner, media, "stolen")
    await store.update_session_notes(owner, session, "overwritten")

    assert seed.row("consumptions", event)["count"] == 1
    assert seed.row("consumptions", event)["date"] == 1
    assert seed.row("media", media)["title"] == "orig"
    assert seed.row("experiences", session)["notes"] == "mine"


async def test_listing_tolerates_missing_drug(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    session = seed.session(owner, date=1)
    method = seed.method(owner)
    event = seed.event(owner, session, drug=999, method=method, count=3, date=1)

    listings = await store.list_session_events(owner, session)

    assert [(item.id, item.count, item.unit, item.name) for item in listings] == [
        (event, 3, None, None)
    ]


async def test_insert_event_and_media_round_trip(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    session = seed.session(owner, date=1)

    event_id = await store.insert_event(
        NewEvent(
            date=50,
            experience_id=session,
            count=0.5,
            drug_id=2,
            method_id=3,
            location=None,
            owner=owner,
        )
    )
    media_id = await store.insert_media(
        NewMedia(
            filename="/uploads/abc",
            title="SMS Upload 00",
            date=60,
            association=session,
            owner=owner,
        )
    )

    events = await store.find_events(owner, event_id)
    assert events[0].count == 0.5
    latest = await store.find_latest_media(owner)
    assert latest is not None
    assert latest.id == media_id
    assert latest.association_type == "experience"
    assert latest.explicit is False
    assert latest.favorite is False


async def test_latest_media_is_by_date(
    store: SqliteJournalStore, seed: Seeder
) -> None:
    owner = seed.user("a", "+1555")
    newest = seed.media(owner, title="new", date=20)
    seed.media(owner, title="old", date=10)

    latest = await store.find_latest_media(owner)

    assert latest is not None
    assert latest.id == newest


async def test_sqlite_errors_become_store_errors(tmp_path: Path) -> None:
    journal = SqliteJournalStore(tmp_path / "bare.db")
    try:
        with pytest.raises(StoreError, match="query failed"):
            await journal.find_current_session(1)
    finally:
        await journal.close()
