from __future__ import annotations

from .logging import get_logger
from .model import Event, Media, Session, User
from .store import JournalStore

logger = get_logger(__name__)


async def resolve_user(store: JournalStore, phone: str) -> User | None:
    users = await store.find_users_by_contact(phone)
    if len(users) != 1:
        logger.info("identity.rejected", matches=len(users))
        return None
    return users[0]


async def resolve_current_session(store: JournalStore, owner: int) -> Session | None:
    return await store.find_current_session(owner)


async def resolve_event(
    store: JournalStore, owner: int, event_id: int | None
) -> Event | None:
    if event_id is None:
        return None
    events = await store.find_events(owner, event_id)
    return events[0] if events else None


async def resolve_latest_media(store: JournalStore, owner: int) -> Media | None:
    return await store.find_latest_media(owner)


def parse_id(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        value = int(raw.strip())
    except ValueError:
        return None
    return value if value >= 0 else None
