from __future__ import annotations

import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Literal

from .annotate import append_note, format_note_stamp, format_time_delta
from .clock import JournalClock
from .context import (
    parse_id,
    resolve_current_session,
    resolve_event,
    resolve_latest_media,
)
from .logging import get_logger
from .model import EventListing, NewEvent, User, format_count
from .store import JournalStore

logger = get_logger(__name__)

CommandTag = Literal[
    "commands", "setcount", "listcon", "dupcon", "jumpcon", "namemedia", "note"
]

# order is precedence
COMMAND_VOCABULARY: tuple[CommandTag, ...] = (
    "commands",
    "setcount",
    "listcon",
    "dupcon",
    "jumpcon",
    "namemedia",
)

USAGE = (
    "[quicknote], [image file], listcon, setcount [id] [count], "
    "dupcon [id], jumpcon [id], namemedia [name]"
)
NO_EXPERIENCES = "No experiences!"
NO_EXPERIENCES_TO_ADD = "No experiences to add to!"
NO_CONSUMPTIONS = "No consumptions!"
NO_MEDIA = "No media!"
NO_MEDIA_NAME = "No media name given."
NOTE_ADDED = "Note added."
DUPLICATED = "Duplicated consumption."
DATE_JUMPED = "Date jumped."


@dataclass(frozen=True, slots=True)
class ParsedCommand:
    tag: CommandTag
    args: tuple[str, ...]
    text: str

    def arg(self, index: int) -> str | None:
        return self.args[index] if index < len(self.args) else None


@dataclass(frozen=True, slots=True)
class CommandContext:
    store: JournalStore
    user: User
    clock: JournalClock

    @property
    def owner(self) -> int:
        return self.user.id


def parse_command(body: str) -> ParsedCommand:
    lowered = body.lstrip().lower()
    for tag in COMMAND_VOCABULARY:
        if lowered.startswith(tag):
            tokens = body.split()
            return ParsedCommand(tag=tag, args=tuple(tokens[1:]), text=body)
    return ParsedCommand(tag="note", args=(), text=body)


def _parse_count(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def format_listing(listing: EventListing) -> str:
    parts = [format_count(listing.count), listing.unit, listing.name]
    return f"{listing.id}: " + " ".join(part for part in parts if part)


async def _handle_commands(ctx: CommandContext, parsed: ParsedCommand) -> str:
    return USAGE


async def _handle_setcount(ctx: CommandContext, parsed: ParsedCommand) -> str:
    session = await resolve_current_session(ctx.store, ctx.owner)
    if session is None:
        return NO_EXPERIENCES
    event = await resolve_event(ctx.store, ctx.owner, parse_id(parsed.arg(0)))
    new_count = _parse_count(parsed.arg(1))
    if event is None or new_count is None:
        return NO_CONSUMPTIONS
    await ctx.store.update_event_count(ctx.owner, event.id, new_count)
    return f"Updated from {format_count(event.count)} to {format_count(new_count)}"


async def _handle_listcon(ctx: CommandContext, parsed: ParsedCommand) -> str:
    session = await resolve_current_session(ctx.store, ctx.owner)
    if session is None:
        return NO_EXPERIENCES_TO_ADD
    listings = await ctx.store.list_session_events(ctx.owner, session.id)
    if not listings:
        return NO_CONSUMPTIONS
    return ", ".join(format_listing(listing) for listing in listings)


async def _handle_dupcon(ctx: CommandContext, parsed: ParsedCommand) -> str:
    session = await resolve_current_session(ctx.store, ctx.owner)
    if session is None:
        return NO_EXPERIENCES
    source = await resolve_event(ctx.store, ctx.owner, parse_id(parsed.arg(0)))
    if source is None:
        return NO_CONSUMPTIONS
    # session and owner follow the source row, not the acting session
    new_id = await ctx.store.insert_event(
        NewEvent(
            date=ctx.clock.now(),
            experience_id=source.experience_id,
            count=source.count,
            drug_id=source.drug_id,
            method_id=source.method_id,
            location=source.location,
            owner=source.owner,
        )
    )
    logger.info("command.dupcon.inserted", source_id=source.id, event_id=new_id)
    return DUPLICATED


async def _handle_jumpcon(ctx: CommandContext, parsed: ParsedCommand) -> str:
    session = await resolve_current_session(ctx.store, ctx.owner)
    if session is None:
        return NO_EXPERIENCES
    event = await resolve_event(ctx.store, ctx.owner, parse_id(parsed.arg(0)))
    if event is None:
        return NO_CONSUMPTIONS
    await ctx.store.update_event_date(ctx.owner, event.id, ctx.clock.now())
    return DATE_JUMPED


async def _handle_namemedia(ctx: CommandContext, parsed: ParsedCommand) -> str:
    media = await resolve_latest_media(ctx.store, ctx.owner)
    if media is None:
        return NO_MEDIA
    title = " ".join(parsed.args)
    if not title:
        return NO_MEDIA_NAME
    await ctx.store.update_media_title(ctx.owner, media.id, title)
    return f"Media renamed from {media.title} to {title}."


async def _handle_note(ctx: CommandContext, parsed: ParsedCommand) -> str:
    session = await resolve_current_session(ctx.store, ctx.owner)
    if session is None:
        return NO_EXPERIENCES
    now = ctx.clock.now()
    reference = await resolve_event(ctx.store, ctx.owner, session.ttime)
    if reference is not None:
        prefix = format_time_delta(reference.date, now)
    else:
        if session.ttime is not None:
            logger.warning(
                "note.ttime.missing", session_id=session.id, ttime=session.ttime
            )
        prefix = format_note_stamp(session.date, now)
    notes = append_note(session.notes, prefix, parsed.text)
    await ctx.store.update_session_notes(ctx.owner, session.id, notes)
    return NOTE_ADDED


CommandHandler = Callable[[CommandContext, ParsedCommand], Awaitable[str]]

HANDLERS: Mapping[CommandTag, CommandHandler] = {
    "commands": _handle_commands,
    "setcount": _handle_setcount,
    "listcon": _handle_listcon,
    "dupcon": _handle_dupcon,
    "jumpcon": _handle_jumpcon,
    "namemedia": _handle_namemedia,
    "note": _handle_note,
}


async def dispatch(ctx: CommandContext, parsed: ParsedCommand) -> str:
    handler = HANDLERS[parsed.tag]
    logger.info("command.dispatch", command=parsed.tag, args=len(parsed.args))
    return await handler(ctx, parsed)
