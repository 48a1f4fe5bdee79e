from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from .clock import JournalClock
from .commands import CommandContext, dispatch, parse_command
from .context import resolve_user
from .logging import bind_message_context, clear_context, get_logger
from .media import MediaIngestor
from .render import ReplySlot
from .store import JournalStore

logger = get_logger(__name__)

NO_SUCH_USER = "Ambiguous or no such user"
GENERIC_FAILURE = "Something went wrong."
MAX_MEDIA = 10


@dataclass(frozen=True, slots=True)
class InboundMessage:
    sender: str
    body: str
    media_urls: tuple[str | None, ...] = ()
    message_sid: str | None = None

    @property
    def num_media(self) -> int:
        return len(self.media_urls)


def _parse_num_media(raw: str | None) -> int:
    if raw is None:
        return 0
    try:
        value = int(raw.strip())
    except ValueError:
        return 0
    return max(0, value)


def parse_webhook(params: Mapping[str, str]) -> InboundMessage | None:
    sender = params.get("From")
    if not isinstance(sender, str) or not sender.strip():
        return None
    num_media = _parse_num_media(params.get("NumMedia"))
    if num_media > MAX_MEDIA:
        logger.warning("webhook.media.capped", declared=num_media, limit=MAX_MEDIA)
        num_media = MAX_MEDIA
    media_urls = tuple(
        params.get(f"MediaUrl{index}") or None for index in range(num_media)
    )
    return InboundMessage(
        sender=sender.strip(),
        body=params.get("Body") or "",
        media_urls=media_urls,
        message_sid=params.get("MessageSid"),
    )


class MessageInterpreter:
    __slots__ = ("_store", "_ingestor", "_clock")

    def __init__(
        self,
        *,
        store: JournalStore,
        ingestor: MediaIngestor,
        clock: JournalClock,
    ) -> None:
        self._store = store
        self._ingestor = ingestor
        self._clock = clock

    async def handle(self, message: InboundMessage) -> str:
        slot = await self._reply(message)
        return slot.render()

    async def _reply(self, message: InboundMessage) -> ReplySlot:
        slot = ReplySlot()
        bind_message_context(sender=message.sender, message_sid=message.message_sid)
        try:
            logger.info(
                "webhook.received",
                num_media=message.num_media,
                body_len=len(message.body),
            )
            await self._interpret(message, slot)
        except Exception as exc:
            logger.exception(
                "command.failed",
                error=str(exc),
                error_type=exc.__class__.__name__,
            )
            if not slot.filled:
                slot.fill(GENERIC_FAILURE)
        finally:
            clear_context()
        return slot

    async def _interpret(self, message: InboundMessage, slot: ReplySlot) -> None:
        user = await resolve_user(self._store, message.sender)
        if user is None:
            slot.fill(NO_SUCH_USER)
            return
        if message.media_urls:
            slot.fill(await self._ingestor.ingest(user, message.media_urls))
            return
        parsed = parse_command(message.body)
        ctx = CommandContext(store=self._store, user=user, clock=self._clock)
        slot.fill(await dispatch(ctx, parsed))
