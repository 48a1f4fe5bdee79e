from __future__ import annotations

import contextlib
import secrets
from collections.abc import Sequence
from pathlib import Path

import anyio
import httpx

from .clock import JournalClock
from .commands import NO_EXPERIENCES_TO_ADD
from .context import resolve_current_session
from .logging import get_logger
from .model import NewMedia, Session, User
from .render import format_processed
from .store import JournalStore

logger = get_logger(__name__)

UPLOAD_TITLE_PREFIX = "SMS Upload "
_CHUNK_SIZE = 64 * 1024


class StorageError(RuntimeError):
    pass


def random_filename() -> str:
    return secrets.token_hex(16)


def default_upload_title() -> str:
    return UPLOAD_TITLE_PREFIX + secrets.token_hex(8)


def _discard(path: Path) -> None:
    # the root itself may be unusable, so cleanup can fail too
    with contextlib.suppress(OSError):
        path.unlink(missing_ok=True)


class MediaStorage:
    __slots__ = ("_root", "_client")

    def __init__(self, root: Path, *, client: httpx.AsyncClient) -> None:
        self._root = root
        self._client = client

    def path_for(self, filename: str) -> Path:
        return self._root / filename

    async def save(self, url: str, filename: str) -> Path:
        target = self.path_for(filename)
        try:
            await anyio.Path(self._root).mkdir(parents=True, exist_ok=True)
            async with self._client.stream("GET", url) as response:
                response.raise_for_status()
                async with await anyio.open_file(target, "wb") as handle:
                    async for chunk in response.aiter_bytes(_CHUNK_SIZE):
                        await handle.write(chunk)
        except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
            _discard(target)
            raise StorageError(f"failed to store {url}: {exc}") from exc
        except Exception:
            _discard(target)
            raise
        return target


class CompletionBarrier:
    """Opens once `target` signals have been received, whatever their order."""

    __slots__ = ("_target", "_count", "_opened")

    def __init__(self, target: int) -> None:
        self._target = target
        self._count = 0
        self._opened = anyio.Event()
        if target <= 0:
            self._opened.set()

    @property
    def count(self) -> int:
        return self._count

    @property
    def is_open(self) -> bool:
        return self._opened.is_set()

    def signal(self) -> bool:
        self._count += 1
        if self._count == self._target:
            self._opened.set()
            return True
        return False

    async def wait(self) -> None:
        await self._opened.wait()


class MediaIngestor:
    __slots__ = ("_store", "_storage", "_clock")

    def __init__(
        self, *, store: JournalStore, storage: MediaStorage, clock: JournalClock
    ) -> None:
        self._store = store
        self._storage = storage
        self._clock = clock

    async def ingest(self, user: User, media_urls: Sequence[str | None]) -> str:
        declared = len(media_urls)
        session = await resolve_current_session(self._store, user.id)
        if session is None:
            return NO_EXPERIENCES_TO_ADD
        barrier = CompletionBarrier(declared)
        async with anyio.create_task_group() as tg:
            for index, url in enumerate(media_urls):
                tg.start_soon(self._ingest_one, index, url, session, user, barrier)
            await barrier.wait()
        logger.info("media.batch.completed", count=declared, session_id=session.id)
        return format_processed(declared)

    async def _ingest_one(
        self,
        index: int,
        url: str | None,
        session: Session,
        user: User,
        barrier: CompletionBarrier,
    ) -> None:
        try:
            if not url:
                logger.warning("media.url.missing", index=index)
                return
            filename = random_filename()
            try:
                stored = await self._storage.save(url, filename)
            except StorageError as exc:
                logger.warning("media.download.failed", index=index, error=str(exc))
                return
            except Exception as exc:
                logger.exception(
                    "media.download.failed",
                    index=index,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                return
            try:
                media_id = await self._store.insert_media(
                    NewMedia(
                        filename=str(stored),
                        title=default_upload_title(),
                        date=self._clock.now(),
                        association=session.id,
                        owner=user.id,
                    )
                )
            except Exception as exc:
                logger.exception(
                    "media.insert.failed",
                    index=index,
                    error=str(exc),
                    error_type=exc.__class__.__name__,
                )
                return
            logger.info("media.stored", index=index, media_id=media_id)
        finally:
            barrier.signal()
