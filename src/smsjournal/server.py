from __future__ import annotations

from collections.abc import AsyncIterator

import httpx
from aiohttp import web

from .clock import JournalClock
from .interpreter import MessageInterpreter, parse_webhook
from .logging import get_logger
from .media import MediaIngestor, MediaStorage
from .render import CONTENT_TYPE
from .settings import JournalSettings
from .store import SqliteJournalStore

logger = get_logger(__name__)

INTERPRETER_KEY = web.AppKey("interpreter", MessageInterpreter)


async def _read_params(request: web.Request) -> dict[str, str]:
    params = {key: value for key, value in request.query.items()}
    if request.method == "POST":
        form = await request.post()
        for key, value in form.items():
            if isinstance(value, str):
                params[key] = value
    return params


async def handle_webhook(request: web.Request) -> web.Response:
    params = await _read_params(request)
    message = parse_webhook(params)
    if message is None:
        logger.info("webhook.rejected", reason="missing sender")
        return web.Response(status=400)
    interpreter = request.app[INTERPRETER_KEY]
    body = await interpreter.handle(message)
    return web.Response(text=body, content_type=CONTENT_TYPE)


async def handle_health(request: web.Request) -> web.Response:
    return web.Response(text="ok")


def build_app(
    interpreter: MessageInterpreter | None = None, *, path: str = "/twilio"
) -> web.Application:
    app = web.Application()
    if interpreter is not None:
        app[INTERPRETER_KEY] = interpreter
    app.router.add_get(path, handle_webhook)
    app.router.add_post(path, handle_webhook)
    app.router.add_get("/healthz", handle_health)
    return app


def create_app(settings: JournalSettings) -> web.Application:
    app = build_app(path=settings.server.path)

    async def journal_context(app: web.Application) -> AsyncIterator[None]:
        store = SqliteJournalStore(settings.database_path)
        await store.init_schema()
        clock = JournalClock(settings.zone)
        async with httpx.AsyncClient(
            timeout=settings.media.download_timeout_s, follow_redirects=True
        ) as client:
            storage = MediaStorage(settings.media_root, client=client)
            app[INTERPRETER_KEY] = MessageInterpreter(
                store=store,
                ingestor=MediaIngestor(store=store, storage=storage, clock=clock),
                clock=clock,
            )
            logger.info(
                "server.ready",
                database=str(settings.database_path),
                media_root=str(settings.media_root),
                timezone=settings.timezone,
            )
            yield
        await store.close()

    app.cleanup_ctx.append(journal_context)
    return app


def run_server(settings: JournalSettings, *, host: str, port: int) -> None:
    logger.info("server.starting", host=host, port=port, path=settings.server.path)
    web.run_app(create_app(settings), host=host, port=port, print=None)
