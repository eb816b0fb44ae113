"""FastAPI webhook application."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from src.audit.logger import AuditLogger
from src.config import RelaySettings
from src.models import ResponseShape
from src.relay.adapter import UpstreamClient
from src.relay.handler import InteractionHandler
from src.relay.media import MediaFetcher
from src.store.db import ChatStore
from src.store.recorder import ChatIdentityRecorder
from src.webhook.telegram import TelegramRelay

logger = logging.getLogger(__name__)

LIVENESS_TEXT = "Bot is running."


@dataclass
class BotComponents:
    """Everything built at startup and shared by reference afterwards."""

    telegram: TelegramRelay
    handler: InteractionHandler
    store: ChatStore | None = None


def build_components(settings: RelaySettings) -> BotComponents:
    audit_logger = (
        AuditLogger.from_env(settings.audit_log_path) if settings.audit_log_path else None
    )
    telegram = TelegramRelay(settings.bot_token)

    store: ChatStore | None = None
    recorder: ChatIdentityRecorder | None = None
    if settings.record_chats and settings.chat_db_path:
        store = ChatStore(settings.chat_db_path)
        recorder = ChatIdentityRecorder(store, audit_logger=audit_logger)

    fetcher: MediaFetcher | None = None
    if settings.profile.shape == ResponseShape.MEDIA_LINK:
        fetcher = MediaFetcher(settings.media_dir, settings.media_max_bytes)

    handler = InteractionHandler(
        profile=settings.profile,
        replies=telegram,
        upstream=UpstreamClient(),
        fetcher=fetcher,
        recorder=recorder,
        timeout_seconds=settings.timeout_seconds,
        audit_logger=audit_logger,
    )
    return BotComponents(telegram=telegram, handler=handler, store=store)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables.

    Raises ConfigError (aborting startup) when the bot token is missing.
    """
    settings = RelaySettings.from_env()
    logger.info("Starting relay bot with profile %r", settings.profile.name)
    return create_app(build_components(settings))


def create_app(components: BotComponents) -> FastAPI:
    """Create the webhook app around already-built components."""
    telegram = components.telegram
    handler = components.handler

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await handler.drain()
        if components.store:
            components.store.close()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.api_route("/", methods=["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH"])
    @app.api_route("/webhook", methods=["GET", "POST", "HEAD", "PUT", "DELETE", "PATCH"])
    async def webhook(request: Request) -> Response:
        if request.method != "POST":
            return PlainTextResponse(LIVENESS_TEXT)
        try:
            update = await request.json()
            await process_update(update, telegram, handler)
        except Exception as exc:
            logger.exception("Failed to process webhook update")
            return JSONResponse({"ok": False, "error": str(exc)}, status_code=500)
        return JSONResponse({"ok": True})

    return app


async def process_update(
    update: dict[str, object], telegram: TelegramRelay, handler: InteractionHandler,
) -> None:
    """Route one Telegram update to the matching handler entry point."""
    if not isinstance(update, dict):
        raise ValueError("update must be a JSON object")
    message = telegram.extract_message(update)
    if message is None:
        logger.debug("Ignoring update without text: %s", update.get("update_id"))
        return
    if telegram.is_start_command(message.text):
        reply = await handler.on_start(message)
        await telegram.send_text(message.sender_id, reply)
        return
    await handler.on_text(message)
