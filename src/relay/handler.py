"""Interaction handler — dispatch for inbound chat messages.

Per message: validate, acknowledge, call upstream, extract, optionally
fetch media, reply. The work after the acknowledgement runs as its own
asyncio task so the webhook response does not wait for it; every failure
inside that task becomes exactly one chat message starting with ❌.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, Protocol
from urllib.parse import urlparse

from src.audit.logger import AuditLogger
from src.config import RelayProfile
from src.models import (
    AuditEvent,
    AuditEventType,
    ImageSet,
    InboundMessage,
    MediaLink,
    RelayResult,
    ResponseShape,
    TextAnswer,
)
from src.relay.adapter import UpstreamClient
from src.relay.errors import InputValidationError, RelayError
from src.relay.extractor import ResponseExtractor
from src.relay.media import MediaFetcher
from src.store.recorder import ChatIdentityRecorder

logger = logging.getLogger(__name__)

FAILURE_PREFIX = "❌"


class ReplySurface(Protocol):
    async def send_text(self, chat_id: int, text: str) -> None: ...

    async def send_photo(self, chat_id: int, photo: Any, caption: str | None = None) -> None: ...

    async def send_video(self, chat_id: int, video: Any, caption: str | None = None) -> None: ...


class InteractionHandler:
    def __init__(
        self,
        profile: RelayProfile,
        replies: ReplySurface,
        upstream: UpstreamClient,
        extractor: ResponseExtractor | None = None,
        fetcher: MediaFetcher | None = None,
        recorder: ChatIdentityRecorder | None = None,
        timeout_seconds: float = 30.0,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        if profile.shape == ResponseShape.MEDIA_LINK and fetcher is None:
            raise ValueError(f"profile {profile.name!r} needs a MediaFetcher")
        self.profile = profile
        self.replies = replies
        self.upstream = upstream
        self.extractor = extractor or ResponseExtractor()
        self.fetcher = fetcher
        self.recorder = recorder
        self.timeout_seconds = timeout_seconds
        self.audit_logger = audit_logger
        self._tasks: set[asyncio.Task[None]] = set()

    # --- entry points ---

    async def on_start(self, message: InboundMessage) -> str:
        if self.recorder:
            self._spawn(self.recorder.record_visit(message.sender_id), "record_visit")
        return self.profile.start_text

    async def on_text(self, message: InboundMessage) -> asyncio.Task[None] | None:
        """Validate and acknowledge, then hand the rest to a background task.

        Returns the spawned task, or None when the input was rejected.
        """
        chat_id = message.sender_id
        try:
            text = self.validate(message.text)
        except InputValidationError as exc:
            await self._send_safely(chat_id, exc.user_message)
            return None

        if self.recorder:
            self._spawn(self.recorder.record_visit(chat_id), "record_visit")

        try:
            await self.replies.send_text(chat_id, self.profile.ack_text)
        except RelayError as exc:
            logger.warning("Acknowledgement to chat %s failed: %s", chat_id, exc)

        return self._spawn(self.complete(chat_id, text), "complete")

    async def drain(self) -> None:
        """Wait for every in-flight background task."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- stages ---

    def validate(self, raw: str) -> str:
        text = raw.strip()
        if not text or text.startswith("/"):
            raise InputValidationError(self.profile.usage_text)
        if self.profile.shape == ResponseShape.MEDIA_LINK:
            parsed = urlparse(text)
            if parsed.scheme not in ("http", "https") or not parsed.netloc or " " in text:
                raise InputValidationError(self.profile.usage_text)
        return text

    async def complete(self, chat_id: int, text: str) -> None:
        """Call, extract, and reply. Never raises."""
        try:
            request = self.profile.build_request(text, self.timeout_seconds)
            raw = await self.upstream.call(request)
            result = self.extractor.extract(raw, self.profile.shape)
            await self._deliver(chat_id, result)
        except RelayError as exc:
            logger.info("Relay for chat %s failed: %s", chat_id, exc)
            self._audit(chat_id, AuditEventType.RELAY_FAILURE, "failure", _diagnostic(exc))
            await self._send_safely(chat_id, self.failure_message(exc))
            return
        except Exception as exc:
            logger.exception("Unexpected error relaying for chat %s", chat_id)
            self._audit(chat_id, AuditEventType.RELAY_FAILURE, "failure", type(exc).__name__)
            await self._send_safely(chat_id, self.failure_message(None))
            return
        self._audit(chat_id, AuditEventType.RELAY_SUCCESS, "success", result.kind)

    def failure_message(self, exc: RelayError | None) -> str:
        base = f"{FAILURE_PREFIX} {self.profile.failure_text}"
        if exc is None:
            return f"{base} (unexpected error)"
        return f"{base} ({_diagnostic(exc)})"

    async def _deliver(self, chat_id: int, result: RelayResult) -> None:
        if isinstance(result, TextAnswer):
            await self.replies.send_text(chat_id, result.text)
        elif isinstance(result, ImageSet):
            await self._deliver_images(chat_id, result)
        elif isinstance(result, MediaLink):
            await self._deliver_media(chat_id, result)

    async def _deliver_images(self, chat_id: int, images: ImageSet) -> None:
        total = len(images.urls)
        for index, url in enumerate(images.urls, start=1):
            try:
                await self.replies.send_photo(chat_id, url, caption=f"{index}/{total}")
            except RelayError as exc:
                logger.warning("Image %d/%d for chat %s failed: %s", index, total, chat_id, exc)
                await self._send_safely(
                    chat_id, f"{FAILURE_PREFIX} Image {index}/{total} failed to upload.",
                )

    async def _deliver_media(self, chat_id: int, link: MediaLink) -> None:
        if self.fetcher is None:
            raise ValueError(f"profile {self.profile.name!r} has no MediaFetcher")
        media = await self.fetcher.fetch(link.url)
        try:
            await self.replies.send_video(chat_id, media.local_path, caption=link.title)
        finally:
            media.discard()

    # --- helpers ---

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Background task %s failed", task.get_name(), exc_info=exc)

    async def _send_safely(self, chat_id: int, text: str) -> None:
        try:
            await self.replies.send_text(chat_id, text)
        except RelayError as exc:
            logger.error("Could not send message to chat %s: %s", chat_id, exc)

    def _audit(
        self, chat_id: int, event_type: AuditEventType, result: str, detail: str,
    ) -> None:
        if self.audit_logger:
            self.audit_logger.log(AuditEvent(
                event_type=event_type,
                chat_id=chat_id,
                profile=self.profile.name,
                action="relay",
                result=result,
                details={"detail": detail},
            ))


def _diagnostic(exc: RelayError) -> str:
    return exc.user_message
