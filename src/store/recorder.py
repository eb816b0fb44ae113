"""Chat identity recorder: best-effort visit tracking."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import UTC, datetime

from src.audit.logger import AuditLogger
from src.models import AuditEvent, AuditEventType
from src.relay.errors import StorageError
from src.store.db import ChatStore

logger = logging.getLogger(__name__)


class ChatIdentityRecorder:
    """Upserts the sender's chat id and last-seen time into the chat store."""

    def __init__(self, store: ChatStore, audit_logger: AuditLogger | None = None) -> None:
        self.store = store
        self.audit_logger = audit_logger

    async def write_visit(self, chat_id: int) -> None:
        """Write one visit. Raises StorageError on failure."""
        seen_at = datetime.now(UTC).isoformat()
        try:
            await asyncio.to_thread(self.store.upsert_chat, chat_id, seen_at)
        except (sqlite3.Error, OSError) as exc:
            raise StorageError("could not record chat", str(exc)) from exc

    async def record_visit(self, chat_id: int) -> None:
        """Fire-and-forget entry point: failures are logged, never raised."""
        try:
            await self.write_visit(chat_id)
        except Exception as exc:  # any store failure stays inside this task
            logger.warning("Failed to record chat %s: %s", chat_id, exc)
            self._audit(chat_id, AuditEventType.STORAGE_FAILURE, "failure", str(exc))
            return
        self._audit(chat_id, AuditEventType.CHAT_RECORDED, "success")

    def _audit(
        self, chat_id: int, event_type: AuditEventType, result: str, error: str | None = None,
    ) -> None:
        if self.audit_logger:
            self.audit_logger.log(AuditEvent(
                event_type=event_type,
                chat_id=chat_id,
                action="record_visit",
                result=result,
                details={"error": error} if error else None,
            ))
