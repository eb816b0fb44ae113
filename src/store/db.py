"""SQLite chat store: one record per chat, upserted on every visit."""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path

from src.models import ChatRecord


class ChatStore:
    """SQLite-backed storage for chat identities.

    Constructed once at startup and shared by reference. The connection is
    used from worker threads, so access is serialised with a lock.
    """

    def __init__(self, db_path: str) -> None:
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._create_tables()

    def _create_tables(self) -> None:
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS chats (
                chat_id INTEGER PRIMARY KEY,
                last_interaction TEXT NOT NULL,
                first_seen TEXT NOT NULL,
                visits INTEGER NOT NULL DEFAULT 1
            )
        """)
        self.conn.commit()

    def upsert_chat(self, chat_id: int, seen_at: str) -> None:
        """Insert the chat or update its last interaction (last write wins)."""
        with self._lock:
            self.conn.execute(
                """INSERT INTO chats (chat_id, last_interaction, first_seen, visits)
                   VALUES (?, ?, ?, 1)
                   ON CONFLICT(chat_id) DO UPDATE SET
                     last_interaction=excluded.last_interaction,
                     visits=chats.visits + 1""",
                (chat_id, seen_at, seen_at),
            )
            self.conn.commit()

    def get_chat(self, chat_id: int) -> ChatRecord | None:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM chats WHERE chat_id = ?", (chat_id,)
            ).fetchone()
        return ChatRecord(**dict(row)) if row else None

    def list_chats(self) -> list[ChatRecord]:
        with self._lock:
            rows = self.conn.execute(
                "SELECT * FROM chats ORDER BY last_interaction DESC"
            ).fetchall()
        return [ChatRecord(**dict(r)) for r in rows]

    def close(self) -> None:
        with self._lock:
            self.conn.close()
