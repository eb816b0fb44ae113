"""Tests for the SQLite chat store."""

from __future__ import annotations

from pathlib import Path

from src.store.db import ChatStore


def test_create_tables(tmp_path: Path) -> None:
    store = ChatStore(str(tmp_path / "test.db"))
    assert store.get_chat(1) is None
    store.close()


def test_insert_and_retrieve(tmp_path: Path) -> None:
    store = ChatStore(str(tmp_path / "test.db"))
    store.upsert_chat(42, "2026-01-01T00:00:00+00:00")
    record = store.get_chat(42)
    assert record is not None
    assert record.last_interaction == "2026-01-01T00:00:00+00:00"
    assert record.first_seen == "2026-01-01T00:00:00+00:00"
    assert record.visits == 1
    store.close()


def test_upsert_keeps_one_record_last_write_wins(tmp_path: Path) -> None:
    store = ChatStore(str(tmp_path / "test.db"))
    store.upsert_chat(42, "2026-01-01T00:00:00+00:00")
    store.upsert_chat(42, "2026-01-02T00:00:00+00:00")

    assert len(store.list_chats()) == 1
    record = store.get_chat(42)
    assert record is not None
    assert record.last_interaction == "2026-01-02T00:00:00+00:00"
    assert record.first_seen == "2026-01-01T00:00:00+00:00"
    assert record.visits == 2
    store.close()


def test_list_orders_most_recent_first(tmp_path: Path) -> None:
    store = ChatStore(str(tmp_path / "nested" / "test.db"))
    store.upsert_chat(1, "2026-01-01T00:00:00+00:00")
    store.upsert_chat(2, "2026-01-03T00:00:00+00:00")
    store.upsert_chat(3, "2026-01-02T00:00:00+00:00")

    assert [r.chat_id for r in store.list_chats()] == [2, 3, 1]
    store.close()
