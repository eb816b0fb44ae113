"""Shared test fixtures for the webhook relay bot."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.audit.logger import AuditLogger
from src.config import PROFILES, RelayProfile
from src.models import InboundMessage, RawResponse
from src.relay.adapter import UpstreamClient


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


@pytest.fixture
def fake_replies() -> MagicMock:
    """Reply surface double recording every send."""
    replies = MagicMock()
    replies.send_text = AsyncMock()
    replies.send_photo = AsyncMock()
    replies.send_video = AsyncMock()
    return replies


# --- Factory functions for test data ---


def make_profile(name: str = "ask", **kwargs: Any) -> RelayProfile:
    """Built-in profile with optional field overrides."""
    defaults: dict[str, Any] = {}
    if PROFILES[name].endpoint is None and name != "video":
        defaults["endpoint"] = "http://upstream.test/api"
    defaults.update(kwargs)
    return PROFILES[name].model_copy(update=defaults)


def make_message(text: str = "hello", sender_id: int = 12345) -> InboundMessage:
    return InboundMessage(sender_id=sender_id, text=text)


def make_raw(text: str, status_code: int = 200, content_type: str = "application/json") -> RawResponse:
    return RawResponse(status_code=status_code, content_type=content_type, text=text)


def make_upstream(raw: RawResponse | None = None, error: Exception | None = None) -> MagicMock:
    """UpstreamClient double returning ``raw`` or raising ``error``."""
    upstream = MagicMock(spec=UpstreamClient)
    upstream.call = AsyncMock(return_value=raw, side_effect=error)
    return upstream
