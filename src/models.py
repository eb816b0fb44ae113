"""Shared Pydantic data models for the webhook relay bot."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# --- Enums ---


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"


class ResponseShape(str, Enum):
    TEXT = "text"
    IMAGE_SET = "image_set"
    MEDIA_LINK = "media_link"


class AuditEventType(str, Enum):
    RELAY_SUCCESS = "relay_success"
    RELAY_FAILURE = "relay_failure"
    CHAT_RECORDED = "chat_recorded"
    STORAGE_FAILURE = "storage_failure"


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def _now() -> datetime:
    return datetime.now(UTC)


# --- Inbound ---


class InboundMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    sender_id: int
    text: str
    received_at: datetime = Field(default_factory=_now)


# --- Outbound request ---


class RelayRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    endpoint: str
    params: dict[str, str] = Field(default_factory=dict)
    method: HttpMethod = HttpMethod.GET
    timeout_seconds: float = Field(default=30.0, gt=0)


class RawResponse(BaseModel):
    """Body of a successful upstream response, decoded as text."""

    model_config = ConfigDict(frozen=True)

    status_code: int
    content_type: str = ""
    url: str = ""  # final URL after redirects
    text: str


# --- Relay results ---


class TextAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class ImageSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["image_set"] = "image_set"
    urls: list[str] = Field(min_length=1)


class MediaLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["media_link"] = "media_link"
    url: str
    title: str | None = None


RelayResult = TextAnswer | ImageSet | MediaLink


# --- Media ---


class MediaFile(BaseModel):
    local_path: Path
    size_bytes: int = Field(ge=0)

    def discard(self) -> None:
        """Delete the local file. Safe to call more than once."""
        self.local_path.unlink(missing_ok=True)


# --- Chat store ---


class ChatRecord(BaseModel):
    chat_id: int
    last_interaction: str
    first_seen: str
    visits: int = Field(default=1, ge=1)


# --- Audit Models ---


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    chat_id: int | None = None
    profile: str | None = None
    action: str
    result: str  # "success" | "failure"
    details: dict[str, object] | None = None
