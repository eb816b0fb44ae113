"""Telegram Bot API transport.

Parses webhook updates into InboundMessage and provides the three reply
primitives the interaction handler needs: text, photo, and video.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import httpx

from src.models import InboundMessage
from src.relay.errors import DeliveryError

logger = logging.getLogger(__name__)

_API_BASE = "https://api.telegram.org"
_TEXT_TIMEOUT_SECONDS = 30.0
_UPLOAD_TIMEOUT_SECONDS = 120.0


class TelegramRelay:
    """Handles Telegram Bot API webhook updates and replies."""

    def __init__(
        self,
        bot_token: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._bot_token = bot_token
        self._transport = transport

    def extract_message(self, update: dict[str, Any]) -> InboundMessage | None:
        """Extract the text message from an update.

        Handles both message and edited_message. Returns None for updates
        that carry no text (stickers, joins, callback queries, ...).
        """
        message = update.get("message") or update.get("edited_message") or {}
        text = message.get("text")
        chat_id = message.get("chat", {}).get("id")
        if not isinstance(text, str) or chat_id is None:
            return None
        return InboundMessage(sender_id=chat_id, text=text)

    @staticmethod
    def is_start_command(text: str) -> bool:
        command = text.strip().split(maxsplit=1)[0] if text.strip() else ""
        return command.split("@", 1)[0] == "/start"

    async def send_text(self, chat_id: int, text: str) -> None:
        await self._call("sendMessage", json={"chat_id": chat_id, "text": text})

    async def send_photo(
        self, chat_id: int, photo: str | Path, caption: str | None = None,
    ) -> None:
        """Send a photo by URL (Telegram fetches it) or by local upload."""
        data: dict[str, Any] = {"chat_id": chat_id}
        if caption:
            data["caption"] = caption
        if isinstance(photo, Path):
            with photo.open("rb") as f:
                await self._call(
                    "sendPhoto", data=data, files={"photo": (photo.name, f)},
                    timeout=_UPLOAD_TIMEOUT_SECONDS,
                )
            return
        await self._call("sendPhoto", json={**data, "photo": photo})

    async def send_video(
        self, chat_id: int, video: Path, caption: str | None = None,
    ) -> None:
        data: dict[str, Any] = {"chat_id": chat_id, "supports_streaming": "true"}
        if caption:
            data["caption"] = caption
        with video.open("rb") as f:
            await self._call(
                "sendVideo", data=data, files={"video": (video.name, f, "video/mp4")},
                timeout=_UPLOAD_TIMEOUT_SECONDS,
            )

    async def set_webhook(self, url: str) -> None:
        await self._call("setWebhook", json={"url": url})

    async def _call(
        self,
        method: str,
        timeout: float = _TEXT_TIMEOUT_SECONDS,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """POST to a Bot API method. Single attempt; failures raise DeliveryError."""
        url = f"{_API_BASE}/bot{self._bot_token}/{method}"
        try:
            async with httpx.AsyncClient(
                verify=True, transport=self._transport, timeout=timeout,
            ) as client:
                resp = await client.post(url, **kwargs)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise DeliveryError(f"could not reach Telegram ({method})", str(exc)) from exc

        if resp.status_code >= 400:
            description = _description(resp)
            logger.warning("Telegram %s failed: %s %s", method, resp.status_code, description)
            raise DeliveryError(f"Telegram rejected {method}", description)
        try:
            return resp.json()
        except ValueError as exc:
            raise DeliveryError(f"unreadable Telegram reply to {method}", resp.text[:200]) from exc


def _description(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("description", resp.text))
    return resp.text
