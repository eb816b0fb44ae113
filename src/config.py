"""Relay profiles and environment-driven settings."""

from __future__ import annotations

import os
import tempfile
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field

from src.models import HttpMethod, RelayRequest, ResponseShape

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when mandatory configuration is missing or invalid."""


class RelayProfile(BaseModel):
    """One bot variant: a fixed upstream endpoint plus its reply texts."""

    model_config = ConfigDict(frozen=True)

    name: str
    endpoint: str | None
    param_name: str
    method: HttpMethod = HttpMethod.GET
    shape: ResponseShape
    start_text: str
    ack_text: str
    usage_text: str
    failure_text: str

    def build_request(self, text: str, timeout_seconds: float) -> RelayRequest:
        """Build the outbound request for validated input text.

        A profile without an endpoint fetches the shared link itself.
        """
        if self.endpoint is None:
            return RelayRequest(
                endpoint=text, method=self.method, timeout_seconds=timeout_seconds,
            )
        return RelayRequest(
            endpoint=self.endpoint,
            params={self.param_name: text},
            method=self.method,
            timeout_seconds=timeout_seconds,
        )


PROFILES: dict[str, RelayProfile] = {
    "ask": RelayProfile(
        name="ask",
        endpoint="https://ar-api-08uk.onrender.com/ava",
        param_name="q",
        shape=ResponseShape.TEXT,
        start_text="Ask your question, and I’ll get you an answer! 🧠",
        ack_text="Thinking... 🤔",
        usage_text="Send me a question as plain text.",
        failure_text="Sorry, I couldn’t get an answer. Try again later.",
    ),
    "imagine": RelayProfile(
        name="imagine",
        endpoint=None,
        param_name="prompt",
        shape=ResponseShape.IMAGE_SET,
        start_text="Describe an image and I’ll generate it for you! 🎨",
        ack_text="Generating your images... 🖌️",
        usage_text="Send me a text prompt describing the image you want.",
        failure_text="Sorry, I couldn’t generate images. Try again later.",
    ),
    "video": RelayProfile(
        name="video",
        endpoint=None,
        param_name="url",
        shape=ResponseShape.MEDIA_LINK,
        start_text="Send me a video link and I’ll download it for you! 🎬",
        ack_text="Downloading... ⏳",
        usage_text="Send me a link to a public video post (https://...).",
        failure_text="Sorry, I couldn’t download that video.",
    ),
}


class RelaySettings(BaseModel):
    model_config = ConfigDict(frozen=True)

    bot_token: str = Field(min_length=1)
    profile: RelayProfile
    timeout_seconds: float = Field(default=30.0, gt=0)
    media_max_bytes: int = Field(default=50 * 1024 * 1024, gt=0)
    media_dir: str = Field(default_factory=tempfile.gettempdir)
    record_chats: bool = False
    chat_db_path: str | None = None
    audit_log_path: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> RelaySettings:
        """Read settings from the process environment.

        Raises ConfigError when the bot token is absent, or when chat
        recording is enabled without a database path.
        """
        env = os.environ if environ is None else environ

        token = env.get("TOKEN") or env.get("BOT_TOKEN")
        if not token:
            raise ConfigError(
                "Bot token not configured. Please set the TOKEN environment variable.",
            )

        profile = resolve_profile(
            env.get("RELAY_PROFILE", "ask"), env.get("UPSTREAM_URL") or None,
        )

        record_chats = env.get("RECORD_CHATS", "").strip().lower() in _TRUTHY
        chat_db_path = env.get("CHAT_DB_PATH") or None
        if record_chats and not chat_db_path:
            raise ConfigError("RECORD_CHATS is enabled but CHAT_DB_PATH is not set.")

        return cls(
            bot_token=token,
            profile=profile,
            timeout_seconds=_number(env, "UPSTREAM_TIMEOUT_SECONDS", 30.0, float),
            media_max_bytes=_number(env, "MEDIA_MAX_BYTES", 50 * 1024 * 1024, int),
            media_dir=env.get("MEDIA_DIR") or tempfile.gettempdir(),
            record_chats=record_chats,
            chat_db_path=chat_db_path,
            audit_log_path=env.get("AUDIT_LOG_PATH") or None,
        )


def resolve_profile(name: str, endpoint: str | None = None) -> RelayProfile:
    """Look up a built-in profile, optionally overriding its endpoint."""
    try:
        profile = PROFILES[name]
    except KeyError:
        raise ConfigError(
            f"Unknown relay profile {name!r}; expected one of {sorted(PROFILES)}",
        ) from None
    if endpoint:
        profile = profile.model_copy(update={"endpoint": endpoint})
    elif profile.endpoint is None and profile.shape != ResponseShape.MEDIA_LINK:
        raise ConfigError(f"Profile {name!r} requires UPSTREAM_URL to be set.")
    return profile


def _number(env: Mapping[str, str], key: str, default: float, cast: type) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive, got {raw!r}")
    return value
