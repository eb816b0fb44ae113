"""Error taxonomy for the relay pipeline.

Every error carries a short ``user_message`` that the interaction handler
puts into the single failure reply it sends back to the chat.
"""

from __future__ import annotations


class RelayError(Exception):
    """Base class for failures inside one interaction."""

    def __init__(self, user_message: str, detail: str | None = None) -> None:
        self.user_message = user_message
        self.detail = detail
        super().__init__(f"{user_message}: {detail}" if detail else user_message)


class InputValidationError(RelayError):
    """Inbound text is empty, a command, or otherwise unsupported."""


class UpstreamError(RelayError):
    """The upstream call failed: timeout, transport error, or bad status."""

    def __init__(
        self,
        kind: str,
        user_message: str,
        detail: str | None = None,
        status_code: int | None = None,
    ) -> None:
        self.kind = kind  # "timeout" | "network" | "status" | "too_large"
        self.status_code = status_code
        super().__init__(user_message, detail)


class ExtractionError(RelayError):
    """The upstream payload did not have the expected shape."""


class SizeLimitError(RelayError):
    """A media resource exceeds the configured size policy."""

    def __init__(self, size_bytes: int, max_bytes: int) -> None:
        self.size_bytes = size_bytes
        self.max_bytes = max_bytes
        super().__init__(
            f"file is too large ({_mb(size_bytes)} MB, limit {_mb(max_bytes)} MB)",
        )


class StorageError(RelayError):
    """The chat store write failed. Never fatal to the reply path."""


class DeliveryError(RelayError):
    """The messaging platform rejected a reply."""


def _mb(size: int) -> str:
    return f"{size / (1024 * 1024):.1f}"
