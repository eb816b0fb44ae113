"""Media fetcher: streams a remote media resource to a bounded local file."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

import httpx

from src.models import MediaFile
from src.relay.errors import SizeLimitError, UpstreamError

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


class MediaFetcher:
    """Downloads media with a maximum-size policy.

    The declared Content-Length is checked before writing anything, and the
    written size is checked again afterwards since the header is not
    trustworthy. A file over the limit is deleted before SizeLimitError is
    raised, so no oversize file ever reaches the caller.
    """

    def __init__(
        self,
        media_dir: str,
        max_bytes: int,
        timeout_seconds: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.media_dir = Path(media_dir)
        self.max_bytes = max_bytes
        self._timeout = timeout_seconds
        self._transport = transport

    async def fetch(self, url: str, suffix: str = ".mp4") -> MediaFile:
        self.media_dir.mkdir(parents=True, exist_ok=True)
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self._timeout,
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as resp:
                    if resp.status_code >= 400:
                        raise UpstreamError(
                            "status",
                            f"media host returned HTTP {resp.status_code}",
                            status_code=resp.status_code,
                        )
                    declared = _content_length(resp)
                    if declared is not None and declared > self.max_bytes:
                        raise SizeLimitError(declared, self.max_bytes)
                    path = await self._write(resp, suffix)
        except httpx.TimeoutException as exc:
            raise UpstreamError("timeout", "media download timed out", str(exc)) from exc
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise UpstreamError("network", "media download failed", str(exc)) from exc

        size = path.stat().st_size
        if size > self.max_bytes:
            path.unlink(missing_ok=True)
            raise SizeLimitError(size, self.max_bytes)

        logger.info("Downloaded %s (%d bytes) to %s", url, size, path)
        return MediaFile(local_path=path, size_bytes=size)

    async def _write(self, resp: httpx.Response, suffix: str) -> Path:
        fd, name = tempfile.mkstemp(suffix=suffix, dir=self.media_dir)
        path = Path(name)
        written = 0
        try:
            with open(fd, "wb") as f:
                async for chunk in resp.aiter_bytes(_CHUNK_SIZE):
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise SizeLimitError(written, self.max_bytes)
                    f.write(chunk)
        except BaseException:
            path.unlink(missing_ok=True)
            raise
        return path


def _content_length(resp: httpx.Response) -> int | None:
    raw = resp.headers.get("content-length")
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        return None
