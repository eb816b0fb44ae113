"""Response extractor: turns a raw upstream payload into a RelayResult.

Text and image payloads are JSON with a fixed field layout. Media pages are
HTML whose layout is not a stable contract, so media extraction runs an
ordered list of strategies and takes the first URL one of them finds.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from src.models import ImageSet, MediaLink, RawResponse, RelayResult, ResponseShape, TextAnswer
from src.relay.errors import ExtractionError

logger = logging.getLogger(__name__)

_LEGACY_MARKER = "window._sharedData"
_LEGACY_PATH = (
    "entry_data", "PostPage", 0, "graphql", "shortcode_media", "video_url",
)
_OG_VIDEO_PROPERTIES = ("og:video:secure_url", "og:video", "og:video:url")

MediaStrategy = Callable[[BeautifulSoup], str | None]


# --- JSON shapes ---


def extract_text_answer(payload: Any) -> TextAnswer:
    if not isinstance(payload, dict):
        raise ExtractionError("unexpected response format", type(payload).__name__)
    if payload.get("status") != 200 or payload.get("successful") != "success":
        raise ExtractionError(
            "API request failed",
            f"status={payload.get('status')!r} successful={payload.get('successful')!r}",
        )
    answer = payload.get("response")
    if not isinstance(answer, str) or not answer.strip():
        raise ExtractionError("no answer from the API")
    return TextAnswer(text=answer)


def extract_image_set(payload: Any) -> ImageSet:
    images = payload.get("images") if isinstance(payload, dict) else None
    if not isinstance(images, list):
        raise ExtractionError("no images in the API response")
    urls = [u for u in images if isinstance(u, str) and u.strip()]
    if not urls:
        raise ExtractionError("the API returned an empty image list")
    return ImageSet(urls=urls)


# --- Media strategies ---


def og_video_strategy(soup: BeautifulSoup) -> str | None:
    """Direct media URL from an Open Graph video meta tag."""
    for prop in _OG_VIDEO_PROPERTIES:
        tag = soup.find("meta", attrs={"property": prop})
        if tag and tag.get("content"):
            return str(tag["content"]).strip() or None
    return None


def ld_json_strategy(soup: BeautifulSoup) -> str | None:
    """Nested ``contentUrl`` from an ld+json structured-data block."""
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text() or ""
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            continue
        url = _find_content_url(data)
        if url:
            return url
    return None


def legacy_shared_data_strategy(soup: BeautifulSoup) -> str | None:
    """Video URL from the legacy ``window._sharedData`` script blob."""
    for script in soup.find_all("script"):
        text = script.string or script.get_text() or ""
        if _LEGACY_MARKER not in text:
            continue
        start = text.find("{")
        end = text.rfind("}")
        if not 0 <= start < end:
            continue
        try:
            data = json.loads(text[start : end + 1])
        except json.JSONDecodeError:
            continue
        url = _dig(data, _LEGACY_PATH)
        if isinstance(url, str) and url:
            return url
    return None


MEDIA_STRATEGIES: tuple[MediaStrategy, ...] = (
    og_video_strategy,
    ld_json_strategy,
    legacy_shared_data_strategy,
)


def extract_media_link(
    html: str,
    strategies: tuple[MediaStrategy, ...] = MEDIA_STRATEGIES,
    base_url: str = "",
) -> MediaLink:
    """Run the strategies in order; relative URLs resolve against ``base_url``."""
    soup = BeautifulSoup(html, "html.parser")
    for strategy in strategies:
        url = strategy(soup)
        if url:
            logger.debug("Media URL found by %s", strategy.__name__)
            return MediaLink(url=urljoin(base_url, url), title=_og_title(soup))
    raise ExtractionError("source page did not expose a media URL")


# --- Dispatcher ---


class ResponseExtractor:
    """Dispatches a raw response to the extractor for the expected shape."""

    def __init__(self, media_strategies: tuple[MediaStrategy, ...] = MEDIA_STRATEGIES) -> None:
        self._media_strategies = media_strategies

    def extract(self, raw: RawResponse, shape: ResponseShape) -> RelayResult:
        if shape == ResponseShape.MEDIA_LINK:
            return extract_media_link(raw.text, self._media_strategies, base_url=raw.url)

        try:
            payload = json.loads(raw.text)
        except json.JSONDecodeError as exc:
            raise ExtractionError("malformed response from the API", str(exc)) from exc

        if shape == ResponseShape.TEXT:
            return extract_text_answer(payload)
        return extract_image_set(payload)


def _og_title(soup: BeautifulSoup) -> str | None:
    tag = soup.find("meta", attrs={"property": "og:title"})
    if tag and tag.get("content"):
        return str(tag["content"]).strip() or None
    return None


def _find_content_url(data: Any) -> str | None:
    """Search ld+json for ``contentUrl`` at the top, under ``video``, or in a list."""
    if isinstance(data, list):
        for item in data:
            url = _find_content_url(item)
            if url:
                return url
        return None
    if not isinstance(data, dict):
        return None
    url = data.get("contentUrl")
    if isinstance(url, str) and url:
        return url
    for key in ("video", "@graph"):
        if key in data:
            url = _find_content_url(data[key])
            if url:
                return url
    return None


def _dig(data: Any, path: tuple[str | int, ...]) -> Any:
    for key in path:
        if isinstance(key, int):
            if not isinstance(data, list) or len(data) <= key:
                return None
        elif not isinstance(data, dict):
            return None
        data = data[key] if isinstance(key, int) else data.get(key)
    return data
