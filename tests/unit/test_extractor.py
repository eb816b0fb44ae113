"""Tests for the response extractor and its media strategy chain."""

from __future__ import annotations

import json

import pytest
from bs4 import BeautifulSoup

from src.models import ImageSet, MediaLink, RawResponse, ResponseShape, TextAnswer
from src.relay.errors import ExtractionError
from src.relay.extractor import (
    ResponseExtractor,
    extract_media_link,
    ld_json_strategy,
    legacy_shared_data_strategy,
    og_video_strategy,
)
from tests.conftest import make_raw

_OG_PAGE = """
<html><head>
<meta property="og:title" content="Sunset reel" />
<meta property="og:video" content="https://cdn.test/og.mp4" />
</head><body></body></html>
"""

_LD_PAGE = """
<html><head>
<script type="application/ld+json">
{"@type": "SocialMediaPosting", "video": [{"@type": "VideoObject",
 "contentUrl": "https://cdn.test/ld.mp4"}]}
</script>
</head></html>
"""

_LEGACY_PAGE = """
<html><body>
<script type="text/javascript">window._sharedData = {"entry_data": {"PostPage": [
 {"graphql": {"shortcode_media": {"video_url": "https://cdn.test/legacy.mp4"}}}]}};</script>
</body></html>
"""


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


class TestTextAnswer:
    def test_successful_answer(self) -> None:
        raw = make_raw(json.dumps({"status": 200, "successful": "success", "response": "Hi there"}))
        result = ResponseExtractor().extract(raw, ResponseShape.TEXT)
        assert result == TextAnswer(text="Hi there")

    def test_missing_success_field_fails(self) -> None:
        raw = make_raw(json.dumps({"status": 200, "response": "Hi"}))
        with pytest.raises(ExtractionError, match="API request failed"):
            ResponseExtractor().extract(raw, ResponseShape.TEXT)

    def test_wrong_status_fails(self) -> None:
        raw = make_raw(json.dumps({"status": 500, "successful": "success", "response": "Hi"}))
        with pytest.raises(ExtractionError):
            ResponseExtractor().extract(raw, ResponseShape.TEXT)

    def test_empty_answer_fails(self) -> None:
        raw = make_raw(json.dumps({"status": 200, "successful": "success", "response": "  "}))
        with pytest.raises(ExtractionError, match="no answer"):
            ResponseExtractor().extract(raw, ResponseShape.TEXT)

    def test_malformed_json_fails(self) -> None:
        with pytest.raises(ExtractionError, match="malformed"):
            ResponseExtractor().extract(make_raw("{not json"), ResponseShape.TEXT)

    def test_non_object_payload_fails(self) -> None:
        with pytest.raises(ExtractionError):
            ResponseExtractor().extract(make_raw("[1, 2]"), ResponseShape.TEXT)


class TestImageSet:
    def test_urls_in_order(self) -> None:
        urls = ["https://img.test/1.png", "https://img.test/2.png", "https://img.test/3.png"]
        result = ResponseExtractor().extract(
            make_raw(json.dumps({"images": urls})), ResponseShape.IMAGE_SET,
        )
        assert result == ImageSet(urls=urls)

    @pytest.mark.parametrize("payload", [{}, {"images": "x.png"}, {"images": []}, {"images": [1, None]}])
    def test_missing_or_empty_fails(self, payload: dict[str, object]) -> None:
        with pytest.raises(ExtractionError):
            ResponseExtractor().extract(make_raw(json.dumps(payload)), ResponseShape.IMAGE_SET)


class TestMediaStrategies:
    def test_og_video(self) -> None:
        assert og_video_strategy(_soup(_OG_PAGE)) == "https://cdn.test/og.mp4"

    def test_og_video_absent(self) -> None:
        assert og_video_strategy(_soup(_LD_PAGE)) is None

    def test_ld_json_nested_video_list(self) -> None:
        assert ld_json_strategy(_soup(_LD_PAGE)) == "https://cdn.test/ld.mp4"

    def test_ld_json_ignores_broken_blocks(self) -> None:
        page = '<script type="application/ld+json">{broken</script>' + _LD_PAGE
        assert ld_json_strategy(_soup(page)) == "https://cdn.test/ld.mp4"

    def test_legacy_shared_data(self) -> None:
        assert legacy_shared_data_strategy(_soup(_LEGACY_PAGE)) == "https://cdn.test/legacy.mp4"

    def test_legacy_missing_path(self) -> None:
        page = "<script>window._sharedData = {\"entry_data\": {}};</script>"
        assert legacy_shared_data_strategy(_soup(page)) is None


class TestMediaLinkChain:
    def test_first_strategy_wins(self) -> None:
        result = extract_media_link(_OG_PAGE + _LD_PAGE)
        assert result == MediaLink(url="https://cdn.test/og.mp4", title="Sunset reel")

    def test_falls_through_to_legacy(self) -> None:
        result = ResponseExtractor().extract(
            make_raw(_LEGACY_PAGE, content_type="text/html"), ResponseShape.MEDIA_LINK,
        )
        assert isinstance(result, MediaLink)
        assert result.url.endswith(".mp4")
        assert result.title is None

    def test_all_strategies_fail(self) -> None:
        with pytest.raises(ExtractionError, match="did not expose a media URL"):
            extract_media_link("<html><body>nothing here</body></html>")

    def test_relative_url_resolved_against_page(self) -> None:
        page = '<meta property="og:video" content="/media/reel.mp4" />'
        raw = RawResponse(
            status_code=200,
            content_type="text/html",
            url="https://www.instagram.com/reel/abc/",
            text=page,
        )
        result = ResponseExtractor().extract(raw, ResponseShape.MEDIA_LINK)
        assert isinstance(result, MediaLink)
        assert result.url == "https://www.instagram.com/media/reel.mp4"

    def test_absolute_url_kept(self) -> None:
        result = extract_media_link(_OG_PAGE, base_url="https://www.instagram.com/reel/abc/")
        assert result.url == "https://cdn.test/og.mp4"

    def test_custom_strategy_order(self) -> None:
        extractor = ResponseExtractor(media_strategies=(legacy_shared_data_strategy,))
        with pytest.raises(ExtractionError):
            extractor.extract(make_raw(_OG_PAGE), ResponseShape.MEDIA_LINK)
