from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from deepreport.errors import ErrorCategory, UpstreamError
from deepreport.tools import content_fetcher


@pytest.mark.asyncio
async def test_unsupported_fetcher_is_an_upstream_failure():
    with patch("deepreport.tools.content_fetcher.settings") as mock_settings:
        mock_settings.content_fetcher = "carrier-pigeon"

        with pytest.raises(UpstreamError, match="Unsupported CONTENT_FETCHER") as exc_info:
            await content_fetcher.fetch_content("https://example.com/article")

    assert exc_info.value.category is ErrorCategory.UPSTREAM_FAILURE


@pytest.mark.asyncio
async def test_non_web_urls_are_not_fetched():
    with patch("deepreport.tools.content_fetcher._fetch_direct", new=AsyncMock()) as fetch:
        with pytest.raises(UpstreamError):
            await content_fetcher.fetch_content("file://notes.txt")

    fetch.assert_not_awaited()


@pytest.mark.asyncio
async def test_direct_mode_returns_extracted_text():
    with patch("deepreport.tools.content_fetcher.settings") as mock_settings, patch(
        "deepreport.tools.content_fetcher._fetch_direct", new=AsyncMock(return_value="Body text")
    ) as fetch:
        mock_settings.content_fetcher = "direct"

        fetched = await content_fetcher.fetch_content("https://example.com/article")

    assert fetched.content == "Body text"
    fetch.assert_awaited_once_with("https://example.com/article")
