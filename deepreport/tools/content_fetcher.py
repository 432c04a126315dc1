from __future__ import annotations

import asyncio

import httpx

from deepreport.config import settings
from deepreport.errors import UpstreamError, from_http_error
from deepreport.models.research import FetchedContent
from deepreport.tools import content_extractor, web_utils

USER_AGENT = "deepreport/0.1 (+https://github.com/deepreport)"


async def _fetch_direct(url: str) -> str:
    async with httpx.AsyncClient(
        timeout=settings.content_fetch_timeout_seconds,
        follow_redirects=True,
    ) as client:
        response = await client.get(url, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
        raw = response.text

    extracted = await asyncio.to_thread(
        content_extractor.extract_main_content,
        url,
        raw,
        max_chars=settings.content_max_chars,
    )
    return extracted.text


async def _fetch_with_jina_reader(url: str) -> str:
    headers = {"X-Return-Format": "markdown"}
    if settings.jina_api_key:
        headers["Authorization"] = f"Bearer {settings.jina_api_key}"
    target = settings.jina_reader_base_url.rstrip("/") + "/" + url

    async with httpx.AsyncClient(
        timeout=settings.content_fetch_timeout_seconds,
        follow_redirects=True,
    ) as client:
        response = await client.get(target, headers=headers)
        response.raise_for_status()
    return web_utils.clean_content(response.text, max_length=settings.content_max_chars)


async def fetch_content(url: str) -> FetchedContent:
    """Collaborator entry point: full text for one source URL.

    HTTP 429 surfaces as ``RateLimitedError`` so the resolver can abort the
    batch; every other failure is an ``UpstreamError``.
    """
    if not web_utils.is_valid_url(url):
        raise UpstreamError(f"Cannot fetch non-web URL: {url}")

    mode = settings.content_fetcher.lower().strip()
    try:
        if mode == "jina_reader":
            text = await _fetch_with_jina_reader(url)
        elif mode == "direct":
            text = await _fetch_direct(url)
        else:
            raise UpstreamError(f"Unsupported CONTENT_FETCHER: {settings.content_fetcher}")
    except httpx.HTTPError as exc:
        raise from_http_error(exc, service="Content fetch") from exc
    return FetchedContent(content=text)
