from __future__ import annotations

from dataclasses import dataclass

import httpx
from loguru import logger

from deepreport.config import settings
from deepreport.errors import ResearchError, UpstreamError, from_http_error, from_status
from deepreport.models.research import TIME_FILTERS
from deepreport.tools import brave_search, tavily_search, web_utils
from deepreport.tools.tavily_search import SearchResult


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str
    fallback_from: str | None = None
    fallback_reason: str | None = None


async def _tavily(query: str, max_results: int, time_filter: str) -> list[SearchResult]:
    try:
        return await tavily_search.search(
            query=query,
            max_results=max_results,
            time_filter=time_filter,
        )
    except ResearchError:
        raise
    except httpx.HTTPError as exc:
        raise from_http_error(exc, service="Tavily search") from exc
    except Exception as exc:
        status_code = getattr(exc, "status_code", None)
        if isinstance(status_code, int):
            raise from_status(status_code, str(exc), service="Tavily search") from exc
        raise UpstreamError(f"Tavily search: {exc}") from exc


async def search(
    query: str,
    *,
    time_filter: str = "all",
    max_results: int | None = None,
) -> SearchResponse:
    provider = settings.search_provider.lower().strip()
    use_fallback = settings.search_fallback_to_tavily
    limit = max_results or settings.search_results_per_page
    if time_filter not in TIME_FILTERS:
        time_filter = "all"

    if provider == "tavily":
        results = await _tavily(query, limit, time_filter)
        return SearchResponse(results=_valid(results), provider="tavily")

    if provider == "brave":
        try:
            results = await brave_search.search(
                query=query,
                max_results=limit,
                time_filter=time_filter,
            )
        except ResearchError as exc:
            if not use_fallback or not settings.tavily_api_key:
                raise
            logger.warning(f"Brave search failed ({exc.category.value}), falling back to Tavily")
            try:
                fallback_results = await _tavily(query, limit, time_filter)
            except ResearchError:
                raise exc
            return SearchResponse(
                results=_valid(fallback_results),
                provider="tavily",
                fallback_from="brave",
                fallback_reason=exc.message,
            )
        return SearchResponse(results=_valid(results), provider="brave")

    raise UpstreamError(f"Unsupported SEARCH_PROVIDER: {settings.search_provider}")


def _valid(results: list[SearchResult]) -> list[SearchResult]:
    return [r for r in results if web_utils.is_valid_url(r.url)]


async def search_web(query: str, time_filter: str = "all") -> list[SearchResult]:
    """Collaborator entry point: one page of ranked results for ``query``."""
    response = await search(query, time_filter=time_filter)
    if response.fallback_from:
        logger.info(
            f"Search served by {response.provider} (fallback from {response.fallback_from}: {response.fallback_reason})"
        )
    return response.results
