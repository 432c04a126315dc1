from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from tavily import AsyncTavilyClient

from deepreport.config import settings
from deepreport.errors import UpstreamError

TIME_RANGE_MAP = {
    "24h": "day",
    "week": "week",
    "month": "month",
    "year": "year",
}


@dataclass
class SearchResult:
    title: str
    url: str
    content: str
    score: float = 0.0


async def search(
    query: str,
    *,
    search_depth: str = "basic",
    max_results: int = 10,
    time_filter: str = "all",
) -> list[SearchResult]:
    """Execute a Tavily web search and return structured results."""
    if not settings.tavily_api_key:
        raise UpstreamError("TAVILY_API_KEY is not configured")
    client = AsyncTavilyClient(api_key=settings.tavily_api_key)

    kwargs: dict[str, Any] = {
        "query": query,
        "search_depth": search_depth,
        "max_results": max_results,
        "topic": "general",
    }
    if time_filter in TIME_RANGE_MAP:
        kwargs["time_range"] = TIME_RANGE_MAP[time_filter]

    response = await client.search(**kwargs)

    return [
        SearchResult(
            title=r.get("title", ""),
            url=r.get("url", ""),
            content=r.get("content", ""),
            score=r.get("score", 0.0),
        )
        for r in response.get("results", [])
    ]
