from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

from deepreport.models.research import (
    Analysis,
    FetchedContent,
    OptimizedQuery,
    Report,
    ResolvedSource,
    SearchCandidate,
)
from deepreport.tools.tavily_search import SearchResult

SearchFn = Callable[[str, str], Awaitable[list[SearchResult]]]
OptimizeFn = Callable[[str, str], Awaitable[OptimizedQuery]]
AnalyzeFn = Callable[[str, list[SearchCandidate], str], Awaitable[Analysis]]
FetchFn = Callable[[str], Awaitable[FetchedContent]]
SynthesizeFn = Callable[[list[ResolvedSource], list[SearchCandidate], str, str], Awaitable[Report]]
ExtractFn = Callable[[str, bytes], str]


@dataclass
class Collaborators:
    """The remote operations the pipeline drives, swappable as a bundle."""

    search: SearchFn
    optimize_query: OptimizeFn
    analyze_results: AnalyzeFn
    fetch_content: FetchFn
    synthesize_report: SynthesizeFn
    extract_document: ExtractFn

    @classmethod
    def default(cls) -> "Collaborators":
        from deepreport.agents.query_optimizer import optimize_query
        from deepreport.agents.report_synthesizer import synthesize_report
        from deepreport.agents.result_analyzer import analyze_results
        from deepreport.tools.content_fetcher import fetch_content
        from deepreport.tools.document_extractor import extract_document
        from deepreport.tools.search_provider import search_web

        return cls(
            search=search_web,
            optimize_query=optimize_query,
            analyze_results=analyze_results,
            fetch_content=fetch_content,
            synthesize_report=synthesize_report,
            extract_document=extract_document,
        )
