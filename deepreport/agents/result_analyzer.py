from __future__ import annotations

from typing import Any

from deepreport.agents.base import JSONAgent
from deepreport.errors import UpstreamError
from deepreport.models.research import Analysis, Ranking, SearchCandidate

SNIPPET_CHARS = 500


def _format_candidates(candidates: list[SearchCandidate]) -> str:
    blocks: list[str] = []
    for idx, candidate in enumerate(candidates, 1):
        body = candidate.content or candidate.snippet
        blocks.append(
            f"[{idx}] {candidate.name}\nURL: {candidate.url}\n{body[:SNIPPET_CHARS]}"
        )
    return "\n\n".join(blocks)


def _coerce_score(value: Any) -> float:
    try:
        score = float(value)
    except (TypeError, ValueError):
        return 0.0
    return max(0.0, min(score, 1.0))


class ResultAnalyzerAgent(JSONAgent):
    """Scores candidate sources for relevance to the research prompt."""

    name = "result_analyzer"
    prompt_key = "result_analyzer"

    async def analyze(self, prompt: str, candidates: list[SearchCandidate]) -> Analysis:
        payload = await self.complete(prompt=prompt, candidates=_format_candidates(candidates))
        raw_rankings = payload.get("rankings")
        if not isinstance(raw_rankings, list):
            raise UpstreamError("Result analyzer returned no rankings")

        rankings: list[Ranking] = []
        for item in raw_rankings:
            if not isinstance(item, dict):
                continue
            url = item.get("url")
            if isinstance(url, str) and url:
                rankings.append(Ranking(url=url, score=_coerce_score(item.get("score"))))
        return Analysis(rankings=rankings, analysis=str(payload.get("analysis") or "").strip())


async def analyze_results(
    prompt: str, candidates: list[SearchCandidate], model_id: str
) -> Analysis:
    return await ResultAnalyzerAgent(model=model_id).analyze(prompt, candidates)
