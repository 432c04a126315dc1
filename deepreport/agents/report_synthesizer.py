from __future__ import annotations

from deepreport.agents.base import JSONAgent
from deepreport.config import settings
from deepreport.errors import UpstreamError
from deepreport.models.research import Report, ReportSection, ResolvedSource, SearchCandidate


def _format_sources(selected: list[ResolvedSource], budget: int) -> str:
    per_source = max(budget // max(len(selected), 1), 1000)
    blocks: list[str] = []
    for idx, source in enumerate(selected, 1):
        blocks.append(f"[{idx}] {source.title}\nURL: {source.url}\n{source.content[:per_source]}")
    return "\n\n".join(blocks)


class ReportSynthesizerAgent(JSONAgent):
    """Writes the structured report from resolved source content."""

    name = "report_synthesizer"
    prompt_key = "report_synthesizer"

    async def synthesize(
        self,
        selected: list[ResolvedSource],
        sources: list[SearchCandidate],
        prompt: str,
    ) -> Report:
        payload = await self.complete(
            prompt=prompt,
            sources=_format_sources(selected, settings.content_max_chars),
        )
        title = str(payload.get("title") or "").strip()
        raw_sections = payload.get("sections")
        if not title or not isinstance(raw_sections, list):
            raise UpstreamError("Report synthesizer returned an incomplete report")

        sections = [
            ReportSection(
                title=str(item.get("title") or "").strip(),
                content=str(item.get("content") or "").strip(),
            )
            for item in raw_sections
            if isinstance(item, dict)
        ]
        used = payload.get("usedSources") or []
        used_sources = [
            int(n) for n in used
            if isinstance(n, (int, float)) and 1 <= int(n) <= len(selected)
        ] if isinstance(used, list) else []

        return Report(
            title=title,
            summary=str(payload.get("summary") or "").strip(),
            sections=sections,
            sources=list(sources),
            used_sources=used_sources,
            prompt=prompt,
        )


async def synthesize_report(
    selected: list[ResolvedSource],
    sources: list[SearchCandidate],
    prompt: str,
    model_id: str,
) -> Report:
    return await ReportSynthesizerAgent(model=model_id).synthesize(selected, sources, prompt)
