from __future__ import annotations

from deepreport.agents.base import JSONAgent
from deepreport.errors import UpstreamError
from deepreport.models.research import OptimizedQuery


class QueryOptimizerAgent(JSONAgent):
    """Turns a free-text research prompt into a search query and report brief."""

    name = "query_optimizer"
    prompt_key = "query_optimizer"

    async def optimize(self, prompt: str) -> OptimizedQuery:
        payload = await self.complete(prompt=prompt)
        query = str(payload.get("query") or "").strip()
        if not query:
            raise UpstreamError("Query optimizer returned no search query")

        structure = payload.get("suggestedStructure") or []
        if not isinstance(structure, list):
            structure = []
        return OptimizedQuery(
            query=query,
            optimized_prompt=str(payload.get("optimizedPrompt") or prompt).strip(),
            explanation=str(payload.get("explanation") or "").strip(),
            suggested_structure=[str(item) for item in structure if str(item).strip()],
        )


async def optimize_query(prompt: str, model_id: str) -> OptimizedQuery:
    return await QueryOptimizerAgent(model=model_id).optimize(prompt)
