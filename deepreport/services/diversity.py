"""Score-floor plus one-per-domain source selection."""

from __future__ import annotations

from deepreport.models.research import SearchCandidate
from deepreport.tools import web_utils


def select_diverse(
    ranked: list[SearchCandidate],
    cap: int,
    *,
    min_score: float = 0.5,
) -> list[SearchCandidate]:
    """Greedy pass over score-sorted candidates.

    A candidate is taken when the selection is below ``cap``, its score is
    strictly above ``min_score`` and no selected candidate shares its host.
    Returns an empty list when nothing clears the floor.
    """
    selected: list[SearchCandidate] = []
    seen_domains: set[str] = set()
    for candidate in ranked:
        if len(selected) >= cap:
            break
        if candidate.score <= min_score:
            continue
        domain = web_utils.extract_host(candidate.url)
        if domain in seen_domains:
            continue
        selected.append(candidate)
        seen_domains.add(domain)
    return selected


def rank_candidates(candidates: list[SearchCandidate]) -> list[SearchCandidate]:
    """Sort by score, highest first; ties keep their search order."""
    return sorted(candidates, key=lambda c: c.score, reverse=True)


def unique_domains(candidates: list[SearchCandidate]) -> list[str]:
    domains: list[str] = []
    for candidate in candidates:
        domain = web_utils.extract_host(candidate.url)
        if domain not in domains:
            domains.append(domain)
    return domains
