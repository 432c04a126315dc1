from __future__ import annotations

import asyncio

import pytest

from deepreport.errors import ErrorCategory, QuotaExceededError, RateLimitedError, UpstreamError
from deepreport.models.events import EventType
from deepreport.models.research import OptimizedQuery, PipelineStatus, SearchCandidate, Stage
from deepreport.services.pipeline import AgentPipeline, mint_candidates
from tests.fakes import fake_collaborators, result


def _pipeline(collaborators, events=None, **kwargs) -> AgentPipeline:
    return AgentPipeline(
        collaborators,
        PipelineStatus(run_id=1),
        model_id="test-model",
        base_delay=0,
        notify=events.append if events is not None else None,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_zero_search_results_ends_in_empty_result_error():
    collaborators = fake_collaborators(search_results=[])
    events = []
    pipeline = _pipeline(collaborators, events)

    outcome = await pipeline.run("quantum batteries")

    assert outcome is None
    assert pipeline.status.stage is Stage.ERROR
    assert pipeline.status.error.category is ErrorCategory.EMPTY_RESULT
    collaborators.analyze_results.assert_not_awaited()
    collaborators.synthesize_report.assert_not_awaited()
    assert events[-1].event is EventType.ERROR


@pytest.mark.asyncio
async def test_full_run_selects_diverse_sources():
    urls = ["https://a.com/1", "https://a.com/2", "https://b.com/1", "https://c.com/1", "https://d.com/1"]
    scores = dict(zip(urls, [0.9, 0.85, 0.8, 0.4, 0.7]))
    collaborators = fake_collaborators(search_results=[result(u) for u in urls], scores=scores)
    events = []
    pipeline = _pipeline(collaborators, events)

    outcome = await pipeline.run("compare battery chemistries")

    assert outcome is not None
    assert [c.url for c in outcome.selected] == ["https://a.com/1", "https://b.com/1", "https://d.com/1"]
    assert [c.url for c in outcome.candidates][:2] == ["https://a.com/1", "https://a.com/2"]
    assert outcome.report.title == "Fake report"
    assert pipeline.status.stage is Stage.IDLE
    assert pipeline.status.queries == ["optimized query"]
    assert pipeline.status.error is None

    stages = [e.data["stage"] for e in events if e.event is EventType.STAGE_CHANGED]
    assert stages == ["processing", "searching", "analyzing", "generating", "idle"]
    assert events[0].event is EventType.RUN_STARTED
    assert events[-1].event is EventType.REPORT_READY
    assert events[-1].data["fetch_status"]["successful"] == 3

    collaborators.search.assert_awaited_once_with("optimized query", "all")
    synth_args = collaborators.synthesize_report.await_args.args
    assert [s.url for s in synth_args[0]] == [c.url for c in outcome.selected]
    assert synth_args[3] == "test-model"


@pytest.mark.asyncio
async def test_tied_top_scores_keep_search_order_and_one_source_per_domain():
    urls = ["https://a.com/1", "https://a.com/2", "https://b.com/1", "https://c.com/1", "https://d.com/1"]
    scores = dict(zip(urls, [0.9, 0.8, 0.6, 0.4, 0.9]))
    collaborators = fake_collaborators(search_results=[result(u) for u in urls], scores=scores)
    pipeline = _pipeline(collaborators, max_selections=3)

    outcome = await pipeline.run("compare battery chemistries")

    selected = [c.url for c in outcome.selected]
    assert selected == ["https://a.com/1", "https://d.com/1", "https://b.com/1"]
    assert [c.score for c in outcome.selected] == [0.9, 0.9, 0.6]
    assert "https://a.com/2" not in selected
    assert "https://c.com/1" not in selected


@pytest.mark.asyncio
async def test_fetch_failures_are_absorbed_as_previews():
    urls = ["https://a.com", "https://b.com", "https://c.com"]
    collaborators = fake_collaborators(
        search_results=[result(u) for u in urls],
        scores={u: 0.9 for u in urls},
        failures={"https://b.com": UpstreamError("404")},
    )
    events = []
    pipeline = _pipeline(collaborators, events)

    outcome = await pipeline.run("prompt")

    assert outcome is not None
    fetch_status = pipeline.status.snapshot().fetch_status
    assert (fetch_status.total, fetch_status.successful, fetch_status.fallback) == (3, 2, 1)
    assert any("1 using search previews" in i for i in pipeline.status.insights)
    resolved = [e.data for e in events if e.event is EventType.SOURCE_RESOLVED]
    assert sorted(d["completed"] for d in resolved) == [1, 2, 3]
    assert {d["total"] for d in resolved} == {3}


@pytest.mark.asyncio
async def test_nothing_above_floor_is_an_empty_result():
    urls = ["https://a.com", "https://b.com"]
    collaborators = fake_collaborators(search_results=[result(u) for u in urls], scores={u: 0.3 for u in urls})
    pipeline = _pipeline(collaborators)

    assert await pipeline.run("prompt") is None
    assert pipeline.status.error.category is ErrorCategory.EMPTY_RESULT
    collaborators.fetch_content.assert_not_awaited()


@pytest.mark.asyncio
async def test_optimizer_failure_aborts_before_search():
    collaborators = fake_collaborators(search_results=[result("https://a.com")])
    collaborators.optimize_query.side_effect = QuotaExceededError()
    pipeline = _pipeline(collaborators)

    assert await pipeline.run("prompt") is None
    assert pipeline.status.stage is Stage.ERROR
    assert pipeline.status.error.category is ErrorCategory.QUOTA_EXCEEDED
    collaborators.search.assert_not_awaited()


@pytest.mark.asyncio
async def test_rate_limited_search_retries_then_fails():
    collaborators = fake_collaborators()
    collaborators.search.side_effect = RateLimitedError()
    pipeline = _pipeline(collaborators, max_attempts=3)

    assert await pipeline.run("prompt") is None
    assert collaborators.search.await_count == 3
    assert pipeline.status.error.category is ErrorCategory.RATE_LIMITED


@pytest.mark.asyncio
async def test_rate_limited_fetch_aborts_the_run():
    collaborators = fake_collaborators(
        search_results=[result("https://a.com")],
        scores={"https://a.com": 0.9},
        failures={"https://a.com": RateLimitedError()},
    )
    pipeline = _pipeline(collaborators, max_attempts=2)

    assert await pipeline.run("prompt") is None
    assert pipeline.status.error.category is ErrorCategory.RATE_LIMITED
    collaborators.synthesize_report.assert_not_awaited()


@pytest.mark.asyncio
async def test_cancelled_run_moves_status_to_error():
    gate = asyncio.Event()
    collaborators = fake_collaborators()

    async def blocked_analysis(prompt, candidates, model_id):
        await gate.wait()

    collaborators.search.return_value = [result("https://a.com")]
    collaborators.analyze_results.side_effect = blocked_analysis
    events = []
    pipeline = _pipeline(collaborators, events)

    task = asyncio.create_task(pipeline.run("prompt"))
    for _ in range(100):
        if pipeline.status.stage is Stage.ANALYZING:
            break
        await asyncio.sleep(0)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert pipeline.status.stage is Stage.ERROR
    assert pipeline.status.error.category is ErrorCategory.UPSTREAM_FAILURE
    assert events[-1].event is EventType.ERROR
    assert events[-1].data["message"] == "Run cancelled"


@pytest.mark.asyncio
async def test_suggested_structure_is_passed_to_synthesis():
    collaborators = fake_collaborators(
        search_results=[result("https://a.com")],
        scores={"https://a.com": 0.9},
        optimized=OptimizedQuery(
            query="q", optimized_prompt="Write it", suggested_structure=["Background", "Outlook"]
        ),
    )
    outcome = await _pipeline(collaborators).run("prompt")

    assert outcome.prompt == "Write it\n\nSuggested structure:\n- Background\n- Outlook"
    collaborators.analyze_results.assert_awaited_once()
    assert collaborators.analyze_results.await_args.args[0] == "Write it"


@pytest.mark.asyncio
async def test_manual_generate_skips_search_stages():
    collaborators = fake_collaborators()
    selected = [SearchCandidate(id="custom-1", url="https://a.com", name="a.com", snippet="s")]
    events = []
    pipeline = _pipeline(collaborators, events)

    outcome = await pipeline.generate("Summarize key points of a.com", selected)

    assert outcome.report.prompt == "Summarize key points of a.com"
    assert outcome.candidates is None
    collaborators.optimize_query.assert_not_awaited()
    collaborators.search.assert_not_awaited()
    stages = [e.data["stage"] for e in events if e.event is EventType.STAGE_CHANGED]
    assert stages == ["generating", "idle"]


@pytest.mark.asyncio
async def test_unexpected_synthesis_failure_is_reported_as_upstream():
    collaborators = fake_collaborators()
    collaborators.synthesize_report.side_effect = KeyError("title")
    selected = [SearchCandidate(id="x", url="https://a.com", name="a", content="text")]
    pipeline = _pipeline(collaborators)

    assert await pipeline.generate("prompt", selected) is None
    assert pipeline.status.error.category is ErrorCategory.UPSTREAM_FAILURE


def test_mint_candidates_ids_are_unique_per_response():
    candidates = mint_candidates(
        [result("https://a.com"), result("https://a.com"), result("https://b.com")],
        timestamp_ms=1700000000000,
    )
    ids = [c.id for c in candidates]
    assert len(set(ids)) == 3
    assert ids[0] == "search-1700000000000-0-https://a.com"
    assert candidates[0].snippet == "Snippet for https://a.com"
