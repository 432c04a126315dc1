from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest

from deepreport.models.research import FetchState
from deepreport.services.fetch_tracker import FetchTracker


def test_counts_fetched_and_fallback():
    tracker = FetchTracker(total=3)
    tracker.record_fetched("https://a.com")
    tracker.record_fallback("https://b.com")
    tracker.record_fetched("https://c.com")

    status = tracker.snapshot()
    assert (status.total, status.successful, status.fallback) == (3, 2, 1)
    assert status.sources["https://b.com"] is FetchState.PREVIEW
    assert tracker.completed == 3


def test_second_record_for_same_url_replaces_first():
    tracker = FetchTracker(total=1)
    tracker.record_fallback("https://a.com")
    tracker.record_fetched("https://a.com")

    status = tracker.snapshot()
    assert status.successful == 1
    assert status.fallback == 0
    assert status.sources["https://a.com"] is FetchState.FETCHED


def test_snapshot_is_read_only():
    tracker = FetchTracker(total=1)
    tracker.record_fetched("https://a.com")
    status = tracker.snapshot()

    with pytest.raises(TypeError):
        status.sources["https://b.com"] = FetchState.FETCHED  # type: ignore[index]
    tracker.record_fallback("https://b.com")
    assert "https://b.com" not in status.sources


def test_concurrent_updates_are_not_lost():
    urls = [f"https://site{i}.com" for i in range(200)]
    tracker = FetchTracker(total=len(urls))

    def record(idx_url):
        idx, url = idx_url
        if idx % 2:
            tracker.record_fallback(url)
        else:
            tracker.record_fetched(url)

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(record, enumerate(urls)))

    status = tracker.snapshot()
    assert status.successful == 100
    assert status.fallback == 100
    assert status.successful + status.fallback <= status.total
