"""
Unit tests for the analysis orchestrator and the bounded pool
"""
import asyncio
from datetime import datetime, timezone

import pytest

from analysis.resources import ResourceSummary, TypeTotals
from collector.errors import AnalysisTimeoutError, UnreachableURLError
from core_async import AnalysisPool, analyze, build_report

URL = "https://example.com/"


class TestBuildReport:
    """Pure assembly of the report from a snapshot"""

    def test_report_contents(self, telemetry):
        stamp = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)
        report = build_report(URL, telemetry, timestamp=stamp)

        assert report.url == URL
        assert report.timestamp == "2024-05-01T12:00:00Z"
        assert len(report.resources) == 8
        assert [(s.type, s.category) for s in report.suggestions] == [("success", "Overall")]
        assert report.score.value == 100
        assert "0 issue(s)" in report.summary

    def test_to_dict_wire_shape(self, telemetry):
        data = build_report(URL, telemetry).to_dict()

        assert set(data) == {"url", "timestamp", "metrics", "resources", "suggestions", "score", "summary"}
        assert data["metrics"]["coreWebVitals"]["fid"] == {"value": None, "rating": "unknown"}
        assert data["resources"][1] == {
            "name": "https://example.com/style.css",
            "type": "stylesheet",
            "startTime": 111,
            "duration": 21,
            "size": 20_000,
        }
        assert data["suggestions"][0]["type"] == "success"

    def test_report_is_immutable(self, telemetry):
        report = build_report(URL, telemetry)
        with pytest.raises(Exception):
            report.url = "https://other.example/"

    def test_nested_summary_is_read_only(self, telemetry):
        report = build_report(URL, telemetry)
        by_type = report.metrics.resource_summary.by_type

        with pytest.raises(TypeError):
            by_type["script"] = None
        with pytest.raises(TypeError):
            del by_type["other"]
        assert by_type["script"].count == 1
        assert report.to_dict()["metrics"]["resourceSummary"]["byType"]["script"]["count"] == 1

    def test_summary_does_not_alias_caller_dict(self):
        totals = {"script": TypeTotals(count=1, size=10)}
        summary = ResourceSummary(total_requests=1, total_size=10, by_type=totals)
        totals["script"] = TypeTotals(count=9, size=99)

        assert summary.by_type["script"] == TypeTotals(count=1, size=10)


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_uses_one_session_per_call(self, fake_session_factory, tracker):
        factory = fake_session_factory()
        await analyze(URL, session_factory=factory)
        await analyze(URL, session_factory=factory)

        assert tracker.opened == 2
        assert tracker.closed == 2
        assert tracker.urls == [URL, URL]

    @pytest.mark.asyncio
    async def test_classified_errors_propagate(self, fake_session_factory, tracker):
        factory = fake_session_factory(navigate_error=UnreachableURLError())

        with pytest.raises(UnreachableURLError) as exc_info:
            await analyze(URL, session_factory=factory)

        assert exc_info.value.url == URL
        assert tracker.closed == 1


class TestAnalysisPool:
    @pytest.mark.asyncio
    async def test_returns_report(self, fake_session_factory):
        pool = AnalysisPool(max_concurrent=2, deadline_s=5, session_factory=fake_session_factory())
        report = await pool.run(URL)
        assert report.url == URL
        assert pool.active == 0

    @pytest.mark.asyncio
    async def test_bounds_concurrent_browsers(self, fake_session_factory, tracker):
        pool = AnalysisPool(max_concurrent=2, deadline_s=5,
                            session_factory=fake_session_factory(delay=0.02))

        reports = await asyncio.gather(*(pool.run(URL) for _ in range(6)))

        assert len(reports) == 6
        assert tracker.peak == 2
        assert tracker.opened == tracker.closed == 6

    @pytest.mark.asyncio
    async def test_deadline_tears_down_session(self, fake_session_factory, tracker):
        pool = AnalysisPool(max_concurrent=1, deadline_s=0.05,
                            session_factory=fake_session_factory(delay=5))

        with pytest.raises(AnalysisTimeoutError) as exc_info:
            await pool.run(URL)

        assert exc_info.value.url == URL
        assert tracker.opened == 1
        assert tracker.closed == 1
        assert tracker.active == 0

    @pytest.mark.asyncio
    async def test_deadline_includes_waiting_for_a_slot(self, fake_session_factory, tracker):
        pool = AnalysisPool(max_concurrent=1, deadline_s=0.1,
                            session_factory=fake_session_factory(delay=0.3))

        results = await asyncio.gather(pool.run(URL), pool.run(URL), return_exceptions=True)

        assert all(isinstance(r, AnalysisTimeoutError) for r in results)
        assert tracker.opened == tracker.closed
        assert tracker.active == 0

    def test_rejects_empty_pool(self):
        with pytest.raises(ValueError):
            AnalysisPool(max_concurrent=0)
