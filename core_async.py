"""
core_async.py — Async Analysis Orchestrator
────────────────────────────────────────────
Runs one analysis end-to-end:

  1. Open a dedicated browser session (never shared between requests)
  2. Navigate, let the page settle, pull raw telemetry out of the page
  3. Normalize resources and metrics, score them, generate suggestions
  4. Return an immutable AnalysisReport

Only step 2 suspends. Everything after the browser closes is synchronous,
pure computation.

`AnalysisPool` is what the HTTP layer calls: it bounds how many browsers
run at once and applies the overall deadline. When the deadline cancels an
analysis, the cancellation unwinds through the session's `async with`
block, so the browser is still closed.
"""

from __future__ import annotations
import os
import time
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from collector.browser_session import BrowserSession
from collector.errors import AnalysisError, AnalysisTimeoutError
from collector.telemetry import RawTelemetry
from analysis.metrics import Metrics, normalize_metrics
from analysis.resources import ResourceEntry, normalize_resources
from analysis.scoring import PerformanceScore, score_performance
from advisor.suggestion_engine import (
    Suggestion, generate_executive_summary, generate_suggestions,
)

log = logging.getLogger("pagelens.pipeline")


ANALYSIS_DEADLINE_S = float(os.environ.get("ANALYSIS_DEADLINE_S", 60))
MAX_CONCURRENT_ANALYSES = int(os.environ.get("MAX_CONCURRENT_ANALYSES", 4))


@dataclass(frozen=True)
class AnalysisReport:
    url:         str
    timestamp:   str
    metrics:     Metrics
    resources:   tuple[ResourceEntry, ...]
    suggestions: tuple[Suggestion, ...]
    score:       PerformanceScore
    summary:     str

    def to_dict(self) -> dict:
        return {
            "url":         self.url,
            "timestamp":   self.timestamp,
            "metrics":     self.metrics.to_dict(),
            "resources":   [r.to_dict() for r in self.resources],
            "suggestions": [s.to_dict() for s in self.suggestions],
            "score":       self.score.to_dict(),
            "summary":     self.summary,
        }


# ─────────────────────────────────────────────────────────────────────────────
# Main async entry point
# ─────────────────────────────────────────────────────────────────────────────

async def analyze(url: str, session_factory=BrowserSession) -> AnalysisReport:
    """
    Analyze `url` in a fresh browser and build the report.

    `url` is expected to be an absolute http(s) URL already. Raises one of
    the collector.errors classes; nothing partial is ever returned.
    """
    log.info("Analysis started   url={}".format(url))
    t0 = time.time()

    try:
        # ── Step 1-2: Browser work (the only suspending part) ─────────────────
        async with session_factory() as session:
            await session.navigate(url)
            await session.settle()
            telemetry = await session.collect()

        # ── Step 3: Pure processing ───────────────────────────────────────────
        report = build_report(url, telemetry)

    except AnalysisError as e:
        e.url = e.url or url
        log.warning("Analysis failed   url={}  kind={}  {}".format(url, e.kind, e.message))
        raise
    except Exception as e:
        log.exception("Analysis error for {}".format(url))
        raise AnalysisError("Unexpected error while analyzing {}: {}".format(url, e), url) from e

    log.info("Analysis complete url={}  requests={}  suggestions={}  {:.0f}ms".format(
        url,
        report.metrics.resource_summary.total_requests,
        len(report.suggestions),
        (time.time() - t0) * 1000,
    ))
    return report


def build_report(url: str, telemetry: RawTelemetry,
                 timestamp: Optional[datetime] = None) -> AnalysisReport:
    """Everything after the browser closes: normalize, score, advise."""
    resources = normalize_resources(telemetry.resources)
    metrics = normalize_metrics(telemetry, resources)
    suggestions = generate_suggestions(metrics, resources)
    score = score_performance(metrics)
    summary = generate_executive_summary(metrics, score, suggestions)
    timestamp = timestamp or datetime.now(timezone.utc)

    return AnalysisReport(
        url         = url,
        timestamp   = timestamp.isoformat().replace("+00:00", "Z"),
        metrics     = metrics,
        resources   = tuple(resources),
        suggestions = tuple(suggestions),
        score       = score,
        summary     = summary,
    )


# ─────────────────────────────────────────────────────────────────────────────
# Bounded pool with an overall deadline
# ─────────────────────────────────────────────────────────────────────────────

class AnalysisPool:
    """Caps concurrent browser sessions and enforces the per-request deadline."""

    def __init__(self, max_concurrent: int = MAX_CONCURRENT_ANALYSES,
                 deadline_s: float = ANALYSIS_DEADLINE_S,
                 session_factory=BrowserSession):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self.max_concurrent = max_concurrent
        self.deadline_s = deadline_s
        self.session_factory = session_factory
        self._slots: Optional[asyncio.Semaphore] = None
        self.active = 0

    @property
    def slots(self) -> asyncio.Semaphore:
        # Created lazily so it belongs to the loop that first uses it
        if self._slots is None:
            self._slots = asyncio.Semaphore(self.max_concurrent)
        return self._slots

    async def run(self, url: str) -> AnalysisReport:
        """Analyze `url`, waiting for a free slot; the deadline covers both."""
        try:
            return await asyncio.wait_for(self._run_in_slot(url), timeout=self.deadline_s)
        except asyncio.TimeoutError as e:
            log.warning("Analysis deadline exceeded  url={}  {}s".format(url, self.deadline_s))
            raise AnalysisTimeoutError(
                "Analysis did not finish within {:g}s".format(self.deadline_s), url
            ) from e

    async def _run_in_slot(self, url: str) -> AnalysisReport:
        async with self.slots:
            self.active += 1
            try:
                return await analyze(url, session_factory=self.session_factory)
            finally:
                self.active -= 1


_default_pool: Optional[AnalysisPool] = None


def get_pool() -> AnalysisPool:
    global _default_pool
    if _default_pool is None:
        _default_pool = AnalysisPool()
    return _default_pool
