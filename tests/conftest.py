"""
Shared fixtures: a realistic telemetry snapshot, a Metrics builder and an
in-memory stand-in for BrowserSession.
"""
import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from analysis.metrics import (
    AdditionalMetrics, CoreWebVitals, Metrics, NavigationMetrics, RatedValue, calculate_rating,
)
from analysis.resources import SUMMARY_TYPES, ResourceSummary, TypeTotals
from collector.telemetry import RawTelemetry

NAV_START = 1_700_000_000_000


@pytest.fixture
def telemetry_payload():
    """Snapshot shaped exactly like the in-page collector's return value."""
    return {
        "navigation": {
            "navigationStart":          NAV_START,
            "domainLookupStart":        NAV_START + 5,
            "domainLookupEnd":          NAV_START + 15,
            "connectStart":             NAV_START + 15,
            "secureConnectionStart":    NAV_START + 17,
            "connectEnd":               NAV_START + 19,
            "requestStart":             NAV_START + 20,
            "responseStart":            NAV_START + 170,
            "responseEnd":              NAV_START + 220,
            "domInteractive":           NAV_START + 900,
            "domContentLoadedEventEnd": NAV_START + 1000,
            "loadEventEnd":             NAV_START + 2200,
        },
        "paint": [
            {"name": "first-paint", "startTime": 400},
            {"name": "first-contentful-paint", "startTime": 500},
        ],
        "lcp": [{"startTime": 600}, {"startTime": 1800}],
        "layoutShifts": [
            {"value": 0.01, "hadRecentInput": False},
            {"value": 0.5, "hadRecentInput": True},
            {"value": 0.01, "hadRecentInput": False},
        ],
        "resources": [
            {"name": "https://example.com/app.js", "initiatorType": "script",
             "startTime": 100, "duration": 50.4, "transferSize": 100_000},
            {"name": "https://example.com/style.css", "initiatorType": "link",
             "startTime": 110.5, "duration": 20.5, "transferSize": 20_000},
            {"name": "https://example.com/theme.css?v=2", "initiatorType": "css",
             "startTime": 120, "duration": 10, "transferSize": 5_000},
            {"name": "https://example.com/hero.png", "initiatorType": "img",
             "startTime": 130, "duration": 100, "transferSize": 200_000},
            {"name": "https://example.com/f.woff2", "initiatorType": "link",
             "startTime": 140, "duration": 30, "transferSize": 30_000},
            {"name": "https://example.com/api/items", "initiatorType": "fetch",
             "startTime": 900, "duration": 80, "transferSize": 1_000},
            {"name": "https://example.com/frame.html", "initiatorType": "iframe",
             "startTime": 950, "duration": 60, "transferSize": 4_000},
            {"name": "data:image/png;base64,iVBORw0KGgo=", "initiatorType": "img",
             "startTime": 10, "duration": 0, "transferSize": 0},
            {"name": "chrome-extension://abcdef/inject.js", "initiatorType": "script",
             "startTime": 12, "duration": 3, "transferSize": 900},
            {"name": "https://example.com/beacon", "initiatorType": "beacon",
             "startTime": 2100, "duration": 5, "transferSize": 0},
        ],
    }


@pytest.fixture
def telemetry(telemetry_payload):
    return RawTelemetry.from_payload(telemetry_payload)


@pytest.fixture
def make_metrics():
    """Build a Metrics object directly from the handful of values rules read."""

    def _build(script_size=0, total_requests=0, ttfb=None, image_size=0, lcp=None,
               cls=None, stylesheet_count=0, load_complete=None, total_size=None):
        by_type = {t: TypeTotals() for t in SUMMARY_TYPES}
        by_type["script"] = TypeTotals(count=1 if script_size else 0, size=script_size)
        by_type["image"] = TypeTotals(count=1 if image_size else 0, size=image_size)
        by_type["stylesheet"] = TypeTotals(count=stylesheet_count, size=0)
        if total_size is None:
            total_size = script_size + image_size
        return Metrics(
            core_web_vitals=CoreWebVitals(
                lcp=RatedValue(lcp, calculate_rating("lcp", lcp)),
                fid=RatedValue(None, "unknown"),
                cls=RatedValue(cls, calculate_rating("cls", cls)),
            ),
            navigation_timing=NavigationMetrics(
                ttfb=ttfb, dom_content_loaded=None,
                load_complete=load_complete, dom_interactive=None,
            ),
            additional_metrics=AdditionalMetrics(
                fcp=None, tti=None, tbt=None, speed_index=None,
                server_response_time=None, dns_lookup_time=None,
                tcp_connection_time=None, tls_negotiation_time=0.0,
            ),
            resource_summary=ResourceSummary(
                total_requests=total_requests, total_size=total_size, by_type=by_type,
            ),
        )

    return _build


# ─────────────────────────────────────────────────────────────────────────────
# Browser stand-ins
# ─────────────────────────────────────────────────────────────────────────────

class SessionTracker:
    def __init__(self):
        self.opened = 0
        self.closed = 0
        self.active = 0
        self.peak = 0
        self.urls = []


class FakeSession:
    """Behaves like BrowserSession without a browser."""

    def __init__(self, telemetry, tracker, delay=0.0, navigate_error=None):
        self.telemetry = telemetry
        self.tracker = tracker
        self.delay = delay
        self.navigate_error = navigate_error

    async def __aenter__(self):
        self.tracker.opened += 1
        self.tracker.active += 1
        self.tracker.peak = max(self.tracker.peak, self.tracker.active)
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.tracker.active -= 1
        self.tracker.closed += 1

    async def navigate(self, url):
        self.tracker.urls.append(url)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.navigate_error is not None:
            raise self.navigate_error

    async def settle(self):
        pass

    async def collect(self):
        return self.telemetry


@pytest.fixture
def tracker():
    return SessionTracker()


@pytest.fixture
def fake_session_factory(telemetry, tracker):
    def _factory(delay=0.0, navigate_error=None):
        return lambda: FakeSession(telemetry, tracker, delay=delay, navigate_error=navigate_error)
    return _factory


@pytest.fixture
def fake_playwright(telemetry_payload):
    """Patch async_playwright so BrowserSession drives MagicMocks."""
    page = MagicMock()
    page.goto = AsyncMock(return_value=None)
    page.evaluate = AsyncMock(return_value=telemetry_payload)

    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)

    browser = MagicMock()
    browser.new_context = AsyncMock(return_value=context)
    browser.close = AsyncMock(return_value=None)

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(return_value=browser)
    playwright.stop = AsyncMock(return_value=None)

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)

    with patch("collector.browser_session.async_playwright", return_value=starter):
        yield SimpleNamespace(playwright=playwright, browser=browser, context=context, page=page)
