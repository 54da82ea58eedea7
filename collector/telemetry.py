"""
collector/telemetry.py
──────────────────────
Raw browser telemetry and the in-page collector that produces it.

The collector issues ONE remote evaluation against the page's JavaScript
context and gets back a plain JSON snapshot:

  • navigation   legacy performance.timing fields (epoch ms)
  • paint        paint entries (first-paint, first-contentful-paint)
  • lcp          largest-contentful-paint candidates (buffered observer)
  • layoutShifts layout-shift entries (buffered observer)
  • resources    resource timing entries

The snapshot is parsed into frozen dataclasses here. Anything the browser
did not report parses to None / an empty tuple; parsing never raises on
missing entry types because support for LCP and layout-shift varies.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Optional


# How long the buffered PerformanceObservers get to deliver their entries
OBSERVER_WINDOW_MS = 500

# Runs inside the page. Returns raw numbers only; every derived metric is
# computed in Python by analysis.metrics.
COLLECT_TELEMETRY_JS = """
async (observerWindowMs) => {
    const perf = window.performance;
    const t = perf.timing;

    const buffered = (type) => new Promise((resolve) => {
        const entries = [];
        let observer;
        try {
            observer = new PerformanceObserver((list) => {
                entries.push(...list.getEntries());
            });
            observer.observe({ type: type, buffered: true });
        } catch (e) {
            // entry type not supported by this browser
            resolve(perf.getEntriesByType(type));
            return;
        }
        setTimeout(() => {
            observer.disconnect();
            resolve(entries.length ? entries : perf.getEntriesByType(type));
        }, observerWindowMs);
    });

    const [lcpEntries, shiftEntries] = await Promise.all([
        buffered('largest-contentful-paint'),
        buffered('layout-shift'),
    ]);

    return {
        navigation: {
            navigationStart:          t.navigationStart,
            requestStart:             t.requestStart,
            responseStart:            t.responseStart,
            responseEnd:              t.responseEnd,
            domainLookupStart:        t.domainLookupStart,
            domainLookupEnd:          t.domainLookupEnd,
            connectStart:             t.connectStart,
            connectEnd:               t.connectEnd,
            secureConnectionStart:    t.secureConnectionStart,
            domInteractive:           t.domInteractive,
            domContentLoadedEventEnd: t.domContentLoadedEventEnd,
            loadEventEnd:             t.loadEventEnd,
        },
        paint: perf.getEntriesByType('paint').map(e => ({
            name: e.name, startTime: e.startTime,
        })),
        lcp: lcpEntries.map(e => ({ startTime: e.startTime })),
        layoutShifts: shiftEntries.map(e => ({
            value: e.value, hadRecentInput: e.hadRecentInput,
        })),
        resources: perf.getEntriesByType('resource').map(r => ({
            name:          r.name,
            initiatorType: r.initiatorType,
            startTime:     r.startTime,
            duration:      r.duration,
            transferSize:  r.transferSize || 0,
        })),
    };
}
"""


def _number(value: Any) -> Optional[float]:
    """Coerce a JSON value to float; None for anything non-numeric."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


# ─────────────────────────────────────────────────────────────────────────────
# Snapshot data model
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NavigationTiming:
    """performance.timing fields, epoch milliseconds. 0 means 'not yet'."""
    navigation_start:            Optional[float] = None
    request_start:               Optional[float] = None
    response_start:              Optional[float] = None
    response_end:                Optional[float] = None
    domain_lookup_start:         Optional[float] = None
    domain_lookup_end:           Optional[float] = None
    connect_start:               Optional[float] = None
    connect_end:                 Optional[float] = None
    secure_connection_start:     Optional[float] = None
    dom_interactive:             Optional[float] = None
    dom_content_loaded_event_end: Optional[float] = None
    load_event_end:              Optional[float] = None

    @classmethod
    def from_payload(cls, data: Optional[dict]) -> "NavigationTiming":
        data = data or {}
        return cls(
            navigation_start             = _number(data.get("navigationStart")),
            request_start                = _number(data.get("requestStart")),
            response_start               = _number(data.get("responseStart")),
            response_end                 = _number(data.get("responseEnd")),
            domain_lookup_start          = _number(data.get("domainLookupStart")),
            domain_lookup_end            = _number(data.get("domainLookupEnd")),
            connect_start                = _number(data.get("connectStart")),
            connect_end                  = _number(data.get("connectEnd")),
            secure_connection_start      = _number(data.get("secureConnectionStart")),
            dom_interactive              = _number(data.get("domInteractive")),
            dom_content_loaded_event_end = _number(data.get("domContentLoadedEventEnd")),
            load_event_end               = _number(data.get("loadEventEnd")),
        )


@dataclass(frozen=True)
class LayoutShift:
    value: float
    had_recent_input: bool = False


@dataclass(frozen=True)
class RawResource:
    """One resource timing entry exactly as the browser reported it."""
    name:           str
    initiator_type: str = "other"
    start_time:     float = 0.0
    duration:       float = 0.0
    transfer_size:  float = 0.0


@dataclass(frozen=True)
class RawTelemetry:
    navigation:     NavigationTiming = field(default_factory=NavigationTiming)
    fcp:            Optional[float] = None
    lcp_candidates: tuple[float, ...] = ()
    layout_shifts:  tuple[LayoutShift, ...] = ()
    resources:      tuple[RawResource, ...] = ()

    @classmethod
    def from_payload(cls, payload: Optional[dict]) -> "RawTelemetry":
        """Build a snapshot from the dict returned by COLLECT_TELEMETRY_JS."""
        payload = payload or {}

        fcp = None
        for entry in payload.get("paint") or []:
            if entry.get("name") == "first-contentful-paint":
                fcp = _number(entry.get("startTime"))

        lcp_candidates = tuple(
            value for value in (_number(e.get("startTime")) for e in payload.get("lcp") or [])
            if value is not None
        )

        layout_shifts = tuple(
            LayoutShift(value=_number(e.get("value")) or 0.0,
                        had_recent_input=bool(e.get("hadRecentInput")))
            for e in payload.get("layoutShifts") or []
        )

        resources = tuple(
            RawResource(
                name           = str(r.get("name") or ""),
                initiator_type = str(r.get("initiatorType") or "other"),
                start_time     = _number(r.get("startTime")) or 0.0,
                duration       = _number(r.get("duration")) or 0.0,
                transfer_size  = _number(r.get("transferSize")) or 0.0,
            )
            for r in payload.get("resources") or []
        )

        return cls(
            navigation     = NavigationTiming.from_payload(payload.get("navigation")),
            fcp            = fcp,
            lcp_candidates = lcp_candidates,
            layout_shifts  = layout_shifts,
            resources      = resources,
        )


# ─────────────────────────────────────────────────────────────────────────────
# Collector
# ─────────────────────────────────────────────────────────────────────────────

class TelemetryCollector:
    """Reads a RawTelemetry snapshot out of a loaded Playwright page."""

    def __init__(self, script: str = COLLECT_TELEMETRY_JS,
                 observer_window_ms: int = OBSERVER_WINDOW_MS):
        self.script = script
        self.observer_window_ms = observer_window_ms

    async def collect(self, page) -> RawTelemetry:
        payload = await page.evaluate(self.script, self.observer_window_ms)
        return RawTelemetry.from_payload(payload)
