"""
analysis/metrics.py
───────────────────
Derives the Metrics structure from a RawTelemetry snapshot.

Measured directly from the browser:
  • Navigation timing spans (TTFB, DOMContentLoaded, load, DNS, TCP, TLS ...)
  • FCP from paint timing
  • LCP from the last largest-contentful-paint candidate
  • CLS as the sum of layout shifts not caused by recent input

Heuristic approximations (NOT lab-tool definitions):
  • LCP falls back to loadComplete when no candidate was reported
  • TTI  = domInteractive - navigationStart
  • TBT  = max(0, domInteractive - FCP - 50)
  • Speed Index = FCP + (loadComplete - FCP) * 0.5

FID needs a real user interaction and is always reported as unknown.
Every field is either a non-negative number or None; None rates "unknown".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from collector.telemetry import RawTelemetry
from analysis.resources import (
    ResourceEntry, ResourceSummary, normalize_resources, round_half_up, summarize_resources,
)


# (good below, needs-improvement below); anything else is poor
RATING_THRESHOLDS: dict[str, tuple[float, float]] = {
    "lcp": (2500, 4000),
    "fid": (100, 300),
    "cls": (0.1, 0.25),
}

TBT_BLOCKING_THRESHOLD_MS = 50
SPEED_INDEX_WEIGHT = 0.5


def calculate_rating(metric: str, value: Optional[float]) -> str:
    """good | needs-improvement | poor, or unknown for missing values and metrics."""
    if value is None:
        return "unknown"
    thresholds = RATING_THRESHOLDS.get(metric.lower())
    if thresholds is None:
        return "unknown"
    good, needs_improvement = thresholds
    if value < good:
        return "good"
    if value < needs_improvement:
        return "needs-improvement"
    return "poor"


def format_bytes(size: Optional[float]) -> str:
    """'1.50 MB' / '350.00 KB'; zero or missing reads as '0 KB'."""
    if not size:
        return "0 KB"
    mb = size / (1024 * 1024)
    if mb >= 1:
        return f"{mb:.2f} MB"
    return f"{size / 1024:.2f} KB"


# ─────────────────────────────────────────────────────────────────────────────
# Metrics data model
# ─────────────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RatedValue:
    value:  Optional[float]
    rating: str

    def to_dict(self) -> dict:
        return {"value": self.value, "rating": self.rating}


@dataclass(frozen=True)
class CoreWebVitals:
    lcp: RatedValue
    fid: RatedValue
    cls: RatedValue

    def to_dict(self) -> dict:
        return {"lcp": self.lcp.to_dict(), "fid": self.fid.to_dict(), "cls": self.cls.to_dict()}


@dataclass(frozen=True)
class NavigationMetrics:
    ttfb:               Optional[float]
    dom_content_loaded: Optional[float]
    load_complete:      Optional[float]
    dom_interactive:    Optional[float]

    def to_dict(self) -> dict:
        return {
            "ttfb":             self.ttfb,
            "domContentLoaded": self.dom_content_loaded,
            "loadComplete":     self.load_complete,
            "domInteractive":   self.dom_interactive,
        }


@dataclass(frozen=True)
class AdditionalMetrics:
    fcp:                  Optional[float]
    tti:                  Optional[float]
    tbt:                  Optional[float]
    speed_index:          Optional[int]
    server_response_time: Optional[float]
    dns_lookup_time:      Optional[float]
    tcp_connection_time:  Optional[float]
    tls_negotiation_time: Optional[float]

    def to_dict(self) -> dict:
        return {
            "fcp":                self.fcp,
            "tti":                self.tti,
            "tbt":                self.tbt,
            "speedIndex":         self.speed_index,
            "serverResponseTime": self.server_response_time,
            "dnsLookupTime":      self.dns_lookup_time,
            "tcpConnectionTime":  self.tcp_connection_time,
            "tlsNegotiationTime": self.tls_negotiation_time,
        }


@dataclass(frozen=True)
class Metrics:
    core_web_vitals:    CoreWebVitals
    navigation_timing:  NavigationMetrics
    additional_metrics: AdditionalMetrics
    resource_summary:   ResourceSummary

    def to_dict(self) -> dict:
        return {
            "coreWebVitals":     self.core_web_vitals.to_dict(),
            "navigationTiming":  self.navigation_timing.to_dict(),
            "additionalMetrics": self.additional_metrics.to_dict(),
            "resourceSummary":   self.resource_summary.to_dict(),
        }


# ─────────────────────────────────────────────────────────────────────────────
# Normalizer
# ─────────────────────────────────────────────────────────────────────────────

def _span(end: Optional[float], start: Optional[float]) -> Optional[float]:
    """end - start, clamped at 0. None if either side was never recorded."""
    if not end or not start:
        return None
    return max(0.0, end - start)


def _cumulative_layout_shift(telemetry: RawTelemetry) -> Optional[float]:
    if not telemetry.layout_shifts:
        return None
    return sum(s.value for s in telemetry.layout_shifts if not s.had_recent_input)


def normalize_metrics(telemetry: RawTelemetry,
                      resources: Optional[list[ResourceEntry]] = None) -> Metrics:
    """
    Build Metrics from raw telemetry.

    `resources` may be passed when the caller already normalized them (the
    orchestrator does, since the report carries the list too); otherwise
    they are derived from the snapshot.
    """
    nav = telemetry.navigation
    if resources is None:
        resources = normalize_resources(telemetry.resources)

    # ── 1. Navigation timing ──────────────────────────────────────────────────
    ttfb               = _span(nav.response_start, nav.request_start)
    dom_content_loaded = _span(nav.dom_content_loaded_event_end, nav.navigation_start)
    load_complete      = _span(nav.load_event_end, nav.navigation_start)
    dom_interactive    = _span(nav.dom_interactive, nav.navigation_start)

    server_response_time = _span(nav.response_end, nav.request_start)
    dns_lookup_time      = _span(nav.domain_lookup_end, nav.domain_lookup_start)
    tcp_connection_time  = _span(nav.connect_end, nav.connect_start)
    if nav.secure_connection_start and nav.secure_connection_start > 0:
        tls_time = _span(nav.connect_end, nav.secure_connection_start)
    else:
        tls_time = 0.0

    # ── 2. Paint ──────────────────────────────────────────────────────────────
    fcp = telemetry.fcp
    if telemetry.lcp_candidates:
        lcp = telemetry.lcp_candidates[-1]
    else:
        lcp = load_complete

    # ── 3. Layout stability ───────────────────────────────────────────────────
    cls = _cumulative_layout_shift(telemetry)

    # ── 4. Heuristic approximations ───────────────────────────────────────────
    tti = dom_interactive
    tbt = None
    if dom_interactive is not None and fcp is not None:
        tbt = max(0.0, dom_interactive - fcp - TBT_BLOCKING_THRESHOLD_MS)
    speed_index = None
    if fcp is not None and load_complete is not None:
        speed_index = round_half_up(fcp + (load_complete - fcp) * SPEED_INDEX_WEIGHT)

    return Metrics(
        core_web_vitals = CoreWebVitals(
            lcp = RatedValue(lcp, calculate_rating("lcp", lcp)),
            fid = RatedValue(None, "unknown"),
            cls = RatedValue(cls, calculate_rating("cls", cls)),
        ),
        navigation_timing = NavigationMetrics(
            ttfb               = ttfb,
            dom_content_loaded = dom_content_loaded,
            load_complete      = load_complete,
            dom_interactive    = dom_interactive,
        ),
        additional_metrics = AdditionalMetrics(
            fcp                  = fcp,
            tti                  = tti,
            tbt                  = tbt,
            speed_index          = speed_index,
            server_response_time = server_response_time,
            dns_lookup_time      = dns_lookup_time,
            tcp_connection_time  = tcp_connection_time,
            tls_negotiation_time = tls_time,
        ),
        resource_summary = summarize_resources(resources),
    )
