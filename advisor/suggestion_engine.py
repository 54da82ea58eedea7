"""
advisor/suggestion_engine.py
────────────────────────────
Turns measured Metrics into prioritised, human-readable recommendations,
without needing an external AI API.

Every rule is checked on its own (no rule suppresses another). The list is
then stably sorted error → warning → info → success, so ties keep the rule
order below. A metric that was not measured never triggers a rule.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Optional

from analysis.metrics import Metrics, format_bytes
from analysis.resources import ResourceEntry
from analysis.scoring import PerformanceScore


PRIORITY = {"error": 0, "warning": 1, "info": 2, "success": 3}

LARGE_SCRIPT_BYTES = 500_000
MANY_REQUESTS = 50
SLOW_TTFB_MS = 600
LARGE_IMAGE_BYTES = 1_000_000
SLOW_LCP_MS = 2500
HIGH_CLS = 0.1
MANY_STYLESHEETS = 5
FAST_LOAD_MS = 3000

MB = 1024 * 1024


@dataclass(frozen=True)
class Suggestion:
    type:     str   # "error" | "warning" | "info" | "success"
    category: str   # e.g. "JavaScript", "Core Web Vitals"
    message:  str

    def to_dict(self) -> dict:
        return {"type": self.type, "category": self.category, "message": self.message}


def _exceeds(value: Optional[float], limit: float) -> bool:
    return value is not None and value > limit


# ──────────────────────────────────────────────────────────────────────────────
# Public API
# ──────────────────────────────────────────────────────────────────────────────

def generate_suggestions(metrics: Metrics,
                         resources: Optional[Iterable[ResourceEntry]] = None) -> list[Suggestion]:
    """
    Run every rule against `metrics` and return the sorted suggestions.

    `resources` is accepted so rules can look at individual entries; the
    current rules only need the aggregated resource summary.
    """
    summary = metrics.resource_summary
    by_type = summary.by_type
    nav = metrics.navigation_timing
    vitals = metrics.core_web_vitals
    suggestions: list[Suggestion] = []

    # ── 1. JavaScript weight ──────────────────────────────
    script_size = by_type["script"].size
    if script_size > LARGE_SCRIPT_BYTES:
        suggestions.append(Suggestion(
            type="warning",
            category="JavaScript",
            message=f"Large JavaScript files detected ({script_size / MB:.2f} MB). "
                    "Consider code splitting and lazy loading.",
        ))

    # ── 2. Request count ──────────────────────────────────
    if summary.total_requests > MANY_REQUESTS:
        suggestions.append(Suggestion(
            type="warning",
            category="Network",
            message=f"High number of requests ({summary.total_requests}). "
                    "Consider bundling resources or using HTTP/2.",
        ))

    # ── 3. Server response ────────────────────────────────
    if _exceeds(nav.ttfb, SLOW_TTFB_MS):
        suggestions.append(Suggestion(
            type="warning",
            category="Server",
            message=f"Slow server response time ({nav.ttfb:.0f} ms). "
                    "Optimize server-side processing or consider a CDN.",
        ))

    # ── 4. Image weight ───────────────────────────────────
    image_size = by_type["image"].size
    if image_size > LARGE_IMAGE_BYTES:
        suggestions.append(Suggestion(
            type="warning",
            category="Images",
            message=f"Large image files detected ({image_size / MB:.2f} MB). "
                    "Use image optimization and modern formats like WebP.",
        ))

    # ── 5. Largest Contentful Paint ───────────────────────
    if _exceeds(vitals.lcp.value, SLOW_LCP_MS):
        suggestions.append(Suggestion(
            type="error",
            category="Core Web Vitals",
            message=f"Largest Contentful Paint is slow ({vitals.lcp.value / 1000:.2f} s). "
                    "Optimize loading of largest visible element.",
        ))

    # ── 6. Cumulative Layout Shift ────────────────────────
    if _exceeds(vitals.cls.value, HIGH_CLS):
        suggestions.append(Suggestion(
            type="error",
            category="Core Web Vitals",
            message=f"Cumulative Layout Shift is high ({vitals.cls.value:.3f}). "
                    "Reserve space for images and ads to prevent layout shifts.",
        ))

    # ── 7. Stylesheet count ───────────────────────────────
    stylesheet_count = by_type["stylesheet"].count
    if stylesheet_count > MANY_STYLESHEETS:
        suggestions.append(Suggestion(
            type="info",
            category="CSS",
            message=f"Multiple CSS files ({stylesheet_count}). Consider combining stylesheets.",
        ))

    # ── 8. All clear ──────────────────────────────────────
    if not suggestions and nav.load_complete is not None and nav.load_complete < FAST_LOAD_MS:
        suggestions.append(Suggestion(
            type="success",
            category="Overall",
            message="Great performance! Your site loads quickly.",
        ))

    return sort_suggestions(suggestions)


def sort_suggestions(suggestions: Iterable[Suggestion]) -> list[Suggestion]:
    """Order by severity; sorted() is stable so rule order breaks ties."""
    return sorted(suggestions, key=lambda s: PRIORITY.get(s.type, len(PRIORITY)))


def generate_executive_summary(metrics: Metrics, score: PerformanceScore,
                               suggestions: list[Suggestion]) -> str:
    """
    Generate a plain-English executive summary for the report.
    """
    issues = [s for s in suggestions if s.type != "success"]
    resource_summary = metrics.resource_summary
    errors = sum(1 for s in issues if s.type == "error")
    load_complete = metrics.navigation_timing.load_complete

    if score.value >= 90:
        outlook = "Minor improvements will push it to near-perfect."
    elif score.value >= 75:
        outlook = "Addressing the highlighted issues will make it noticeably faster."
    elif score.value >= 40:
        outlook = "Several important issues need attention to reach competitive load times."
    else:
        outlook = "Resolving the Core Web Vitals errors should be prioritised immediately."

    if load_complete is None:
        load_text = "The load event was not observed."
    else:
        load_text = f"The page finished loading in {load_complete / 1000:.1f} seconds."
    weight_text = (f"It made {resource_summary.total_requests} request(s) "
                   f"totalling {format_bytes(resource_summary.total_size)}.")

    return (
        f"This performance analysis identified {len(issues)} issue(s), "
        f"{errors} of them affecting Core Web Vitals. "
        f"The performance score is {score.value}/100 (grade {score.grade}, {score.label.lower()}). "
        f"{load_text} "
        f"{weight_text} "
        f"{outlook}"
    )
