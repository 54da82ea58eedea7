"""
analysis/scoring.py
───────────────────
Single 0–100 performance score and letter grade for the dashboard header.

Starts at 100 and deducts per threshold breached. Metrics that were not
measured deduct nothing.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from analysis.metrics import Metrics


# metric -> [(threshold, deduction), ...], worst threshold first
DEDUCTIONS: dict[str, list[tuple[float, int]]] = {
    "lcp":           [(4000, 20), (2500, 10)],
    "load_complete": [(5000, 20), (3000, 10)],
    "ttfb":          [(800, 15), (600, 10)],
    "total_size":    [(5_000_000, 15), (3_000_000, 10)],
    "total_requests": [(100, 10), (50, 5)],
}

GRADES = [
    (90, "A", "Excellent"),
    (75, "B", "Good"),
    (60, "C", "Fair"),
    (40, "D", "Needs Work"),
    (0,  "F", "Poor"),
]


@dataclass(frozen=True)
class PerformanceScore:
    value: int
    grade: str
    label: str

    def to_dict(self) -> dict:
        return {"value": self.value, "grade": self.grade, "label": self.label}


def _deduction(value: Optional[float], steps: list[tuple[float, int]]) -> int:
    if value is None:
        return 0
    for threshold, points in steps:
        if value > threshold:
            return points
    return 0


def grade_for(score: int) -> tuple[str, str]:
    for floor, letter, label in GRADES:
        if score >= floor:
            return letter, label
    return "F", "Poor"


def score_performance(metrics: Metrics) -> PerformanceScore:
    observed = {
        "lcp":            metrics.core_web_vitals.lcp.value,
        "load_complete":  metrics.navigation_timing.load_complete,
        "ttfb":           metrics.navigation_timing.ttfb,
        "total_size":     metrics.resource_summary.total_size,
        "total_requests": metrics.resource_summary.total_requests,
    }
    score = 100
    for key, steps in DEDUCTIONS.items():
        score -= _deduction(observed[key], steps)
    score = max(0, min(100, score))

    letter, label = grade_for(score)
    return PerformanceScore(value=score, grade=letter, label=label)
