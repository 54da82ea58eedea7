"""
schemas.py — Pydantic Models
─────────────────────────────
All request/response shapes for the FastAPI app.

Response models use the camelCase field names the dashboard already reads
(`coreWebVitals`, `startTime`, ...). They validate the dict produced by
AnalysisReport.to_dict() and power the /docs page.
"""

from __future__ import annotations
from typing import Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator


# ─────────────────────────────────────────────────────────────────────────────
# REQUEST models
# ─────────────────────────────────────────────────────────────────────────────

class AnalyzeRequest(BaseModel):
    """
    Body sent by the dashboard when starting an analysis.

    Example JSON:
        { "url": "https://example.com" }
    """
    url: str = Field(
        ...,
        description="Absolute http:// or https:// URL of the page to analyze",
        examples=["https://example.com"],
        max_length=2048,
    )

    @field_validator("url")
    @classmethod
    def check_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("URL is required")
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("Invalid URL format")
        return v


# ─────────────────────────────────────────────────────────────────────────────
# RESPONSE models
# ─────────────────────────────────────────────────────────────────────────────

Rating = Literal["good", "needs-improvement", "poor", "unknown"]


class RatedValueModel(BaseModel):
    value:  Optional[float] = Field(default=None, ge=0)
    rating: Rating


class CoreWebVitalsModel(BaseModel):
    lcp: RatedValueModel
    fid: RatedValueModel
    cls: RatedValueModel


class NavigationTimingModel(BaseModel):
    """Milliseconds since navigation start (TTFB: request → first byte)."""
    ttfb:             Optional[float] = Field(default=None, ge=0)
    domContentLoaded: Optional[float] = Field(default=None, ge=0)
    loadComplete:     Optional[float] = Field(default=None, ge=0)
    domInteractive:   Optional[float] = Field(default=None, ge=0)


class AdditionalMetricsModel(BaseModel):
    """TTI, TBT and speedIndex are heuristic approximations."""
    fcp:                Optional[float] = Field(default=None, ge=0)
    tti:                Optional[float] = Field(default=None, ge=0)
    tbt:                Optional[float] = Field(default=None, ge=0)
    speedIndex:         Optional[int]   = Field(default=None, ge=0)
    serverResponseTime: Optional[float] = Field(default=None, ge=0)
    dnsLookupTime:      Optional[float] = Field(default=None, ge=0)
    tcpConnectionTime:  Optional[float] = Field(default=None, ge=0)
    tlsNegotiationTime: Optional[float] = Field(default=None, ge=0)


class TypeTotalsModel(BaseModel):
    count: int = Field(default=0, ge=0)
    size:  int = Field(default=0, ge=0)


class ByTypeModel(BaseModel):
    script:     TypeTotalsModel
    stylesheet: TypeTotalsModel
    image:      TypeTotalsModel
    font:       TypeTotalsModel
    other:      TypeTotalsModel


class ResourceSummaryModel(BaseModel):
    totalRequests: int = Field(ge=0)
    totalSize:     int = Field(ge=0)
    byType:        ByTypeModel


class MetricsModel(BaseModel):
    coreWebVitals:     CoreWebVitalsModel
    navigationTiming:  NavigationTimingModel
    additionalMetrics: AdditionalMetricsModel
    resourceSummary:   ResourceSummaryModel


class ResourceModel(BaseModel):
    """One row of the resource waterfall."""
    name:      str
    type:      Literal["script", "stylesheet", "image", "font", "xhr", "document", "other"]
    startTime: int = Field(ge=0, description="ms since navigation start")
    duration:  int = Field(ge=0, description="ms")
    size:      int = Field(ge=0, description="transferred bytes")


class SuggestionModel(BaseModel):
    type:     Literal["error", "warning", "info", "success"]
    category: str
    message:  str


class ScoreModel(BaseModel):
    value: int = Field(ge=0, le=100, description="Overall performance score")
    grade: str = Field(description="Letter grade A–F")
    label: str


class AnalysisResponse(BaseModel):
    """Full report returned after a successful analysis."""
    url:         str
    timestamp:   str = Field(description="ISO-8601 UTC time of the analysis")
    metrics:     MetricsModel
    resources:   list[ResourceModel]
    suggestions: list[SuggestionModel]
    score:       ScoreModel
    summary:     str


class HealthResponse(BaseModel):
    """Simple health check response."""
    status:  str = "ok"
    version: str = "1.0.0"
    message: str = "PageLens is running"


class ErrorResponse(BaseModel):
    """Standard error shape returned on 4xx/5xx responses."""
    error:  str
    detail: Optional[str] = None
