"""
analysis/resources.py
─────────────────────
Turns raw resource timing entries into the waterfall list and its summary.

  • Non-network URLs (data:, browser-extension schemes) are dropped first
  • Each survivor gets one type from the per-resource taxonomy
  • The summary uses a narrower taxonomy: xhr and document fold into "other"
"""

from __future__ import annotations
import math
import re
from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping
from urllib.parse import urlparse

from collector.telemetry import RawResource


RESOURCE_TYPES = ("script", "stylesheet", "image", "font", "xhr", "document", "other")
SUMMARY_TYPES = ("script", "stylesheet", "image", "font", "other")

NON_NETWORK_PREFIXES = (
    "data:",
    "chrome-extension://",
    "moz-extension://",
    "safari-web-extension://",
)

FONT_PATTERN = re.compile(r"\.(woff|woff2|ttf|otf)$", re.IGNORECASE)
CSS_PATTERN = re.compile(r"\.css$", re.IGNORECASE)

DOCUMENT_INITIATORS = {"navigation", "iframe", "frame"}


@dataclass(frozen=True)
class ResourceEntry:
    name:       str
    type:       str
    start_time: int
    duration:   int
    size:       int

    def to_dict(self) -> dict:
        return {
            "name":      self.name,
            "type":      self.type,
            "startTime": self.start_time,
            "duration":  self.duration,
            "size":      self.size,
        }


@dataclass(frozen=True)
class TypeTotals:
    count: int = 0
    size:  int = 0

    def to_dict(self) -> dict:
        return {"count": self.count, "size": self.size}


@dataclass(frozen=True)
class ResourceSummary:
    total_requests: int
    total_size:     int
    by_type:        Mapping[str, TypeTotals]

    def __post_init__(self):
        # stored as a read-only copy
        object.__setattr__(self, "by_type", MappingProxyType(dict(self.by_type)))

    def to_dict(self) -> dict:
        return {
            "totalRequests": self.total_requests,
            "totalSize":     self.total_size,
            "byType":        {k: v.to_dict() for k, v in self.by_type.items()},
        }


def round_half_up(value: float) -> int:
    """Math.round semantics: .5 always rounds up."""
    return int(math.floor(value + 0.5))


def is_network_url(url: str) -> bool:
    return not url.lower().startswith(NON_NETWORK_PREFIXES)


def _url_path(url: str) -> str:
    try:
        return urlparse(url).path
    except ValueError:
        return url


def classify_resource(name: str, initiator_type: str) -> str:
    """Map one resource to script | stylesheet | image | font | xhr | document | other."""
    initiator = (initiator_type or "other").lower()
    path = _url_path(name)

    if initiator == "link" and CSS_PATTERN.search(path):
        return "stylesheet"
    if initiator == "script":
        return "script"
    if initiator == "img":
        return "image"
    if initiator == "css":
        return "stylesheet"
    if FONT_PATTERN.search(path):
        return "font"
    if initiator in ("xmlhttprequest", "fetch"):
        return "xhr"
    if initiator in DOCUMENT_INITIATORS:
        return "document"
    if initiator in RESOURCE_TYPES:
        return initiator
    return "other"


def normalize_resources(raw: Iterable[RawResource]) -> list[ResourceEntry]:
    """Filter and classify raw entries, keeping browser order."""
    entries: list[ResourceEntry] = []
    for resource in raw:
        if not is_network_url(resource.name):
            continue
        entries.append(ResourceEntry(
            name       = resource.name,
            type       = classify_resource(resource.name, resource.initiator_type),
            start_time = max(0, round_half_up(resource.start_time)),
            duration   = max(0, round_half_up(resource.duration)),
            size       = max(0, int(resource.transfer_size or 0)),
        ))
    return entries


def summarize_resources(resources: Iterable[ResourceEntry]) -> ResourceSummary:
    counts = {t: 0 for t in SUMMARY_TYPES}
    sizes = {t: 0 for t in SUMMARY_TYPES}
    total_requests = 0
    total_size = 0

    for resource in resources:
        bucket = resource.type if resource.type in counts else "other"
        counts[bucket] += 1
        sizes[bucket] += resource.size
        total_requests += 1
        total_size += resource.size

    return ResourceSummary(
        total_requests = total_requests,
        total_size     = total_size,
        by_type        = {t: TypeTotals(count=counts[t], size=sizes[t]) for t in SUMMARY_TYPES},
    )
