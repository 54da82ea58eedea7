"""
collector/errors.py
───────────────────
Failure classes raised by the analysis pipeline.

Every failure reaches the caller as one of these, so the HTTP layer can
branch on the class (or on `kind`) instead of parsing message text:

  AnalysisError          unexpected failure during extraction / processing
  UnreachableURLError    DNS resolution or connection refused
  NavigationError        any other page-load failure
  AnalysisTimeoutError   navigation timeout or the caller's overall deadline
"""

from __future__ import annotations
from typing import Optional


class AnalysisError(Exception):
    """Base class for every analysis failure."""

    kind = "analysis_failed"

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.url = url


class UnreachableURLError(AnalysisError):
    """The target host could not be resolved or refused the connection."""

    kind = "unreachable"

    def __init__(self, url: Optional[str] = None):
        super().__init__("Could not reach the specified URL", url)


class NavigationError(AnalysisError):
    """The page failed to load for a reason other than reachability."""

    kind = "navigation_failed"


class AnalysisTimeoutError(AnalysisError):
    """Navigation or the whole analysis ran past its time bound."""

    kind = "timeout"
