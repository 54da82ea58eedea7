"""
collector/browser_session.py
────────────────────────────
One headless Chromium per analysis, driven through Playwright's async API.

    async with BrowserSession() as session:
        await session.navigate(url)
        await session.settle()
        telemetry = await session.collect()

The `async with` block is the only way to get a page. Whatever happens
inside it (navigation error, timeout, cancellation from the caller's
deadline) the browser is closed exactly once in __aexit__.
"""

from __future__ import annotations
import asyncio
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError
from playwright.async_api import async_playwright

from collector.errors import AnalysisTimeoutError, NavigationError, UnreachableURLError
from collector.telemetry import RawTelemetry, TelemetryCollector

log = logging.getLogger("pagelens.browser")


VIEWPORT = {"width": 1920, "height": 1080}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
LAUNCH_ARGS = ["--no-sandbox", "--disable-setuid-sandbox", "--disable-dev-shm-usage"]
LAUNCH_TIMEOUT_MS = 60_000
NAVIGATION_TIMEOUT_MS = 30_000
SETTLE_DELAY_S = 2.0

# Chromium network errors that mean "the host is not there"
UNREACHABLE_MARKERS = ("net::ERR_NAME_NOT_RESOLVED", "net::ERR_CONNECTION_REFUSED")


class BrowserSession:
    """Owns a Playwright driver, one browser, one context and one page."""

    def __init__(self, collector: Optional[TelemetryCollector] = None,
                 settle_delay_s: float = SETTLE_DELAY_S):
        self.collector = collector or TelemetryCollector()
        self.settle_delay_s = settle_delay_s
        self._playwright = None
        self._browser = None
        self._page = None

    async def __aenter__(self) -> "BrowserSession":
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(
                headless=True,
                args=LAUNCH_ARGS,
                timeout=LAUNCH_TIMEOUT_MS,
            )
            context = await self._browser.new_context(
                viewport=VIEWPORT,
                user_agent=USER_AGENT,
            )
            self._page = await context.new_page()
        except BaseException:
            await self.close()
            raise
        log.debug("Browser launched")
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the browser and stop the driver. Safe to call twice."""
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        self._page = None
        try:
            if browser is not None:
                await browser.close()
                log.debug("Browser closed")
        except PlaywrightError as e:
            log.warning("Browser close failed: {}".format(e))
        finally:
            if playwright is not None:
                try:
                    await playwright.stop()
                except PlaywrightError as e:
                    log.warning("Playwright stop failed: {}".format(e))

    @property
    def page(self):
        if self._page is None:
            raise RuntimeError("BrowserSession is not open")
        return self._page

    # ── Steps ─────────────────────────────────────────────────────────────────

    async def navigate(self, url: str) -> None:
        """Load `url` and wait for the load event, classifying any failure."""
        log.debug("Navigating to {}".format(url))
        try:
            await self.page.goto(url, wait_until="load", timeout=NAVIGATION_TIMEOUT_MS)
        except PlaywrightTimeoutError as e:
            raise AnalysisTimeoutError(
                "Navigation timed out after {}s".format(NAVIGATION_TIMEOUT_MS // 1000), url
            ) from e
        except PlaywrightError as e:
            reason = str(e)
            if any(marker in reason for marker in UNREACHABLE_MARKERS):
                raise UnreachableURLError(url) from e
            raise NavigationError("Failed to load URL: {}".format(reason), url) from e
        log.debug("Loaded {}".format(url))

    async def settle(self) -> None:
        """Give late content and layout shifts time to register."""
        await asyncio.sleep(self.settle_delay_s)

    async def collect(self) -> RawTelemetry:
        return await self.collector.collect(self.page)
