"""
Rendering engine handle - one headless Chromium per render job, via Playwright.
"""

import os
import sys
from enum import Enum

from playwright.async_api import Browser, Page, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from md2pdf.shared.logging import get_logger

logger = get_logger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",  # Use /tmp instead of /dev/shm
]

WINDOWS_CANDIDATES = [
    r"C:\Program Files\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
    r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
]
MACOS_CANDIDATES = [
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
]
LINUX_CANDIDATES = [
    "/usr/bin/google-chrome-stable",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium-browser",
    "/usr/bin/chromium",
    "/snap/bin/chromium",
    "/opt/google/chrome/chrome",
]


def executable_candidates(platform: str = sys.platform) -> list[str]:
    if platform.startswith("win"):
        return WINDOWS_CANDIDATES
    if platform == "darwin":
        return MACOS_CANDIDATES
    return LINUX_CANDIDATES


def resolve_executable_path(configured: str | None, platform: str = sys.platform) -> str | None:
    """
    Pick the browser executable.

    Order: explicit setting, then the first installed platform candidate.
    ``None`` means Playwright's bundled Chromium.
    """
    if configured:
        return configured
    for candidate in executable_candidates(platform):
        if os.path.exists(candidate):
            return candidate
    return None


# =============================================================================
# BOUNDED WAITS
# =============================================================================

class WaitOutcome(str, Enum):
    SATISFIED = "satisfied"
    TIMED_OUT = "timed_out"


async def wait_until(page: Page, expression: str, timeout_ms: int) -> WaitOutcome:
    """
    Wait for a page predicate, reporting a timeout instead of raising it.

    Other engine errors (page closed, crashed) still propagate.
    """
    try:
        await page.wait_for_function(expression, timeout=timeout_ms)
    except PlaywrightTimeoutError:
        return WaitOutcome.TIMED_OUT
    return WaitOutcome.SATISFIED


# =============================================================================
# ENGINE
# =============================================================================

class ChromiumEngine:
    """Owning handle for one Chromium instance."""

    def __init__(self, executable_path: str | None, timeout_ms: int) -> None:
        self.executable_path = executable_path
        self.timeout_ms = timeout_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Launch the browser process."""
        self._playwright = await async_playwright().start()
        logger.debug(f"Launching Chromium: {self.executable_path or '(bundled)'}")
        self._browser = await self._playwright.chromium.launch(
            headless=True,
            executable_path=self.executable_path,
            args=LAUNCH_ARGS,
            timeout=self.timeout_ms,
        )
        if self.closed:
            # close() ran while the launch was in progress
            await self._browser.close()
            raise PlaywrightError("Target page, context or browser has been closed")

    async def new_page(self, viewport: dict[str, int], device_scale_factor: float) -> Page:
        if self._browser is None:
            raise PlaywrightError("Target page, context or browser has been closed")
        page = await self._browser.new_page(
            viewport=viewport,
            device_scale_factor=device_scale_factor,
        )
        page.set_default_timeout(self.timeout_ms)
        page.set_default_navigation_timeout(self.timeout_ms)
        return page

    async def close(self) -> None:
        """Terminate the browser. Safe to call more than once, from any task."""
        self._closed = True
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()


def chromium_engine_factory(chrome_path: str | None, timeout_ms: int):
    """Build a zero-argument factory producing fresh, unstarted engines."""
    executable_path = resolve_executable_path(chrome_path)

    def factory() -> ChromiumEngine:
        return ChromiumEngine(executable_path, timeout_ms)

    return factory


__all__ = [
    "ChromiumEngine",
    "PlaywrightError",
    "PlaywrightTimeoutError",
    "WaitOutcome",
    "chromium_engine_factory",
    "resolve_executable_path",
    "wait_until",
]
