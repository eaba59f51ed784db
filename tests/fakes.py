"""
In-process stand-ins for the rendering engine.

They implement the slice of the Playwright API the driver uses, so the
whole state machine runs without a browser.
"""

import asyncio
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from md2pdf.config import Settings

FAKE_PDF = b"%PDF-1.7\n% fake\n%%EOF\n"
CLOSED_MESSAGE = "Target page, context or browser has been closed"


class FakePage:
    """Implements the slice of the Playwright Page API the driver uses."""

    def __init__(self, engine: "FakeEngine") -> None:
        self.engine = engine

    async def goto(self, url: str, wait_until: str | None = None) -> None:
        self.engine.raise_if_closed()
        self.engine.visited.append(url)
        path = Path(url2pathname(urlparse(url).path))
        self.engine.documents.append(path.read_text(encoding="utf-8"))

    async def wait_for_load_state(self, state: str = "load") -> None:
        self.engine.raise_if_closed()
        self.engine.load_states.append(state)

    async def wait_for_function(self, expression: str, timeout: float | None = None) -> None:
        self.engine.waits.append(expression)
        if self.engine.hang_on_wait:
            self.engine.waiting.set()
            await self.engine.gate.wait()
        self.engine.raise_if_closed()
        if self.engine.wait_timeouts:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded.")

    async def evaluate(self, expression: str):
        self.engine.raise_if_closed()
        self.engine.evaluations.append(expression)
        if "scrollHeight" in expression:
            return self.engine.scroll_height
        return True

    async def pdf(self, **options) -> bytes:
        self.engine.raise_if_closed()
        if self.engine.pdf_error is not None:
            raise self.engine.pdf_error
        self.engine.pdf_calls.append(options)
        return self.engine.pdf_bytes


class FakeEngine:
    """Stands in for ChromiumEngine."""

    def __init__(
        self,
        scroll_height: int = 1000,
        hang_on_wait: bool = False,
        wait_timeouts: bool = False,
        start_error: Exception | None = None,
        pdf_error: Exception | None = None,
        pdf_bytes: bytes = FAKE_PDF,
        slow_close: bool = False,
        close_error: Exception | None = None,
    ) -> None:
        self.scroll_height = scroll_height
        self.hang_on_wait = hang_on_wait
        self.wait_timeouts = wait_timeouts
        self.start_error = start_error
        self.pdf_error = pdf_error
        self.pdf_bytes = pdf_bytes
        self.slow_close = slow_close
        self.close_error = close_error

        self.started = False
        self.closed = False
        self.close_calls = 0
        self.viewport: dict | None = None
        self.device_scale_factor: float | None = None
        self.visited: list[str] = []
        self.documents: list[str] = []
        self.load_states: list[str] = []
        self.waits: list[str] = []
        self.evaluations: list[str] = []
        self.pdf_calls: list[dict] = []
        self.gate = asyncio.Event()
        self.waiting = asyncio.Event()
        self.closing = asyncio.Event()
        self.close_gate = asyncio.Event()

    def raise_if_closed(self) -> None:
        if self.closed:
            raise PlaywrightError(CLOSED_MESSAGE)

    async def start(self) -> None:
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    async def new_page(self, viewport: dict, device_scale_factor: float) -> FakePage:
        self.raise_if_closed()
        self.viewport = viewport
        self.device_scale_factor = device_scale_factor
        return FakePage(self)

    async def close(self) -> None:
        self.closed = True
        self.close_calls += 1
        self.gate.set()
        if self.slow_close:
            self.closing.set()
            await self.close_gate.wait()
        if self.close_error is not None:
            raise self.close_error


class FakeEngineFactory:
    """Zero-argument engine factory that remembers what it built."""

    def __init__(self, **engine_kwargs) -> None:
        self.engine_kwargs = engine_kwargs
        self.engines: list[FakeEngine] = []

    def __call__(self) -> FakeEngine:
        engine = FakeEngine(**self.engine_kwargs)
        self.engines.append(engine)
        return engine

    @property
    def last(self) -> FakeEngine:
        return self.engines[-1]


def temp_documents(settings: Settings) -> list[Path]:
    directory = settings.temp_documents_dir
    return sorted(directory.glob("*.html")) if directory.exists() else []
