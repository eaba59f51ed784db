"""
Render driver - the per-job state machine.

    Created -> EngineLaunching -> DocumentLoading -> AwaitingAsyncRender
            -> Measuring -> Paginating -> Completed

Aborted is reachable from any non-terminal state (a cancel request closes
the engine), Failed from any state on an unrecoverable error. Cleanup
(engine, temp document, registry entry) runs on every path.
"""

import asyncio
import math
import re
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from md2pdf.config import Settings
from md2pdf.shared.errors import CancelFailed, RenderAborted, RenderFailed
from md2pdf.shared.ids import epoch_ms
from md2pdf.shared.logging import get_logger

from .engine import PlaywrightError, WaitOutcome, chromium_engine_factory, wait_until
from .registry import TERMINAL_STATES, CancelOutcome, JobRegistry, RenderJob, RenderState
from .schemas import PagingMode

logger = get_logger(__name__)

# 96 DPI: 25.4 mm / 96 px
PX_TO_MM = 0.264583

IMAGES_SETTLED = "() => Array.from(document.images).every(img => img.complete)"

DIAGRAMS_RENDERED = """() => Array.from(document.querySelectorAll('.mermaid'))
    .every(el => el.querySelector('svg') !== null)"""

MATH_ENGINE_READY = (
    "() => !!(window.MathJax && typeof window.MathJax.typesetPromise === 'function')"
)

TYPESET_MATH = """async () => {
    try {
        if (!window.MathJax) return false;
        const target = document.querySelector('.markdown-body') || document.body;
        if (typeof window.MathJax.typesetPromise === 'function') {
            await window.MathJax.typesetPromise([target]);
        } else if (window.MathJax.startup && typeof window.MathJax.startup.defaultPageReady === 'function') {
            await window.MathJax.startup.defaultPageReady();
        }
        return true;
    } catch (e) {
        console.warn('math typeset error', e && e.message);
        return false;
    }
}"""

MEASURE_HEIGHT = (
    "() => Math.ceil(document.documentElement.scrollHeight || document.body.scrollHeight || 0)"
)

# Errors a torn-down session produces when we closed it ourselves
ABORT_ERROR_RE = re.compile(
    r"detached|Target closed|Session closed|Page crashed|has been closed",
    re.IGNORECASE,
)

_UNSAFE_NAME_RE = re.compile(r"[^\w.\-]+")


def safe_file_stem(name: str, default: str = "markdown") -> str:
    """File-system safe stem derived from a caller-supplied file name."""
    stem = _UNSAFE_NAME_RE.sub("_", name).strip("._")[:80]
    return stem or default


def px_to_mm(px: float) -> int:
    """Convert CSS pixels to whole millimetres, rounding up."""
    return math.ceil(px * PX_TO_MM)


@dataclass
class RenderPlan:
    """Everything the driver needs besides the markup."""
    viewport: dict[str, int]
    device_scale_factor: float
    paging_mode: PagingMode
    page_width_mm: float
    paper_format: str = "A4"
    has_math: bool = False
    file_stem: str = "markdown"


@dataclass
class RenderOutput:
    content: bytes
    height_mm: int
    debug_artifact_path: Path | None = None


def pdf_options(plan: RenderPlan, height_mm: int) -> dict[str, Any]:
    """Engine PDF options for the requested paging policy."""
    if plan.paging_mode is PagingMode.SINGLE_PAGE_FIT:
        # Page height matches content height, so the engine never breaks pages
        return {
            "print_background": True,
            "width": f"{plan.page_width_mm:g}mm",
            "height": f"{height_mm}mm",
            "prefer_css_page_size": False,
            "page_ranges": "1",
        }
    return {
        "print_background": True,
        "prefer_css_page_size": True,
        "format": plan.paper_format,
    }


class RenderDriver:
    """Runs render jobs and cancels them on request."""

    def __init__(
        self,
        settings: Settings,
        registry: JobRegistry,
        engine_factory: Callable[[], Any] | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.timeout_ms = timeout_ms or settings.render_timeout_ms
        self.engine_factory = engine_factory or chromium_engine_factory(
            settings.chrome_path, self.timeout_ms
        )

    # -------------------------------------------------------------------------
    # Generate
    # -------------------------------------------------------------------------

    async def render(self, job_id: str, markup: str, plan: RenderPlan) -> RenderOutput:
        """
        Render assembled markup to PDF bytes.

        Raises:
            RenderAborted: the job was cancelled or its engine closed under it
            RenderFailed: launch failure, timeout, or other engine error
        """
        try:
            temp_path = self._write_temp_document(plan.file_stem, markup)
        except OSError as exc:
            raise RenderFailed(f"Could not write temp document: {exc.strerror or exc}") from exc

        job = self.registry.register(RenderJob(id=job_id, temp_document_path=temp_path))
        logger.info(f"Render {job_id} created ({plan.paging_mode.value})")

        content: bytes | None = None
        try:
            content, height_mm = await asyncio.wait_for(
                self._run(job, plan), timeout=self.timeout_ms / 1000
            )
            job.state = RenderState.COMPLETED
        except RenderAborted:
            job.state = RenderState.ABORTED
            logger.info(f"Render {job_id} aborted")
            raise
        except asyncio.TimeoutError as exc:
            if job.aborted:
                job.state = RenderState.ABORTED
                raise RenderAborted(job_id) from exc
            job.state = RenderState.FAILED
            raise RenderFailed(
                f"Render timed out after {self.timeout_ms / 1000:g}s"
            ) from exc
        except PlaywrightError as exc:
            if self.is_abort_error(job, exc):
                job.state = RenderState.ABORTED
                logger.info(f"Render {job_id} aborted: engine session closed")
                raise RenderAborted(job_id) from exc
            job.state = RenderState.FAILED
            logger.error(f"Render {job_id} failed: {exc}")
            raise RenderFailed(self._redact(str(exc))) from exc
        finally:
            await self._cleanup(job, content)

        logger.info(f"Render {job_id} completed: {len(content)} bytes")
        return RenderOutput(
            content=content,
            height_mm=height_mm,
            debug_artifact_path=job.debug_artifact_path,
        )

    async def _run(self, job: RenderJob, plan: RenderPlan) -> tuple[bytes, int]:
        self._enter(job, RenderState.ENGINE_LAUNCHING)
        engine = self.engine_factory()
        job.engine = engine
        await engine.start()
        self._check_aborted(job)

        self._enter(job, RenderState.DOCUMENT_LOADING)
        page = await engine.new_page(plan.viewport, plan.device_scale_factor)
        await page.goto(job.temp_document_path.as_uri(), wait_until="domcontentloaded")
        await page.wait_for_load_state("networkidle")
        self._check_aborted(job)

        self._enter(job, RenderState.AWAITING_ASYNC_RENDER)
        await self._await_async_render(job, page, plan)
        self._check_aborted(job)

        self._enter(job, RenderState.MEASURING)
        height_px = await page.evaluate(MEASURE_HEIGHT)
        height_mm = px_to_mm(height_px)
        logger.debug(f"Render {job.id}: content height {height_px}px = {height_mm}mm")

        self._enter(job, RenderState.PAGINATING)
        content = await page.pdf(**pdf_options(plan, height_mm))
        return content, height_mm

    async def _await_async_render(self, job: RenderJob, page: Any, plan: RenderPlan) -> None:
        """Best-effort waits; every timeout is logged and then ignored."""
        timeout = self.settings.asset_wait_timeout_ms

        if await wait_until(page, IMAGES_SETTLED, timeout) is WaitOutcome.TIMED_OUT:
            logger.warning(f"Render {job.id}: images still loading after {timeout}ms")
        if await wait_until(page, DIAGRAMS_RENDERED, timeout) is WaitOutcome.TIMED_OUT:
            logger.warning(f"Render {job.id}: diagrams not rendered after {timeout}ms")

        if not plan.has_math:
            return
        ready_timeout = self.settings.math_ready_timeout_ms
        if await wait_until(page, MATH_ENGINE_READY, ready_timeout) is WaitOutcome.TIMED_OUT:
            logger.warning(f"Render {job.id}: math engine not ready after {ready_timeout}ms")
        typeset = await page.evaluate(TYPESET_MATH)
        logger.debug(f"Render {job.id}: math typeset {'done' if typeset else 'skipped'}")
        await asyncio.sleep(self.settings.math_settle_ms / 1000)

    # -------------------------------------------------------------------------
    # Cancel
    # -------------------------------------------------------------------------

    async def cancel(self, job_id: str) -> CancelOutcome:
        """
        Abort a job: terminate its engine and drop its files and entry.

        A job that already reached a terminal state is left to its own
        cleanup and reported as finished.

        Raises:
            CancelFailed: the engine could not be terminated. The files and
                the registry entry are released regardless.
        """
        job = self.registry.get(job_id)
        if job is None:
            if self.registry.was_finished(job_id):
                return CancelOutcome.ALREADY_FINISHED
            return CancelOutcome.NOT_FOUND
        if job.state in TERMINAL_STATES:
            logger.info(f"Cancel for {job_id} ignored: already {job.state.value}")
            return CancelOutcome.ALREADY_FINISHED

        self.registry.mark_aborted(job_id)
        logger.info(f"Cancelling render {job_id} in state {job.state.value}")

        close_error: Exception | None = None
        try:
            if job.engine is not None:
                await job.engine.close()
        except Exception as exc:
            close_error = exc
            logger.warning(f"Failed to close engine for {job_id}: {exc}")
        finally:
            self._remove_file(job.temp_document_path)
            self._remove_file(job.debug_artifact_path)
            self.registry.release(job_id, job)

        if close_error is not None:
            raise CancelFailed(
                f"Could not terminate the rendering engine: {self._redact(str(close_error))}",
                details={"render_id": job_id},
            ) from close_error
        return CancelOutcome.CANCELLED

    async def abort_all(self) -> int:
        """Cancel every in-flight job (shutdown)."""
        jobs = self.registry.jobs()
        for job in jobs:
            try:
                await self.cancel(job.id)
            except CancelFailed as exc:
                logger.warning(f"Shutdown: {exc.message}")
        return len(jobs)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def is_abort_error(job: RenderJob, exc: BaseException) -> bool:
        """Tell "closed because we asked" apart from an unexpected engine crash."""
        return job.aborted or bool(ABORT_ERROR_RE.search(str(exc)))

    def _enter(self, job: RenderJob, state: RenderState) -> None:
        job.state = state
        logger.debug(f"Render {job.id} -> {state.value}")

    @staticmethod
    def _check_aborted(job: RenderJob) -> None:
        if job.aborted:
            raise RenderAborted(job.id)

    def _write_temp_document(self, file_stem: str, markup: str) -> Path:
        directory = self.settings.temp_documents_dir
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{safe_file_stem(file_stem)}-{epoch_ms()}-{secrets.token_hex(4)}.html"
        path.write_text(markup, encoding="utf-8")
        return path

    def _write_debug_artifact(self, job: RenderJob, content: bytes) -> None:
        directory = self.settings.debug_artifacts_dir
        stem = job.temp_document_path.stem if job.temp_document_path else safe_file_stem(job.id)
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path = directory / f"{stem}.pdf"
            path.write_bytes(content)
        except OSError as exc:
            logger.warning(f"Could not write debug PDF for {job.id}: {exc}")
            return
        job.debug_artifact_path = path
        logger.info(f"Debug PDF written: {path} ({len(content)} bytes)")

    async def _cleanup(self, job: RenderJob, content: bytes | None) -> None:
        if job.engine is not None:
            try:
                await job.engine.close()
            except Exception as exc:
                logger.warning(f"Failed to close engine for {job.id}: {exc}")
        if content and self.settings.debug and not job.aborted:
            self._write_debug_artifact(job, content)
        self._remove_file(job.temp_document_path)
        self.registry.release(job.id, job)

    @staticmethod
    def _remove_file(path: Path | None) -> None:
        if path is None:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning(f"Failed to remove {path}: {exc}")

    def _redact(self, message: str) -> str:
        for tmp in {self.settings.tmp_dir.absolute(), self.settings.tmp_dir.resolve()}:
            message = message.replace(tmp.as_uri(), "<tmp>").replace(str(tmp), "<tmp>")
        return message
