"""Render service - Markdown to PDF through the render driver."""

from pathlib import Path

from md2pdf.config import Settings, get_settings
from md2pdf.modules.document import (
    AssetLocator,
    DocumentOptions,
    Theme,
    assemble,
    contains_math,
    embed_images,
    transform,
)
from md2pdf.modules.document.embedder import build_image_map
from md2pdf.shared.errors import ValidationError
from md2pdf.shared.ids import epoch_ms, generate_render_id
from md2pdf.shared.logging import get_logger, get_request_context

from .driver import RenderDriver, RenderPlan, safe_file_stem
from .registry import CancelOutcome
from .schemas import PagingMode, PdfResult, RenderRequest, ThemeInfo, parse_resolution

logger = get_logger(__name__)


class RenderService:
    """Service for rendering Markdown to PDF."""

    def __init__(self, driver: RenderDriver, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.driver = driver
        self.assets = AssetLocator(self.settings)

    def build_document(self, request: RenderRequest, source_dir: Path | None = None) -> str:
        """
        Transform, embed and assemble the request into full HTML.

        Args:
            request: Render request
            source_dir: Directory of the source file in local mode; ``None``
                for server mode (unresolved images get a placeholder)

        Returns:
            Complete HTML document
        """
        body = transform(request.markdown, base_dir=source_dir)
        body = embed_images(
            body,
            build_image_map(request.images),
            placeholder_on_missing=source_dir is None,
        )
        options = DocumentOptions(
            theme=request.theme,
            page_width_mm=self._page_width(request),
            margin_mm=self.settings.margin_mm if request.margin is None else request.margin,
            title=request.file_name,
            has_math=contains_math(request.markdown),
        )
        return assemble(body, options, self.assets)

    def build_plan(self, request: RenderRequest) -> RenderPlan:
        viewport = request.resolution or parse_resolution(self.settings.viewport_resolution)
        return RenderPlan(
            viewport={"width": viewport.width, "height": viewport.height},
            device_scale_factor=request.scale_factor or self.settings.device_scale_factor,
            paging_mode=request.paging_mode,
            page_width_mm=self._page_width(request),
            paper_format=request.format,
            has_math=contains_math(request.markdown),
            file_stem=request.file_name,
        )

    async def generate(self, request: RenderRequest, source_dir: Path | None = None) -> PdfResult:
        """
        Render a request to PDF.

        Raises:
            RenderAborted: the job was cancelled
            RenderFailed: the engine failed
        """
        stem = safe_file_stem(request.file_name)
        job_id = request.render_id or generate_render_id(stem)
        ctx = get_request_context()
        if ctx is not None:
            ctx.render_id = job_id

        markup = self.build_document(request, source_dir)
        plan = self.build_plan(request)
        logger.info(
            f"Generating {job_id}: theme={request.theme.value} mode={plan.paging_mode.value} "
            f"viewport={plan.viewport['width']}x{plan.viewport['height']}@{plan.device_scale_factor:g}x"
        )

        output = await self.driver.render(job_id, markup, plan)
        return PdfResult(
            content=output.content,
            file_name=f"{stem}-{request.theme.value}-{epoch_ms()}.pdf",
            debug_artifact_path=str(output.debug_artifact_path) if output.debug_artifact_path else None,
        )

    async def cancel(self, render_id: str | None) -> CancelOutcome:
        if not render_id:
            raise ValidationError("Missing renderId")
        return await self.driver.cancel(render_id)

    @staticmethod
    def list_themes() -> list[ThemeInfo]:
        return [
            ThemeInfo(name=theme.value, description=theme.description, dark=theme.is_dark)
            for theme in Theme
        ]

    def _page_width(self, request: RenderRequest) -> float:
        # Content is always laid out at a fixed width; only single-page-fit
        # lets the caller choose it.
        if request.paging_mode is PagingMode.SINGLE_PAGE_FIT and request.page_width:
            return request.page_width
        return self.settings.page_width_mm
