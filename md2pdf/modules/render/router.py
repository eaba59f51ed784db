"""Render module routes."""

from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import JSONResponse

from md2pdf.shared.errors import NotFoundError, RenderAborted, RenderFailed
from md2pdf.shared.logging import get_logger

from .registry import CancelOutcome
from .schemas import CancelRequest, CancelResponse, RenderRequest, ThemeInfo
from .service import RenderService

logger = get_logger(__name__)
router = APIRouter(prefix="/api", tags=["render"])


def get_service(request: Request) -> RenderService:
    """Dependency injection for service; the driver and its registry live on app state."""
    return RenderService(
        driver=request.app.state.render_driver,
        settings=request.app.state.settings,
    )


@router.post("/generate")
async def generate_pdf(
    payload: RenderRequest,
    service: RenderService = Depends(get_service),
) -> Response:
    """
    Render Markdown to PDF.

    Returns the PDF as binary content, 204 when the job was cancelled
    before it finished.
    """
    try:
        result = await service.generate(payload)
    except RenderAborted:
        return Response(status_code=204)
    except RenderFailed:
        raise
    except Exception as e:
        logger.exception("PDF render failed")
        return JSONResponse(
            status_code=500,
            content={"error": {"code": "render_failed", "message": str(e) or "PDF generation failed"}},
        )

    if not result.content:
        raise RenderFailed("Generated PDF is empty")

    return Response(
        content=result.content,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(result.file_name)}",
            "Content-Length": str(len(result.content)),
        },
    )


@router.post("/cancel", response_model=CancelResponse)
async def cancel_render(
    body: CancelRequest | None = None,
    render_id: str | None = Query(default=None, alias="renderId"),
    service: RenderService = Depends(get_service),
) -> CancelResponse:
    """
    Cancel an in-flight render.

    A job that already finished is reported as success so the caller can
    ignore the race; an id that was never seen is a 404.
    """
    job_id = (body.render_id if body else None) or render_id
    outcome = await service.cancel(job_id)

    if outcome is CancelOutcome.NOT_FOUND:
        raise NotFoundError("Render job not found", details={"render_id": job_id})
    if outcome is CancelOutcome.ALREADY_FINISHED:
        return CancelResponse(ok=True, message="already finished")
    return CancelResponse(ok=True, message="cancelled")


@router.get("/themes", response_model=list[ThemeInfo])
async def list_themes() -> list[ThemeInfo]:
    """List registered themes."""
    return RenderService.list_themes()
