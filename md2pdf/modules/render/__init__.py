"""Render module - Markdown to PDF rendering using Playwright."""

from .driver import RenderDriver, RenderPlan
from .registry import CancelOutcome, JobRegistry, RenderJob, RenderState
from .router import router
from .schemas import CancelRequest, PdfResult, RenderRequest
from .service import RenderService

__all__ = [
    "router",
    "CancelOutcome",
    "CancelRequest",
    "JobRegistry",
    "PdfResult",
    "RenderDriver",
    "RenderJob",
    "RenderPlan",
    "RenderRequest",
    "RenderService",
    "RenderState",
]
