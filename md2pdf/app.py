"""
Application factory - builds FastAPI app with all middleware and routes.
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from md2pdf import __version__
from md2pdf.config import Settings, get_settings, init_settings
from md2pdf.modules.render import JobRegistry, RenderDriver
from md2pdf.modules.render.router import router as render_router
from md2pdf.shared.errors import Md2PdfError, ValidationError
from md2pdf.shared.ids import generate_request_id
from md2pdf.shared.logging import (
    clear_request_context,
    get_logger,
    get_request_context,
    set_request_context,
    setup_logging,
)
from md2pdf.shared.types import RequestContext

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan - startup and shutdown."""
    settings: Settings = app.state.settings

    setup_logging(settings.log_level)
    logger.info("Starting md2pdf...")
    settings.temp_documents_dir.mkdir(parents=True, exist_ok=True)
    logger.info(f"Temp documents: {settings.temp_documents_dir}")

    yield

    logger.info("Shutting down md2pdf...")
    aborted = await app.state.render_driver.abort_all()
    if aborted:
        logger.info(f"Aborted {aborted} in-flight renders")
    logger.info("md2pdf stopped")


def _error_body(exc: Md2PdfError) -> dict[str, Any]:
    ctx = get_request_context()
    return {
        "error": exc.to_dict(),
        "request_id": ctx.request_id if ctx else None,
    }


def build_app(
    settings: Settings | None = None,
    engine_factory: Callable[[], Any] | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Optional settings override (useful for testing)
        engine_factory: Optional rendering engine factory (tests inject fakes)

    Returns:
        Configured FastAPI application
    """
    if settings is None:
        settings = get_settings()
    else:
        init_settings(settings)

    app = FastAPI(
        title="md2pdf",
        description="Markdown to PDF rendering service",
        version=__version__,
        lifespan=lifespan,
    )

    registry = JobRegistry(finished_history=settings.finished_job_history)
    app.state.settings = settings
    app.state.job_registry = registry
    app.state.render_driver = RenderDriver(settings, registry, engine_factory=engine_factory)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request context middleware
    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next: Any) -> Response:
        """Attach request context for logging and tracing."""
        ctx = RequestContext(
            request_id=request.headers.get("X-Request-ID", generate_request_id()),
        )
        set_request_context(ctx)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = ctx.request_id
            return response
        finally:
            clear_request_context()

    @app.exception_handler(Md2PdfError)
    async def md2pdf_error_handler(request: Request, exc: Md2PdfError) -> JSONResponse:
        """Handle Md2PdfError with consistent JSON response."""
        return JSONResponse(status_code=exc.http_status, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Payload validation failures use the same 400 shape as ValidationError."""
        messages = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
            message = str(err.get("msg", "invalid value")).removeprefix("Value error, ")
            messages.append(f"{location}: {message}" if location else message)
        error = ValidationError("; ".join(messages) or "Invalid request")
        return JSONResponse(status_code=error.http_status, content=_error_body(error))

    # Register routers
    app.include_router(render_router)

    # Root endpoint
    @app.get("/")
    async def root() -> dict[str, str]:
        return {"service": "md2pdf", "version": __version__}

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok", "active_renders": len(registry)}

    return app
