"""
md2pdf server entrypoint - runs uvicorn server.
"""

import uvicorn

from md2pdf.app import build_app
from md2pdf.config import get_settings
from md2pdf.shared.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    """Run the md2pdf server."""
    settings = get_settings()
    setup_logging(settings.log_level)
    app = build_app(settings)

    logger.info(f"md2pdf listening on http://{settings.host}:{settings.port} (API docs at /docs)")
    logger.info(f"Temp documents: {settings.temp_documents_dir}")
    if settings.debug:
        logger.info(f"Debug PDFs kept in {settings.debug_artifacts_dir}")

    # Keep the root handler installed by setup_logging; uvicorn would replace it
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
