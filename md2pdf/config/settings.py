"""
Application settings parsed from the environment.

Most fields read ``MD2PDF_<FIELD>``; a few also accept the plain names
deployment scripts commonly export (``PDF_TMP_DIR``, ``CHROME_PATH``,
``PORT``).
"""

import tempfile
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_DIR = Path(__file__).resolve().parent.parent
RESOURCES_DIR = PACKAGE_DIR / "resources"


class Settings(BaseSettings):
    """Runtime configuration for the server and the CLI."""

    # -------------------------------------------------------------------------
    # Server
    # -------------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = Field(
        default=8080,
        validation_alias=AliasChoices("PORT", "MD2PDF_PORT"),
    )
    log_level: str = "INFO"
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    # -------------------------------------------------------------------------
    # Filesystem and engine overrides
    # -------------------------------------------------------------------------

    tmp_dir: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        validation_alias=AliasChoices("PDF_TMP_DIR", "MD2PDF_TMP"),
        description="Base directory for temp documents and debug PDFs",
    )
    chrome_path: str | None = Field(
        default=None,
        validation_alias=AliasChoices("MD2PDF_CHROME", "CHROME_PATH"),
        description="Rendering engine executable; falls back to a platform search",
    )
    debug: bool = Field(
        default=False,
        validation_alias=AliasChoices("MD2PDF_DEBUG"),
        description="Keep a copy of every rendered PDF under <tmp_dir>/md2pdf_debug",
    )
    output_dir: Path = Path("output")
    resources_dir: Path = RESOURCES_DIR
    libs_dir: Path = RESOURCES_DIR / "libs"

    # -------------------------------------------------------------------------
    # Timeouts (milliseconds)
    # -------------------------------------------------------------------------

    render_timeout_ms: int = Field(default=600_000, gt=0)
    cli_timeout_ms: int = Field(default=200_000, gt=0)
    asset_wait_timeout_ms: int = Field(default=30_000, gt=0)
    math_ready_timeout_ms: int = Field(default=10_000, gt=0)
    math_settle_ms: int = Field(default=200, ge=0)

    # -------------------------------------------------------------------------
    # Document defaults
    # -------------------------------------------------------------------------

    page_width_mm: float = Field(default=580, gt=0)
    margin_mm: float = Field(default=10, ge=0)
    device_scale_factor: float = Field(default=2, gt=0)
    viewport_resolution: str = "2K"
    cli_viewport_resolution: str = "4K"

    # Script assets, used when the file is not present under libs_dir
    mermaid_js_url: str = "https://cdn.jsdelivr.net/npm/mermaid@10.9.0/dist/mermaid.min.js"
    highlight_js_url: str = "https://cdnjs.cloudflare.com/ajax/libs/highlight.js/11.9.0/highlight.min.js"
    mathjax_js_url: str = "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-svg.js"

    finished_job_history: int = Field(default=256, ge=0)

    model_config = SettingsConfigDict(
        env_prefix="MD2PDF_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def temp_documents_dir(self) -> Path:
        return self.tmp_dir / "md2pdf_tmp"

    @property
    def debug_artifacts_dir(self) -> Path:
        return self.tmp_dir / "md2pdf_debug"

    @property
    def style_dir(self) -> Path:
        return self.resources_dir / "style"


_settings: Settings | None = None


def get_settings() -> Settings:
    """Get the process-wide settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(settings: Settings) -> Settings:
    """Install explicit settings (app factory and tests)."""
    global _settings
    _settings = settings
    return _settings


def reset_settings() -> None:
    """Drop cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
