#!/usr/bin/env python3
"""
Markdown to PDF CLI

Renders a local Markdown file to a single-page PDF per theme.

Examples:

    md2pdf atom ./markdown/markdown.md      # One theme

    md2pdf all ./markdown/markdown.md       # Every theme

    md2pdf --help                           # List themes
"""

import asyncio
import time
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as RequestValidationError
from typing_extensions import Annotated

from md2pdf.config import Settings, get_settings
from md2pdf.modules.document.themes import DEFAULT_THEME, Theme, theme_names
from md2pdf.modules.render import JobRegistry, RenderDriver, RenderRequest, RenderService
from md2pdf.shared.errors import Md2PdfError
from md2pdf.shared.logging import setup_logging

ALL_THEMES = "all"
DEFAULT_SOURCE = Path("markdown") / "markdown.md"

STEPS = {
    1: ("Read", typer.colors.BLUE),
    2: ("Render", typer.colors.MAGENTA),
    3: ("Write", typer.colors.CYAN),
}


def _theme_help() -> str:
    lines = [f"{theme.value:<10} {theme.description}" for theme in Theme]
    return "Theme name or 'all'. Available themes:\n\n" + "\n\n".join(lines)


def log_step(step: int, message: str) -> None:
    action, color = STEPS[step]
    typer.secho(f"[{step}/{len(STEPS)}] {action}", fg=color, bold=True, nl=False)
    typer.echo(f" {message}")


def build_service(settings: Settings) -> RenderService:
    """Service wired for one-shot local rendering."""
    driver = RenderDriver(
        settings,
        JobRegistry(finished_history=0),
        timeout_ms=settings.cli_timeout_ms,
    )
    return RenderService(driver=driver, settings=settings)


async def render_file(service: RenderService, theme: Theme, source: Path, output_dir: Path) -> Path:
    """Render one Markdown file with one theme; returns the written PDF path."""
    settings = service.settings

    log_step(1, str(source))
    markdown = source.read_text(encoding="utf-8")

    log_step(2, f"{theme.value} theme")
    request = RenderRequest(
        markdown=markdown,
        theme=theme,
        margin=settings.margin_mm,
        scale_factor=settings.device_scale_factor,
        resolution=settings.cli_viewport_resolution,
        force_single=True,
        page_width=settings.page_width_mm,
        file_name=source.stem,
    )
    result = await service.generate(request, source_dir=source.resolve().parent)

    output_dir.mkdir(parents=True, exist_ok=True)
    pdf_path = output_dir / result.file_name
    log_step(3, str(pdf_path))
    pdf_path.write_bytes(result.content)
    return pdf_path


def main(
    theme: Annotated[str, typer.Argument(help=_theme_help())] = DEFAULT_THEME.value,
    source: Annotated[Path, typer.Argument(help="Markdown file to render")] = DEFAULT_SOURCE,
    output_dir: Annotated[
        Optional[Path], typer.Option("--output-dir", "-o", help="Output directory")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")] = False,
) -> None:
    """Convert a Markdown file to PDF."""
    settings = get_settings()
    setup_logging("DEBUG" if verbose else "WARNING")

    if theme != ALL_THEMES and theme not in theme_names():
        typer.secho(f'Error: theme "{theme}" does not exist', fg=typer.colors.RED, err=True)
        typer.secho(f"Available themes: {', '.join(theme_names())}", fg=typer.colors.BLUE, err=True)
        raise typer.Exit(code=1)

    if not source.is_file():
        typer.secho(f"Error: Markdown file not found: {source}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    themes = list(Theme) if theme == ALL_THEMES else [Theme(theme)]
    target_dir = output_dir or settings.output_dir
    service = build_service(settings)
    start = time.time()

    async def run_all() -> list[Path]:
        written = []
        with typer.progressbar(themes, label="Themes", show_pos=True) as progress:
            for item in progress:
                written.append(await render_file(service, item, source, target_dir))
        return written

    try:
        written = asyncio.run(run_all())
    except Md2PdfError as e:
        typer.secho(f"PDF generation failed: {e.message}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    except RequestValidationError as e:
        typer.secho(f"Invalid input: {e.errors()[0]['msg']}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    duration = time.time() - start
    typer.secho(f"Done: {len(written)} PDF(s) in {duration:.2f}s", fg=typer.colors.GREEN, bold=True)


app = typer.Typer(add_completion=False)
app.command()(main)


if __name__ == "__main__":
    app()
