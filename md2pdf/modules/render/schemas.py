"""
Render module Pydantic schemas for request/response models.

Field aliases match the payload the browser client posts
(``scaleFactor``, ``forceSingle``, ``renderId`` ...); snake_case names are
accepted as well.
"""

import re
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from md2pdf.modules.document.themes import DEFAULT_THEME, Theme, parse_theme
from md2pdf.shared.errors import ValidationError

# =============================================================================
# PRESETS
# =============================================================================

RESOLUTIONS: dict[str, tuple[int, int]] = {
    "1K": (1920, 1080),
    "2K": (2560, 1440),
    "4K": (3840, 2160),
}

PaperFormat = Literal[
    "Letter", "Legal", "Tabloid", "Ledger",
    "A0", "A1", "A2", "A3", "A4", "A5", "A6",
]

_RESOLUTION_RE = re.compile(r"^\s*(\d+)\s*[x×]\s*(\d+)\s*$", re.IGNORECASE)


class Viewport(BaseModel):
    """Engine viewport in CSS pixels."""
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


def parse_resolution(value: Any) -> Viewport:
    """
    Parse a viewport resolution.

    Accepts a preset key (``1K``, ``2K``, ``4K``), a ``WIDTHxHEIGHT`` string
    (``x`` or ``×``), a mapping with width/height, or a Viewport.

    Raises:
        ValueError: for anything else
    """
    if isinstance(value, Viewport):
        return value
    if isinstance(value, dict):
        return Viewport.model_validate(value)
    if isinstance(value, str):
        key = value.strip()
        if key.upper() in RESOLUTIONS:
            width, height = RESOLUTIONS[key.upper()]
            return Viewport(width=width, height=height)
        match = _RESOLUTION_RE.match(key)
        if match:
            return Viewport(width=int(match.group(1)), height=int(match.group(2)))
    raise ValueError(
        f"Invalid resolution {value!r}: use one of {', '.join(RESOLUTIONS)} or WIDTHxHEIGHT"
    )


class PagingMode(str, Enum):
    SINGLE_PAGE_FIT = "single-page-fit"
    FIXED_FORMAT = "fixed-format"


# =============================================================================
# REQUESTS
# =============================================================================

class ImageAsset(BaseModel):
    """Uploaded image referenced by file name from the Markdown."""
    name: str | None = None
    data_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("dataUrl", "dataUri", "data_url"),
    )


class RenderRequest(BaseModel):
    """Request to render Markdown to PDF."""

    model_config = ConfigDict(populate_by_name=True)

    markdown: str = Field(..., min_length=1, description="Markdown source")
    theme: Theme = Field(default=DEFAULT_THEME, description="Theme identifier")
    margin: float | None = Field(default=None, ge=0, description="Page margin in mm")
    scale_factor: float | None = Field(
        default=None, gt=0, alias="scaleFactor",
        description="Device pixel ratio",
    )
    resolution: Viewport | None = Field(
        default=None,
        description="Viewport preset key, WIDTHxHEIGHT, or {width, height}",
    )
    force_single: bool = Field(
        default=False, alias="forceSingle",
        description="Render one page sized to the content height",
    )
    page_width: float | None = Field(
        default=None, gt=0, alias="pageWidth",
        description="Page width in mm (single-page-fit)",
    )
    format: PaperFormat = Field(default="A4", description="Paper format (fixed-format)")
    file_name: str = Field(default="markdown", alias="fileName")
    images: list[ImageAsset] = Field(default_factory=list)
    render_id: str | None = Field(
        default=None, alias="renderId",
        description="Caller-generated job id used for cancellation",
    )

    @field_validator("margin", "scale_factor", "page_width", "format", "file_name", mode="before")
    @classmethod
    def _blank_to_default(cls, value: Any, info) -> Any:
        # Browser forms post empty strings for untouched inputs
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].get_default(call_default_factory=True)
        return value

    @field_validator("theme", mode="before")
    @classmethod
    def _known_theme(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return DEFAULT_THEME
        try:
            return parse_theme(value)
        except ValidationError as e:
            raise ValueError(e.message) from None

    @field_validator("resolution", mode="before")
    @classmethod
    def _parse_resolution(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        return parse_resolution(value)

    @field_validator("images", mode="before")
    @classmethod
    def _images_list(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []

    @property
    def paging_mode(self) -> PagingMode:
        return PagingMode.SINGLE_PAGE_FIT if self.force_single else PagingMode.FIXED_FORMAT


class CancelRequest(BaseModel):
    """Request to cancel an in-flight render."""

    model_config = ConfigDict(populate_by_name=True)

    render_id: str | None = Field(default=None, alias="renderId")


# =============================================================================
# RESULTS
# =============================================================================

class CancelResponse(BaseModel):
    ok: bool
    message: str


class ThemeInfo(BaseModel):
    name: str
    description: str
    dark: bool


class PdfResult(BaseModel):
    """Rendered document, produced once per successful job."""
    content: bytes
    file_name: str
    debug_artifact_path: str | None = None
