"""Document module - Markdown to self-contained HTML."""

from .assembler import AssetLocator, DocumentOptions, assemble
from .embedder import embed_images
from .themes import Theme, parse_theme
from .transformer import contains_math, transform

__all__ = [
    "AssetLocator",
    "DocumentOptions",
    "Theme",
    "assemble",
    "contains_math",
    "embed_images",
    "parse_theme",
    "transform",
]
