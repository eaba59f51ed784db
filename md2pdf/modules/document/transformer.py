"""
Content transformer - Markdown text to an HTML body fragment.

Math spans are swapped for opaque placeholder tokens before parsing so the
Markdown parser cannot mangle their delimiters, then put back verbatim.
Fenced blocks tagged ``mermaid`` become raw diagram containers.

Known limitation: an opening math delimiter without a matching close is
not protected; it reaches the parser as plain text and may show up
unrendered in the output.
"""

import re
import secrets
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import quote

from markdown_it import MarkdownIt

from md2pdf.shared.logging import get_logger

logger = get_logger(__name__)

DIAGRAM_LANGUAGE = "mermaid"

_FENCE_OPEN_RE = re.compile(r"^```.*$", re.MULTILINE)
MATH_SPAN_RE = re.compile(r"\$\$[\s\S]+?\$\$|\\\([\s\S]+?\\\)|\\\[[\s\S]+?\\\]")
_MATH_HINT_RE = re.compile(r"\$\$[\s\S]+?\$\$|\\\(|\\\[")

# Characters left untouched when rewriting image paths into file URLs.
# The apostrophe is deliberately absent so it always ends up as %27.
_URL_SAFE = "/;,?:@&=+$-_.!~*()#%"


# =============================================================================
# FENCES AND MATH
# =============================================================================

def find_fence_ranges(text: str) -> list[tuple[int, int]]:
    """Return [start, end) offsets of triple-backtick fenced blocks."""
    ranges: list[tuple[int, int]] = []
    pos = 0
    while True:
        match = _FENCE_OPEN_RE.search(text, pos)
        if match is None:
            break
        close = text.find("```", match.end())
        if close < 0:
            break
        ranges.append((match.start(), close + 3))
        pos = close + 3
    return ranges


def contains_math(text: str) -> bool:
    """True when the source looks like it needs the math typesetting engine."""
    return _MATH_HINT_RE.search(text) is not None


@dataclass
class ProtectedMath:
    """Markdown with math spans replaced by placeholder tokens."""
    text: str
    marker: str
    spans: list[str] = field(default_factory=list)

    def placeholder(self, index: int) -> str:
        return f"{self.marker}{index}E"

    def restore(self, html: str) -> str:
        """Substitute every placeholder with its original span text."""
        if not self.spans:
            return html
        pattern = re.compile(re.escape(self.marker) + r"(\d+)E")
        return pattern.sub(lambda m: self.spans[int(m.group(1))], html)


def _new_marker(text: str) -> str:
    # Letters and digits only, so neither emphasis nor typographer rules touch it
    while True:
        marker = f"MATHBLOCK{secrets.token_hex(4).upper()}N"
        if marker not in text:
            return marker


def protect_math(text: str) -> ProtectedMath:
    """Replace unfenced math spans with placeholder tokens."""
    fences = find_fence_ranges(text)
    protected = ProtectedMath(text="", marker=_new_marker(text))

    pieces: list[str] = []
    last = 0
    pos = 0
    while True:
        match = MATH_SPAN_RE.search(text, pos)
        if match is None:
            break
        fence_end = next((end for start, end in fences if start <= match.start() < end), None)
        if fence_end is not None:
            pos = fence_end
            continue
        pieces.append(text[last:match.start()])
        pieces.append(protected.placeholder(len(protected.spans)))
        protected.spans.append(match.group(0))
        last = pos = match.end()
    pieces.append(text[last:])

    protected.text = "".join(pieces)
    return protected


# =============================================================================
# MARKDOWN RENDERING
# =============================================================================

def _is_absolute_src(src: str) -> bool:
    return src.startswith(("http", "file://", "data:"))


def file_url_for(src: str, base_url: str) -> str:
    """Resolve a relative image reference against a directory file URL."""
    src = src.replace("\\", "/")
    if Path(src).is_absolute():
        return "file://" + quote(src, safe=_URL_SAFE)
    return base_url + quote(src, safe=_URL_SAFE)


def build_parser(base_url: str | None = None) -> MarkdownIt:
    """
    Build a markdown-it parser with the diagram fence rule.

    Args:
        base_url: Directory file URL (ending in ``/``). When given, relative
            image references are rewritten against it.
    """
    md = MarkdownIt(
        "default",
        {"html": True, "linkify": False, "typographer": True, "breaks": True},
    )

    def render_fence(self, tokens, idx, options, env):
        token = tokens[idx]
        info = token.info.strip().split(maxsplit=1)
        if info and info[0] == DIAGRAM_LANGUAGE:
            # Left unescaped: the diagram engine parses the text client-side
            return f'<div class="{DIAGRAM_LANGUAGE}">\n{token.content}\n</div>\n'
        return self.fence(tokens, idx, options, env)

    md.add_render_rule("fence", render_fence)

    if base_url is not None:
        def render_image(self, tokens, idx, options, env):
            token = tokens[idx]
            src = token.attrGet("src")
            if isinstance(src, str) and src and not _is_absolute_src(src):
                token.attrSet("src", file_url_for(src, base_url))
            return self.image(tokens, idx, options, env)

        md.add_render_rule("image", render_image)

    return md


def transform(markdown_text: str, base_dir: Path | None = None) -> str:
    """
    Convert Markdown into an HTML body fragment.

    Args:
        markdown_text: Raw Markdown source
        base_dir: Source document directory (local CLI mode). Relative image
            references become file URLs rooted here. ``None`` in server mode.

    Returns:
        HTML fragment with math spans reinserted verbatim
    """
    protected = protect_math(markdown_text)
    base_url = Path(base_dir).resolve().as_uri() + "/" if base_dir is not None else None

    html = build_parser(base_url).render(protected.text)
    logger.debug(f"Transformed markdown: {len(protected.spans)} math spans protected")
    return protected.restore(html)
