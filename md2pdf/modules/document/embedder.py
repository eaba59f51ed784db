"""
Asset embedder - resolve <img> references against uploaded images.
"""

import html
import re
from collections.abc import Iterable, Mapping
from urllib.parse import quote, unquote

_IMG_RE = re.compile(r"""<img([^>]*)src=["']([^"']+)["']([^>]*)>""")
_PATH_SPLIT_RE = re.compile(r"[/\\]")


def _is_remote_or_inline(src: str) -> bool:
    lowered = src.lower()
    return lowered.startswith(("http://", "https://", "data:", "file://"))


def image_name(src: str) -> str:
    """Last path segment of an image reference, percent-decoded."""
    # The Markdown parser percent-encodes link targets and escapes "&"
    return unquote(html.unescape(_PATH_SPLIT_RE.split(src)[-1]))


def missing_image_placeholder(name: str) -> str:
    """SVG data URI naming the image that could not be resolved."""
    svg = (
        '<svg xmlns="http://www.w3.org/2000/svg" width="400" height="100">'
        f'<rect width="400" height="100" fill="#fff3f3" stroke="#d33"/>'
        f'<text x="10" y="55" fill="red" font-family="sans-serif" font-size="16">'
        f"Missing image: {html.escape(name)}</text></svg>"
    )
    return "data:image/svg+xml;charset=utf-8," + quote(svg, safe="")


def build_image_map(images: Iterable[object]) -> dict[str, str]:
    """
    Build a name -> data URI map from request image entries.

    Accepts objects with ``name``/``data_url`` attributes or dicts with
    ``name``/``dataUrl`` keys; entries missing either value are skipped.
    Later entries win on duplicate names.
    """
    mapping: dict[str, str] = {}
    for entry in images:
        if isinstance(entry, Mapping):
            name = entry.get("name")
            data = entry.get("dataUrl") or entry.get("data_url")
        else:
            name = getattr(entry, "name", None)
            data = getattr(entry, "data_url", None)
        if name and data:
            mapping[name] = data
    return mapping


def embed_images(
    html_body: str,
    images: Mapping[str, str],
    placeholder_on_missing: bool = True,
) -> str:
    """
    Rewrite local image references to embedded data URIs.

    Args:
        html_body: HTML produced by the transformer
        images: Image file name -> data URI
        placeholder_on_missing: Server mode. Unresolved local images get a
            one-shot ``onerror`` handler that swaps in a placeholder graphic.
            In CLI mode (False) they are left as resolvable file references.

    Returns:
        HTML with ``src`` attributes rewritten
    """

    def replace(match: re.Match[str]) -> str:
        before, src, after = match.group(1), match.group(2), match.group(3)
        if _is_remote_or_inline(src):
            return match.group(0)

        name = image_name(src)
        data_uri = images.get(name)
        if data_uri:
            return f'<img{before}src="{data_uri}"{after}>'
        if not placeholder_on_missing:
            return match.group(0)

        closing = ""
        stripped = after.rstrip()
        if stripped.endswith("/"):
            after, closing = stripped[:-1], " /"
        fallback = missing_image_placeholder(name)
        return (
            f'<img{before}src="{src}"{after} '
            f"onerror=\"this.onerror=null;this.src='{fallback}'\"{closing}>"
        )

    return _IMG_RE.sub(replace, html_body)
