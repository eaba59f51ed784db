"""
Document assembler - wrap an HTML body into a complete, self-contained page.

The page pins its content width to the configured page width so text
reflows at a fixed measurement width; the driver's height measurement
depends on this. The diagram engine and the math engine never run on their
own at load time: diagrams start asynchronously after DOM ready and math
typesetting waits until the driver asks for it.
"""

import html
from dataclasses import dataclass
from pathlib import Path

from md2pdf.config import Settings

from .themes import Theme

MERMAID_SCRIPT = "mermaid.min.js"
HIGHLIGHT_SCRIPT = "highlight.min.js"
MATHJAX_SCRIPT = "tex-mml-svg.js"


class AssetLocator:
    """Resolve stylesheet and script URLs for assembled documents."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def stylesheet_url(self, theme: Theme) -> str:
        return (self.settings.style_dir / theme.stylesheet).resolve().as_uri()

    def _script_url(self, filename: str, fallback: str) -> str:
        local: Path = self.settings.libs_dir / filename
        if local.is_file():
            return local.resolve().as_uri()
        return fallback

    @property
    def mermaid_url(self) -> str:
        return self._script_url(MERMAID_SCRIPT, self.settings.mermaid_js_url)

    @property
    def highlight_url(self) -> str:
        return self._script_url(HIGHLIGHT_SCRIPT, self.settings.highlight_js_url)

    @property
    def mathjax_url(self) -> str:
        return self._script_url(MATHJAX_SCRIPT, self.settings.mathjax_js_url)


@dataclass
class DocumentOptions:
    theme: Theme
    page_width_mm: float
    margin_mm: float
    title: str = "markdown"
    has_math: bool = False


def _format_mm(value: float) -> str:
    return f"{value:g}"


_MATHJAX_CONFIG = r"""
  <script id="mathjax-config">
    window.MathJax = {
      tex: {
        inlineMath: [['$', '$'], ['\\(', '\\)']],
        displayMath: [['$$', '$$'], ['\\[', '\\]']]
      },
      options: { skipHtmlTags: ['noscript', 'style', 'textarea', 'pre'] },
      svg: { fontCache: 'global' },
      startup: { typeset: false }
    };
  </script>
  <script id="mathjax-script" src="{mathjax_url}" defer></script>"""

_BOOTSTRAP = """
  <script>
    document.addEventListener('DOMContentLoaded', function () {
      if (window.mermaid) {
        mermaid.initialize({ startOnLoad: false });
        mermaid.run({ querySelector: '.mermaid' }).catch(function (err) {
          console.warn('diagram render failed', err && err.message);
        });
      }
      if (window.hljs) {
        hljs.highlightAll();
        document.querySelectorAll('code.hljs').forEach(function (el) {
          el.classList.remove('hljs');
        });
      }
    });
  </script>"""


def assemble(html_body: str, options: DocumentOptions, assets: AssetLocator) -> str:
    """
    Build the full document markup.

    Args:
        html_body: Transformed (and image-embedded) HTML fragment
        options: Theme, page geometry, title and math flag
        assets: Locator for stylesheet and script URLs

    Returns:
        Complete HTML document
    """
    width = _format_mm(options.page_width_mm)
    margin = _format_mm(options.margin_mm)
    title = html.escape(f"{options.title} - PDF export")
    math_scripts = (
        _MATHJAX_CONFIG.replace("{mathjax_url}", assets.mathjax_url)
        if options.has_math
        else ""
    )

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1.0" />
  <link rel="stylesheet" href="{assets.stylesheet_url(options.theme)}">
  <title>{title}</title>
  <style>
    * {{ margin: 0; padding: 0; box-sizing: border-box; }}
    html, body {{
      max-width: {width}mm !important;
      margin: 0 auto;
      padding: {margin}mm;
      height: auto !important;
      min-height: auto;
      background: {options.theme.background};
      overflow-y: auto;
    }}
    .markdown-body {{ width: 100%; box-sizing: border-box; }}
    h1, h2, h3, h4, h5, h6 {{ margin-top: 1.2em; margin-bottom: 0.6em; }}
    p {{ margin-bottom: 1em; }}
    ul, ol {{ margin-bottom: 1em; }}
    pre {{ margin: 1em 0; }}
    table {{ margin: 1em 0; }}
    .mermaid {{ display: block; margin: 1.5em auto; text-align: center; }}
    .hljs-comment, .hljs-quote {{ font-style: normal !important; }}
    @media print {{
      body {{ padding: 0; height: auto !important; min-height: 100vh; }}
      @page :first {{ margin-top: 0mm; }}
      @page {{ margin: 0mm {margin}mm; }}
    }}
  </style>
  <script src="{assets.mermaid_url}" defer></script>
  <script src="{assets.highlight_url}" defer></script>{math_scripts}
</head>
<body>
  <div class="markdown-body">
{html_body}
  </div>{_BOOTSTRAP}
</body>
</html>
"""
