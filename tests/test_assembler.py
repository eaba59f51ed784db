"""
Tests for document assembly and themes.
"""

import pytest

from md2pdf.modules.document import AssetLocator, DocumentOptions, Theme, assemble, parse_theme
from md2pdf.modules.document.themes import DARK_BACKGROUND, LIGHT_BACKGROUND, theme_names
from md2pdf.shared.errors import ValidationError


def _options(**overrides) -> DocumentOptions:
    values = {"theme": Theme.GITHUB, "page_width_mm": 580, "margin_mm": 10}
    values.update(overrides)
    return DocumentOptions(**values)


def test_page_geometry_and_print_rules(settings):
    doc = assemble("<p>hi</p>", _options(), AssetLocator(settings))

    assert "max-width: 580mm !important;" in doc
    assert "padding: 10mm;" in doc
    assert "@page :first { margin-top: 0mm; }" in doc
    assert "@page { margin: 0mm 10mm; }" in doc
    assert "<p>hi</p>" in doc
    assert "<title>markdown - PDF export</title>" in doc


def test_fractional_geometry(settings):
    doc = assemble("", _options(page_width_mm=210.5, margin_mm=7.5), AssetLocator(settings))
    assert "max-width: 210.5mm" in doc
    assert "padding: 7.5mm;" in doc


@pytest.mark.parametrize("theme", list(Theme))
def test_background_follows_theme(settings, theme):
    doc = assemble("", _options(theme=theme), AssetLocator(settings))
    expected = DARK_BACKGROUND if theme.is_dark else LIGHT_BACKGROUND
    assert f"background: {expected};" in doc
    assert doc.count(f'/style/{theme.value}.css">') == 1


def test_math_scripts_only_when_needed(settings):
    locator = AssetLocator(settings)

    plain = assemble("", _options(), locator)
    assert "MathJax" not in plain

    with_math = assemble("", _options(has_math=True), locator)
    assert "startup: { typeset: false }" in with_math
    assert f'src="{settings.mathjax_js_url}" defer' in with_math


def test_diagram_engine_started_after_dom_ready(settings):
    doc = assemble("", _options(), AssetLocator(settings))
    assert "mermaid.initialize({ startOnLoad: false });" in doc
    assert "mermaid.run({ querySelector: '.mermaid' })" in doc
    assert f'<script src="{settings.mermaid_js_url}" defer></script>' in doc


def test_local_script_preferred_over_cdn(settings):
    settings.libs_dir.mkdir(parents=True)
    local = settings.libs_dir / "highlight.min.js"
    local.write_text("/* hljs */")

    locator = AssetLocator(settings)
    assert locator.highlight_url == local.resolve().as_uri()
    assert locator.mermaid_url == settings.mermaid_js_url


def test_title_escaped(settings):
    doc = assemble("", _options(title="<notes>"), AssetLocator(settings))
    assert "<title>&lt;notes&gt; - PDF export</title>" in doc


def test_dark_themes():
    dark = {theme.value for theme in Theme if theme.is_dark}
    assert dark == {"atom", "monokai", "solarized"}


def test_every_theme_has_a_stylesheet(settings):
    for theme in Theme:
        assert (settings.style_dir / theme.stylesheet).is_file()


def test_parse_theme():
    assert parse_theme("vue") is Theme.VUE
    assert parse_theme(Theme.LIGHT) is Theme.LIGHT

    with pytest.raises(ValidationError) as exc_info:
        parse_theme("nope")
    assert exc_info.value.message == 'Theme "nope" does not exist'
    assert exc_info.value.details["available"] == theme_names()
