"""Theme registry - closed set of stylesheets with a dark/light flag."""

from dataclasses import dataclass
from enum import Enum

from md2pdf.shared.errors import ValidationError

DARK_BACKGROUND = "#282c34"
LIGHT_BACKGROUND = "#ffffff"


@dataclass(frozen=True)
class ThemeSpec:
    stylesheet: str
    description: str
    dark: bool


class Theme(str, Enum):
    """Registered document themes."""

    VUE = "vue"
    ATOM = "atom"
    LIGHT = "light"
    GITHUB = "github"
    MONOKAI = "monokai"
    SOLARIZED = "solarized"

    @property
    def spec(self) -> ThemeSpec:
        return THEME_SPECS[self]

    @property
    def stylesheet(self) -> str:
        return self.spec.stylesheet

    @property
    def description(self) -> str:
        return self.spec.description

    @property
    def is_dark(self) -> bool:
        return self.spec.dark

    @property
    def background(self) -> str:
        return DARK_BACKGROUND if self.is_dark else LIGHT_BACKGROUND


THEME_SPECS: dict[Theme, ThemeSpec] = {
    Theme.VUE: ThemeSpec("vue.css", "Vue.js style, light", dark=False),
    Theme.ATOM: ThemeSpec("atom.css", "Atom editor, dark", dark=True),
    Theme.LIGHT: ThemeSpec("light.css", "Plain light", dark=False),
    Theme.GITHUB: ThemeSpec("github.css", "GitHub Markdown, light", dark=False),
    Theme.MONOKAI: ThemeSpec("monokai.css", "Monokai, dark", dark=True),
    Theme.SOLARIZED: ThemeSpec("solarized.css", "Solarized, dark", dark=True),
}

DEFAULT_THEME = Theme.ATOM


def theme_names() -> list[str]:
    return [theme.value for theme in Theme]


def parse_theme(name: str | Theme) -> Theme:
    """
    Resolve a theme name at the boundary.

    Raises:
        ValidationError: if the name is not a registered theme
    """
    if isinstance(name, Theme):
        return name
    try:
        return Theme(name)
    except ValueError:
        raise ValidationError(
            f'Theme "{name}" does not exist',
            details={"available": theme_names()},
        ) from None
