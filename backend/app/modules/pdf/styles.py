"""
Text styles, font faces and block spacing profiles for letter layout.
"""

from dataclasses import dataclass, replace
from typing import Dict, Optional

from reportlab.lib.colors import Color, HexColor
from reportlab.lib.pagesizes import A4


PAGE_SIZE = A4
PAGE_MARGIN = 50.0

# Standard Type1 faces, one per (bold, italic) combination
FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_ITALIC = "Helvetica-Oblique"
FONT_BOLD_ITALIC = "Helvetica-BoldOblique"

FONT_FACES: Dict[tuple, str] = {
    (False, False): FONT_REGULAR,
    (True, False): FONT_BOLD,
    (False, True): FONT_ITALIC,
    (True, True): FONT_BOLD_ITALIC,
}

BODY_COLOR: Color = HexColor("#000000")
LINK_COLOR: Color = HexColor("#1a56db")
HIGHLIGHT_COLOR: Color = HexColor("#fff59d")
APPROVED_COLOR: Color = Color(0, 0.5, 0)
NOT_APPROVED_COLOR: Color = Color(0.5, 0, 0)
WATERMARK_COLOR: Color = Color(0.75, 0.75, 0.75)

BODY_FONT_SIZE = 12.0
BODY_LINE_HEIGHT = 16.0
LINE_HEIGHT_RATIO = BODY_LINE_HEIGHT / BODY_FONT_SIZE

# Paragraph spacing (before, after)
PARAGRAPH_SPACING = (2.0, 6.0)

# Lists
LIST_INDENT_STEP = 20.0
LIST_MARKER_GAP = 18.0
BULLET_GLYPH = "•"


def font_for(bold: bool, italic: bool) -> str:
    """Pick the dedicated face for a bold/italic combination"""
    return FONT_FACES[(bool(bold), bool(italic))]


@dataclass(frozen=True)
class TextStyle:
    """Resolved inline style for a run of text"""

    font_size: float = BODY_FONT_SIZE
    color: Color = BODY_COLOR
    line_height: float = BODY_LINE_HEIGHT
    bold: bool = False
    italic: bool = False
    strikethrough: bool = False
    highlight: bool = False
    is_link: bool = False
    link_url: Optional[str] = None

    @property
    def font_name(self) -> str:
        return font_for(self.bold, self.italic)

    def derive(self, **changes) -> "TextStyle":
        """Copy with changes; the receiver is never mutated"""
        return replace(self, **changes)

    def sized(self, font_size: float) -> "TextStyle":
        return self.derive(font_size=font_size, line_height=round(font_size * LINE_HEIGHT_RATIO, 2))


@dataclass(frozen=True)
class HeadingProfile:
    font_size: float
    space_before: float
    space_after: float


HEADING_PROFILES: Dict[int, HeadingProfile] = {
    1: HeadingProfile(font_size=20.0, space_before=14.0, space_after=8.0),
    2: HeadingProfile(font_size=16.0, space_before=12.0, space_after=6.0),
    3: HeadingProfile(font_size=14.0, space_before=10.0, space_after=4.0),
}


@dataclass(frozen=True)
class StyledFragment:
    """A run of text with one resolved style"""

    text: str
    style: TextStyle


# Sentinel fragment text for a forced line break (U+2028 LINE SEPARATOR)
LINE_BREAK = "\u2028"
