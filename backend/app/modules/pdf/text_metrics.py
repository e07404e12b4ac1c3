"""
Text measurement and greedy word wrapping on top of reportlab font metrics.

Standard Type1 faces only cover WinAnsi (cp1252). Characters outside it are
replaced with a placeholder glyph before measuring, so user-submitted text
never aborts layout.
"""

from typing import List

from reportlab.pdfbase.pdfmetrics import stringWidth

from app.core.logging_config import logger


PLACEHOLDER_GLYPH = "?"
STANDARD_FONT_ENCODING = "cp1252"


class TextMeasurer:
    """Measures and wraps text for a given font and size"""

    def __init__(self, encoding: str = STANDARD_FONT_ENCODING, placeholder: str = PLACEHOLDER_GLYPH):
        self.encoding = encoding
        self.placeholder = placeholder

    def _measure(self, text: str, font_name: str, font_size: float) -> float:
        # Raises UnicodeEncodeError for glyphs the face cannot encode
        text.encode(self.encoding)
        return stringWidth(text, font_name, font_size)

    def sanitize(self, text: str) -> str:
        """Replace characters the font encoding cannot represent"""
        try:
            text.encode(self.encoding)
            return text
        except UnicodeEncodeError:
            pass

        cleaned = []
        replaced = 0
        for char in text:
            try:
                char.encode(self.encoding)
                cleaned.append(char)
            except UnicodeEncodeError:
                cleaned.append(self.placeholder)
                replaced += 1
        logger.debug(f"[TextMeasurer] Substituted {replaced} unsupported glyph(s)")
        return "".join(cleaned)

    def width_of(self, text: str, font_name: str, font_size: float) -> float:
        """Rendered width of text in points"""
        try:
            return self._measure(text, font_name, font_size)
        except UnicodeEncodeError:
            return self._measure(self.sanitize(text), font_name, font_size)

    def space_width(self, font_name: str, font_size: float) -> float:
        return self.width_of(" ", font_name, font_size)

    def wrap(self, text: str, font_name: str, font_size: float, max_width: float) -> List[str]:
        """
        Greedy word-by-word wrapping.

        A line grows while its width stays below max_width. A single word wider
        than max_width is placed alone on its own line.
        """
        words = text.split()
        if not words:
            return []

        lines: List[str] = []
        current = words[0]
        for word in words[1:]:
            candidate = f"{current} {word}"
            if self.width_of(candidate, font_name, font_size) < max_width:
                current = candidate
            else:
                lines.append(current)
                current = word
        lines.append(current)
        return lines
