"""
Unit Tests for text measurement and wrapping
"""
from reportlab.pdfbase.pdfmetrics import stringWidth

from app.modules.pdf.text_metrics import PLACEHOLDER_GLYPH, TextMeasurer


class TestMeasurement:

    def test_width_matches_font_metrics(self, measurer: TextMeasurer):
        assert measurer.width_of("Permission", "Helvetica", 12) == stringWidth("Permission", "Helvetica", 12)

    def test_bold_is_wider(self, measurer: TextMeasurer):
        assert measurer.width_of("Workshop", "Helvetica-Bold", 12) > measurer.width_of("Workshop", "Helvetica", 12)

    def test_unsupported_glyphs_are_substituted(self, measurer: TextMeasurer):
        assert measurer.sanitize("Club 漢字") == f"Club {PLACEHOLDER_GLYPH}{PLACEHOLDER_GLYPH}"
        assert measurer.width_of("漢", "Helvetica", 12) == stringWidth(PLACEHOLDER_GLYPH, "Helvetica", 12)

    def test_latin1_text_is_untouched(self, measurer: TextMeasurer):
        assert measurer.sanitize("Café – “quoted”") == "Café – “quoted”"


class TestWrap:

    def test_lines_stay_narrower_than_limit(self, measurer: TextMeasurer):
        text = " ".join(["roll-number"] * 40)
        lines = measurer.wrap(text, "Helvetica", 10, 200)

        assert len(lines) > 1
        assert all(measurer.width_of(line, "Helvetica", 10) < 200 for line in lines)
        assert " ".join(lines) == text

    def test_overlong_word_sits_alone(self, measurer: TextMeasurer):
        lines = measurer.wrap("a " + "W" * 80 + " b", "Helvetica", 12, 100)

        assert lines == ["a", "W" * 80, "b"]

    def test_empty_text(self, measurer: TextMeasurer):
        assert measurer.wrap("   ", "Helvetica", 12, 100) == []
