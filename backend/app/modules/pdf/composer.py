"""
Document Composer - lays the parsed letter body out onto the page surface.

The parsed tree is walked depth first. Inline content of a block is flattened
into styled fragments, split into words, packed into lines that fit the
current content width and positioned according to the active alignment.
Every line checks the remaining vertical space first, so content breaks
across pages at word boundaries only.
"""

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Tuple
import re

from app.modules.pdf.markup import HEADING_LEVELS, INLINE_TAGS, MarkupNode
from app.modules.pdf.styles import (
    BULLET_GLYPH,
    HEADING_PROFILES,
    HIGHLIGHT_COLOR,
    LINE_BREAK,
    LINK_COLOR,
    LIST_INDENT_STEP,
    LIST_MARKER_GAP,
    PARAGRAPH_SPACING,
    StyledFragment,
    TextStyle,
)
from app.modules.pdf.surface import DrawCursor, PageSurface
from app.modules.pdf.text_metrics import TextMeasurer


_WHITESPACE_RE = re.compile(r"(\s+)")

LIST_TAGS = ("ul", "ol")


@dataclass(frozen=True)
class Word:
    """Fragments rendered without whitespace between them"""

    parts: Tuple[StyledFragment, ...]
    widths: Tuple[float, ...]

    @property
    def width(self) -> float:
        return sum(self.widths)

    @property
    def text(self) -> str:
        return "".join(part.text for part in self.parts)


@dataclass
class Line:
    """Words destined for one horizontal scan line"""

    words: List[Word] = field(default_factory=list)
    gaps: List[float] = field(default_factory=list)  # natural spacing after each word but the last
    ends_paragraph: bool = False

    @property
    def words_width(self) -> float:
        return sum(word.width for word in self.words)

    @property
    def natural_width(self) -> float:
        return self.words_width + sum(self.gaps)


@dataclass
class ListLevel:
    kind: str
    counter: int = 0


MarkerPainter = Callable[[PageSurface, float], None]


class DocumentComposer:
    """Turns a MarkupNode tree into draw instructions on a DrawCursor"""

    def __init__(self, measurer: TextMeasurer, base_style: Optional[TextStyle] = None):
        self.measurer = measurer
        self.base_style = base_style or TextStyle()

    # ------------------------------------------------------------------
    # Block level
    # ------------------------------------------------------------------

    def compose(self, root: MarkupNode, cursor: DrawCursor) -> None:
        self._render_blocks(root.children, cursor, self.base_style, [])

    def _starts_block(self, node: MarkupNode) -> bool:
        if node.is_text:
            return False
        if node.is_block:
            return True
        return node.tag not in INLINE_TAGS and node.has_block_descendant()

    def _render_blocks(self, nodes: Sequence[MarkupNode], cursor: DrawCursor,
                       style: TextStyle, list_stack: List[ListLevel]) -> None:
        pending: List[MarkupNode] = []
        for node in nodes:
            if self._starts_block(node):
                self._flush_inline(pending, cursor, style)
                pending = []
                self._render_block(node, cursor, style, list_stack)
            else:
                pending.append(node)
        self._flush_inline(pending, cursor, style)

    def _flush_inline(self, nodes: List[MarkupNode], cursor: DrawCursor, style: TextStyle) -> None:
        """Loose inline content between blocks becomes an implicit paragraph"""
        if not nodes:
            return
        fragments = self.collect_fragments(nodes, style)
        if not any(f.text == LINE_BREAK or f.text.strip() for f in fragments):
            return
        self._render_paragraph(fragments, cursor, style, None, PARAGRAPH_SPACING)

    def _render_block(self, node: MarkupNode, cursor: DrawCursor,
                      style: TextStyle, list_stack: List[ListLevel]) -> None:
        tag = node.tag
        if tag in ("p", *HEADING_LEVELS) and any(c.is_block and c.tag != "br" for c in node.children):
            # Malformed nesting such as a list inside a paragraph
            with cursor.aligned(node.alignment):
                self._render_blocks(node.children, cursor, style, list_stack)
        elif tag == "p":
            fragments = self.collect_fragments(node.children, style)
            self._render_paragraph(fragments, cursor, style, node.alignment, PARAGRAPH_SPACING)
        elif tag in HEADING_LEVELS:
            profile = HEADING_PROFILES[HEADING_LEVELS[tag]]
            heading_style = style.sized(profile.font_size).derive(bold=True)
            fragments = self.collect_fragments(node.children, heading_style)
            self._render_paragraph(
                fragments, cursor, heading_style, node.alignment,
                (profile.space_before, profile.space_after),
            )
        elif tag in LIST_TAGS:
            self._render_list(node, cursor, style, list_stack)
        elif tag == "li":
            self._render_list(MarkupNode(tag="ul", children=[node]), cursor, style, list_stack)
        elif tag == "br":
            cursor.advance(style.line_height)
        else:
            # Unknown container holding blocks: render its children in place
            with cursor.aligned(node.alignment):
                self._render_blocks(node.children, cursor, style, list_stack)

    def _render_paragraph(self, fragments: List[StyledFragment], cursor: DrawCursor,
                          style: TextStyle, alignment: Optional[str],
                          spacing: Tuple[float, float]) -> None:
        space_before, space_after = spacing
        cursor.advance(space_before)
        with cursor.aligned(alignment):
            lines = self.pack_lines(self.split_words(fragments), cursor.content_width)
            self.draw_lines(lines, cursor, style)
        cursor.advance(space_after)

    # ------------------------------------------------------------------
    # Lists
    # ------------------------------------------------------------------

    def _render_list(self, node: MarkupNode, cursor: DrawCursor,
                     style: TextStyle, list_stack: List[ListLevel]) -> None:
        start = int(node.attributes.get("start", "1"))
        list_stack.append(ListLevel(kind=node.tag, counter=start - 1))
        try:
            with cursor.aligned(node.alignment):
                for child in node.children:
                    if child.tag == "li":
                        self._render_list_item(child, cursor, style, list_stack)
                    elif child.tag in LIST_TAGS:
                        self._render_list(child, cursor, style, list_stack)
                    elif child.is_text and not (child.text or "").strip():
                        continue
                    else:
                        self._render_list_item(MarkupNode(tag="li", children=[child]), cursor, style, list_stack)
        finally:
            list_stack.pop()

        if not list_stack:
            cursor.advance(PARAGRAPH_SPACING[1])

    def _render_list_item(self, item: MarkupNode, cursor: DrawCursor,
                          style: TextStyle, list_stack: List[ListLevel]) -> None:
        level = list_stack[-1]
        level.counter += 1
        marker = BULLET_GLYPH if level.kind == "ul" else f"{level.counter}."

        indent = len(list_stack) * LIST_INDENT_STEP
        marker_x = cursor.left + indent
        marker_width = self.measurer.width_of(marker, style.font_name, style.font_size)

        def paint_marker(page: PageSurface, baseline: float) -> None:
            page.draw_text(marker, marker_x, baseline, style.font_name, style.font_size,
                           style.color, marker_width, tag="marker")

        inline_children = [c for c in item.children if c.tag not in LIST_TAGS]
        nested_lists = [c for c in item.children if c.tag in LIST_TAGS]
        alignment = item.alignment or next(
            (c.alignment for c in inline_children if c.alignment), None
        )

        fragments = self.collect_fragments(inline_children, style)
        with cursor.indented(indent + LIST_MARKER_GAP), cursor.aligned(alignment):
            lines = self.pack_lines(self.split_words(fragments), cursor.content_width)
            self.draw_lines(lines, cursor, style, marker=paint_marker)

        with cursor.aligned(alignment):
            for nested in nested_lists:
                self._render_list(nested, cursor, style, list_stack)

    # ------------------------------------------------------------------
    # Inline flattening
    # ------------------------------------------------------------------

    def inline_style(self, node: MarkupNode, style: TextStyle) -> TextStyle:
        """Style for a node's children; returns a new style, never mutates"""
        tag = node.tag
        if tag == "strong":
            return style.derive(bold=True)
        if tag == "em":
            return style.derive(italic=True)
        if tag == "s":
            return style.derive(strikethrough=True)
        if tag == "mark":
            return style.derive(highlight=True)
        if tag == "a" and node.attributes.get("href"):
            return style.derive(is_link=True, link_url=node.attributes["href"], color=LINK_COLOR)
        if tag in HEADING_LEVELS:
            return style.sized(HEADING_PROFILES[HEADING_LEVELS[tag]].font_size).derive(bold=True)
        return style

    def collect_fragments(self, nodes: Sequence[MarkupNode], style: TextStyle) -> List[StyledFragment]:
        fragments: List[StyledFragment] = []
        self._collect(nodes, style, fragments)
        return fragments

    def _collect(self, nodes: Sequence[MarkupNode], style: TextStyle,
                 out: List[StyledFragment]) -> None:
        for node in nodes:
            if node.is_text:
                if node.text:
                    out.append(StyledFragment(node.text, style))
                continue
            if node.tag == "br":
                out.append(StyledFragment(LINE_BREAK, style))
                continue
            if node.tag in LIST_TAGS:
                continue
            if node.is_block and any(f.text.strip() for f in out) and out[-1].text != LINE_BREAK:
                # Consecutive blocks inside an inline context start on a new line
                out.append(StyledFragment(LINE_BREAK, style))
            self._collect(node.children, self.inline_style(node, style), out)

    # ------------------------------------------------------------------
    # Words and lines
    # ------------------------------------------------------------------

    def _make_word(self, parts: List[StyledFragment]) -> Word:
        widths = tuple(
            self.measurer.width_of(p.text, p.style.font_name, p.style.font_size) for p in parts
        )
        return Word(parts=tuple(parts), widths=widths)

    def split_words(self, fragments: Sequence[StyledFragment]) -> List[Optional[Word]]:
        """Words in reading order; None marks a hard line break"""
        tokens: List[Optional[Word]] = []
        parts: List[StyledFragment] = []

        def flush() -> None:
            if parts:
                tokens.append(self._make_word(list(parts)))
                parts.clear()

        for fragment in fragments:
            if fragment.text == LINE_BREAK:
                flush()
                tokens.append(None)
                continue
            for chunk in _WHITESPACE_RE.split(fragment.text):
                if not chunk:
                    continue
                if chunk.isspace():
                    flush()
                else:
                    parts.append(StyledFragment(self.measurer.sanitize(chunk), fragment.style))
        flush()
        return tokens

    def _gap_after(self, word: Word) -> float:
        style = word.parts[-1].style
        return self.measurer.space_width(style.font_name, style.font_size)

    def pack_lines(self, tokens: Sequence[Optional[Word]], max_width: float) -> List[Line]:
        """
        Greedy line packing: a word joins the line while the line stays narrower
        than max_width; a word too wide for any line sits alone on its own line.
        """
        lines: List[Line] = []
        current = Line()
        width = 0.0

        for token in tokens:
            if token is None:
                current.ends_paragraph = True
                lines.append(current)
                current, width = Line(), 0.0
                continue
            if not current.words:
                current.words.append(token)
                width = token.width
                continue
            gap = self._gap_after(current.words[-1])
            candidate = width + gap + token.width
            if candidate < max_width:
                current.gaps.append(gap)
                current.words.append(token)
                width = candidate
            else:
                lines.append(current)
                current, width = Line(words=[token]), token.width

        if current.words or not lines:
            lines.append(current)
        lines[-1].ends_paragraph = True
        return lines

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    def _line_metrics(self, line: Line, style: TextStyle) -> Tuple[float, float]:
        """(line height, tallest font size) for a line"""
        styles = [part.style for word in line.words for part in word.parts] or [style]
        return max(s.line_height for s in styles), max(s.font_size for s in styles)

    def draw_lines(self, lines: Sequence[Line], cursor: DrawCursor, style: TextStyle,
                   marker: Optional[MarkerPainter] = None, tag: str = "body") -> None:
        for index, line in enumerate(lines):
            height, font_size = self._line_metrics(line, style)
            cursor.ensure_space(height)
            baseline = cursor.y - font_size
            if index == 0 and marker is not None:
                marker(cursor.page, baseline)
            self._draw_line(line, cursor, baseline, tag)
            cursor.advance(height)

    def line_offsets(self, line: Line, alignment: str, left: float,
                     available: float) -> Tuple[float, List[float]]:
        """Starting x and the spacing after each word for one aligned line"""
        gaps = list(line.gaps)
        if alignment == "justify" and not line.ends_paragraph and len(line.words) > 1:
            stretched = (available - line.words_width) / (len(line.words) - 1)
            return left, [stretched] * len(gaps)
        if alignment == "center":
            return max(left, left + (available - line.natural_width) / 2), gaps
        if alignment == "right":
            return max(left, left + available - line.natural_width), gaps
        return left, gaps

    def _draw_line(self, line: Line, cursor: DrawCursor, baseline: float, tag: str) -> None:
        x, gaps = self.line_offsets(line, cursor.alignment, cursor.left, cursor.content_width)
        for index, word in enumerate(line.words):
            self._draw_word(word, x, baseline, cursor.page, tag)
            x += word.width
            if index < len(gaps):
                x += gaps[index]

    def _draw_word(self, word: Word, x: float, baseline: float, page: PageSurface, tag: str) -> None:
        for part, width in zip(word.parts, word.widths):
            style = part.style
            size = style.font_size
            if style.highlight:
                page.draw_rect(x, baseline - size * 0.25, width, size * 1.15,
                               HIGHLIGHT_COLOR, tag="highlight")
            page.draw_text(part.text, x, baseline, style.font_name, size, style.color, width, tag=tag)
            if style.strikethrough:
                page.draw_line(x, baseline + size * 0.3, x + width, baseline + size * 0.3,
                               style.color, tag="strike")
            if style.is_link:
                page.draw_line(x, baseline - 1.5, x + width, baseline - 1.5,
                               style.color, tag="underline")
                if style.link_url:
                    page.add_link(style.link_url, x, baseline - size * 0.25, x + width, baseline + size * 0.9)
            x += width

    def flow_text(self, text: str, cursor: DrawCursor, style: TextStyle, tag: str = "body") -> None:
        """Wrap and draw a plain string with one style at the cursor"""
        fragments = [StyledFragment(text, style)]
        lines = self.pack_lines(self.split_words(fragments), cursor.content_width)
        self.draw_lines(lines, cursor, style, tag=tag)
