"""
Rich-content parser for letter bodies.

Turns the editor's HTML into a small tree of block/inline nodes. Parsing is
permissive: unknown tags become transparent containers and everything that
was skipped or not understood is listed in ParseResult.ignored.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional
import re

from bs4 import BeautifulSoup, Comment, NavigableString, Tag
from bs4.element import Declaration, Doctype, ProcessingInstruction

from app.core.logging_config import logger


TEXT = "#text"
ROOT = "#root"

BLOCK_TAGS = {"p", "h1", "h2", "h3", "ul", "ol", "li", "br", "div"}
INLINE_TAGS = {"strong", "em", "s", "mark", "a"}
HEADING_LEVELS = {"h1": 1, "h2": 2, "h3": 3}

TAG_ALIASES = {
    "b": "strong",
    "i": "em",
    "strike": "s",
    "del": "s",
}

# Content of these is never rendered
DROPPED_TAGS = {"script", "style", "head", "title", "meta", "link"}

# Structural wrappers a browser or the editor may add around the content
TRANSPARENT_TAGS = {"html", "body", "div", "span"}

ALIGNMENTS = {"left", "center", "right", "justify"}

_TEXT_ALIGN_RE = re.compile(r"text-align\s*:\s*([a-z]+)", re.IGNORECASE)


@dataclass
class MarkupNode:
    """Parsed node: either an element (tag + children) or a text leaf"""

    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["MarkupNode"] = field(default_factory=list)
    text: Optional[str] = None

    @property
    def is_text(self) -> bool:
        return self.tag == TEXT

    @property
    def is_block(self) -> bool:
        return self.tag in BLOCK_TAGS

    @property
    def alignment(self) -> Optional[str]:
        return self.attributes.get("text-align")

    def has_block_descendant(self) -> bool:
        return any(child.is_block or child.has_block_descendant() for child in self.children)

    def plain_text(self) -> str:
        if self.is_text:
            return self.text or ""
        return "".join(child.plain_text() for child in self.children)


@dataclass
class ParseResult:
    root: MarkupNode
    ignored: List[str] = field(default_factory=list)


def _read_alignment(tag: Tag) -> Optional[str]:
    style = tag.get("style") or ""
    match = _TEXT_ALIGN_RE.search(style)
    value = match.group(1).lower() if match else (tag.get("align") or "").lower()
    return value if value in ALIGNMENTS else None


class RichContentParser:
    """Tolerant HTML-subset parser backed by BeautifulSoup's html.parser"""

    def parse(self, markup: Optional[str]) -> ParseResult:
        markup = markup or ""
        ignored: List[str] = []

        if "<" not in markup:
            root = self._parse_plain_text(markup)
        else:
            soup = BeautifulSoup(markup, "html.parser")
            root = MarkupNode(tag=ROOT)
            root.children = self._convert_children(soup, ignored)

        if ignored:
            logger.info(f"[RichContentParser] Ignored constructs: {', '.join(sorted(set(ignored)))}")
        return ParseResult(root=root, ignored=ignored)

    def _parse_plain_text(self, text: str) -> MarkupNode:
        """Legacy bodies without markup: one paragraph per non-blank line"""
        root = MarkupNode(tag=ROOT)
        for line in text.splitlines():
            if line.strip():
                root.children.append(
                    MarkupNode(tag="p", children=[MarkupNode(tag=TEXT, text=line.strip())])
                )
        return root

    def _convert_children(self, parent: Tag, ignored: List[str]) -> List[MarkupNode]:
        nodes: List[MarkupNode] = []
        for child in parent.children:
            if isinstance(child, (Comment, Doctype, Declaration, ProcessingInstruction)):
                ignored.append(type(child).__name__.lower())
                continue
            if isinstance(child, NavigableString):
                if str(child):
                    nodes.append(MarkupNode(tag=TEXT, text=str(child)))
                continue
            if isinstance(child, Tag):
                nodes.extend(self._convert_tag(child, ignored))
        return nodes

    def _convert_tag(self, tag: Tag, ignored: List[str]) -> List[MarkupNode]:
        name = TAG_ALIASES.get(tag.name.lower(), tag.name.lower())

        if name in DROPPED_TAGS:
            ignored.append(f"<{name}>")
            return []

        if name in TRANSPARENT_TAGS:
            alignment = _read_alignment(tag)
            children = self._convert_children(tag, ignored)
            if alignment and name != "span":
                # Aligned wrappers stay as a block so the alignment covers their content
                return [MarkupNode(tag="div", attributes={"text-align": alignment}, children=children)]
            return children

        attributes: Dict[str, str] = {}
        alignment = _read_alignment(tag)
        if alignment:
            attributes["text-align"] = alignment

        if name == "a":
            href = (tag.get("href") or "").strip()
            if href:
                attributes["href"] = href
        elif name == "ol" and tag.get("start"):
            try:
                attributes["start"] = str(int(tag.get("start")))
            except ValueError:
                ignored.append("ol[start]")

        if name not in BLOCK_TAGS and name not in INLINE_TAGS:
            ignored.append(f"<{name}>")

        node = MarkupNode(tag=name, attributes=attributes)
        if name != "br":
            node.children = self._convert_children(tag, ignored)
        return [node]
