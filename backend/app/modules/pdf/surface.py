"""
Recorded drawing surface and the layout cursor.

Layout code never talks to reportlab directly: it records absolute-position
draw instructions per page, and the finalizer replays them onto a canvas.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple, Union

from reportlab.lib.colors import Color

from app.modules.pdf.styles import PAGE_MARGIN, PAGE_SIZE


@dataclass(frozen=True)
class TextOp:
    text: str
    x: float
    y: float
    font_name: str
    font_size: float
    color: Color
    width: float
    opacity: float = 1.0
    angle: float = 0.0
    tag: str = ""


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: Color
    line_width: float = 0.75
    tag: str = ""


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill_color: Color
    opacity: float = 1.0
    tag: str = ""


@dataclass(frozen=True)
class LinkOp:
    url: str
    rect: Tuple[float, float, float, float]
    tag: str = "link"


@dataclass(frozen=True)
class ImageOp:
    image_key: str
    x: float
    y: float
    width: float
    height: float
    tag: str = ""


DrawOp = Union[TextOp, LineOp, RectOp, LinkOp, ImageOp]


@dataclass
class PageSurface:
    """One page worth of recorded draw instructions"""

    number: int
    width: float
    height: float
    ops: List[DrawOp] = field(default_factory=list)

    def draw_text(self, text: str, x: float, y: float, font_name: str, font_size: float,
                  color: Color, width: float, opacity: float = 1.0, angle: float = 0.0,
                  tag: str = "") -> TextOp:
        op = TextOp(text, x, y, font_name, font_size, color, width, opacity, angle, tag)
        self.ops.append(op)
        return op

    def draw_line(self, x1: float, y1: float, x2: float, y2: float, color: Color,
                  line_width: float = 0.75, tag: str = "") -> None:
        self.ops.append(LineOp(x1, y1, x2, y2, color, line_width, tag))

    def draw_rect(self, x: float, y: float, width: float, height: float, fill_color: Color,
                  opacity: float = 1.0, tag: str = "") -> None:
        self.ops.append(RectOp(x, y, width, height, fill_color, opacity, tag))

    def add_link(self, url: str, x1: float, y1: float, x2: float, y2: float) -> None:
        self.ops.append(LinkOp(url, (x1, y1, x2, y2)))

    def draw_image(self, image_key: str, x: float, y: float, width: float, height: float,
                   tag: str = "") -> None:
        self.ops.append(ImageOp(image_key, x, y, width, height, tag))

    def ops_tagged(self, tag: str) -> List[DrawOp]:
        return [op for op in self.ops if op.tag == tag]


class DocumentSurface:
    """Ordered pages plus the raster images they reference (stored once)"""

    def __init__(self, page_size: Tuple[float, float] = PAGE_SIZE):
        self.page_size = page_size
        self.pages: List[PageSurface] = []
        self.images: Dict[str, bytes] = {}

    def add_page(self) -> PageSurface:
        width, height = self.page_size
        page = PageSurface(number=len(self.pages) + 1, width=width, height=height)
        self.pages.append(page)
        return page

    def add_image(self, key: str, data: bytes) -> str:
        self.images.setdefault(key, data)
        return key


class DrawCursor:
    """
    Running layout position for one in-progress document.

    y moves monotonically down the current page; when a block does not fit
    above the bottom margin a new page is started, on_new_page decorates it
    and y resets to the top margin.
    """

    def __init__(
        self,
        surface: DocumentSurface,
        margin: float = PAGE_MARGIN,
        on_new_page: Optional[Callable[[PageSurface], None]] = None,
    ):
        self.surface = surface
        self.margin = margin
        self.left = margin
        self._right: Optional[float] = None
        self.alignment = "left"
        self._on_new_page = on_new_page
        self.page: PageSurface = self._start_page()
        self.y = self.top

    @property
    def page_width(self) -> float:
        return self.surface.page_size[0]

    @property
    def page_height(self) -> float:
        return self.surface.page_size[1]

    @property
    def top(self) -> float:
        return self.page_height - self.margin

    @property
    def bottom(self) -> float:
        return self.margin

    @property
    def right(self) -> float:
        if self._right is not None:
            return self._right
        return self.page_width - self.margin

    @property
    def content_width(self) -> float:
        """Width available from the current left edge to the right margin"""
        return self.right - self.left

    @property
    def remaining_height(self) -> float:
        return self.y - self.bottom

    def _start_page(self) -> PageSurface:
        page = self.surface.add_page()
        if self._on_new_page is not None:
            self._on_new_page(page)
        return page

    def new_page(self) -> PageSurface:
        self.page = self._start_page()
        self.y = self.top
        return self.page

    def ensure_space(self, height: float) -> bool:
        """Start a new page unless `height` fits above the bottom margin; True if a break happened"""
        if self.y - height < self.bottom and self.y < self.top:
            self.new_page()
            return True
        return False

    def advance(self, dy: float) -> None:
        self.y -= dy

    @contextmanager
    def indented(self, offset: float) -> Iterator[None]:
        """Temporarily move the left edge right by offset"""
        previous = self.left
        self.left = previous + offset
        try:
            yield
        finally:
            self.left = previous

    @contextmanager
    def column(self, left: float, right: float) -> Iterator[None]:
        """Temporarily restrict layout to the band between left and right"""
        previous = (self.left, self._right)
        self.left, self._right = left, right
        try:
            yield
        finally:
            self.left, self._right = previous

    @contextmanager
    def aligned(self, alignment: Optional[str]) -> Iterator[None]:
        previous = self.alignment
        if alignment:
            self.alignment = alignment
        try:
            yield
        finally:
            self.alignment = previous
