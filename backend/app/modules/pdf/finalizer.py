"""
Document finalizer: replays recorded pages onto a reportlab canvas.
"""

from dataclasses import dataclass
from typing import Dict, Optional
import io

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from app.modules.pdf.surface import (
    DocumentSurface,
    ImageOp,
    LineOp,
    LinkOp,
    PageSurface,
    RectOp,
    TextOp,
)


@dataclass(frozen=True)
class DocumentMetadata:
    title: str
    author: str
    subject: str = ""
    creator: str = ""
    producer: str = ""
    keywords: str = ""


class DocumentFinalizer:
    """Serializes a DocumentSurface into PDF bytes"""

    def __init__(self, invariant: bool = False):
        self.invariant = invariant

    def finalize(self, surface: DocumentSurface, metadata: Optional[DocumentMetadata] = None) -> bytes:
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=surface.page_size, invariant=int(self.invariant))

        if metadata is not None:
            pdf.setTitle(metadata.title)
            pdf.setAuthor(metadata.author)
            pdf.setSubject(metadata.subject)
            pdf.setCreator(metadata.creator)
            if metadata.producer:
                pdf.setProducer(metadata.producer)
            pdf.setKeywords(metadata.keywords)

        # One reader per image so repeated placements share a single XObject
        readers: Dict[str, ImageReader] = {
            key: ImageReader(io.BytesIO(data)) for key, data in surface.images.items()
        }

        for page in surface.pages:
            self._replay(pdf, page, readers)
            pdf.showPage()

        pdf.save()
        return buffer.getvalue()

    def _replay(self, pdf: canvas.Canvas, page: PageSurface, readers: Dict[str, ImageReader]) -> None:
        for op in page.ops:
            if isinstance(op, TextOp):
                self._draw_text(pdf, op)
            elif isinstance(op, RectOp):
                pdf.saveState()
                pdf.setFillColor(op.fill_color)
                pdf.setFillAlpha(op.opacity)
                pdf.rect(op.x, op.y, op.width, op.height, stroke=0, fill=1)
                pdf.restoreState()
            elif isinstance(op, LineOp):
                pdf.saveState()
                pdf.setStrokeColor(op.color)
                pdf.setLineWidth(op.line_width)
                pdf.line(op.x1, op.y1, op.x2, op.y2)
                pdf.restoreState()
            elif isinstance(op, LinkOp):
                pdf.linkURL(op.url, op.rect, relative=0, thickness=0)
            elif isinstance(op, ImageOp):
                reader = readers.get(op.image_key)
                if reader is not None:
                    pdf.drawImage(reader, op.x, op.y, width=op.width, height=op.height)

    def _draw_text(self, pdf: canvas.Canvas, op: TextOp) -> None:
        pdf.saveState()
        pdf.setFont(op.font_name, op.font_size)
        pdf.setFillColor(op.color)
        if op.opacity < 1.0:
            pdf.setFillAlpha(op.opacity)
        if op.angle:
            pdf.translate(op.x, op.y)
            pdf.rotate(op.angle)
            pdf.drawString(0, 0, op.text)
        else:
            pdf.drawString(op.x, op.y, op.text)
        pdf.restoreState()
