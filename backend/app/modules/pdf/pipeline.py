"""
Letter Document Pipeline

Single-document, sequential generation:

    parse body -> lay out (header, body, blocks, watermark) -> finalize
    -> flatten + protect -> SHA-256 over the final bytes

Each stage's output is the next stage's only input. Nothing is retried; any
failure aborts the generation and is raised to the caller.
"""

from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, Tuple
import asyncio
import time

from app.core.exceptions import ClubPortalError, DocumentGenerationError
from app.core.logging_config import logger, set_letter_id
from app.modules.letters.records import (
    LetterRecord,
    ensure_approved_subset,
    ordered_groups,
)
from app.modules.pdf.composer import DocumentComposer
from app.modules.pdf.decorations import (
    BLOCK_SPACING,
    LAYOUT_SEQUENTIAL,
    QR_IMAGE_KEY,
    PageDecorator,
    render_qr_png,
)
from app.modules.pdf.finalizer import DocumentFinalizer, DocumentMetadata
from app.modules.pdf.integrity import compute_document_hash
from app.modules.pdf.markup import RichContentParser
from app.modules.pdf.protection import (
    NoopProtectionBackend,
    ProtectionBackend,
    ProtectionStage,
    ProtectionState,
    build_protection_backend,
)
from app.modules.pdf.surface import DocumentSurface, DrawCursor
from app.modules.pdf.text_metrics import TextMeasurer


@dataclass(frozen=True)
class RenderedDocument:
    """Unprotected PDF bytes plus layout facts"""

    content: bytes
    page_count: int
    layout: str
    ignored_markup: Tuple[str, ...] = ()


@dataclass(frozen=True)
class GeneratedDocument:
    content: bytes
    sha256: str
    is_secured: bool
    page_count: int
    protection_state: ProtectionState = ProtectionState.UNPROTECTED
    layout: str = LAYOUT_SEQUENTIAL
    ignored_markup: Tuple[str, ...] = ()

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def _clean_approved(approved: Optional[Mapping[str, Sequence[str]]]) -> dict:
    """Canonical group order, stripped entries, empty groups dropped"""
    cleaned = {}
    approved = approved or {}
    for group in ordered_groups(approved):
        numbers = [str(r).strip() for r in approved[group] if str(r).strip()]
        if numbers:
            cleaned[group] = numbers
    return cleaned


class LetterDocumentPipeline:
    """Generates the protected, fingerprinted PDF for one approved letter"""

    def __init__(
        self,
        protection_backend: Optional[ProtectionBackend] = None,
        issuer: str = "CMRIT",
        recipient_lines: Sequence[str] = (),
        salutation: str = "",
        layout_mode: str = LAYOUT_SEQUENTIAL,
        producer: str = "",
        invariant: bool = False,
        parser: Optional[RichContentParser] = None,
        measurer: Optional[TextMeasurer] = None,
    ):
        self.protection_backend = protection_backend or NoopProtectionBackend()
        self.issuer = issuer
        self.recipient_lines = list(recipient_lines)
        self.salutation = salutation
        self.layout_mode = layout_mode
        self.producer = producer
        self.invariant = invariant
        self.parser = parser or RichContentParser()
        self.measurer = measurer or TextMeasurer()

    @classmethod
    def from_settings(cls, settings) -> "LetterDocumentPipeline":
        backend = build_protection_backend(
            enabled=settings.PDF_PROTECTION_ENABLED,
            binary=settings.QPDF_BINARY,
            lib_dir=settings.QPDF_LIB_DIR,
            timeout_seconds=settings.QPDF_TIMEOUT_SECONDS,
            temp_dir=settings.PDF_TEMP_DIR,
            key_length=settings.QPDF_KEY_LENGTH,
        )
        return cls(
            protection_backend=backend,
            issuer=settings.ISSUER_NAME,
            recipient_lines=settings.RECIPIENT_LINES,
            salutation=settings.SALUTATION,
            layout_mode=settings.PDF_LAYOUT_MODE,
            producer=settings.PDF_PRODUCER,
            invariant=settings.PDF_INVARIANT,
        )

    def metadata_for(self, letter: LetterRecord) -> DocumentMetadata:
        return DocumentMetadata(
            title=f"Permission Letter - {letter.club_name}",
            author=letter.club_name,
            subject=letter.subject,
            creator=self.producer,
            producer=self.producer,
            keywords=f"letter:{letter.id}",
        )

    def layout(self, letter: LetterRecord, approved: Mapping[str, Sequence[str]],
               verification_url: str) -> Tuple[DocumentSurface, str, Tuple[str, ...]]:
        """Lay the whole letter out onto a recorded surface"""
        composer = DocumentComposer(self.measurer)
        decorator = PageDecorator(
            composer,
            issuer=self.issuer,
            club_name=letter.club_name,
            recipient_lines=self.recipient_lines,
            salutation=self.salutation,
            layout_mode=self.layout_mode,
        )

        surface = DocumentSurface()
        surface.add_image(QR_IMAGE_KEY, render_qr_png(verification_url))
        cursor = DrawCursor(surface, on_new_page=decorator.draw_watermark)

        decorator.draw_header(cursor, letter.date)
        decorator.draw_recipient_block(cursor)
        decorator.draw_subject(cursor, letter.subject)
        decorator.draw_salutation(cursor)
        cursor.advance(BLOCK_SPACING / 2)

        parsed = self.parser.parse(letter.body)
        composer.compose(parsed.root, cursor)

        decorator.draw_signature(cursor, letter.sincerely)
        layout = decorator.draw_review_blocks(cursor, letter.approvals, approved)
        return surface, layout, tuple(parsed.ignored)

    def render(self, letter: LetterRecord, approved: Mapping[str, Sequence[str]],
               verification_url: str) -> RenderedDocument:
        """Synchronous layout and serialization (CPU bound)"""
        surface, layout, ignored = self.layout(letter, approved, verification_url)
        content = DocumentFinalizer(invariant=self.invariant).finalize(surface, self.metadata_for(letter))
        return RenderedDocument(
            content=content,
            page_count=len(surface.pages),
            layout=layout,
            ignored_markup=ignored,
        )

    async def generate(
        self,
        letter: LetterRecord,
        approved: Optional[Mapping[str, Sequence[str]]],
        verification_url: str,
    ) -> GeneratedDocument:
        set_letter_id(letter.id)
        letter.validate()
        approved = _clean_approved(approved)
        ensure_approved_subset(letter, approved)

        started = time.time()
        logger.log_generation_event("render", "started", letter_id=letter.id)
        loop = asyncio.get_event_loop()
        try:
            rendered = await loop.run_in_executor(None, self.render, letter, approved, verification_url)
        except ClubPortalError:
            raise
        except Exception as e:
            logger.log_error_with_context(e, context="render", letter_id=letter.id)
            raise DocumentGenerationError(f"Failed to render letter {letter.id}", stage="render") from e
        logger.log_generation_event(
            "render", "completed",
            letter_id=letter.id, page_count=rendered.page_count,
            layout=rendered.layout, size_bytes=len(rendered.content),
        )

        stage = ProtectionStage(self.protection_backend)
        try:
            protected = await stage.run(rendered.content)
        except ClubPortalError:
            raise
        except Exception as e:
            logger.log_error_with_context(e, context="protection", letter_id=letter.id, state=stage.state.value)
            raise DocumentGenerationError(f"Failed to protect letter {letter.id}", stage="protection") from e

        # Fingerprint whatever bytes will be persisted
        digest = compute_document_hash(protected.content)
        duration_ms = (time.time() - started) * 1000
        logger.log_generation_event(
            "integrity", "hashed",
            letter_id=letter.id, sha256=digest, secured=protected.secured,
        )
        logger.log_performance("letter_pdf_generation", duration_ms, letter_id=letter.id)

        return GeneratedDocument(
            content=protected.content,
            sha256=digest,
            is_secured=protected.secured,
            page_count=rendered.page_count,
            protection_state=protected.state,
            layout=rendered.layout,
            ignored_markup=rendered.ignored_markup,
        )
