"""
PDF Module - permission letter layout, protection and integrity pipeline
"""

from .markup import RichContentParser, MarkupNode, ParseResult
from .text_metrics import TextMeasurer
from .composer import DocumentComposer
from .decorations import PageDecorator, render_qr_png
from .finalizer import DocumentFinalizer, DocumentMetadata
from .protection import (
    ProtectionBackend,
    NoopProtectionBackend,
    QpdfProtectionBackend,
    ProtectionStage,
    ProtectionState,
    flatten_form_fields,
    build_protection_backend,
)
from .integrity import compute_document_hash, verify_document_hash
from .pipeline import LetterDocumentPipeline, GeneratedDocument

__all__ = [
    "RichContentParser",
    "MarkupNode",
    "ParseResult",
    "TextMeasurer",
    "DocumentComposer",
    "PageDecorator",
    "render_qr_png",
    "DocumentFinalizer",
    "DocumentMetadata",
    "ProtectionBackend",
    "NoopProtectionBackend",
    "QpdfProtectionBackend",
    "ProtectionStage",
    "ProtectionState",
    "flatten_form_fields",
    "build_protection_backend",
    "compute_document_hash",
    "verify_document_hash",
    "LetterDocumentPipeline",
    "GeneratedDocument",
]
