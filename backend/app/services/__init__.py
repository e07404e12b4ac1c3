from app.services.document_storage import LocalDocumentStorage
from app.services.letter_pdf_service import LetterPdfService

__all__ = [
    "LocalDocumentStorage",
    "LetterPdfService",
]
