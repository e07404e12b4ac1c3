"""
Permission letter document endpoints
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import DocumentGenerationError, StorageError
from app.core.logging_config import logger
from app.schemas.letter import GeneratePdfResponse
from app.services.letter_pdf_service import LetterPdfService


router = APIRouter(prefix="/letters", tags=["Letters"])


def get_letter_pdf_service(db: AsyncSession = Depends(get_db)) -> LetterPdfService:
    return LetterPdfService(db)


@router.post("/{letter_id}/generate-pdf", response_model=GeneratePdfResponse)
async def generate_letter_pdf(
    letter_id: str,
    service: LetterPdfService = Depends(get_letter_pdf_service),
):
    """
    Generate the protected PDF for a fully approved letter.

    Returns the stored document when one exists already.
    """
    logger.info(f"[Letters] PDF requested for letter {letter_id}")
    try:
        return await service.generate(letter_id)
    except (DocumentGenerationError, StorageError) as e:
        logger.log_error_with_context(e, context="generate-pdf", letter_id=letter_id)
        return JSONResponse(
            status_code=e.status_code,
            content={
                "success": False,
                "error": {
                    "code": e.code,
                    "message": "Failed to generate PDF",
                    "details": {**e.details, "error": e.message},
                },
            },
        )
