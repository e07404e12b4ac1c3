"""
Public letter verification endpoint (target of the QR code)
"""

from fastapi import APIRouter, Depends

from app.api.v1.endpoints.letters import get_letter_pdf_service
from app.schemas.letter import VerificationResponse
from app.services.letter_pdf_service import LetterPdfService


router = APIRouter(tags=["Verification"])


@router.get("/verify-letter/{letter_id}", response_model=VerificationResponse)
async def verify_letter(
    letter_id: str,
    service: LetterPdfService = Depends(get_letter_pdf_service),
):
    return await service.verification(letter_id)
