"""
Letter PDF Service

Loads a permission letter, runs the document pipeline once it is fully
approved, stores the protected bytes and persists location and fingerprint.
Also builds the read-only projection behind the public verification page.
"""

from datetime import datetime, timezone
from typing import Optional
import time

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import LetterNotApprovedError, LetterNotFoundError
from app.core.logging_config import logger, set_letter_id
from app.models.permission_letter import PermissionLetter
from app.modules.letters.records import (
    ApprovalState,
    approved_roll_numbers,
    ordered_approvals,
    ordered_groups,
)
from app.modules.pdf.pipeline import LetterDocumentPipeline
from app.schemas.letter import ApprovalEntry, GeneratePdfResponse, VerificationResponse
from app.services.document_storage import LocalDocumentStorage


def document_name(letter_id: str) -> str:
    return f"PermissionLetter_{letter_id}_{int(time.time() * 1000)}.pdf"


class LetterPdfService:
    """Generation and verification for one database session"""

    def __init__(
        self,
        db: AsyncSession,
        pipeline: Optional[LetterDocumentPipeline] = None,
        storage: Optional[LocalDocumentStorage] = None,
    ):
        self.db = db
        self.pipeline = pipeline or LetterDocumentPipeline.from_settings(settings)
        self.storage = storage or LocalDocumentStorage()

    async def get_letter(self, letter_id: str) -> PermissionLetter:
        result = await self.db.execute(
            select(PermissionLetter).where(PermissionLetter.id == letter_id)
        )
        letter = result.scalar_one_or_none()
        if letter is None:
            raise LetterNotFoundError(letter_id)
        return letter

    async def generate(self, letter_id: str) -> GeneratePdfResponse:
        set_letter_id(letter_id)
        letter = await self.get_letter(letter_id)

        # A document exists already: return it without rendering again
        if letter.generated_pdf_url and letter.pdf_hash:
            logger.info(f"[LetterPdfService] Letter {letter_id} already has a document")
            return GeneratePdfResponse(
                letter_id=letter.id,
                pdf_url=letter.generated_pdf_url,
                pdf_hash=letter.pdf_hash,
                is_secured=bool(letter.is_secured),
                already_generated=True,
            )

        record = letter.to_record()
        if not record.is_fully_approved:
            raise LetterNotApprovedError(letter_id, letter.status)

        approved = approved_roll_numbers(letter.roll_no_approvals)
        document = await self.pipeline.generate(record, approved, settings.verification_url(letter.id))

        location = await self.storage.save(document_name(letter.id), document.content)

        letter.generated_pdf_url = location
        letter.pdf_hash = document.sha256
        letter.is_secured = document.is_secured
        letter.pdf_generated_at = datetime.now(timezone.utc)
        await self.db.commit()

        logger.info(
            f"[LetterPdfService] Generated letter {letter_id}: {document.page_count} page(s), "
            f"{document.size_bytes} bytes, secured={document.is_secured}"
        )
        return GeneratePdfResponse(
            letter_id=letter.id,
            pdf_url=location,
            pdf_hash=document.sha256,
            is_secured=document.is_secured,
            page_count=document.page_count,
        )

    async def verification(self, letter_id: str) -> VerificationResponse:
        letter = await self.get_letter(letter_id)
        record = letter.to_record()

        approved = approved_roll_numbers(letter.roll_no_approvals)
        approved_by_group = {
            group: approved[group] for group in ordered_groups(approved) if approved[group]
        }

        return VerificationResponse(
            letter_id=record.id,
            club_name=record.club_name,
            subject=record.subject,
            date=record.date,
            status=record.status.value,
            approvals=[
                ApprovalEntry(role=role.value, label=role.label, status=state.value)
                for role, state in ordered_approvals(record.approvals)
            ],
            approved_roll_numbers=approved_by_group,
            pdf_url=letter.generated_pdf_url,
            pdf_hash=letter.pdf_hash,
            is_secured=bool(letter.is_secured),
            is_verified=record.status == ApprovalState.APPROVED and bool(letter.pdf_hash),
        )
