from sqlalchemy import Column, String, DateTime, Text, Boolean, JSON
from datetime import datetime, timezone
import uuid

from app.core.database import Base
from app.modules.letters.records import LetterRecord


def generate_letter_id() -> str:
    return uuid.uuid4().hex


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PermissionLetter(Base):
    """Club permission letter awaiting (or past) multi-role approval"""
    __tablename__ = "permission_letters"

    id = Column(String(64), primary_key=True, default=generate_letter_id)

    club_name = Column(String(255), nullable=False)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)  # Rich-text HTML from the editor
    sincerely = Column(String(255), nullable=False)
    date = Column(DateTime(timezone=True), default=utc_now, nullable=False)

    # Overall status: pending / approved / rejected
    status = Column(String(20), default="pending", nullable=False)

    # {role: state}, e.g. {"director": "approved", "cseHod": "pending"}
    approvals = Column(JSON, default=dict, nullable=False)
    # {group: "ROLL1\nROLL2"} as submitted
    roll_numbers = Column(JSON, default=dict, nullable=False)
    # {group: {rollNo: "approved" | "rejected"}}
    roll_no_approvals = Column(JSON, default=dict, nullable=False)

    # Generated document
    generated_pdf_url = Column(Text, nullable=True)
    pdf_hash = Column(String(64), nullable=True)
    is_secured = Column(Boolean, default=False)
    pdf_generated_at = Column(DateTime(timezone=True), nullable=True)

    # Timestamps
    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    def to_record(self) -> LetterRecord:
        return LetterRecord.from_mapping({
            "id": self.id,
            "club_name": self.club_name,
            "subject": self.subject,
            "body": self.body,
            "sincerely": self.sincerely,
            "date": self.date,
            "approvals": self.approvals or {},
            "roll_numbers_by_group": self.roll_numbers or {},
            "status": self.status,
        })

    def __repr__(self):
        return f"<PermissionLetter {self.id} ({self.club_name})>"
