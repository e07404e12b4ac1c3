"""
Permission letter schemas for PDF generation and public verification
"""
from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime


class GeneratePdfResponse(BaseModel):
    """Result of a generate-pdf request"""
    success: bool = True
    letter_id: str
    pdf_url: str = Field(..., description="Location of the stored document")
    pdf_hash: str = Field(..., description="Hex SHA-256 of the stored bytes")
    is_secured: bool = False
    already_generated: bool = Field(default=False, description="True when an existing document was returned")
    page_count: Optional[int] = None


class ApprovalEntry(BaseModel):
    role: str
    label: str
    status: str


class VerificationResponse(BaseModel):
    """Public projection shown on the verification page"""
    letter_id: str
    club_name: str
    subject: str
    date: datetime
    status: str
    approvals: List[ApprovalEntry] = Field(default_factory=list)
    approved_roll_numbers: Dict[str, List[str]] = Field(default_factory=dict)
    pdf_url: Optional[str] = None
    pdf_hash: Optional[str] = None
    is_secured: bool = False
    is_verified: bool = Field(default=False, description="Approved and a fingerprinted document exists")
