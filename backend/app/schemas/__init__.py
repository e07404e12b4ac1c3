# Pydantic schemas
from app.schemas.letter import (
    GeneratePdfResponse,
    ApprovalEntry,
    VerificationResponse,
)

__all__ = [
    "GeneratePdfResponse",
    "ApprovalEntry",
    "VerificationResponse",
]
