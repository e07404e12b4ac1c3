"""
Custom Exceptions for the CMRIT Clubs Portal
============================================

Use these instead of generic Exception so the API layer can map each failure
to a status code and a stable error code.

Usage:
    from app.core.exceptions import LetterNotFoundError, DocumentGenerationError

    if not letter:
        raise LetterNotFoundError(letter_id)

    try:
        await pipeline.generate(...)
    except DocumentGenerationError as e:
        logger.error(f"Document generation failed: {e}")
        raise
"""

from typing import Optional, Any, Dict


class ClubPortalError(Exception):
    """Base exception for all portal errors"""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details
        }


# ============================================
# Letter Input Errors
# ============================================

class LetterNotFoundError(ClubPortalError):
    """Permission letter not found"""

    status_code = 404

    def __init__(self, letter_id: str):
        super().__init__(
            f"Letter with ID '{letter_id}' not found",
            code="LETTER_NOT_FOUND",
            details={"letter_id": letter_id}
        )


class LetterNotApprovedError(ClubPortalError):
    """Letter has not been fully approved yet"""

    status_code = 409

    def __init__(self, letter_id: str, status: str):
        super().__init__(
            "Letter is not fully approved",
            code="LETTER_NOT_APPROVED",
            details={"letter_id": letter_id, "status": status}
        )


class LetterValidationError(ClubPortalError):
    """Letter record is incomplete or inconsistent"""

    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else None
        super().__init__(message, code="LETTER_VALIDATION_ERROR", details=details)


# ============================================
# Document Generation Errors
# ============================================

class DocumentGenerationError(ClubPortalError):
    """Document generation failed"""

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message, code="DOCUMENT_GENERATION_FAILED")
        if stage:
            self.details["stage"] = stage


class ProtectionError(DocumentGenerationError):
    """External encryption tool failed"""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message, stage="protection")
        self.code = "PROTECTION_FAILED"
        if returncode is not None:
            self.details["returncode"] = returncode


class ProtectionToolMissingError(ProtectionError):
    """External encryption tool binary not found"""

    def __init__(self, binary: str):
        super().__init__(f"Encryption tool '{binary}' not found")
        self.code = "PROTECTION_TOOL_MISSING"
        self.details["binary"] = binary


class ProtectionTimeoutError(ProtectionError):
    """External encryption tool did not finish in time"""

    def __init__(self, timeout_seconds: float):
        super().__init__(f"Encryption tool timed out after {timeout_seconds}s")
        self.code = "PROTECTION_TIMEOUT"
        self.details["timeout_seconds"] = timeout_seconds


# ============================================
# Storage Errors
# ============================================

class StorageError(ClubPortalError):
    """Storage operation failed"""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message, code="STORAGE_ERROR")
        if location:
            self.details["location"] = location


# ============================================
# Helper function for API responses
# ============================================

def error_response(error: ClubPortalError) -> Dict[str, Any]:
    """Convert exception to API error response format"""
    return {
        "success": False,
        "error": error.to_dict()
    }
