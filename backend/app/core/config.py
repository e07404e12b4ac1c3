from pydantic_settings import BaseSettings
from typing import List, Any
from pathlib import Path


def parse_pipe_list(v: Any) -> List[str]:
    """Parse a '|' separated string (or list) into stripped, non-empty items"""
    if isinstance(v, list):
        return [str(item) for item in v]
    if isinstance(v, str):
        return [item.strip() for item in v.split('|') if item.strip()]
    return []


class Settings(BaseSettings):
    """Application settings - all configurable via environment variables"""

    # ==========================================
    # Application
    # ==========================================
    APP_NAME: str = "CMRIT Clubs Portal"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_VERSION: str = "v1"

    # ==========================================
    # Database
    # ==========================================
    DATABASE_URL: str = "sqlite+aiosqlite:///./clubletters.db"
    DB_ECHO: bool = False

    # ==========================================
    # Logging
    # ==========================================
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""  # Empty disables the rotating file handler

    # ==========================================
    # Letter layout
    # ==========================================
    ISSUER_NAME: str = "CMRIT"
    RECIPIENT_LINES_STR: str = "To,|The Director,|CMR Institute of Technology|Medchal"
    SALUTATION: str = "Respected Sir,"
    PDF_LAYOUT_MODE: str = "sequential"  # "sequential" or "auto" (two-column when it fits)
    PDF_PRODUCER: str = "CMRIT Clubs Portal"
    PDF_INVARIANT: bool = False  # Deterministic output (no timestamps / random IDs)

    # ==========================================
    # Verification
    # ==========================================
    VERIFY_BASE_URL: str = "http://localhost:3000"

    # ==========================================
    # Document protection (qpdf)
    # ==========================================
    PDF_PROTECTION_ENABLED: bool = True
    QPDF_BINARY: str = "qpdf"
    QPDF_LIB_DIR: str = ""  # Bundled shared libraries, prepended to LD_LIBRARY_PATH
    QPDF_TIMEOUT_SECONDS: float = 30.0
    QPDF_KEY_LENGTH: int = 256
    PDF_TEMP_DIR: str = ""  # Empty means the system temp directory

    # ==========================================
    # Storage
    # ==========================================
    DOCUMENTS_PATH: str = "generated/letters"
    DOCUMENTS_BASE_URL: str = "/files/letters"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"  # Ignore extra fields in .env that aren't defined in Settings

    @property
    def RECIPIENT_LINES(self) -> List[str]:
        return parse_pipe_list(self.RECIPIENT_LINES_STR)

    @property
    def DOCUMENTS_DIR(self) -> Path:
        return Path(self.DOCUMENTS_PATH)

    def verification_url(self, letter_id: str) -> str:
        """Public verification page for a letter (encoded into the QR code)"""
        return f"{self.VERIFY_BASE_URL.rstrip('/')}/verify-letter/{letter_id}"


settings = Settings()
