# API endpoints
from . import health, letters, verify

__all__ = ["health", "letters", "verify"]
