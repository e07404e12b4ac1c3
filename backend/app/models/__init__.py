# Re-export all models for convenient imports
from app.models.permission_letter import PermissionLetter

__all__ = [
    "PermissionLetter",
]
