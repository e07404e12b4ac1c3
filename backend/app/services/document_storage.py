"""
Local document storage for generated letters.

Files are written under DOCUMENTS_PATH and addressed by
DOCUMENTS_BASE_URL/<name>.
"""

from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from app.core.config import settings
from app.core.exceptions import StorageError
from app.core.logging_config import logger


class LocalDocumentStorage:
    """Stores generated PDFs on the local filesystem"""

    def __init__(self, base_path: Optional[Path] = None, base_url: Optional[str] = None):
        self.base_path = Path(base_path) if base_path else settings.DOCUMENTS_DIR
        self.base_url = (base_url if base_url is not None else settings.DOCUMENTS_BASE_URL).rstrip("/")

    def _resolve(self, name: str) -> Path:
        path = (self.base_path / name).resolve()
        if self.base_path.resolve() not in path.parents:
            raise StorageError(f"Invalid document name: {name}", location=name)
        return path

    def url_for(self, name: str) -> str:
        return f"{self.base_url}/{name}"

    async def save(self, name: str, content: bytes) -> str:
        """Write bytes and return the document location"""
        path = self._resolve(name)
        try:
            await aiofiles.os.makedirs(path.parent, exist_ok=True)
            async with aiofiles.open(path, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error(f"[DocumentStorage] Failed to write {path}: {e}")
            raise StorageError(f"Failed to store document {name}", location=str(path)) from e

        logger.info(f"[DocumentStorage] Stored {name} ({len(content)} bytes)")
        return self.url_for(name)

    async def load(self, name: str) -> bytes:
        path = self._resolve(name)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise StorageError(f"Document {name} not found", location=str(path)) from e
