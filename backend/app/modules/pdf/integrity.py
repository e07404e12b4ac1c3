"""
Content integrity fingerprints for generated letters.
"""

import hashlib
import hmac


def compute_document_hash(content: bytes) -> str:
    """Hex SHA-256 of the exact persisted bytes"""
    return hashlib.sha256(content).hexdigest()


def verify_document_hash(content: bytes, expected: str) -> bool:
    if not expected:
        return False
    return hmac.compare_digest(compute_document_hash(content), expected.strip().lower())
