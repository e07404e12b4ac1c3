"""
Integration Tests for the letter API endpoints
"""
import pytest
from httpx import AsyncClient

from app.api.v1.endpoints.letters import get_letter_pdf_service
from app.core.config import settings
from app.main import app
from app.modules.pdf.integrity import compute_document_hash
from app.modules.pdf.pipeline import LetterDocumentPipeline
from app.modules.pdf.protection import QpdfProtectionBackend
from app.services.letter_pdf_service import LetterPdfService


API = f"/api/{settings.API_VERSION}"


class TestGeneratePdf:

    @pytest.mark.asyncio
    async def test_generate_pdf(self, client: AsyncClient, approved_letter):
        response = await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["letter_id"] == approved_letter.id
        assert data["already_generated"] is False
        assert len(data["pdf_hash"]) == 64

        name = data["pdf_url"].rsplit("/", 1)[-1]
        stored = (settings.DOCUMENTS_DIR / name).read_bytes()
        assert stored.startswith(b"%PDF")
        assert compute_document_hash(stored) == data["pdf_hash"]

    @pytest.mark.asyncio
    async def test_generate_twice_returns_same_document(self, client: AsyncClient, approved_letter):
        first = (await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")).json()
        second = (await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")).json()

        assert second["already_generated"] is True
        assert second["pdf_url"] == first["pdf_url"]
        assert second["pdf_hash"] == first["pdf_hash"]

    @pytest.mark.asyncio
    async def test_unknown_letter(self, client: AsyncClient):
        response = await client.post(f"{API}/letters/missing/generate-pdf")

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "LETTER_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_pending_letter(self, client: AsyncClient, letter_factory):
        letter = await letter_factory(status="pending")

        response = await client.post(f"{API}/letters/{letter.id}/generate-pdf")

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "LETTER_NOT_APPROVED"

    @pytest.mark.asyncio
    async def test_incomplete_letter(self, client: AsyncClient, letter_factory):
        letter = await letter_factory(subject="")

        response = await client.post(f"{API}/letters/{letter.id}/generate-pdf")

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "LETTER_VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_protection_failure(self, client: AsyncClient, approved_letter, db_session, fake_qpdf, monkeypatch):
        monkeypatch.setenv("FAKE_QPDF_MODE", "fail")
        backend = QpdfProtectionBackend(binary=str(fake_qpdf["binary"]), temp_dir=str(fake_qpdf["scratch"]))
        pipeline = LetterDocumentPipeline(protection_backend=backend, invariant=True)
        app.dependency_overrides[get_letter_pdf_service] = lambda: LetterPdfService(db_session, pipeline=pipeline)

        response = await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "PROTECTION_FAILED"
        assert error["message"] == "Failed to generate PDF"
        assert error["details"]["returncode"] == 2
        assert list(fake_qpdf["scratch"].iterdir()) == []

    @pytest.mark.asyncio
    async def test_missing_scratch_dir(self, client: AsyncClient, approved_letter, db_session, fake_qpdf, tmp_path):
        backend = QpdfProtectionBackend(binary=str(fake_qpdf["binary"]), temp_dir=str(tmp_path / "missing"))
        pipeline = LetterDocumentPipeline(protection_backend=backend, invariant=True)
        app.dependency_overrides[get_letter_pdf_service] = lambda: LetterPdfService(db_session, pipeline=pipeline)

        response = await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")

        assert response.status_code == 500
        error = response.json()["error"]
        assert error["code"] == "PROTECTION_FAILED"
        assert error["message"] == "Failed to generate PDF"
        assert error["details"]["stage"] == "protection"


class TestVerifyLetter:

    @pytest.mark.asyncio
    async def test_verify_after_generation(self, client: AsyncClient, approved_letter):
        generated = (await client.post(f"{API}/letters/{approved_letter.id}/generate-pdf")).json()

        response = await client.get(f"{API}/verify-letter/{approved_letter.id}")

        assert response.status_code == 200
        data = response.json()
        assert data["is_verified"] is True
        assert data["pdf_hash"] == generated["pdf_hash"]
        assert data["club_name"] == "Robotics Club"
        assert [a["role"] for a in data["approvals"]] == ["director", "dsaa", "tpo", "cseHod", "csmHod"]
        assert list(data["approved_roll_numbers"]) == ["cse", "csm"]
        assert "21R01A0502" not in data["approved_roll_numbers"]["cse"]

    @pytest.mark.asyncio
    async def test_verify_unknown_letter(self, client: AsyncClient):
        response = await client.get(f"{API}/verify-letter/missing")

        assert response.status_code == 404


class TestHealth:

    @pytest.mark.asyncio
    async def test_health(self, client: AsyncClient):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_liveness(self, client: AsyncClient):
        response = await client.get(f"{API}/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    @pytest.mark.asyncio
    async def test_readiness_with_protection_disabled(self, client: AsyncClient):
        response = await client.get(f"{API}/health/ready")

        assert response.status_code == 200
        assert response.json()["checks"]["protection"]["status"] == "disabled"
