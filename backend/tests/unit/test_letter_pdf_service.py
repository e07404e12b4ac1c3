"""
Unit Tests for LetterPdfService
"""
import io

import pytest
from pypdf import PdfReader

from app.core.exceptions import LetterNotApprovedError, LetterNotFoundError, StorageError
from app.modules.pdf.integrity import compute_document_hash
from app.services.document_storage import LocalDocumentStorage
from app.services.letter_pdf_service import LetterPdfService, document_name


@pytest.fixture
def storage(tmp_path) -> LocalDocumentStorage:
    return LocalDocumentStorage(base_path=tmp_path / "letters", base_url="https://files.example.edu/letters")


@pytest.fixture
def service(db_session, pipeline, storage) -> LetterPdfService:
    return LetterPdfService(db_session, pipeline=pipeline, storage=storage)


class TestGenerate:

    @pytest.mark.asyncio
    async def test_generates_and_persists(self, service, storage, approved_letter):
        response = await service.generate(approved_letter.id)

        assert response.success is True
        assert response.already_generated is False
        assert response.page_count == 1
        assert response.pdf_url.startswith("https://files.example.edu/letters/PermissionLetter_")

        name = response.pdf_url.rsplit("/", 1)[-1]
        stored = await storage.load(name)
        assert compute_document_hash(stored) == response.pdf_hash

        letter = await service.get_letter(approved_letter.id)
        assert letter.generated_pdf_url == response.pdf_url
        assert letter.pdf_hash == response.pdf_hash
        assert letter.is_secured is False
        assert letter.pdf_generated_at is not None
        assert letter.pdf_generated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_stored_document_lists_only_approved_students(self, service, storage, approved_letter):
        response = await service.generate(approved_letter.id)
        content = await storage.load(response.pdf_url.rsplit("/", 1)[-1])

        text = "\n".join(page.extract_text() for page in PdfReader(io.BytesIO(content)).pages)
        assert "21R01A0501" in text
        assert "21R01A0503" in text
        assert "21R01A6601" in text
        assert "21R01A0502" not in text

    @pytest.mark.asyncio
    async def test_second_call_returns_existing_document(self, service, approved_letter, monkeypatch):
        first = await service.generate(approved_letter.id)

        async def fail_generate(*args, **kwargs):
            raise AssertionError("pipeline should not run again")

        monkeypatch.setattr(service.pipeline, "generate", fail_generate)
        second = await service.generate(approved_letter.id)

        assert second.already_generated is True
        assert second.pdf_url == first.pdf_url
        assert second.pdf_hash == first.pdf_hash

    @pytest.mark.asyncio
    async def test_pending_letter_is_rejected(self, service, letter_factory):
        letter = await letter_factory(status="pending")

        with pytest.raises(LetterNotApprovedError) as exc_info:
            await service.generate(letter.id)

        assert exc_info.value.status_code == 409
        assert (await service.get_letter(letter.id)).generated_pdf_url is None

    @pytest.mark.asyncio
    async def test_unknown_letter(self, service):
        with pytest.raises(LetterNotFoundError):
            await service.generate("does-not-exist")


class TestVerification:

    @pytest.mark.asyncio
    async def test_projection_before_generation(self, service, letter_factory):
        letter = await letter_factory(approvals={
            "cseHod": "approved", "director": "approved", "tpo": "pending", "principal": "approved",
        })

        result = await service.verification(letter.id)

        assert [entry.role for entry in result.approvals] == ["director", "tpo", "cseHod"]
        assert result.approvals[0].label == "Director"
        assert result.approved_roll_numbers == {
            "cse": ["21R01A0501", "21R01A0503"],
            "csm": ["21R01A6601"],
        }
        assert result.is_verified is False
        assert result.pdf_hash is None

    @pytest.mark.asyncio
    async def test_verified_after_generation(self, service, approved_letter):
        generated = await service.generate(approved_letter.id)

        result = await service.verification(approved_letter.id)

        assert result.is_verified is True
        assert result.pdf_hash == generated.pdf_hash
        assert result.pdf_url == generated.pdf_url


class TestStorage:

    def test_document_name(self):
        assert document_name("abc").startswith("PermissionLetter_abc_")
        assert document_name("abc").endswith(".pdf")

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, storage):
        with pytest.raises(StorageError):
            await storage.save("../escape.pdf", b"%PDF")

    @pytest.mark.asyncio
    async def test_missing_document(self, storage):
        with pytest.raises(StorageError):
            await storage.load("missing.pdf")
