"""
CMRIT Clubs Portal - Test Configuration and Fixtures
"""
import os
import stat
import tempfile
from datetime import datetime
from pathlib import Path
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set testing environment before the app reads its settings
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="clubletters-tests-"))
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = f'sqlite+aiosqlite:///{_TEST_ROOT / "test.db"}'
os.environ['DOCUMENTS_PATH'] = str(_TEST_ROOT / 'letters')
os.environ['PDF_PROTECTION_ENABLED'] = 'false'
os.environ['PDF_INVARIANT'] = 'true'
os.environ['VERIFY_BASE_URL'] = 'https://clubs.example.edu'

from app.main import app
from app.core.config import settings
from app.core.database import Base, get_db
from app.models.permission_letter import PermissionLetter
from app.modules.letters.records import LetterRecord
from app.modules.pdf.composer import DocumentComposer
from app.modules.pdf.markup import RichContentParser
from app.modules.pdf.pipeline import LetterDocumentPipeline
from app.modules.pdf.protection import NoopProtectionBackend
from app.modules.pdf.surface import DocumentSurface, DrawCursor
from app.modules.pdf.text_metrics import TextMeasurer

fake = Faker()

LETTER_DATE = datetime(2026, 10, 19, 9, 30)

ALL_APPROVED = {
    "director": "approved",
    "dsaa": "approved",
    "tpo": "approved",
    "cseHod": "approved",
    "csmHod": "approved",
}

# Fake qpdf: records its arguments, then behaves according to FAKE_QPDF_MODE
FAKE_QPDF_SCRIPT = """#!/bin/sh
printf '%s\\n' "$@" > "__ARGS_LOG__"
for last; do :; done
case "${FAKE_QPDF_MODE:-ok}" in
  fail) echo "qpdf: operation failed" >&2; exit 2 ;;
  warn) cp "$1" "$last"; echo "qpdf: recoverable warning" >&2; exit 3 ;;
  slow) exec sleep 10 ;;
  noout) exit 0 ;;
esac
cp "$1" "$last"
printf '%%%% encrypted by fake qpdf\\n' >> "$last"
"""


def make_letter_data(**overrides) -> Dict:
    data = {
        "id": fake.uuid4().replace("-", ""),
        "clubName": "Robotics Club",
        "subject": "Permission for the annual robotics workshop",
        "body": (
            "<p>We request permission to conduct a <strong>two-day workshop</strong> "
            "on autonomous robots in the seminar hall.</p>"
            "<ol><li>Day one: sensors</li><li>Day two: navigation</li></ol>"
        ),
        "sincerely": fake.name(),
        "date": LETTER_DATE,
        "approvals": dict(ALL_APPROVED),
        "rollNos": {
            "cse": "21R01A0501\n21R01A0502\n21R01A0503",
            "csm": "21R01A6601",
        },
        "status": "approved",
    }
    data.update(overrides)
    return data


@pytest.fixture
def letter_data() -> Dict:
    return make_letter_data()


@pytest.fixture
def letter_record(letter_data) -> LetterRecord:
    return LetterRecord.from_mapping(letter_data)


@pytest.fixture
def measurer() -> TextMeasurer:
    return TextMeasurer()


@pytest.fixture
def composer(measurer) -> DocumentComposer:
    return DocumentComposer(measurer)


@pytest.fixture
def parser() -> RichContentParser:
    return RichContentParser()


@pytest.fixture
def cursor() -> DrawCursor:
    return DrawCursor(DocumentSurface())


@pytest.fixture
def pipeline() -> LetterDocumentPipeline:
    return LetterDocumentPipeline(
        protection_backend=NoopProtectionBackend(),
        issuer=settings.ISSUER_NAME,
        recipient_lines=settings.RECIPIENT_LINES,
        salutation=settings.SALUTATION,
        producer=settings.PDF_PRODUCER,
        invariant=True,
    )


@pytest.fixture
def fake_qpdf(tmp_path) -> Dict[str, Path]:
    """Executable stand-in for qpdf plus the file its arguments are logged to"""
    args_log = tmp_path / "qpdf-args.txt"
    script = tmp_path / "fake-qpdf"
    script.write_text(FAKE_QPDF_SCRIPT.replace("__ARGS_LOG__", str(args_log)))
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    scratch = tmp_path / "scratch"
    scratch.mkdir()
    return {"binary": script, "args_log": args_log, "scratch": scratch}


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh tables and session for each test"""
    engine = create_async_engine(settings.DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def add_letter(db_session: AsyncSession, **overrides) -> PermissionLetter:
    data = make_letter_data()
    letter = PermissionLetter(
        id=data["id"],
        club_name=data["clubName"],
        subject=data["subject"],
        body=data["body"],
        sincerely=data["sincerely"],
        date=data["date"],
        status=data["status"],
        approvals=data["approvals"],
        roll_numbers=data["rollNos"],
        roll_no_approvals={
            "cse": {"21R01A0501": "approved", "21R01A0502": "rejected", "21R01A0503": "approved"},
            "csm": {"21R01A6601": "approved"},
        },
    )
    for key, value in overrides.items():
        setattr(letter, key, value)
    db_session.add(letter)
    await db_session.commit()
    await db_session.refresh(letter)
    return letter


@pytest_asyncio.fixture
async def approved_letter(db_session: AsyncSession) -> PermissionLetter:
    return await add_letter(db_session)


@pytest.fixture
def letter_factory(db_session: AsyncSession):
    """Persist a letter with optional column overrides"""
    async def factory(**overrides) -> PermissionLetter:
        return await add_letter(db_session, **overrides)
    return factory
