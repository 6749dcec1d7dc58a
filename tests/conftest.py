import os

os.environ.setdefault("BGV_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BGV_AUTH_MODE", "dev")
os.environ.setdefault("BGV_STORAGE_BACKEND", "local")
os.environ.setdefault("BGV_PUBLIC_APP_ORIGIN", "https://bgv.example.com")

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import bgv_portal.models  # noqa: F401
from bgv_portal.api import deps
from bgv_portal.core.errors import StorageError
from bgv_portal.core.uploads import IncomingFile
from bgv_portal.core.workflow import ADDRESS_VERIFICATION, DOCUMENT_COLLECTION
from bgv_portal.db.base import Base
from bgv_portal.db.session import enable_sqlite_savepoints
from bgv_portal.main import create_app
from bgv_portal.schemas.bgv_form import (
    Address,
    BGVFormData,
    Education,
    EmploymentEntry,
    GapEntry,
    LetterOfAuthorization,
    PersonalInfo,
    Reference,
)
from bgv_portal.schemas.record import AddressVerificationCreate, RecordCreate
from bgv_portal.services import records
from bgv_portal.services.blob_store import StoredBlob

REQUIRED_DC_SLOTS = ("aadhaar", "pan", "degreeMarksheet", "addressProof", "signature")
AV_SLOTS = ("id_proof_one", "id_proof_two", "house_image_one", "house_image_two", "signature", "selfie")


class MemoryBlobStore:
    """Blob store double; any key containing a ``fail_on`` marker fails to store."""

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_on: set[str] = set()

    async def put(self, key: str, data: bytes, *, content_type: str | None = None) -> StoredBlob:
        if any(marker in key for marker in self.fail_on):
            raise StorageError("Unable to store the file. Please retry later.", {"key": key})
        self.objects[key] = data
        return StoredBlob(key=key, url=await self.url(key))

    async def delete(self, key: str) -> None:
        self.deleted.append(key)
        self.objects.pop(key, None)

    async def url(self, key: str) -> str:
        return f"memory://{key}"


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def db_session(async_engine):
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def blob_store():
    return MemoryBlobStore()


@pytest.fixture()
async def client(async_engine, blob_store):
    app = create_app()
    session_factory = async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[deps.get_db_session] = _session
    app.dependency_overrides[deps.get_storage] = lambda: blob_store
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest.fixture()
def make_record(db_session):
    async def _make(kind: str = DOCUMENT_COLLECTION, **overrides):
        values = {"company_name": "Acme Corp", "candidate_name": "Asha Rao", "email": "asha@example.com"}
        values.update(overrides)
        schema = AddressVerificationCreate if kind == ADDRESS_VERIFICATION else RecordCreate
        return await records.create_record(db_session, kind, schema(**values), performed_by="admin@example.com")

    return _make


def pdf_upload(name: str = "document.pdf", data: bytes = b"%PDF-1.4 sample") -> IncomingFile:
    return IncomingFile(filename=name, content_type="application/pdf", data=data)


@pytest.fixture()
def pdf():
    return pdf_upload


def build_complete_form() -> BGVFormData:
    return BGVFormData(
        personal_info=PersonalInfo(
            full_name="Asha Rao",
            dob="1994-02-11",
            fathers_name="Ravi Rao",
            mobile="9876543210",
            email="asha@example.com",
            aadhaar_number="1234 5678 9012",
            pan_number="ABCDE1234F",
            addresses=[Address(address="12 MG Road, Bengaluru", duration="3 years")],
        ),
        education=Education(degree="B.Tech", year_of_passing="2016", university_name="VTU"),
        employment_history=[EmploymentEntry(entry_id="acme", company_name="Acme Corp")],
        references=[Reference(name="K Iyer", contact="9800000000")],
        gap_details=[
            GapEntry(key="educationToEmp1", has_gap="no"),
            GapEntry(key="emp1ToCurrent", has_gap="no"),
        ],
        loa=LetterOfAuthorization(
            auth_checkbox1=True,
            auth_checkbox2=True,
            auth_checkbox3=True,
            title="Ms",
            name_in_capitals="ASHA RAO",
            date="2026-01-05",
        ),
    )


@pytest.fixture()
def complete_form():
    return build_complete_form()
