# This project was developed with assistance from AI tools.
"""Shared fixtures: a file-backed SQLite database and fake collaborators.

Each test gets a fresh database. Collaborator fakes are installed into the
module-level singletons so every service sees them through its ``get_*``
accessor.
"""

import asyncio
import itertools

import pytest
import pytest_asyncio
from db import Base
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from src.services import answer_service as answer_module
from src.services import extraction as extraction_module
from src.services import portal as portal_module
from src.services import storage as storage_module
from src.services.answer_service import (
    BATCH_ITEM_COMPLETED,
    BatchItemStatus,
    GeneratedAnswer,
    UnknownBatchJob,
)
from src.services.portal import PortalError
from src.services.storage import StorageService, StoredObject

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'workflow.db'}", poolclass=NullPool)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------


class FakeStorage:
    """In-memory blob store with switchable failures."""

    build_checklist_key = staticmethod(StorageService.build_checklist_key)
    build_document_key = staticmethod(StorageService.build_document_key)

    def __init__(self):
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_upload = False
        self.fail_delete = False

    async def upload_file(self, file_data, object_key, content_type, metadata=None):
        if self.fail_upload:
            raise OSError("storage unavailable")
        self.objects[object_key] = file_data
        return StoredObject(key=object_key, url=f"http://blobs.test/{object_key}")

    async def delete_file(self, object_key):
        if self.fail_delete:
            raise OSError("storage unavailable")
        self.objects.pop(object_key, None)
        self.deleted.append(object_key)


class FakeExtractor:
    def __init__(self):
        self.questions = ["Do you encrypt data at rest?", "Do you run background checks?"]
        self.error: Exception | None = None
        self.calls = 0

    async def extract(self, file_data, content_type):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.questions)


class FakeAnswerService:
    """Answers on demand; batch jobs report whatever the test scripts."""

    def __init__(self):
        self.answer = "Yes, AES-256."
        self.confidence = 0.9
        self.error: Exception | None = None
        self.generate_calls: list[tuple[str, str]] = []
        self.batches: dict[str, list] = {}
        self.batch_contexts: list[str] = []
        self.poll_calls = 0
        self.released: list[str] = []
        # Called with (job_id, items, attempt); returns {question_id: BatchItemStatus}
        self.poll_script = None
        self._ids = itertools.count(1)

    async def generate(self, question_text, context=""):
        self.generate_calls.append((question_text, context))
        if self.error is not None:
            raise self.error
        return GeneratedAnswer(answer=self.answer, confidence=self.confidence)

    async def generate_batch(self, items, context=""):
        job_id = f"job-{next(self._ids)}"
        self.batches[job_id] = list(items)
        self.batch_contexts.append(context)
        return job_id

    async def poll_status(self, job_id):
        if job_id not in self.batches or job_id in self.released:
            raise UnknownBatchJob(f"Unknown batch job: {job_id}")
        self.poll_calls += 1
        items = self.batches[job_id]
        if self.poll_script is None:
            return {
                item.question_id: BatchItemStatus(
                    status=BATCH_ITEM_COMPLETED, answer=f"Answer to {item.question_text}",
                    confidence=0.8,
                )
                for item in items
            }
        return self.poll_script(job_id, items, self.poll_calls)

    def release_job(self, job_id):
        self.released.append(job_id)


class FakePortal:
    def __init__(self):
        self.payloads: list[dict] = []
        self.fail = False
        self._ids = itertools.count(100)

    async def create_submission(self, payload):
        if self.fail:
            raise PortalError("portal down")
        self.payloads.append(payload)
        return f"portal-{next(self._ids)}"


@pytest.fixture
def fake_storage(monkeypatch):
    fake = FakeStorage()
    monkeypatch.setattr(storage_module, "_service", fake)
    return fake


@pytest.fixture
def fake_extractor(monkeypatch):
    fake = FakeExtractor()
    monkeypatch.setattr(extraction_module, "_extractor", fake)
    return fake


@pytest.fixture
def fake_answers(monkeypatch):
    fake = FakeAnswerService()
    monkeypatch.setattr(answer_module, "_service", fake)
    return fake


@pytest.fixture
def fake_portal(monkeypatch):
    fake = FakePortal()
    monkeypatch.setattr(portal_module, "_client", fake)
    return fake


@pytest.fixture
def no_sleep():
    """Poll sleep that records intervals without waiting."""
    waits: list[float] = []

    async def _sleep(seconds):
        waits.append(seconds)
        await asyncio.sleep(0)

    _sleep.waits = waits
    return _sleep
