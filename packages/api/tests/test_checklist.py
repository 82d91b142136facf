# This project was developed with assistance from AI tools.
"""Tests for the checklist store: upload/extraction, manual questions, delete, reads."""

import pytest
from db import Checklist, ExtractionStatus, Question, QuestionStatus, SupportingDocument
from sqlalchemy import func, select

from src.services.checklist import (
    MANUAL_GROUP_NAME,
    add_manual_question,
    create_checklist_from_upload,
    delete_checklist,
    get_vendor_stats,
    group_questions_by_checklist,
    list_checklists,
)
from src.services.errors import (
    EmptyExtractionFailure,
    ExtractionFailure,
    NetworkFailure,
    ValidationFailure,
)
from src.services.extraction import QuestionExtractionError
from tests.factories import answer_question, attach_document, create_checklist


async def _only_checklist(session_factory, vendor_id=1):
    async with session_factory() as s:
        return (
            await s.execute(select(Checklist).where(Checklist.vendor_id == vendor_id))
        ).scalar_one()


async def _count(session_factory, model):
    async with session_factory() as s:
        return (await s.execute(select(func.count(model.id)))).scalar()


# ---------------------------------------------------------------------------
# Upload and extraction
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_upload_extracts_ordered_pending_questions(session, fake_storage, fake_extractor):
    checklist = await create_checklist_from_upload(
        session, 1, "Vendor Review.pdf", "application/pdf", b"%PDF-1.4 fake"
    )

    assert checklist.extraction_status == ExtractionStatus.COMPLETED
    assert checklist.name == "Vendor Review"
    assert checklist.storage_key == f"checklists/1/{checklist.id}/Vendor Review.pdf"
    assert fake_storage.objects[checklist.storage_key] == b"%PDF-1.4 fake"
    assert [q.question_text for q in checklist.questions] == fake_extractor.questions
    assert [q.question_order for q in checklist.questions] == [1, 2]
    assert all(q.status == QuestionStatus.PENDING for q in checklist.questions)


@pytest.mark.asyncio
async def test_upload_uses_explicit_name(session, fake_storage, fake_extractor):
    checklist = await create_checklist_from_upload(
        session, 1, "q.txt", "text/plain", b"1. Encryption?", name="  SIG Lite  "
    )
    assert checklist.name == "SIG Lite"


@pytest.mark.asyncio
async def test_extractor_failure_keeps_checklist_in_error(
    session, session_factory, fake_storage, fake_extractor
):
    fake_extractor.error = QuestionExtractionError("Model returned malformed question list")

    with pytest.raises(ExtractionFailure) as exc_info:
        await create_checklist_from_upload(session, 1, "a.pdf", "application/pdf", b"%PDF")

    stored = await _only_checklist(session_factory)
    assert stored.extraction_status == ExtractionStatus.ERROR
    assert "malformed" in stored.error_message
    assert exc_info.value.context() == {
        "operation": "extract_questions",
        "checklist_id": stored.id,
    }
    assert await _count(session_factory, Question) == 0


@pytest.mark.asyncio
async def test_empty_extraction_is_an_error(
    session, session_factory, fake_storage, fake_extractor
):
    fake_extractor.questions = []

    with pytest.raises(EmptyExtractionFailure):
        await create_checklist_from_upload(session, 1, "blank.pdf", "application/pdf", b"%PDF")

    stored = await _only_checklist(session_factory)
    assert stored.extraction_status == ExtractionStatus.ERROR


@pytest.mark.asyncio
async def test_empty_extraction_allowed_when_configured(
    session, fake_storage, fake_extractor, monkeypatch
):
    from src.core.config import settings

    monkeypatch.setattr(settings, "EMPTY_EXTRACTION_IS_ERROR", False)
    fake_extractor.questions = []

    checklist = await create_checklist_from_upload(
        session, 1, "blank.pdf", "application/pdf", b"%PDF"
    )
    assert checklist.extraction_status == ExtractionStatus.COMPLETED
    assert checklist.questions == []


@pytest.mark.asyncio
async def test_storage_failure_skips_extraction(
    session, session_factory, fake_storage, fake_extractor
):
    fake_storage.fail_upload = True

    with pytest.raises(NetworkFailure) as exc_info:
        await create_checklist_from_upload(session, 1, "a.pdf", "application/pdf", b"%PDF")

    assert exc_info.value.operation == "upload_checklist"
    assert fake_extractor.calls == 0
    stored = await _only_checklist(session_factory)
    assert stored.extraction_status == ExtractionStatus.ERROR


@pytest.mark.parametrize(
    "vendor_id, content_type, data, match",
    [
        (None, "application/pdf", b"%PDF", "vendor"),
        (1, "image/png", b"\x89PNG", "Unsupported checklist type"),
        (1, "application/pdf", b"", "empty"),
    ],
)
@pytest.mark.asyncio
async def test_upload_validation_stores_nothing(
    session, session_factory, fake_storage, fake_extractor, vendor_id, content_type, data, match
):
    with pytest.raises(ValidationFailure, match=match):
        await create_checklist_from_upload(session, vendor_id, "x", content_type, data)

    assert fake_storage.objects == {}
    assert await _count(session_factory, Checklist) == 0


# ---------------------------------------------------------------------------
# Manual questions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_manual_questions_go_to_bucket_in_order(session):
    first = await add_manual_question(session, 1, "First?")
    second = await add_manual_question(
        session, 1, "Second?", requires_document=True, document_description="ISO cert"
    )

    assert first.checklist_id is None
    assert (first.question_order, second.question_order) == (1, 2)
    assert second.status == QuestionStatus.PENDING
    assert second.requires_document is True
    assert second.document_description == "ISO cert"


@pytest.mark.asyncio
async def test_manual_question_appended_to_checklist(session):
    checklist, _ = await create_checklist(session)
    question = await add_manual_question(session, 1, "Extra?", checklist_id=checklist.id)
    assert question.checklist_id == checklist.id
    assert question.question_order == 4


@pytest.mark.asyncio
async def test_manual_question_rejected_on_failed_checklist(session):
    checklist, _ = await create_checklist(
        session, questions=(), extraction_status=ExtractionStatus.ERROR
    )
    with pytest.raises(ValidationFailure, match="successfully extracted"):
        await add_manual_question(session, 1, "Extra?", checklist_id=checklist.id)


@pytest.mark.asyncio
async def test_manual_question_validation(session):
    with pytest.raises(ValidationFailure, match="required"):
        await add_manual_question(session, 1, "   ")
    assert await add_manual_question(session, 1, "Q?", checklist_id=404) is None


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_cascades_questions_and_documents(session, session_factory, fake_storage):
    checklist, questions = await create_checklist(session)
    doc = await attach_document(session, questions[0])
    manual = await add_manual_question(session, 1, "Keep me?")

    assert await delete_checklist(session, 1, checklist.id) is True

    assert await _count(session_factory, Checklist) == 0
    assert await _count(session_factory, SupportingDocument) == 0
    async with session_factory() as s:
        remaining = (await s.execute(select(Question.id))).scalars().all()
    assert remaining == [manual.id]
    assert sorted(fake_storage.deleted) == sorted([doc.storage_key, checklist.storage_key])


@pytest.mark.asyncio
async def test_delete_reports_storage_cleanup_failure(session, session_factory, fake_storage):
    checklist, _ = await create_checklist(session)
    fake_storage.fail_delete = True

    with pytest.raises(NetworkFailure, match="could not be removed"):
        await delete_checklist(session, 1, checklist.id)
    assert await _count(session_factory, Checklist) == 0


@pytest.mark.asyncio
async def test_delete_unknown_checklist(session, fake_storage):
    assert await delete_checklist(session, 1, 404) is False


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_checklists_paginates(session):
    for name in ("A", "B", "C"):
        await create_checklist(session, name=name, questions=())
    await create_checklist(session, vendor_id=2, name="Other", questions=())

    page, total = await list_checklists(session, 1, offset=0, limit=2)
    assert total == 3
    assert len(page) == 2


@pytest.mark.asyncio
async def test_vendor_stats(session):
    _, questions = await create_checklist(session)
    await answer_question(session, questions[0])
    await answer_question(session, questions[1], done=True)

    stats = await get_vendor_stats(session, 1)
    assert stats == {
        "total_checklists": 1,
        "total_questions": 3,
        "pending": 1,
        "in_progress": 0,
        "completed": 1,
        "done": 1,
        "needs_support": 0,
    }


def test_grouping_puts_manual_bucket_last():
    first = Checklist(id=1, name="First", sent_to_trust_portal=True)
    second = Checklist(id=2, name="Second", sent_to_trust_portal=False)
    questions = [
        Question(id=10, checklist_id=2, question_order=1, question_text="b1"),
        Question(id=11, checklist_id=None, question_order=1, question_text="m1"),
        Question(id=12, checklist_id=1, question_order=2, question_text="a2"),
        Question(id=13, checklist_id=1, question_order=1, question_text="a1"),
        Question(id=14, checklist_id=99, question_order=1, question_text="orphan"),
    ]

    groups = group_questions_by_checklist([first, second], questions)

    assert [g.name for g in groups] == ["First", "Second", MANUAL_GROUP_NAME]
    assert [q.question_text for q in groups[0].questions] == ["a1", "a2"]
    assert groups[0].sent_to_trust_portal is True
    assert groups[-1].is_manual
    assert [q.question_text for q in groups[-1].questions] == ["m1"]


def test_grouping_always_includes_manual_bucket():
    groups = group_questions_by_checklist([], [])
    assert len(groups) == 1
    assert groups[0].is_manual
    assert groups[0].questions == []
