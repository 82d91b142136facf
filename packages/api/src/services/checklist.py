# This project was developed with assistance from AI tools.
"""Checklist store.

Owns checklists and their questions: upload and extraction, manual
questions, cascading delete, and read projections. Extraction status moves
``uploading -> extracting -> completed | error``; a failed extraction keeps
the checklist in ``error`` so it stays visible for inspection and re-upload.
"""

import logging
import os
from collections.abc import Sequence
from dataclasses import dataclass, field

from db import Checklist, ExtractionStatus, Question, QuestionStatus, SupportingDocument
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from .audit import write_audit_event
from .batch_results import reconcile_batch_jobs
from .document import validate_vendor
from .errors import (
    EmptyExtractionFailure,
    ExtractionFailure,
    FileTooLarge,
    NetworkFailure,
    ValidationFailure,
)
from .extraction import PDF_CONTENT_TYPE, TEXT_CONTENT_TYPES, get_question_extractor
from .storage import get_storage_service

logger = logging.getLogger(__name__)

CHECKLIST_CONTENT_TYPES = {PDF_CONTENT_TYPE, *TEXT_CONTENT_TYPES}

MANUAL_GROUP_NAME = "Manual Questions"


@dataclass
class ChecklistGroup:
    """Questions under one checklist; ``checklist_id`` None is the manual bucket."""

    checklist_id: int | None
    name: str
    sent_to_trust_portal: bool = False
    questions: list[Question] = field(default_factory=list)

    @property
    def is_manual(self) -> bool:
        return self.checklist_id is None


def _set_extraction_status(
    checklist: Checklist,
    target: ExtractionStatus,
    error_message: str | None = None,
) -> None:
    current = checklist.extraction_status or ExtractionStatus.UPLOADING
    if current != target and target not in ExtractionStatus.valid_transitions()[current]:
        raise ValidationFailure(
            f"Cannot move checklist from '{current.value}' to '{target.value}'",
            operation="extraction_status",
            checklist_id=checklist.id,
        )
    checklist.extraction_status = target
    checklist.error_message = error_message


async def _fail_checklist(session: AsyncSession, checklist: Checklist, message: str) -> None:
    _set_extraction_status(checklist, ExtractionStatus.ERROR, message)
    await write_audit_event(
        session,
        event_type="checklist_extraction_failed",
        vendor_id=checklist.vendor_id,
        checklist_id=checklist.id,
        event_data={"error": message},
    )
    await session.commit()


# ---------------------------------------------------------------------------
# Upload and extraction
# ---------------------------------------------------------------------------


async def create_checklist_from_upload(
    session: AsyncSession,
    vendor_id: int | None,
    filename: str,
    content_type: str,
    file_data: bytes,
    name: str | None = None,
) -> Checklist:
    """Store an uploaded checklist and extract its questions.

    1. Validate vendor, content type and size (nothing stored on failure)
    2. Persist the checklist at ``uploading``
    3. Store the original file, move to ``extracting``
    4. Run the extractor; on success add ordered ``pending`` questions and
       move to ``completed``, otherwise move to ``error`` and raise

    Raises ExtractionFailure (or EmptyExtractionFailure when nothing was
    extracted) after committing the ``error`` state.
    """
    validate_vendor(vendor_id, "create_checklist")
    if content_type not in CHECKLIST_CONTENT_TYPES:
        raise ValidationFailure(
            f"Unsupported checklist type: {content_type}. "
            f"Allowed: {', '.join(sorted(CHECKLIST_CONTENT_TYPES))}",
            operation="create_checklist",
        )
    if not file_data:
        raise ValidationFailure("Checklist file is empty", operation="create_checklist")
    max_bytes = settings.CHECKLIST_MAX_SIZE_MB * 1024 * 1024
    if len(file_data) > max_bytes:
        raise FileTooLarge(
            f"File size {len(file_data)} exceeds maximum of {settings.CHECKLIST_MAX_SIZE_MB}MB",
            operation="create_checklist",
        )

    checklist = Checklist(
        vendor_id=vendor_id,
        name=(name or "").strip() or os.path.splitext(os.path.basename(filename))[0] or filename,
        original_filename=filename,
        file_type=content_type,
        file_size=len(file_data),
        extraction_status=ExtractionStatus.UPLOADING,
    )
    session.add(checklist)
    await session.flush()
    await write_audit_event(
        session,
        event_type="checklist_created",
        vendor_id=vendor_id,
        checklist_id=checklist.id,
        event_data={"filename": filename, "file_size": len(file_data)},
    )
    await session.commit()
    checklist_id = checklist.id

    storage = get_storage_service()
    try:
        stored = await storage.upload_file(
            file_data,
            storage.build_checklist_key(vendor_id, checklist_id, filename),
            content_type,
            metadata={"vendor_id": str(vendor_id), "checklist_id": str(checklist_id)},
        )
    except Exception as exc:
        await _fail_checklist(session, checklist, f"Storage upload failed: {exc}")
        raise NetworkFailure(
            "upload_checklist",
            f"Storage upload failed for {filename}",
            checklist_id=checklist_id,
        ) from exc

    checklist.storage_key = stored.key
    checklist.storage_url = stored.url
    _set_extraction_status(checklist, ExtractionStatus.EXTRACTING)
    await session.commit()

    try:
        extracted = await get_question_extractor().extract(file_data, content_type)
    except Exception as exc:
        logger.warning("Extraction failed for checklist %s: %s", checklist_id, exc)
        await _fail_checklist(session, checklist, str(exc) or "Question extraction failed")
        raise ExtractionFailure(
            f"Question extraction failed: {exc}",
            operation="extract_questions",
            checklist_id=checklist_id,
        ) from exc

    if not extracted and settings.EMPTY_EXTRACTION_IS_ERROR:
        await _fail_checklist(session, checklist, "No questions found in checklist")
        raise EmptyExtractionFailure(
            "No questions could be extracted from the checklist",
            operation="extract_questions",
            checklist_id=checklist_id,
        )

    for order, text in enumerate(extracted, start=1):
        session.add(
            Question(
                checklist_id=checklist_id,
                vendor_id=vendor_id,
                question_text=text,
                question_order=order,
                status=QuestionStatus.PENDING,
            )
        )
    _set_extraction_status(checklist, ExtractionStatus.COMPLETED)
    await write_audit_event(
        session,
        event_type="checklist_extracted",
        vendor_id=vendor_id,
        checklist_id=checklist_id,
        event_data={"question_count": len(extracted)},
    )
    await session.commit()
    logger.info("Checklist %s extracted %d questions", checklist_id, len(extracted))

    return await get_checklist(session, vendor_id, checklist_id, with_questions=True)


# ---------------------------------------------------------------------------
# Manual questions
# ---------------------------------------------------------------------------


async def add_manual_question(
    session: AsyncSession,
    vendor_id: int | None,
    question_text: str,
    *,
    checklist_id: int | None = None,
    requires_document: bool = False,
    document_description: str | None = None,
) -> Question | None:
    """Append a hand-written ``pending`` question.

    Goes to the end of ``checklist_id`` when given, else to the vendor's
    manual bucket. Returns None if the checklist is not found.
    """
    validate_vendor(vendor_id, "add_manual_question")
    text = (question_text or "").strip()
    if not text:
        raise ValidationFailure(
            "Question text is required",
            operation="add_manual_question",
            checklist_id=checklist_id,
        )

    order_stmt = select(func.max(Question.question_order)).where(Question.vendor_id == vendor_id)
    if checklist_id is not None:
        checklist = await get_checklist(session, vendor_id, checklist_id)
        if checklist is None:
            return None
        if checklist.extraction_status != ExtractionStatus.COMPLETED:
            raise ValidationFailure(
                "Questions can only be added to a successfully extracted checklist",
                operation="add_manual_question",
                checklist_id=checklist_id,
            )
        order_stmt = order_stmt.where(Question.checklist_id == checklist_id)
    else:
        order_stmt = order_stmt.where(Question.checklist_id.is_(None))
    last_order = (await session.execute(order_stmt)).scalar() or 0

    question = Question(
        checklist_id=checklist_id,
        vendor_id=vendor_id,
        question_text=text,
        question_order=last_order + 1,
        status=QuestionStatus.PENDING,
        requires_document=requires_document,
        document_description=document_description if requires_document else None,
    )
    session.add(question)
    await session.flush()
    await write_audit_event(
        session,
        event_type="manual_question_added",
        vendor_id=vendor_id,
        checklist_id=checklist_id,
        question_id=question.id,
    )
    await session.commit()
    await session.refresh(question)
    return question


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------


async def delete_checklist(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
) -> bool:
    """Delete a checklist with its questions and their documents.

    The rows go in one transaction so no orphaned question is ever visible.
    Stored files are removed after the commit; any that cannot be removed
    raise NetworkFailure. Returns False if the checklist is not found.
    """
    checklist = await get_checklist(session, vendor_id, checklist_id)
    if checklist is None:
        return False

    question_ids = list(
        (
            await session.execute(select(Question.id).where(Question.checklist_id == checklist_id))
        ).scalars()
    )
    doc_keys: list[str] = []
    if question_ids:
        doc_keys = [
            key
            for key in (
                await session.execute(
                    select(SupportingDocument.storage_key).where(
                        SupportingDocument.question_id.in_(question_ids)
                    )
                )
            ).scalars()
            if key
        ]
        await session.execute(
            delete(SupportingDocument).where(SupportingDocument.question_id.in_(question_ids))
        )
    storage_keys = [*doc_keys, checklist.storage_key] if checklist.storage_key else doc_keys

    await session.execute(delete(Question).where(Question.checklist_id == checklist_id))
    await session.execute(delete(Checklist).where(Checklist.id == checklist_id))
    await write_audit_event(
        session,
        event_type="checklist_deleted",
        vendor_id=vendor_id,
        checklist_id=checklist_id,
        event_data={"questions": len(question_ids), "documents": len(doc_keys)},
    )
    await session.commit()
    logger.info("Checklist %s deleted with %d questions", checklist_id, len(question_ids))

    storage = get_storage_service()
    failed: list[str] = []
    for key in storage_keys:
        try:
            await storage.delete_file(key)
        except Exception:
            logger.exception("Failed to delete stored file %s", key)
            failed.append(key)
    if failed:
        raise NetworkFailure(
            "delete_checklist",
            f"{len(failed)} stored files could not be removed",
            checklist_id=checklist_id,
        )
    return True


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def get_checklist(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
    *,
    with_questions: bool = False,
) -> Checklist | None:
    stmt = select(Checklist).where(Checklist.id == checklist_id, Checklist.vendor_id == vendor_id)
    if with_questions:
        stmt = stmt.options(selectinload(Checklist.questions)).execution_options(
            populate_existing=True
        )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def list_checklists(
    session: AsyncSession,
    vendor_id: int,
    *,
    offset: int = 0,
    limit: int = 20,
) -> tuple[list[Checklist], int]:
    """Return a page of the vendor's checklists, newest first."""
    count_stmt = select(func.count(Checklist.id)).where(Checklist.vendor_id == vendor_id)
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = (
        select(Checklist)
        .where(Checklist.vendor_id == vendor_id)
        .order_by(Checklist.created_at.desc(), Checklist.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def list_vendor_questions(
    session: AsyncSession,
    vendor_id: int,
    *,
    status: QuestionStatus | None = None,
) -> list[Question]:
    await reconcile_batch_jobs(session, vendor_id)
    stmt = select(Question).where(Question.vendor_id == vendor_id)
    if status is not None:
        stmt = stmt.where(Question.status == status)
    stmt = stmt.order_by(Question.checklist_id, Question.question_order, Question.id)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_vendor_stats(session: AsyncSession, vendor_id: int) -> dict[str, int]:
    """Checklist count and question counts by status."""
    checklist_count = (
        await session.execute(
            select(func.count(Checklist.id)).where(Checklist.vendor_id == vendor_id)
        )
    ).scalar() or 0

    rows = await session.execute(
        select(Question.status, func.count(Question.id))
        .where(Question.vendor_id == vendor_id)
        .group_by(Question.status)
    )
    by_status = {status: count for status, count in rows.all()}

    return {
        "total_checklists": checklist_count,
        "total_questions": sum(by_status.values()),
        "pending": by_status.get(QuestionStatus.PENDING, 0),
        "in_progress": by_status.get(QuestionStatus.IN_PROGRESS, 0),
        "completed": by_status.get(QuestionStatus.COMPLETED, 0),
        "done": by_status.get(QuestionStatus.DONE, 0),
        "needs_support": by_status.get(QuestionStatus.NEEDS_SUPPORT, 0),
    }


def group_questions_by_checklist(
    checklists: Sequence[Checklist],
    questions: Sequence[Question],
) -> list[ChecklistGroup]:
    """Project questions onto their checklists, plus the manual bucket.

    Computed on demand from the current rows; the manual bucket is always
    present and always last. Questions whose checklist is not in
    ``checklists`` are left out.
    """
    groups: dict[int, ChecklistGroup] = {
        c.id: ChecklistGroup(
            checklist_id=c.id,
            name=c.name,
            sent_to_trust_portal=bool(c.sent_to_trust_portal),
        )
        for c in checklists
    }
    manual = ChecklistGroup(checklist_id=None, name=MANUAL_GROUP_NAME)

    for q in sorted(questions, key=lambda q: (q.question_order, q.id)):
        if q.checklist_id is None:
            manual.questions.append(q)
        elif q.checklist_id in groups:
            groups[q.checklist_id].questions.append(q)

    return [*groups.values(), manual]
