# This project was developed with assistance from AI tools.
"""Supporting document service.

Uploads evidence files to blob storage and records them against a question
(or as general vendor evidence). A document row is only committed once its
blob upload has succeeded; a delete only commits once the blob is gone.
"""

import logging

from db import Question, SupportingDocument
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from .audit import write_audit_event
from .errors import FileTooLarge, NetworkFailure, ValidationFailure
from .lifecycle import get_question
from .storage import get_storage_service

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/png",
    "text/plain",
    "text/csv",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def validate_vendor(vendor_id: int | None, operation: str) -> int:
    """Reject a missing vendor selection before any storage call."""
    if not vendor_id:
        raise ValidationFailure("A vendor must be selected", operation=operation)
    return vendor_id


async def list_vendor_documents(
    session: AsyncSession,
    vendor_id: int,
    *,
    question_id: int | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[SupportingDocument], int]:
    """Return a page of the vendor's documents, optionally for one question."""
    filters = [SupportingDocument.vendor_id == vendor_id]
    if question_id is not None:
        filters.append(SupportingDocument.question_id == question_id)

    count_stmt = select(func.count(SupportingDocument.id)).where(*filters)
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = (
        select(SupportingDocument)
        .where(*filters)
        .order_by(SupportingDocument.created_at.desc(), SupportingDocument.id.desc())
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def get_document(
    session: AsyncSession,
    vendor_id: int,
    document_id: int,
) -> SupportingDocument | None:
    stmt = select(SupportingDocument).where(
        SupportingDocument.id == document_id,
        SupportingDocument.vendor_id == vendor_id,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def upload_supporting_document(
    session: AsyncSession,
    vendor_id: int | None,
    filename: str,
    content_type: str,
    file_data: bytes,
    *,
    question_id: int | None = None,
) -> SupportingDocument | None:
    """Upload an evidence file and create its row.

    1. Validate vendor, content type and size (no storage call on failure)
    2. Verify the question belongs to the vendor, when one is given
    3. Create the row and flush to assign its id
    4. Upload the blob; on failure roll the row back and raise NetworkFailure
    5. Commit

    Returns None if ``question_id`` does not name one of the vendor's questions.
    """
    validate_vendor(vendor_id, "upload_document")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailure(
            f"Unsupported content type: {content_type}. "
            f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}",
            operation="upload_document",
            question_id=question_id,
        )
    max_bytes = settings.UPLOAD_MAX_SIZE_MB * 1024 * 1024
    if len(file_data) > max_bytes:
        raise FileTooLarge(
            f"File size {len(file_data)} exceeds maximum of {settings.UPLOAD_MAX_SIZE_MB}MB",
            operation="upload_document",
            question_id=question_id,
        )

    question: Question | None = None
    if question_id is not None:
        question = await get_question(session, vendor_id, question_id)
        if question is None:
            return None

    checklist_id = question.checklist_id if question else None
    doc = SupportingDocument(
        question_id=question_id,
        vendor_id=vendor_id,
        filename=filename,
        file_type=content_type,
        file_size=len(file_data),
    )
    session.add(doc)
    await session.flush()

    storage = get_storage_service()
    object_key = storage.build_document_key(vendor_id, question_id, filename)
    try:
        stored = await storage.upload_file(
            file_data,
            object_key,
            content_type,
            metadata={"vendor_id": str(vendor_id), "document_id": str(doc.id)},
        )
    except Exception as exc:
        await session.rollback()
        logger.warning("Upload of %s for vendor %s failed: %s", filename, vendor_id, exc)
        raise NetworkFailure(
            "upload_document",
            f"Storage upload failed for {filename}",
            checklist_id=checklist_id,
            question_id=question_id,
        ) from exc

    doc.storage_key = stored.key
    doc.storage_url = stored.url

    await write_audit_event(
        session,
        event_type="document_uploaded",
        vendor_id=vendor_id,
        checklist_id=checklist_id,
        question_id=question_id,
        event_data={"document_id": doc.id, "filename": filename, "file_size": len(file_data)},
    )
    await session.commit()
    await session.refresh(doc)
    logger.info("Document %s uploaded for question %s", doc.id, question_id)
    return doc


async def delete_supporting_document(
    session: AsyncSession,
    vendor_id: int,
    document_id: int,
) -> bool:
    """Delete a document row and its blob in one step.

    Returns False if the document is not found. A blob failure rolls the
    row deletion back and raises NetworkFailure.
    """
    doc = await get_document(session, vendor_id, document_id)
    if doc is None:
        return False

    question_id = doc.question_id
    storage_key = doc.storage_key
    await session.delete(doc)
    await session.flush()

    if storage_key:
        try:
            await get_storage_service().delete_file(storage_key)
        except Exception as exc:
            await session.rollback()
            raise NetworkFailure(
                "delete_document",
                f"Storage delete failed for document {document_id}",
                question_id=question_id,
            ) from exc

    await write_audit_event(
        session,
        event_type="document_deleted",
        vendor_id=vendor_id,
        question_id=question_id,
        event_data={"document_id": document_id},
    )
    await session.commit()
    return True
