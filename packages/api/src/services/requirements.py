# This project was developed with assistance from AI tools.
"""Document requirement gate.

Satisfaction is derived on every read from the current document set; no
result is cached, so an upload or delete is visible to the next read.
"""

import logging
from collections.abc import Iterable

from db import Question, SupportingDocument
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .audit import write_audit_event
from .lifecycle import get_question

logger = logging.getLogger(__name__)


def is_satisfied(question: Question, documents: Iterable[SupportingDocument]) -> bool:
    """True unless the question requires evidence and none references it."""
    if not question.requires_document:
        return True
    return any(d.question_id == question.id for d in documents)


def documents_for_question(
    question: Question,
    documents: Iterable[SupportingDocument],
) -> list[SupportingDocument]:
    return [d for d in documents if d.question_id == question.id]


async def load_question_documents(
    session: AsyncSession,
    question_ids: list[int],
) -> list[SupportingDocument]:
    """Documents attached to any of the given questions."""
    if not question_ids:
        return []
    stmt = (
        select(SupportingDocument)
        .where(SupportingDocument.question_id.in_(question_ids))
        .order_by(SupportingDocument.id)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def set_document_requirement(
    session: AsyncSession,
    vendor_id: int,
    question_id: int,
    requires_document: bool,
    document_description: str | None = None,
) -> Question | None:
    """Human edit of a question's evidence requirement.

    Returns None if the question is not found.
    """
    question = await get_question(session, vendor_id, question_id)
    if question is None:
        return None

    question.requires_document = requires_document
    question.document_description = document_description if requires_document else None

    await write_audit_event(
        session,
        event_type="document_requirement_changed",
        vendor_id=vendor_id,
        checklist_id=question.checklist_id,
        question_id=question.id,
        event_data={
            "requires_document": requires_document,
            "document_description": question.document_description,
        },
    )
    await session.commit()
    await session.refresh(question)
    return question
