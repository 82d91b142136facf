# This project was developed with assistance from AI tools.
"""Checklist completeness evaluation.

Aggregates question answer state and document requirements into a
submission-readiness summary. ``evaluate_completion`` is pure;
``check_checklist_completeness`` loads committed state and calls it, so
results are only ever computed after an upload or delete has resolved.
"""

import logging
from collections.abc import Sequence

from db import Checklist, Question, QuestionStatus, SupportingDocument
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.completeness import CompletenessResponse, IncompleteQuestion
from .batch_results import reconcile_batch_jobs
from .requirements import is_satisfied, load_question_documents

logger = logging.getLogger(__name__)


def has_usable_answer(question: Question) -> bool:
    """An answer counts only under ``completed``/``done`` and only if non-blank."""
    return question.status in QuestionStatus.answered_statuses() and bool(
        question.answer and question.answer.strip()
    )


def evaluate_completion(
    questions: Sequence[Question],
    documents: Sequence[SupportingDocument],
    checklist_id: int | None = None,
) -> CompletenessResponse:
    """Compute readiness for a set of questions.

    A question is incomplete if it lacks a usable answer or if its document
    requirement is not satisfied. A checklist with no questions is never
    complete.
    """
    incomplete: list[IncompleteQuestion] = []
    completed = 0
    confirmed = 0
    needing_docs = 0
    with_docs = 0

    for q in questions:
        answered = has_usable_answer(q)
        if answered:
            completed += 1
            if q.is_done:
                confirmed += 1

        satisfied = is_satisfied(q, documents)
        if q.requires_document:
            needing_docs += 1
            if satisfied:
                with_docs += 1

        if not answered or not satisfied:
            incomplete.append(
                IncompleteQuestion(
                    question_id=q.id,
                    question_text=q.question_text,
                    status=q.status,
                    missing_answer=not answered,
                    missing_document=not satisfied,
                    document_description=q.document_description if not satisfied else None,
                )
            )

    return CompletenessResponse(
        checklist_id=checklist_id,
        is_complete=len(questions) > 0 and not incomplete,
        total_questions=len(questions),
        completed_questions=completed,
        confirmed_questions=confirmed,
        questions_needing_docs=needing_docs,
        questions_with_docs=with_docs,
        incomplete_questions=incomplete,
    )


async def load_checklist_state(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
) -> tuple[Checklist, list[Question], list[SupportingDocument]] | None:
    """Fresh checklist, questions and their documents. None if not found."""
    checklist_stmt = select(Checklist).where(
        Checklist.id == checklist_id,
        Checklist.vendor_id == vendor_id,
    )
    checklist = (await session.execute(checklist_stmt)).scalar_one_or_none()
    if checklist is None:
        return None

    await reconcile_batch_jobs(session, vendor_id, checklist_id=checklist_id)
    q_stmt = (
        select(Question)
        .where(Question.checklist_id == checklist_id)
        .order_by(Question.question_order, Question.id)
        .execution_options(populate_existing=True)
    )
    questions = list((await session.execute(q_stmt)).scalars().all())
    documents = await load_question_documents(session, [q.id for q in questions])
    return checklist, questions, documents


async def check_checklist_completeness(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
) -> CompletenessResponse | None:
    """Completeness summary for one checklist. None if not found."""
    state = await load_checklist_state(session, vendor_id, checklist_id)
    if state is None:
        return None

    _, questions, documents = state
    summary = evaluate_completion(questions, documents, checklist_id)
    logger.debug(
        "Checklist %s completeness: %d/%d complete, %d incomplete",
        checklist_id,
        summary.completed_questions,
        summary.total_questions,
        len(summary.incomplete_questions),
    )
    return summary
