# This project was developed with assistance from AI tools.
"""Question lifecycle state machine.

Every status write on a Question goes through ``_transition`` so the
transition table on ``QuestionStatus`` is the only source of truth. The
in-memory operations mutate a Question without touching the session; the
async wrappers at the bottom load, mutate, audit and commit.

``status`` and ``is_done`` are kept as separate fields: ``completed`` means
the system produced an answer, ``is_done`` means a human confirmed it.
"""

import logging

from db import Question, QuestionStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .audit import write_audit_event
from .errors import InvalidTransition, ValidationFailure

logger = logging.getLogger(__name__)


def _has_answer(text: str | None) -> bool:
    return bool(text and text.strip())


def _transition(question: Question, target: QuestionStatus) -> None:
    current = question.status or QuestionStatus.PENDING
    if current == target:
        return
    allowed = QuestionStatus.valid_transitions().get(current, frozenset())
    if target not in allowed:
        raise InvalidTransition(
            f"Cannot move question from '{current.value}' to '{target.value}'",
            operation="transition",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    if target in QuestionStatus.answered_statuses() and not _has_answer(question.answer):
        raise InvalidTransition(
            f"Question cannot be '{target.value}' without an answer",
            operation="transition",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    question.status = target


# ---------------------------------------------------------------------------
# Generation-driven transitions
# ---------------------------------------------------------------------------


def start_generation(question: Question) -> None:
    """Mark a question as dispatched to the AI service."""
    _transition(question, QuestionStatus.IN_PROGRESS)


def complete_generation(question: Question, answer: str, confidence: float | None) -> None:
    """Record a generated answer and move to ``completed``.

    Only answer, confidence and status are touched; the document
    requirement belongs to the requirement gate.
    """
    if not _has_answer(answer):
        raise ValidationFailure(
            "Generated answer is empty",
            operation="complete_generation",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    # Batch results land on pending questions; late single results may land anywhere.
    _transition(question, QuestionStatus.IN_PROGRESS)
    question.answer = answer.strip()
    question.confidence = None if confidence is None else min(max(float(confidence), 0.0), 1.0)
    _transition(question, QuestionStatus.COMPLETED)
    question.is_done = False


def fail_generation(question: Question) -> None:
    """Park a question at ``needs-support`` until a human retries."""
    _transition(question, QuestionStatus.IN_PROGRESS)
    _transition(question, QuestionStatus.NEEDS_SUPPORT)


# ---------------------------------------------------------------------------
# Human edit transitions
# ---------------------------------------------------------------------------


def toggle_edit(question: Question) -> bool:
    """Enter edit mode, or leave it without saving if already editing.

    Returns True when the question is now in edit mode. Entering edit
    always revokes human confirmation, so a pre-edit ``done`` comes back
    as ``completed`` on cancel.
    """
    if question.is_editing:
        restore = question.pre_edit_status or QuestionStatus.PENDING
        if restore == QuestionStatus.DONE:
            restore = QuestionStatus.COMPLETED
        if restore in QuestionStatus.answered_statuses() and not _has_answer(question.answer):
            restore = QuestionStatus.PENDING
        _transition(question, restore)
        question.is_editing = False
        question.pre_edit_status = None
        return False

    if question.status == QuestionStatus.IN_PROGRESS:
        raise InvalidTransition(
            "Question has an answer generation in flight",
            operation="toggle_edit",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    question.pre_edit_status = question.status
    # A human edit withdraws the question from any outstanding batch job and
    # supersedes every single-question call already dispatched.
    question.batch_job_id = None
    question.answered_seq = question.generation_seq or 0
    _transition(question, QuestionStatus.IN_PROGRESS)
    question.is_editing = True
    question.is_done = False
    return True


def save_edit(question: Question, answer: str, *, mark_done: bool = False) -> None:
    """Save a human-written answer and leave edit mode."""
    if not question.is_editing:
        raise InvalidTransition(
            "Question is not in edit mode",
            operation="save_edit",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    if not _has_answer(answer):
        raise ValidationFailure(
            "Answer text is required",
            operation="save_edit",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    question.answer = answer.strip()
    target = QuestionStatus.DONE if mark_done else QuestionStatus.COMPLETED
    _transition(question, target)
    question.is_done = mark_done
    question.is_editing = False
    question.pre_edit_status = None


def mark_done(question: Question) -> None:
    """Human confirmation of a completed answer."""
    if question.status != QuestionStatus.COMPLETED:
        raise InvalidTransition(
            "Only completed questions can be confirmed",
            operation="mark_done",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )
    _transition(question, QuestionStatus.DONE)
    question.is_done = True


# ---------------------------------------------------------------------------
# Session-backed wrappers
# ---------------------------------------------------------------------------


async def get_question(
    session: AsyncSession,
    vendor_id: int,
    question_id: int,
) -> Question | None:
    """Return a vendor's question, or None if not found."""
    stmt = select(Question).where(Question.id == question_id, Question.vendor_id == vendor_id)
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def begin_or_cancel_edit(
    session: AsyncSession,
    vendor_id: int,
    question_id: int,
) -> Question | None:
    """Toggle edit mode on a question. Returns None if not found."""
    question = await get_question(session, vendor_id, question_id)
    if question is None:
        return None

    editing = toggle_edit(question)
    await write_audit_event(
        session,
        event_type="question_edit_started" if editing else "question_edit_cancelled",
        vendor_id=vendor_id,
        checklist_id=question.checklist_id,
        question_id=question.id,
        event_data={"status": question.status.value},
    )
    await session.commit()
    await session.refresh(question)
    return question


async def save_question_edit(
    session: AsyncSession,
    vendor_id: int,
    question_id: int,
    answer: str,
    *,
    mark_done: bool = False,
) -> Question | None:
    """Persist a human edit. Returns None if not found."""
    question = await get_question(session, vendor_id, question_id)
    if question is None:
        return None

    save_edit(question, answer, mark_done=mark_done)
    await write_audit_event(
        session,
        event_type="question_edit_saved",
        vendor_id=vendor_id,
        checklist_id=question.checklist_id,
        question_id=question.id,
        event_data={"status": question.status.value, "is_done": question.is_done},
    )
    await session.commit()
    await session.refresh(question)
    return question


async def confirm_question(
    session: AsyncSession,
    vendor_id: int,
    question_id: int,
) -> Question | None:
    """Mark a completed question as done. Returns None if not found."""
    question = await get_question(session, vendor_id, question_id)
    if question is None:
        return None

    mark_done(question)
    await write_audit_event(
        session,
        event_type="question_confirmed",
        vendor_id=vendor_id,
        checklist_id=question.checklist_id,
        question_id=question.id,
    )
    await session.commit()
    await session.refresh(question)
    logger.info("Question %s confirmed", question.id)
    return question
