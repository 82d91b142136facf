# This project was developed with assistance from AI tools.
"""Answer generation orchestrator.

Single-question generation is a request/response call ordered by a
per-question sequence number: every dispatch bumps ``generation_seq`` and a
result is applied only if no newer call has already been applied
(``answered_seq``) and the question is not being edited. Batch generation
sends all pending questions in one job and observes it through a bounded
poll loop; running out of attempts is a soft timeout that leaves unfinished
questions ``pending`` and still owned by the job, whose late results are
applied by ``reconcile_batch_jobs``.
"""

import asyncio
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from db import Checklist, ExtractionStatus, Question, QuestionStatus, SupportingDocument
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from .answer_prompts import build_generation_context
from .answer_service import BatchItem, get_answer_service
from .audit import write_audit_event
from .batch_results import apply_batch_statuses, reconcile_batch_jobs
from .document import validate_vendor
from .errors import GenerationConflict, GenerationFailure, NetworkFailure, ValidationFailure
from .lifecycle import complete_generation, fail_generation, start_generation
from .polling import PollPolicy, Sleep, poll_until_settled

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BatchProgress:
    completed_count: int
    total_count: int
    next_pending_question_text: str | None


@dataclass(frozen=True)
class BatchGenerationResult:
    job_id: str | None
    total_count: int
    completed_count: int
    pending_count: int
    failed_count: int
    attempts: int
    timed_out: bool
    message: str


ProgressCallback = Callable[[BatchProgress], None]


# ---------------------------------------------------------------------------
# Context enrichment (request-scoped, never persisted)
# ---------------------------------------------------------------------------


async def _load_context(
    session: AsyncSession,
    vendor_id: int,
    checklist_name: str | None,
) -> str:
    stmt = (
        select(SupportingDocument)
        .where(SupportingDocument.vendor_id == vendor_id)
        .order_by(SupportingDocument.id)
    )
    documents = (await session.execute(stmt)).scalars().all()
    evidence = [
        {"filename": d.filename, "file_type": d.file_type, "question_id": d.question_id}
        for d in documents
    ]
    return build_generation_context(checklist_name, evidence)


async def _require_extracted(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int,
    question_id: int | None = None,
) -> Checklist | None:
    stmt = select(Checklist).where(Checklist.id == checklist_id, Checklist.vendor_id == vendor_id)
    checklist = (await session.execute(stmt)).scalar_one_or_none()
    if checklist is None:
        return None
    if checklist.extraction_status != ExtractionStatus.COMPLETED:
        raise ValidationFailure(
            f"Checklist extraction is '{checklist.extraction_status.value}', not completed",
            operation="generate_answer",
            checklist_id=checklist_id,
            question_id=question_id,
        )
    return checklist


# ---------------------------------------------------------------------------
# Single-question generation
# ---------------------------------------------------------------------------


async def generate_answer(
    session_factory: async_sessionmaker[AsyncSession],
    vendor_id: int,
    question_id: int,
    *,
    force: bool = False,
) -> Question | None:
    """Generate and store an answer for one question.

    Rejects a dispatch while the question is ``in-progress`` or enrolled in an
    outstanding batch job unless ``force`` is set (regenerate). Returns None
    if the question is not found. Raises GenerationFailure after moving the
    question to ``needs-support`` when the AI call fails.

    Each phase uses its own session so concurrent calls for the same
    question never share ORM state.
    """
    async with session_factory() as session:
        await reconcile_batch_jobs(session, vendor_id, question_ids=[question_id])
        stmt = (
            select(Question)
            .where(Question.id == question_id, Question.vendor_id == vendor_id)
            .with_for_update()
        )
        question = (await session.execute(stmt)).scalar_one_or_none()
        if question is None:
            return None

        checklist_name = None
        if question.checklist_id is not None:
            checklist = await _require_extracted(
                session, vendor_id, question.checklist_id, question.id
            )
            checklist_name = checklist.name if checklist else None

        if question.is_editing:
            raise GenerationConflict(
                "Question is being edited",
                operation="generate_answer",
                checklist_id=question.checklist_id,
                question_id=question.id,
            )
        busy = question.status == QuestionStatus.IN_PROGRESS or question.batch_job_id is not None
        if busy and not force:
            raise GenerationConflict(
                "Answer generation already in progress for this question",
                operation="generate_answer",
                checklist_id=question.checklist_id,
                question_id=question.id,
            )

        start_generation(question)
        question.is_done = False
        question.batch_job_id = None
        question.generation_seq = (question.generation_seq or 0) + 1
        seq = question.generation_seq
        checklist_id = question.checklist_id
        question_text = question.question_text
        context = await _load_context(session, vendor_id, checklist_name)
        await session.commit()

    error: Exception | None = None
    try:
        result = await get_answer_service().generate(question_text, context)
    except Exception as exc:
        logger.warning("Generation call %d for question %s failed: %s", seq, question_id, exc)
        error = exc

    async with session_factory() as session:
        stmt = (
            select(Question)
            .where(Question.id == question_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        question = (await session.execute(stmt)).scalar_one_or_none()
        if question is None:
            logger.info("Question %s deleted while generation %d was in flight", question_id, seq)
            return None

        if (question.answered_seq or 0) >= seq or question.is_editing:
            logger.info(
                "Ignoring stale generation %d for question %s (applied %s, editing %s)",
                seq,
                question_id,
                question.answered_seq,
                question.is_editing,
            )
            return question

        question.answered_seq = seq
        if error is None:
            complete_generation(question, result.answer, result.confidence)
            event_type = "answer_generated"
        else:
            fail_generation(question)
            event_type = "answer_generation_failed"

        await write_audit_event(
            session,
            event_type=event_type,
            vendor_id=vendor_id,
            checklist_id=checklist_id,
            question_id=question_id,
            event_data={"generation_seq": seq, "status": question.status.value},
        )
        await session.commit()
        await session.refresh(question)

    if error is not None:
        raise GenerationFailure(
            f"Answer generation failed: {error}",
            operation="generate_answer",
            checklist_id=checklist_id,
            question_id=question_id,
        ) from error
    return question


# ---------------------------------------------------------------------------
# Batch generation
# ---------------------------------------------------------------------------


async def _load_scope(
    session: AsyncSession,
    vendor_id: int,
    checklist_id: int | None,
) -> list[Question]:
    """All questions in the batch scope, re-read from the database."""
    stmt = select(Question).where(Question.vendor_id == vendor_id)
    if checklist_id is not None:
        stmt = stmt.where(Question.checklist_id == checklist_id)
    else:
        stmt = stmt.outerjoin(Checklist, Question.checklist_id == Checklist.id).where(
            or_(
                Question.checklist_id.is_(None),
                Checklist.extraction_status == ExtractionStatus.COMPLETED,
            )
        )
    stmt = stmt.order_by(
        Question.checklist_id, Question.question_order, Question.id
    ).execution_options(populate_existing=True)
    result = await session.execute(stmt)
    return list(result.scalars().all())


def _progress(
    scope: Sequence[Question], dispatched: set[int], job_id: str | None = None
) -> tuple[BatchProgress, list[Question]]:
    completed = [q for q in scope if q.status in QuestionStatus.answered_statuses()]
    still_pending = [
        q
        for q in scope
        if q.id in dispatched
        and q.status == QuestionStatus.PENDING
        and q.batch_job_id == job_id
    ]
    progress = BatchProgress(
        completed_count=len(completed),
        total_count=len(scope),
        next_pending_question_text=still_pending[0].question_text if still_pending else None,
    )
    return progress, still_pending


async def generate_batch_answers(
    session: AsyncSession,
    vendor_id: int | None,
    *,
    checklist_id: int | None = None,
    policy: PollPolicy | None = None,
    on_progress: ProgressCallback | None = None,
    sleep: Sleep = asyncio.sleep,
) -> BatchGenerationResult | None:
    """Answer every pending question in a checklist (or vendor-wide) as one job.

    Polls the job until no dispatched question is still pending or the
    policy's attempt budget runs out. Returns None if the checklist is not
    found.
    """
    validate_vendor(vendor_id, "generate_batch")
    policy = policy or PollPolicy.from_settings(settings)

    checklist_name = None
    if checklist_id is not None:
        checklist = await _require_extracted(session, vendor_id, checklist_id)
        if checklist is None:
            return None
        checklist_name = checklist.name

    await reconcile_batch_jobs(session, vendor_id, checklist_id=checklist_id)
    scope = await _load_scope(session, vendor_id, checklist_id)
    waiting = [q for q in scope if q.status == QuestionStatus.PENDING and not q.is_editing]
    # Questions still owned by an earlier job are left to that job.
    pending = [q for q in waiting if q.batch_job_id is None]
    if not pending:
        progress, _ = _progress(scope, set())
        in_flight = len(waiting)
        return BatchGenerationResult(
            job_id=None,
            total_count=progress.total_count,
            completed_count=progress.completed_count,
            pending_count=in_flight,
            failed_count=0,
            attempts=0,
            timed_out=False,
            message=(
                f"{in_flight} questions are still being answered by an earlier batch job"
                if in_flight
                else "No pending questions to generate"
            ),
        )

    context = await _load_context(session, vendor_id, checklist_name)
    service = get_answer_service()
    items = [BatchItem(question_id=q.id, question_text=q.question_text) for q in pending]
    try:
        job_id = await service.generate_batch(items, context)
    except Exception as exc:
        raise NetworkFailure(
            "generate_batch",
            f"Batch generation request failed: {exc}",
            checklist_id=checklist_id,
        ) from exc

    dispatched = {q.id for q in pending}
    for q in pending:
        q.batch_job_id = job_id
    await session.commit()
    logger.info("Batch job %s dispatched %d questions", job_id, len(dispatched))

    failed: set[int] = set()

    async def _check(attempt: int) -> bool:
        try:
            statuses = await service.poll_status(job_id)
        except Exception as exc:
            raise NetworkFailure(
                "poll_batch_status",
                f"Batch status poll failed: {exc}",
                checklist_id=checklist_id,
            ) from exc

        released, newly_failed = await apply_batch_statuses(session, job_id, statuses)
        if released:
            failed.update(newly_failed)
            await session.commit()

        scope_now = await _load_scope(session, vendor_id, checklist_id)
        progress, still_pending = _progress(scope_now, dispatched, job_id)
        if on_progress is not None:
            on_progress(progress)
        logger.debug(
            "Batch %s attempt %d: %d/%d completed",
            job_id,
            attempt,
            progress.completed_count,
            progress.total_count,
        )
        return not still_pending

    outcome = await poll_until_settled(_check, policy, sleep=sleep)

    final_scope = await _load_scope(session, vendor_id, checklist_id)
    progress, still_pending = _progress(final_scope, dispatched, job_id)
    if outcome.settled:
        service.release_job(job_id)
    if outcome.timed_out:
        message = (
            f"{len(still_pending)} of {len(dispatched)} questions are still pending; "
            "generation may still be completing in the background"
        )
        logger.warning("Batch job %s soft timeout: %s", job_id, message)
    elif failed:
        message = f"Generation finished; {len(failed)} questions need support"
    else:
        message = "Generation finished for all pending questions"

    return BatchGenerationResult(
        job_id=job_id,
        total_count=progress.total_count,
        completed_count=progress.completed_count,
        pending_count=len(still_pending),
        failed_count=len(failed),
        attempts=outcome.attempts,
        timed_out=outcome.timed_out,
        message=message,
    )
