# This project was developed with assistance from AI tools.
"""Applying batch job results to questions.

A batch job owns the questions stamped with its ``batch_job_id``. Results
land on a question only while it is still ``pending`` and still owned by
that job. Jobs that outlive the caller's poll window are picked up again by
``reconcile_batch_jobs`` the next time their questions are read, answered
or re-batched.
"""

import logging
from collections.abc import Mapping

from db import Question, QuestionStatus
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .answer_service import (
    BATCH_ITEM_COMPLETED,
    BATCH_ITEM_FAILED,
    BatchItemStatus,
    UnknownBatchJob,
    get_answer_service,
)
from .errors import NetworkFailure
from .lifecycle import complete_generation, fail_generation

logger = logging.getLogger(__name__)

FINISHED_ITEM_STATES = (BATCH_ITEM_COMPLETED, BATCH_ITEM_FAILED)


def job_settled(statuses: Mapping[int, BatchItemStatus]) -> bool:
    """True once every item in the job has completed or failed."""
    return all(s.status in FINISHED_ITEM_STATES for s in statuses.values())


async def apply_batch_statuses(
    session: AsyncSession,
    job_id: str,
    statuses: Mapping[int, BatchItemStatus],
) -> tuple[set[int], set[int]]:
    """Write finished items onto the questions the job still owns.

    Every matching question is released from the job. Returns
    ``(released, failed)`` question ids, where ``failed`` moved to
    ``needs-support``. Does not commit.
    """
    finished = {qid: s for qid, s in statuses.items() if s.status in FINISHED_ITEM_STATES}
    released: set[int] = set()
    failed: set[int] = set()
    if not finished:
        return released, failed

    stmt = (
        select(Question)
        .where(Question.id.in_(list(finished)), Question.batch_job_id == job_id)
        .execution_options(populate_existing=True)
    )
    for question in (await session.execute(stmt)).scalars():
        question.batch_job_id = None
        released.add(question.id)
        if question.status != QuestionStatus.PENDING or question.is_editing:
            continue
        item = finished[question.id]
        if item.status == BATCH_ITEM_COMPLETED and item.answer:
            complete_generation(question, item.answer, item.confidence)
        else:
            fail_generation(question)
            failed.add(question.id)
    return released, failed


async def _release_questions(session: AsyncSession, job_id: str) -> int:
    stmt = select(Question).where(Question.batch_job_id == job_id)
    released = 0
    for question in (await session.execute(stmt)).scalars():
        question.batch_job_id = None
        released += 1
    return released


async def reconcile_batch_jobs(
    session: AsyncSession,
    vendor_id: int,
    *,
    checklist_id: int | None = None,
    question_ids: list[int] | None = None,
) -> int:
    """Apply results of outstanding batch jobs for a scope of questions.

    Finished items are applied and a job is released once all of its items
    have finished. Questions stamped with a job the answer service no longer
    tracks are released back to plain ``pending``. Returns the number of
    questions changed; commits only when something changed.
    """
    stmt = (
        select(Question.batch_job_id)
        .where(Question.vendor_id == vendor_id, Question.batch_job_id.is_not(None))
        .distinct()
    )
    if checklist_id is not None:
        stmt = stmt.where(Question.checklist_id == checklist_id)
    if question_ids is not None:
        stmt = stmt.where(Question.id.in_(question_ids))
    job_ids = sorted((await session.execute(stmt)).scalars())
    if not job_ids:
        return 0

    service = get_answer_service()
    changed = 0
    for job_id in job_ids:
        try:
            statuses = await service.poll_status(job_id)
        except UnknownBatchJob:
            orphaned = await _release_questions(session, job_id)
            logger.warning(
                "Batch job %s is no longer tracked; released %d questions", job_id, orphaned
            )
            changed += orphaned
            continue
        except Exception as exc:
            raise NetworkFailure(
                "reconcile_batch_jobs",
                f"Batch status poll failed: {exc}",
                checklist_id=checklist_id,
            ) from exc

        released, failed = await apply_batch_statuses(session, job_id, statuses)
        changed += len(released)
        if released:
            logger.info(
                "Applied %d late results from batch job %s (%d failed)",
                len(released),
                job_id,
                len(failed),
            )
        if job_settled(statuses):
            changed += await _release_questions(session, job_id)
            service.release_job(job_id)

    if changed:
        await session.commit()
    return changed
