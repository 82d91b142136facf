# This project was developed with assistance from AI tools.
"""Review portal submission orchestrator.

A submission is prepared as a ``SubmissionDraft`` and moves
``draft -> awaiting_follow_up_decision -> submitted``. Nothing is sent until
an explicit ``FollowUpDecision`` has been resolved on the draft; a missing
decision is never read as "initial". Records are immutable once written and
amendments are new records pointing at an earlier one for the same subject.
"""

import enum
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from db import (
    Checklist,
    FollowUpType,
    PortalCategory,
    Question,
    SubmissionRecord,
    SubmissionSubject,
    SupportingDocument,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .audit import write_audit_event
from .completeness import evaluate_completion, has_usable_answer, load_checklist_state
from .document import get_document, validate_vendor
from .errors import IncompleteChecklistFailure, NetworkFailure, ValidationFailure
from .lifecycle import get_question
from .portal import get_portal_client
from .requirements import documents_for_question, load_question_documents

logger = logging.getLogger(__name__)

CONTENT_SCHEMA_VERSION = 1


class SubmissionState(str, enum.Enum):
    DRAFT = "draft"
    AWAITING_FOLLOW_UP_DECISION = "awaiting_follow_up_decision"
    SUBMITTED = "submitted"


@dataclass(frozen=True)
class FollowUpDecision:
    """Initial submission, or a typed follow-up of an earlier record."""

    is_follow_up: bool
    follow_up_type: FollowUpType
    follow_up_reason: str | None = None
    parent_submission_id: int | None = None

    @classmethod
    def initial(cls) -> "FollowUpDecision":
        return cls(is_follow_up=False, follow_up_type=FollowUpType.INITIAL)

    @classmethod
    def follow_up(
        cls,
        parent_submission_id: int,
        follow_up_type: FollowUpType = FollowUpType.FOLLOW_UP,
        reason: str | None = None,
    ) -> "FollowUpDecision":
        return cls(
            is_follow_up=True,
            follow_up_type=follow_up_type,
            follow_up_reason=reason,
            parent_submission_id=parent_submission_id,
        )

    def validate(self, **context: Any) -> None:
        """Raise ValidationFailure unless the decision is self-consistent."""
        if self.is_follow_up:
            if self.parent_submission_id is None:
                raise ValidationFailure(
                    "A follow-up submission requires a parent submission", **context
                )
            if self.follow_up_type == FollowUpType.INITIAL:
                raise ValidationFailure(
                    "A follow-up submission needs a follow-up type other than 'initial'",
                    **context,
                )
        else:
            if self.parent_submission_id is not None:
                raise ValidationFailure(
                    "An initial submission cannot reference a parent submission", **context
                )
            if self.follow_up_type != FollowUpType.INITIAL:
                raise ValidationFailure(
                    f"An initial submission cannot have type '{self.follow_up_type.value}'",
                    **context,
                )


@dataclass
class SubmissionDraft:
    """A prepared snapshot waiting for its follow-up decision."""

    vendor_id: int
    subject: SubmissionSubject
    subject_id: int
    title: str
    category: PortalCategory
    content: dict[str, Any]
    checklist_id: int | None = None
    question_id: int | None = None
    state: SubmissionState = SubmissionState.DRAFT
    decision: FollowUpDecision | None = None
    record_id: int | None = field(default=None, init=False)

    def _context(self) -> dict[str, Any]:
        return {
            "operation": f"submit_{self.subject.value}",
            "checklist_id": self.checklist_id,
            "question_id": self.question_id,
        }

    def await_decision(self) -> None:
        if self.state != SubmissionState.DRAFT:
            raise ValidationFailure(
                f"Draft is '{self.state.value}', not 'draft'", **self._context()
            )
        self.state = SubmissionState.AWAITING_FOLLOW_UP_DECISION

    def resolve(self, decision: FollowUpDecision | None) -> None:
        """Record the follow-up decision. Rejects a missing or inconsistent one."""
        if self.state == SubmissionState.DRAFT:
            self.await_decision()
        if self.state != SubmissionState.AWAITING_FOLLOW_UP_DECISION:
            raise ValidationFailure("Draft has already been submitted", **self._context())
        if decision is None:
            raise ValidationFailure("A follow-up decision is required", **self._context())
        decision.validate(**self._context())
        self.decision = decision


# ---------------------------------------------------------------------------
# Content snapshots
# ---------------------------------------------------------------------------


def _question_entry(question: Question, documents: Sequence[SupportingDocument]) -> dict[str, Any]:
    return {
        "question_id": question.id,
        "question_text": question.question_text,
        "answer": question.answer,
        "confidence": question.confidence,
        "category": question.category,
        "origin": "manual" if question.checklist_id is None else "checklist",
        "status": question.status.value,
        "is_done": bool(question.is_done),
        "requires_document": bool(question.requires_document),
        "document_ids": [d.id for d in documents_for_question(question, documents)],
    }


def _document_entry(document: SupportingDocument) -> dict[str, Any]:
    return {
        "document_id": document.id,
        "question_id": document.question_id,
        "filename": document.filename,
        "file_type": document.file_type,
        "file_size": document.file_size,
        "storage_url": document.storage_url,
    }


# ---------------------------------------------------------------------------
# Preparation
# ---------------------------------------------------------------------------


async def prepare_checklist_submission(
    session: AsyncSession,
    vendor_id: int | None,
    checklist_id: int | None,
) -> SubmissionDraft | None:
    """Draft a whole-checklist submission.

    ``checklist_id`` None is the manual bucket, which cannot be submitted as
    a batch. Raises IncompleteChecklistFailure with counts when the checklist
    is not complete. Returns None if the checklist is not found.
    """
    validate_vendor(vendor_id, "submit_checklist")
    if checklist_id is None:
        raise ValidationFailure(
            "Manual questions cannot be submitted as a checklist; submit them individually",
            operation="submit_checklist",
        )

    state = await load_checklist_state(session, vendor_id, checklist_id)
    if state is None:
        return None
    checklist, questions, documents = state

    summary = evaluate_completion(questions, documents, checklist_id)
    if not summary.is_complete:
        unanswered = sum(1 for q in summary.incomplete_questions if q.missing_answer)
        missing_docs = sum(1 for q in summary.incomplete_questions if q.missing_document)
        if summary.total_questions == 0:
            message = "Checklist has no questions"
        else:
            message = (
                f"Checklist is incomplete: {unanswered} unanswered questions, "
                f"{missing_docs} missing documents"
            )
        raise IncompleteChecklistFailure(
            message,
            summary=summary,
            operation="submit_checklist",
            checklist_id=checklist_id,
        )

    draft = SubmissionDraft(
        vendor_id=vendor_id,
        subject=SubmissionSubject.CHECKLIST,
        subject_id=checklist_id,
        title=f"{checklist.name} - Compliance Questionnaire",
        category=PortalCategory.QUESTIONNAIRE,
        content={
            "checklist_id": checklist_id,
            "checklist_name": checklist.name,
            "original_filename": checklist.original_filename,
            "questions": [_question_entry(q, documents) for q in questions],
            "documents": [_document_entry(d) for d in documents],
        },
        checklist_id=checklist_id,
    )
    draft.await_decision()
    return draft


async def prepare_question_submission(
    session: AsyncSession,
    vendor_id: int | None,
    question_id: int,
) -> SubmissionDraft | None:
    """Draft a single-question submission. Requires a non-empty answer."""
    validate_vendor(vendor_id, "submit_question")
    question = await get_question(session, vendor_id, question_id)
    if question is None:
        return None
    if not (question.answer and question.answer.strip()):
        raise ValidationFailure(
            "Question has no answer to submit",
            operation="submit_question",
            checklist_id=question.checklist_id,
            question_id=question.id,
        )

    documents = await load_question_documents(session, [question.id])
    text = question.question_text
    draft = SubmissionDraft(
        vendor_id=vendor_id,
        subject=SubmissionSubject.QUESTION,
        subject_id=question.id,
        title=f"Question: {text[:97] + '...' if len(text) > 100 else text}",
        category=PortalCategory.QUESTIONNAIRE,
        content={
            "question": _question_entry(question, documents),
            "human_confirmed": has_usable_answer(question) and bool(question.is_done),
            "documents": [_document_entry(d) for d in documents],
        },
        checklist_id=question.checklist_id,
        question_id=question.id,
    )
    draft.await_decision()
    return draft


async def prepare_document_submission(
    session: AsyncSession,
    vendor_id: int | None,
    document_id: int,
) -> SubmissionDraft | None:
    """Draft a single-document submission. Always permitted."""
    validate_vendor(vendor_id, "submit_document")
    document = await get_document(session, vendor_id, document_id)
    if document is None:
        return None

    draft = SubmissionDraft(
        vendor_id=vendor_id,
        subject=SubmissionSubject.DOCUMENT,
        subject_id=document.id,
        title=f"Document: {document.filename}",
        category=PortalCategory.EVIDENCE,
        content={"document": _document_entry(document)},
        question_id=document.question_id,
    )
    draft.await_decision()
    return draft


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------


def _subject_column(subject: SubmissionSubject):
    return {
        SubmissionSubject.CHECKLIST: SubmissionRecord.checklist_id,
        SubmissionSubject.QUESTION: SubmissionRecord.question_id,
        SubmissionSubject.DOCUMENT: SubmissionRecord.document_id,
    }[subject]


async def _load_parent(session: AsyncSession, draft: SubmissionDraft) -> SubmissionRecord | None:
    decision = draft.decision
    if not decision.is_follow_up:
        return None

    stmt = select(SubmissionRecord).where(
        SubmissionRecord.id == decision.parent_submission_id,
        SubmissionRecord.vendor_id == draft.vendor_id,
        _subject_column(draft.subject) == draft.subject_id,
    )
    parent = (await session.execute(stmt)).scalar_one_or_none()
    if parent is None:
        raise ValidationFailure(
            f"Parent submission {decision.parent_submission_id} is not an earlier "
            f"submission of this {draft.subject.value}",
            **draft._context(),
        )
    return parent


async def submit_draft(session: AsyncSession, draft: SubmissionDraft) -> SubmissionRecord:
    """Send a resolved draft to the portal and persist the record.

    All validation happens before the portal call. A portal failure raises
    NetworkFailure and writes nothing.
    """
    if draft.state == SubmissionState.SUBMITTED:
        raise ValidationFailure("Draft has already been submitted", **draft._context())
    if draft.state != SubmissionState.AWAITING_FOLLOW_UP_DECISION or draft.decision is None:
        raise ValidationFailure(
            "A follow-up decision is required before submitting", **draft._context()
        )
    decision = draft.decision
    decision.validate(**draft._context())
    parent = await _load_parent(session, draft)

    submitted_at = datetime.now(UTC)
    content = json.dumps(
        {
            "schema_version": CONTENT_SCHEMA_VERSION,
            "subject_type": draft.subject.value,
            "subject_id": draft.subject_id,
            "vendor_id": draft.vendor_id,
            "title": draft.title,
            "submitted_at": submitted_at.isoformat(),
            **draft.content,
        },
        sort_keys=True,
        default=str,
    )

    payload = {
        "vendorId": draft.vendor_id,
        "title": draft.title,
        "category": draft.category.value,
        "content": content,
        "subjectType": draft.subject.value,
        "subjectId": draft.subject_id,
        "isFollowUp": decision.is_follow_up,
        "followUpType": decision.follow_up_type.value,
        "followUpReason": decision.follow_up_reason,
        "parentItemId": parent.portal_id if parent else None,
    }
    try:
        portal_id = await get_portal_client().create_submission(payload)
    except Exception as exc:
        raise NetworkFailure(
            "create_submission",
            f"Portal submission failed: {exc}",
            checklist_id=draft.checklist_id,
            question_id=draft.question_id,
        ) from exc

    record = SubmissionRecord(
        vendor_id=draft.vendor_id,
        title=draft.title,
        category=draft.category,
        content=content,
        is_follow_up=decision.is_follow_up,
        follow_up_type=decision.follow_up_type,
        follow_up_reason=decision.follow_up_reason,
        parent_submission_id=decision.parent_submission_id,
        portal_id=portal_id,
    )
    setattr(record, _subject_column(draft.subject).key, draft.subject_id)
    session.add(record)

    if draft.subject == SubmissionSubject.CHECKLIST:
        checklist = (
            await session.execute(select(Checklist).where(Checklist.id == draft.subject_id))
        ).scalar_one_or_none()
        if checklist is not None:
            checklist.sent_to_trust_portal = True
            checklist.trust_portal_submitted_at = submitted_at

    await session.flush()
    await write_audit_event(
        session,
        event_type="submission_sent",
        vendor_id=draft.vendor_id,
        checklist_id=draft.checklist_id,
        question_id=draft.question_id,
        event_data={
            "submission_id": record.id,
            "subject_type": draft.subject.value,
            "subject_id": draft.subject_id,
            "follow_up_type": decision.follow_up_type.value,
            "portal_id": portal_id,
        },
    )
    await session.commit()
    await session.refresh(record)

    draft.state = SubmissionState.SUBMITTED
    draft.record_id = record.id
    logger.info(
        "Submitted %s %s as record %s (portal %s)",
        draft.subject.value,
        draft.subject_id,
        record.id,
        portal_id,
    )
    return record


async def submit_checklist(
    session: AsyncSession,
    vendor_id: int | None,
    checklist_id: int | None,
    decision: FollowUpDecision | None,
) -> SubmissionRecord | None:
    draft = await prepare_checklist_submission(session, vendor_id, checklist_id)
    if draft is None:
        return None
    draft.resolve(decision)
    return await submit_draft(session, draft)


async def submit_question(
    session: AsyncSession,
    vendor_id: int | None,
    question_id: int,
    decision: FollowUpDecision | None,
) -> SubmissionRecord | None:
    draft = await prepare_question_submission(session, vendor_id, question_id)
    if draft is None:
        return None
    draft.resolve(decision)
    return await submit_draft(session, draft)


async def submit_document(
    session: AsyncSession,
    vendor_id: int | None,
    document_id: int,
    decision: FollowUpDecision | None,
) -> SubmissionRecord | None:
    draft = await prepare_document_submission(session, vendor_id, document_id)
    if draft is None:
        return None
    draft.resolve(decision)
    return await submit_draft(session, draft)


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


async def list_submissions(
    session: AsyncSession,
    vendor_id: int,
    *,
    subject: SubmissionSubject | None = None,
    subject_id: int | None = None,
) -> list[SubmissionRecord]:
    """Vendor's submissions, oldest first, optionally for one subject."""
    stmt = select(SubmissionRecord).where(SubmissionRecord.vendor_id == vendor_id)
    if subject is not None and subject_id is not None:
        stmt = stmt.where(_subject_column(subject) == subject_id)
    stmt = stmt.order_by(SubmissionRecord.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


def split_by_follow_up(
    records: Sequence[SubmissionRecord],
) -> tuple[list[SubmissionRecord], list[SubmissionRecord]]:
    """Split records into (initial submissions, follow-ups)."""
    initial = [r for r in records if not r.is_follow_up]
    follow_ups = [r for r in records if r.is_follow_up]
    return initial, follow_ups


async def get_submission_lineage(
    session: AsyncSession,
    vendor_id: int,
    submission_id: int,
) -> list[SubmissionRecord] | None:
    """Chain from the original submission down to ``submission_id``.

    Returns None if the submission is not found.
    """
    chain: list[SubmissionRecord] = []
    seen: set[int] = set()
    next_id: int | None = submission_id
    while next_id is not None and next_id not in seen:
        stmt = select(SubmissionRecord).where(
            SubmissionRecord.id == next_id,
            SubmissionRecord.vendor_id == vendor_id,
        )
        record = (await session.execute(stmt)).scalar_one_or_none()
        if record is None:
            break
        seen.add(record.id)
        chain.append(record)
        next_id = record.parent_submission_id

    if not chain:
        return None
    chain.reverse()
    return chain
