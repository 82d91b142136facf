# This project was developed with assistance from AI tools.
"""Tests for review portal submissions and follow-up lineage."""

import json

import pytest
from db import Checklist, FollowUpType, PortalCategory, SubmissionRecord, SubmissionSubject
from sqlalchemy import func, select

from src.services.errors import IncompleteChecklistFailure, NetworkFailure, ValidationFailure
from src.services.requirements import set_document_requirement
from src.services.submission import (
    CONTENT_SCHEMA_VERSION,
    FollowUpDecision,
    SubmissionState,
    get_submission_lineage,
    list_submissions,
    prepare_checklist_submission,
    split_by_follow_up,
    submit_checklist,
    submit_document,
    submit_draft,
    submit_question,
)
from tests.factories import answer_question, attach_document, create_checklist


async def _complete_checklist(session, **kwargs):
    checklist, questions = await create_checklist(session, **kwargs)
    for q in questions:
        await answer_question(session, q)
    return checklist, questions


async def _record_count(session_factory):
    async with session_factory() as s:
        return (await s.execute(select(func.count(SubmissionRecord.id)))).scalar()


# ---------------------------------------------------------------------------
# Follow-up decision
# ---------------------------------------------------------------------------


def test_initial_decision():
    decision = FollowUpDecision.initial()
    decision.validate()
    assert decision.follow_up_type == FollowUpType.INITIAL
    assert decision.parent_submission_id is None


@pytest.mark.parametrize(
    "decision, match",
    [
        (FollowUpDecision(True, FollowUpType.FOLLOW_UP), "requires a parent"),
        (FollowUpDecision(True, FollowUpType.INITIAL, parent_submission_id=1), "other than"),
        (FollowUpDecision(False, FollowUpType.INITIAL, parent_submission_id=1), "cannot reference"),
        (FollowUpDecision(False, FollowUpType.RESUBMISSION), "cannot have type"),
    ],
)
def test_inconsistent_decisions_are_rejected(decision, match):
    with pytest.raises(ValidationFailure, match=match):
        decision.validate(operation="submit_checklist")


# ---------------------------------------------------------------------------
# Checklist submissions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_initial_then_follow_up_checklist_submission(session, fake_portal):
    checklist, _ = await _complete_checklist(session, name="SIG Lite")

    first = await submit_checklist(session, 1, checklist.id, FollowUpDecision.initial())

    assert first.checklist_id == checklist.id
    assert first.is_follow_up is False
    assert first.follow_up_type == FollowUpType.INITIAL
    assert first.parent_submission_id is None
    assert first.title == "SIG Lite - Compliance Questionnaire"
    assert first.category == PortalCategory.QUESTIONNAIRE
    assert first.portal_id == "portal-100"

    payload = fake_portal.payloads[0]
    assert payload["isFollowUp"] is False
    assert payload["followUpType"] == "initial"
    assert payload["parentItemId"] is None
    assert payload["category"] == "Questionnaire"

    content = json.loads(first.content)
    assert content["schema_version"] == CONTENT_SCHEMA_VERSION
    assert content["subject_type"] == "checklist"
    assert len(content["questions"]) == 3

    refreshed = (
        await session.execute(
            select(Checklist)
            .where(Checklist.id == checklist.id)
            .execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert refreshed.sent_to_trust_portal is True
    assert refreshed.trust_portal_submitted_at is not None

    second = await submit_checklist(
        session,
        1,
        checklist.id,
        FollowUpDecision.follow_up(
            first.id, FollowUpType.CLARIFICATION, "Updated encryption answer"
        ),
    )

    assert second.is_follow_up is True
    assert second.follow_up_type == FollowUpType.CLARIFICATION
    assert second.follow_up_reason == "Updated encryption answer"
    assert second.parent_submission_id == first.id
    assert fake_portal.payloads[1]["parentItemId"] == "portal-100"

    lineage = await get_submission_lineage(session, 1, second.id)
    assert [r.id for r in lineage] == [first.id, second.id]


@pytest.mark.asyncio
async def test_incomplete_checklist_is_blocked_before_portal(
    session, session_factory, fake_portal
):
    checklist, questions = await create_checklist(session)
    await answer_question(session, questions[0])
    await answer_question(session, questions[1])
    await set_document_requirement(session, 1, questions[1].id, True)

    with pytest.raises(IncompleteChecklistFailure) as exc_info:
        await submit_checklist(session, 1, checklist.id, FollowUpDecision.initial())

    err = exc_info.value
    assert str(err) == "Checklist is incomplete: 1 unanswered questions, 1 missing documents"
    assert err.context()["unanswered_questions"] == 1
    assert err.context()["missing_documents"] == 1
    assert err.context()["checklist_id"] == checklist.id
    assert fake_portal.payloads == []
    assert await _record_count(session_factory) == 0


@pytest.mark.asyncio
async def test_empty_checklist_cannot_be_submitted(session, fake_portal):
    checklist, _ = await create_checklist(session, questions=())
    with pytest.raises(IncompleteChecklistFailure, match="no questions"):
        await submit_checklist(session, 1, checklist.id, FollowUpDecision.initial())


@pytest.mark.asyncio
async def test_manual_bucket_cannot_be_submitted_as_checklist(session, fake_portal):
    with pytest.raises(ValidationFailure, match="individually"):
        await submit_checklist(session, 1, None, FollowUpDecision.initial())


@pytest.mark.parametrize("subject", ["checklist", "question", "document"])
@pytest.mark.asyncio
async def test_follow_up_without_parent_never_reaches_portal(
    session, session_factory, fake_portal, subject
):
    checklist, questions = await _complete_checklist(session)
    document = await attach_document(session, questions[0])
    orphan = FollowUpDecision(is_follow_up=True, follow_up_type=FollowUpType.CLARIFICATION)

    with pytest.raises(ValidationFailure, match="requires a parent") as exc_info:
        if subject == "checklist":
            await submit_checklist(session, 1, checklist.id, orphan)
        elif subject == "question":
            await submit_question(session, 1, questions[0].id, orphan)
        else:
            await submit_document(session, 1, document.id, orphan)

    assert exc_info.value.context()["operation"] == f"submit_{subject}"
    assert fake_portal.payloads == []
    assert await _record_count(session_factory) == 0


@pytest.mark.asyncio
async def test_missing_decision_is_not_treated_as_initial(session, fake_portal):
    checklist, _ = await _complete_checklist(session)
    with pytest.raises(ValidationFailure, match="decision is required"):
        await submit_checklist(session, 1, checklist.id, None)
    assert fake_portal.payloads == []


@pytest.mark.asyncio
async def test_follow_up_parent_must_be_same_subject(session, fake_portal):
    checklist_a, _ = await _complete_checklist(session, name="A")
    checklist_b, _ = await _complete_checklist(session, name="B")
    first = await submit_checklist(session, 1, checklist_a.id, FollowUpDecision.initial())

    with pytest.raises(ValidationFailure, match="not an earlier submission"):
        await submit_checklist(
            session, 1, checklist_b.id, FollowUpDecision.follow_up(first.id)
        )
    assert len(fake_portal.payloads) == 1


@pytest.mark.asyncio
async def test_portal_failure_writes_nothing(session, session_factory, fake_portal):
    checklist, _ = await _complete_checklist(session)
    fake_portal.fail = True

    with pytest.raises(NetworkFailure) as exc_info:
        await submit_checklist(session, 1, checklist.id, FollowUpDecision.initial())

    assert exc_info.value.operation == "create_submission"
    assert await _record_count(session_factory) == 0
    async with session_factory() as s:
        stored = (await s.execute(select(Checklist))).scalar_one()
    assert stored.sent_to_trust_portal is False


@pytest.mark.asyncio
async def test_draft_moves_through_states(session, fake_portal):
    checklist, _ = await _complete_checklist(session)

    draft = await prepare_checklist_submission(session, 1, checklist.id)
    assert draft.state == SubmissionState.AWAITING_FOLLOW_UP_DECISION

    draft.resolve(FollowUpDecision.initial())
    record = await submit_draft(session, draft)
    assert draft.state == SubmissionState.SUBMITTED
    assert draft.record_id == record.id

    with pytest.raises(ValidationFailure, match="already been submitted"):
        await submit_draft(session, draft)


@pytest.mark.asyncio
async def test_unknown_subjects_return_none(session, fake_portal):
    decision = FollowUpDecision.initial()
    assert await submit_checklist(session, 1, 404, decision) is None
    assert await submit_question(session, 1, 404, decision) is None
    assert await submit_document(session, 1, 404, decision) is None


# ---------------------------------------------------------------------------
# Question and document submissions
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_question_submission_requires_answer(session, fake_portal):
    _, (q1, *_rest) = await create_checklist(session)
    with pytest.raises(ValidationFailure, match="no answer"):
        await submit_question(session, 1, q1.id, FollowUpDecision.initial())


@pytest.mark.asyncio
async def test_question_submission(session, fake_portal):
    _, (q1, *_rest) = await create_checklist(session)
    await answer_question(session, q1, "We use AES-256.", done=True)
    doc = await attach_document(session, q1)

    record = await submit_question(session, 1, q1.id, FollowUpDecision.initial())

    assert record.question_id == q1.id
    assert record.checklist_id is None
    assert record.title == "Question: Q1?"
    assert record.category == PortalCategory.QUESTIONNAIRE
    content = json.loads(record.content)
    assert content["question"]["answer"] == "We use AES-256."
    assert content["question"]["document_ids"] == [doc.id]
    assert content["human_confirmed"] is True


@pytest.mark.asyncio
async def test_long_question_title_is_truncated(session, fake_portal):
    _, (q1,) = await create_checklist(session, questions=("x" * 150,))
    await answer_question(session, q1)

    record = await submit_question(session, 1, q1.id, FollowUpDecision.initial())
    assert record.title == "Question: " + "x" * 97 + "..."


@pytest.mark.asyncio
async def test_document_submission(session, fake_portal):
    _, (q1, *_rest) = await create_checklist(session)
    doc = await attach_document(session, q1, "pentest.pdf")

    record = await submit_document(session, 1, doc.id, FollowUpDecision.initial())

    assert record.document_id == doc.id
    assert record.title == "Document: pentest.pdf"
    assert record.category == PortalCategory.EVIDENCE
    assert fake_portal.payloads[0]["subjectType"] == "document"


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_and_split(session, fake_portal):
    checklist, questions = await _complete_checklist(session)
    first = await submit_checklist(session, 1, checklist.id, FollowUpDecision.initial())
    await submit_checklist(
        session, 1, checklist.id, FollowUpDecision.follow_up(first.id, FollowUpType.RESUBMISSION)
    )
    await submit_question(session, 1, questions[0].id, FollowUpDecision.initial())

    everything = await list_submissions(session, 1)
    assert len(everything) == 3

    for_checklist = await list_submissions(
        session, 1, subject=SubmissionSubject.CHECKLIST, subject_id=checklist.id
    )
    initial, follow_ups = split_by_follow_up(for_checklist)
    assert [r.id for r in initial] == [first.id]
    assert [r.follow_up_type for r in follow_ups] == [FollowUpType.RESUBMISSION]

    assert await list_submissions(session, 2) == []


@pytest.mark.asyncio
async def test_lineage_unknown_submission(session):
    assert await get_submission_lineage(session, 1, 404) is None
