# This project was developed with assistance from AI tools.
"""Tests for checklist completeness evaluation."""

import pytest
from db import QuestionStatus

from src.services.completeness import (
    check_checklist_completeness,
    evaluate_completion,
    has_usable_answer,
)
from src.services.requirements import set_document_requirement

from tests.factories import (
    answer_question,
    attach_document,
    create_checklist,
    make_document,
    make_question,
)

# -- Pure evaluation --


def test_empty_question_set_is_never_complete():
    result = evaluate_completion([], [], checklist_id=1)
    assert result.is_complete is False
    assert result.total_questions == 0
    assert result.incomplete_questions == []


@pytest.mark.parametrize(
    "status, answer, usable",
    [
        (QuestionStatus.COMPLETED, "Yes.", True),
        (QuestionStatus.DONE, "Yes.", True),
        (QuestionStatus.COMPLETED, "   ", False),
        (QuestionStatus.PENDING, "Leftover text", False),
        (QuestionStatus.NEEDS_SUPPORT, "Stale", False),
        (QuestionStatus.IN_PROGRESS, "Draft", False),
    ],
)
def test_has_usable_answer(status, answer, usable):
    assert has_usable_answer(make_question(status=status, answer=answer)) is usable


def test_all_answered_without_requirements_is_complete():
    questions = [
        make_question(id=1, status=QuestionStatus.COMPLETED, answer="a"),
        make_question(id=2, status=QuestionStatus.DONE, answer="b", is_done=True),
    ]
    result = evaluate_completion(questions, [], checklist_id=10)
    assert result.is_complete is True
    assert result.completed_questions == 2
    assert result.confirmed_questions == 1


def test_missing_document_and_missing_answer_are_reported_separately():
    questions = [
        make_question(id=1, status=QuestionStatus.COMPLETED, answer="a", requires_document=True),
        make_question(id=2, status=QuestionStatus.PENDING),
    ]
    result = evaluate_completion(questions, [make_document(question_id=99)])

    by_id = {q.question_id: q for q in result.incomplete_questions}
    assert by_id[1].missing_document is True
    assert by_id[1].missing_answer is False
    assert by_id[2].missing_answer is True
    assert by_id[2].missing_document is False
    assert result.questions_needing_docs == 1
    assert result.questions_with_docs == 0


# -- Against the database --


@pytest.mark.asyncio
async def test_document_requirement_blocks_then_upload_completes(session):
    """Three answered questions, one needing evidence, then the evidence arrives."""
    checklist, questions = await create_checklist(session)
    for q in questions:
        await answer_question(session, q)
    await set_document_requirement(session, 1, questions[1].id, True, "Pen test report")

    before = await check_checklist_completeness(session, 1, checklist.id)
    assert before.is_complete is False
    assert [q.question_id for q in before.incomplete_questions] == [questions[1].id]
    assert before.incomplete_questions[0].document_description == "Pen test report"

    await attach_document(session, questions[1])

    after = await check_checklist_completeness(session, 1, checklist.id)
    assert after.is_complete is True
    assert after.incomplete_questions == []


@pytest.mark.asyncio
async def test_completeness_unknown_checklist(session):
    assert await check_checklist_completeness(session, 1, 404) is None


@pytest.mark.asyncio
async def test_completeness_scoped_to_vendor(session):
    checklist, _ = await create_checklist(session, vendor_id=1)
    assert await check_checklist_completeness(session, 2, checklist.id) is None
