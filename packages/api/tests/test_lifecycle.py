# This project was developed with assistance from AI tools.
"""Tests for the question lifecycle state machine."""

import pytest
from db import QuestionStatus

from src.services.errors import InvalidTransition, ValidationFailure
from src.services.lifecycle import (
    begin_or_cancel_edit,
    complete_generation,
    confirm_question,
    fail_generation,
    mark_done,
    save_edit,
    save_question_edit,
    start_generation,
    toggle_edit,
)

from tests.factories import answer_question, create_checklist, make_question

# -- Generation transitions --


def test_generation_success_moves_pending_to_completed():
    q = make_question()
    start_generation(q)
    assert q.status == QuestionStatus.IN_PROGRESS

    complete_generation(q, "  Yes, AES-256.  ", 1.7)
    assert q.status == QuestionStatus.COMPLETED
    assert q.answer == "Yes, AES-256."
    assert q.confidence == 1.0
    assert q.is_done is False


def test_generation_result_can_land_on_pending_question():
    """Batch results arrive for questions that never left pending."""
    q = make_question()
    complete_generation(q, "Yes.", 0.4)
    assert q.status == QuestionStatus.COMPLETED


def test_empty_generated_answer_is_rejected():
    q = make_question(status=QuestionStatus.IN_PROGRESS)
    with pytest.raises(ValidationFailure, match="empty"):
        complete_generation(q, "   ", 0.9)
    assert q.status == QuestionStatus.IN_PROGRESS


def test_generation_failure_parks_question_at_needs_support():
    q = make_question()
    start_generation(q)
    fail_generation(q)
    assert q.status == QuestionStatus.NEEDS_SUPPORT


def test_needs_support_can_be_retried():
    q = make_question(status=QuestionStatus.NEEDS_SUPPORT)
    start_generation(q)
    complete_generation(q, "Recovered.", 0.5)
    assert q.status == QuestionStatus.COMPLETED


def test_answered_status_without_answer_is_invalid():
    q = make_question(status=QuestionStatus.IN_PROGRESS)
    q.is_editing = True
    with pytest.raises(ValidationFailure):
        save_edit(q, "")


# -- Human confirmation --


def test_mark_done_requires_completed():
    q = make_question(status=QuestionStatus.PENDING)
    with pytest.raises(InvalidTransition, match="Only completed"):
        mark_done(q)


def test_mark_done_sets_confirmation_flag():
    q = make_question(status=QuestionStatus.COMPLETED, answer="Yes.")
    mark_done(q)
    assert q.status == QuestionStatus.DONE
    assert q.is_done is True


# -- Edit mode --


def test_toggle_edit_enters_edit_mode_and_revokes_confirmation():
    q = make_question(status=QuestionStatus.DONE, answer="Yes.", is_done=True)
    q.batch_job_id = "job-1"

    assert toggle_edit(q) is True
    assert q.status == QuestionStatus.IN_PROGRESS
    assert q.is_editing is True
    assert q.is_done is False
    assert q.pre_edit_status == QuestionStatus.DONE
    assert q.batch_job_id is None


def test_entering_edit_supersedes_dispatched_generations():
    q = make_question(
        status=QuestionStatus.COMPLETED, answer="From call 1.", generation_seq=2, answered_seq=1
    )

    toggle_edit(q)
    assert q.answered_seq == 2


def test_cancel_edit_restores_prior_status():
    q = make_question(status=QuestionStatus.NEEDS_SUPPORT)
    toggle_edit(q)
    assert toggle_edit(q) is False
    assert q.status == QuestionStatus.NEEDS_SUPPORT
    assert q.is_editing is False
    assert q.pre_edit_status is None


def test_cancel_edit_of_done_returns_completed():
    q = make_question(status=QuestionStatus.DONE, answer="Yes.", is_done=True)
    toggle_edit(q)
    toggle_edit(q)
    assert q.status == QuestionStatus.COMPLETED
    assert q.is_done is False


def test_cannot_enter_edit_while_generation_in_flight():
    q = make_question(status=QuestionStatus.IN_PROGRESS)
    with pytest.raises(InvalidTransition, match="in flight"):
        toggle_edit(q)


def test_save_edit_requires_edit_mode():
    q = make_question(status=QuestionStatus.COMPLETED, answer="Yes.")
    with pytest.raises(InvalidTransition, match="not in edit mode"):
        save_edit(q, "New answer")


@pytest.mark.parametrize(
    "mark, expected_status", [(False, QuestionStatus.COMPLETED), (True, QuestionStatus.DONE)]
)
def test_save_edit_writes_answer(mark, expected_status):
    q = make_question()
    toggle_edit(q)
    save_edit(q, " Written by hand ", mark_done=mark)
    assert q.answer == "Written by hand"
    assert q.status == expected_status
    assert q.is_done is mark
    assert q.is_editing is False


# -- Session-backed wrappers --


@pytest.mark.asyncio
async def test_edit_round_trip_persists(session):
    _, (q1, *_rest) = await create_checklist(session)

    editing = await begin_or_cancel_edit(session, 1, q1.id)
    assert editing.is_editing is True
    assert editing.status == QuestionStatus.IN_PROGRESS

    saved = await save_question_edit(session, 1, q1.id, "Manual answer", mark_done=True)
    assert saved.status == QuestionStatus.DONE
    assert saved.answer == "Manual answer"
    assert saved.is_done is True


@pytest.mark.asyncio
async def test_confirm_question(session):
    _, (q1, *_rest) = await create_checklist(session)
    await answer_question(session, q1)

    confirmed = await confirm_question(session, 1, q1.id)
    assert confirmed.status == QuestionStatus.DONE
    assert confirmed.is_done is True


@pytest.mark.asyncio
async def test_wrappers_return_none_for_other_vendor(session):
    _, (q1, *_rest) = await create_checklist(session, vendor_id=1)
    assert await begin_or_cancel_edit(session, 2, q1.id) is None
    assert await confirm_question(session, 2, q1.id) is None
    assert await save_question_edit(session, 2, q1.id, "x") is None
