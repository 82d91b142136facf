# This project was developed with assistance from AI tools.
"""Review portal submission routes."""

import logging

from db import get_db
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.submission import (
    ChecklistSubmissionRequest,
    FollowUpDecisionRequest,
    SubmissionHistoryResponse,
    SubmissionResponse,
)
from ..services import submission as submission_service
from ..services.submission import FollowUpDecision

logger = logging.getLogger(__name__)

router = APIRouter()


def _decision(body: FollowUpDecisionRequest) -> FollowUpDecision:
    return FollowUpDecision(
        is_follow_up=body.is_follow_up,
        follow_up_type=body.follow_up_type,
        follow_up_reason=body.follow_up_reason,
        parent_submission_id=body.parent_submission_id,
    )


@router.post(
    "/vendors/{vendor_id}/submissions/checklists",
    response_model=SubmissionResponse,
    status_code=201,
)
async def submit_checklist(
    vendor_id: int,
    body: ChecklistSubmissionRequest,
    session: AsyncSession = Depends(get_db),
) -> SubmissionResponse:
    """Submit a complete checklist. ``checklist_id`` null is the manual bucket and is rejected."""
    record = await submission_service.submit_checklist(
        session, vendor_id, body.checklist_id, _decision(body)
    )
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return SubmissionResponse.model_validate(record)


@router.post(
    "/vendors/{vendor_id}/submissions/questions/{question_id}",
    response_model=SubmissionResponse,
    status_code=201,
)
async def submit_question(
    vendor_id: int,
    question_id: int,
    body: FollowUpDecisionRequest,
    session: AsyncSession = Depends(get_db),
) -> SubmissionResponse:
    record = await submission_service.submit_question(
        session, vendor_id, question_id, _decision(body)
    )
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return SubmissionResponse.model_validate(record)


@router.post(
    "/vendors/{vendor_id}/submissions/documents/{document_id}",
    response_model=SubmissionResponse,
    status_code=201,
)
async def submit_document(
    vendor_id: int,
    document_id: int,
    body: FollowUpDecisionRequest,
    session: AsyncSession = Depends(get_db),
) -> SubmissionResponse:
    record = await submission_service.submit_document(
        session, vendor_id, document_id, _decision(body)
    )
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
    return SubmissionResponse.model_validate(record)


@router.get("/vendors/{vendor_id}/submissions", response_model=SubmissionHistoryResponse)
async def submission_history(
    vendor_id: int,
    session: AsyncSession = Depends(get_db),
) -> SubmissionHistoryResponse:
    records = await submission_service.list_submissions(session, vendor_id)
    initial, follow_ups = submission_service.split_by_follow_up(records)
    return SubmissionHistoryResponse(
        initial=[SubmissionResponse.model_validate(r) for r in initial],
        follow_ups=[SubmissionResponse.model_validate(r) for r in follow_ups],
    )


@router.get(
    "/vendors/{vendor_id}/submissions/{submission_id}/lineage",
    response_model=list[SubmissionResponse],
)
async def submission_lineage(
    vendor_id: int,
    submission_id: int,
    session: AsyncSession = Depends(get_db),
) -> list[SubmissionResponse]:
    """Chain from the original submission to this one."""
    chain = await submission_service.get_submission_lineage(session, vendor_id, submission_id)
    if chain is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Submission not found")
    return [SubmissionResponse.model_validate(r) for r in chain]
