# This project was developed with assistance from AI tools.
"""Checklist routes: upload, read, delete, completeness and batch generation."""

import logging

from db import get_db
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import Pagination
from ..schemas.checklist import (
    BatchGenerationResponse,
    BatchProgressResponse,
    ChecklistDetailResponse,
    ChecklistListResponse,
    ChecklistResponse,
    QuestionGroup,
    QuestionResponse,
)
from ..schemas.completeness import CompletenessResponse
from ..services import checklist as checklist_service
from ..services.completeness import check_checklist_completeness
from ..services.generation import BatchProgress, generate_batch_answers

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/vendors/{vendor_id}/checklists",
    response_model=ChecklistDetailResponse,
    status_code=201,
)
async def upload_checklist(
    vendor_id: int,
    file: UploadFile = File(...),
    name: str | None = Form(default=None),
    session: AsyncSession = Depends(get_db),
) -> ChecklistDetailResponse:
    """Upload a checklist file and extract its questions."""
    file_data = await file.read()
    checklist = await checklist_service.create_checklist_from_upload(
        session,
        vendor_id,
        filename=file.filename or "checklist",
        content_type=file.content_type or "",
        file_data=file_data,
        name=name,
    )
    return ChecklistDetailResponse.model_validate(checklist)


@router.get("/vendors/{vendor_id}/checklists", response_model=ChecklistListResponse)
async def list_checklists(
    vendor_id: int,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    session: AsyncSession = Depends(get_db),
) -> ChecklistListResponse:
    checklists, total = await checklist_service.list_checklists(
        session, vendor_id, offset=offset, limit=limit
    )
    return ChecklistListResponse(
        data=[ChecklistResponse.model_validate(c) for c in checklists],
        pagination=Pagination(
            total=total,
            offset=offset,
            limit=limit,
            has_more=(offset + limit) < total,
        ),
    )


@router.get("/vendors/{vendor_id}/checklists/groups", response_model=list[QuestionGroup])
async def list_question_groups(
    vendor_id: int,
    session: AsyncSession = Depends(get_db),
) -> list[QuestionGroup]:
    """Questions grouped by checklist, with the manual bucket last."""
    checklists, _ = await checklist_service.list_checklists(session, vendor_id, limit=1000)
    questions = await checklist_service.list_vendor_questions(session, vendor_id)
    groups = checklist_service.group_questions_by_checklist(checklists, questions)
    return [
        QuestionGroup(
            checklist_id=g.checklist_id,
            name=g.name,
            sent_to_trust_portal=g.sent_to_trust_portal,
            questions=[QuestionResponse.model_validate(q) for q in g.questions],
        )
        for g in groups
    ]


@router.get(
    "/vendors/{vendor_id}/checklists/{checklist_id}",
    response_model=ChecklistDetailResponse,
)
async def get_checklist(
    vendor_id: int,
    checklist_id: int,
    session: AsyncSession = Depends(get_db),
) -> ChecklistDetailResponse:
    checklist = await checklist_service.get_checklist(
        session, vendor_id, checklist_id, with_questions=True
    )
    if checklist is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return ChecklistDetailResponse.model_validate(checklist)


@router.delete("/vendors/{vendor_id}/checklists/{checklist_id}", status_code=204)
async def delete_checklist(
    vendor_id: int,
    checklist_id: int,
    session: AsyncSession = Depends(get_db),
) -> None:
    """Delete a checklist with its questions and documents."""
    deleted = await checklist_service.delete_checklist(session, vendor_id, checklist_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")


@router.get(
    "/vendors/{vendor_id}/checklists/{checklist_id}/completeness",
    response_model=CompletenessResponse,
)
async def get_completeness(
    vendor_id: int,
    checklist_id: int,
    session: AsyncSession = Depends(get_db),
) -> CompletenessResponse:
    result = await check_checklist_completeness(session, vendor_id, checklist_id)
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return result


@router.post(
    "/vendors/{vendor_id}/checklists/{checklist_id}/generate",
    response_model=BatchGenerationResponse,
)
async def generate_checklist_answers(
    vendor_id: int,
    checklist_id: int,
    session: AsyncSession = Depends(get_db),
) -> BatchGenerationResponse:
    """Generate answers for every pending question on the checklist."""
    progress: list[BatchProgress] = []
    result = await generate_batch_answers(
        session, vendor_id, checklist_id=checklist_id, on_progress=progress.append
    )
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return BatchGenerationResponse(
        **vars(result),
        progress=[BatchProgressResponse(**vars(p)) for p in progress],
    )
