# This project was developed with assistance from AI tools.
"""Question routes: manual add, generation, edit mode, confirmation, requirements."""

import logging

from db import QuestionStatus, get_db, get_session_factory
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..schemas.checklist import (
    BatchGenerationRequest,
    BatchGenerationResponse,
    BatchProgressResponse,
    EditSaveRequest,
    ManualQuestionCreate,
    QuestionResponse,
    RequirementUpdate,
    VendorStatsResponse,
)
from ..services import checklist as checklist_service
from ..services import lifecycle
from ..services.generation import BatchProgress, generate_answer, generate_batch_answers
from ..services.requirements import set_document_requirement

logger = logging.getLogger(__name__)

router = APIRouter()

_NOT_FOUND = "Question not found"


@router.post("/vendors/{vendor_id}/questions", response_model=QuestionResponse, status_code=201)
async def add_question(
    vendor_id: int,
    body: ManualQuestionCreate,
    session: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    """Add a manual question to a checklist or to the manual bucket."""
    question = await checklist_service.add_manual_question(
        session,
        vendor_id,
        body.question_text,
        checklist_id=body.checklist_id,
        requires_document=body.requires_document,
        document_description=body.document_description,
    )
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return QuestionResponse.model_validate(question)


@router.get("/vendors/{vendor_id}/questions", response_model=list[QuestionResponse])
async def list_questions(
    vendor_id: int,
    status_filter: QuestionStatus | None = Query(default=None, alias="status"),
    session: AsyncSession = Depends(get_db),
) -> list[QuestionResponse]:
    questions = await checklist_service.list_vendor_questions(
        session, vendor_id, status=status_filter
    )
    return [QuestionResponse.model_validate(q) for q in questions]


@router.get("/vendors/{vendor_id}/questions/stats", response_model=VendorStatsResponse)
async def vendor_stats(
    vendor_id: int,
    session: AsyncSession = Depends(get_db),
) -> VendorStatsResponse:
    return VendorStatsResponse(**await checklist_service.get_vendor_stats(session, vendor_id))


@router.post("/vendors/{vendor_id}/questions/generate", response_model=BatchGenerationResponse)
async def generate_pending_answers(
    vendor_id: int,
    body: BatchGenerationRequest,
    session: AsyncSession = Depends(get_db),
) -> BatchGenerationResponse:
    """Batch-generate answers vendor-wide, or for one checklist."""
    progress: list[BatchProgress] = []
    result = await generate_batch_answers(
        session, vendor_id, checklist_id=body.checklist_id, on_progress=progress.append
    )
    if result is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Checklist not found")
    return BatchGenerationResponse(
        **vars(result),
        progress=[BatchProgressResponse(**vars(p)) for p in progress],
    )


@router.post(
    "/vendors/{vendor_id}/questions/{question_id}/generate",
    response_model=QuestionResponse,
)
async def generate_question_answer(
    vendor_id: int,
    question_id: int,
    force: bool = Query(default=False, description="Regenerate even if a call is in flight."),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> QuestionResponse:
    question = await generate_answer(session_factory, vendor_id, question_id, force=force)
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return QuestionResponse.model_validate(question)


@router.post("/vendors/{vendor_id}/questions/{question_id}/edit", response_model=QuestionResponse)
async def toggle_edit(
    vendor_id: int,
    question_id: int,
    session: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    """Enter edit mode, or leave it without saving."""
    question = await lifecycle.begin_or_cancel_edit(session, vendor_id, question_id)
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return QuestionResponse.model_validate(question)


@router.put("/vendors/{vendor_id}/questions/{question_id}/answer", response_model=QuestionResponse)
async def save_answer(
    vendor_id: int,
    question_id: int,
    body: EditSaveRequest,
    session: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    question = await lifecycle.save_question_edit(
        session, vendor_id, question_id, body.answer, mark_done=body.mark_done
    )
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return QuestionResponse.model_validate(question)


@router.post(
    "/vendors/{vendor_id}/questions/{question_id}/confirm",
    response_model=QuestionResponse,
)
async def confirm_answer(
    vendor_id: int,
    question_id: int,
    session: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    question = await lifecycle.confirm_question(session, vendor_id, question_id)
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return QuestionResponse.model_validate(question)


@router.put(
    "/vendors/{vendor_id}/questions/{question_id}/requirement",
    response_model=QuestionResponse,
)
async def update_requirement(
    vendor_id: int,
    question_id: int,
    body: RequirementUpdate,
    session: AsyncSession = Depends(get_db),
) -> QuestionResponse:
    question = await set_document_requirement(
        session,
        vendor_id,
        question_id,
        body.requires_document,
        body.document_description,
    )
    if question is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=_NOT_FOUND)
    return QuestionResponse.model_validate(question)
