# This project was developed with assistance from AI tools.
"""Supporting document routes."""

import logging

from db import get_db
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas import Pagination
from ..schemas.document import DocumentListResponse, DocumentResponse
from ..services import document as doc_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/vendors/{vendor_id}/documents", response_model=DocumentResponse, status_code=201)
async def upload_document(
    vendor_id: int,
    file: UploadFile = File(...),
    question_id: int | None = Form(default=None),
    session: AsyncSession = Depends(get_db),
) -> DocumentResponse:
    """Upload evidence for a question, or general vendor evidence."""
    file_data = await file.read()
    doc = await doc_service.upload_supporting_document(
        session,
        vendor_id,
        filename=file.filename or "document",
        content_type=file.content_type or "",
        file_data=file_data,
        question_id=question_id,
    )
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Question not found")
    return DocumentResponse.model_validate(doc)


@router.get("/vendors/{vendor_id}/documents", response_model=DocumentListResponse)
async def list_documents(
    vendor_id: int,
    question_id: int | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    session: AsyncSession = Depends(get_db),
) -> DocumentListResponse:
    documents, total = await doc_service.list_vendor_documents(
        session, vendor_id, question_id=question_id, offset=offset, limit=limit
    )
    return DocumentListResponse(
        data=[DocumentResponse.model_validate(d) for d in documents],
        pagination=Pagination(
            total=total,
            offset=offset,
            limit=limit,
            has_more=(offset + limit) < total,
        ),
    )


@router.delete("/vendors/{vendor_id}/documents/{document_id}", status_code=204)
async def delete_document(
    vendor_id: int,
    document_id: int,
    session: AsyncSession = Depends(get_db),
) -> None:
    deleted = await doc_service.delete_supporting_document(session, vendor_id, document_id)
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found")
