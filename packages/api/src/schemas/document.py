# This project was developed with assistance from AI tools.
"""Supporting document request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from . import Pagination


class DocumentResponse(BaseModel):
    """Supporting document metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    question_id: int | None = None
    vendor_id: int
    filename: str
    file_type: str
    file_size: int
    storage_url: str | None = None
    created_at: datetime


class DocumentListResponse(BaseModel):
    """Paginated list of documents."""

    data: list[DocumentResponse]
    pagination: Pagination
