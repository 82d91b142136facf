# This project was developed with assistance from AI tools.
"""Checklist and question request/response schemas."""

from datetime import datetime

from db.enums import ExtractionStatus, QuestionStatus
from pydantic import BaseModel, ConfigDict, Field

from . import Pagination


class QuestionResponse(BaseModel):
    """Single question with its answer lifecycle fields."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    checklist_id: int | None = None
    vendor_id: int
    question_text: str
    question_order: int
    category: str | None = None
    status: QuestionStatus
    answer: str | None = None
    confidence: float | None = None
    requires_document: bool = False
    document_description: str | None = None
    is_done: bool = False
    is_editing: bool = False
    created_at: datetime
    updated_at: datetime


class ChecklistResponse(BaseModel):
    """Checklist metadata without its questions."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: int
    name: str
    original_filename: str
    file_type: str
    file_size: int | None = None
    storage_url: str | None = None
    extraction_status: ExtractionStatus
    error_message: str | None = None
    sent_to_trust_portal: bool = False
    trust_portal_submitted_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class ChecklistDetailResponse(ChecklistResponse):
    """Checklist with its ordered questions."""

    questions: list[QuestionResponse] = []


class ChecklistListResponse(BaseModel):
    """Paginated list of checklists."""

    data: list[ChecklistResponse]
    pagination: Pagination


class QuestionGroup(BaseModel):
    """Questions grouped under their checklist; ``checklist_id`` None is the manual bucket."""

    checklist_id: int | None = None
    name: str
    sent_to_trust_portal: bool = False
    questions: list[QuestionResponse] = []


class ManualQuestionCreate(BaseModel):
    """Add a question by hand, to a checklist or to the manual bucket."""

    question_text: str = Field(min_length=1)
    checklist_id: int | None = None
    requires_document: bool = False
    document_description: str | None = None


class EditSaveRequest(BaseModel):
    """Human-written answer saved from edit mode."""

    answer: str
    mark_done: bool = False


class RequirementUpdate(BaseModel):
    """Change a question's supporting-document requirement."""

    requires_document: bool
    document_description: str | None = None


class VendorStatsResponse(BaseModel):
    """Question counts across a vendor's checklists."""

    total_checklists: int
    total_questions: int
    pending: int
    in_progress: int
    completed: int
    done: int
    needs_support: int


class BatchGenerationRequest(BaseModel):
    """Batch generation scope; no checklist means vendor-wide."""

    checklist_id: int | None = None


class BatchProgressResponse(BaseModel):
    completed_count: int
    total_count: int
    next_pending_question_text: str | None = None


class BatchGenerationResponse(BaseModel):
    """Outcome of a batch generation run."""

    job_id: str | None = None
    total_count: int
    completed_count: int
    pending_count: int
    failed_count: int
    attempts: int
    timed_out: bool
    message: str
    progress: list[BatchProgressResponse] = []
