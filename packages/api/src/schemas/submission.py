# This project was developed with assistance from AI tools.
"""Review portal submission request/response schemas."""

from datetime import datetime

from db.enums import FollowUpType, PortalCategory
from pydantic import BaseModel, ConfigDict


class FollowUpDecisionRequest(BaseModel):
    """Explicit initial-vs-follow-up decision. There is no default."""

    is_follow_up: bool
    follow_up_type: FollowUpType
    follow_up_reason: str | None = None
    parent_submission_id: int | None = None


class SubmissionResponse(BaseModel):
    """Immutable submission record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    vendor_id: int
    checklist_id: int | None = None
    question_id: int | None = None
    document_id: int | None = None
    title: str
    category: PortalCategory
    content: str
    is_follow_up: bool
    follow_up_type: FollowUpType
    follow_up_reason: str | None = None
    parent_submission_id: int | None = None
    portal_id: str | None = None
    created_at: datetime


class SubmissionHistoryResponse(BaseModel):
    """A vendor's submissions split into initial items and follow-ups."""

    initial: list[SubmissionResponse]
    follow_ups: list[SubmissionResponse]


class ChecklistSubmissionRequest(FollowUpDecisionRequest):
    """Checklist submission; ``checklist_id`` null means the manual bucket."""

    checklist_id: int | None
