# This project was developed with assistance from AI tools.
"""Checklist completeness response schemas."""

from db.enums import QuestionStatus
from pydantic import BaseModel


class IncompleteQuestion(BaseModel):
    """A question blocking checklist submission, with the reasons why."""

    question_id: int
    question_text: str
    status: QuestionStatus
    missing_answer: bool = False
    missing_document: bool = False
    document_description: str | None = None


class CompletenessResponse(BaseModel):
    """Submission readiness summary for a checklist."""

    checklist_id: int | None = None
    is_complete: bool
    total_questions: int
    completed_questions: int
    confirmed_questions: int
    questions_needing_docs: int
    questions_with_docs: int
    incomplete_questions: list[IncompleteQuestion] = []
