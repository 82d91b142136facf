# This project was developed with assistance from AI tools.
"""Typed workflow errors.

Every error carries enough context (operation, checklist id, question id)
for the caller to target a scoped retry. Routes translate these into
RFC 7807 Problem Details responses.
"""

from typing import Any


class WorkflowError(Exception):
    """Base class for questionnaire workflow failures."""

    status_code = 500

    def __init__(
        self,
        message: str,
        *,
        operation: str | None = None,
        checklist_id: int | None = None,
        question_id: int | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.checklist_id = checklist_id
        self.question_id = question_id

    def context(self) -> dict[str, Any]:
        """Identifiers a caller needs for a scoped retry."""
        ctx: dict[str, Any] = {}
        if self.operation:
            ctx["operation"] = self.operation
        if self.checklist_id is not None:
            ctx["checklist_id"] = self.checklist_id
        if self.question_id is not None:
            ctx["question_id"] = self.question_id
        return ctx


class ValidationFailure(WorkflowError):
    """Rejected locally before any storage or network call."""

    status_code = 422


class InvalidTransition(ValidationFailure):
    """Question status change not allowed by the lifecycle."""


class FileTooLarge(ValidationFailure):
    """Upload exceeds the configured size limit."""

    status_code = 413


class ExtractionFailure(WorkflowError):
    """Extractor failed; the checklist is kept in ``error`` for inspection."""

    status_code = 422


class EmptyExtractionFailure(ExtractionFailure):
    """Extractor succeeded but produced zero questions."""


class GenerationFailure(WorkflowError):
    """Answer generation failed; the question is now ``needs-support``."""

    status_code = 502


class GenerationConflict(WorkflowError):
    """A generation call is already outstanding for the question."""

    status_code = 409


class IncompleteChecklistFailure(WorkflowError):
    """Checklist submission blocked by unanswered questions or missing documents."""

    status_code = 422

    def __init__(self, message: str, *, summary: Any, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.summary = summary

    def context(self) -> dict[str, Any]:
        ctx = super().context()
        ctx["unanswered_questions"] = sum(
            1 for q in self.summary.incomplete_questions if q.missing_answer
        )
        ctx["missing_documents"] = sum(
            1 for q in self.summary.incomplete_questions if q.missing_document
        )
        ctx["total_questions"] = self.summary.total_questions
        return ctx


class NetworkFailure(WorkflowError):
    """A collaborator round-trip (storage, AI service, portal) failed."""

    status_code = 502

    def __init__(self, operation: str, message: str | None = None, **kwargs: Any):
        super().__init__(message or f"{operation} failed", operation=operation, **kwargs)
