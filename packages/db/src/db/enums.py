# This project was developed with assistance from AI tools.
"""
Domain enums for the questionnaire completion workflow.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas (api package).
"""

import enum


class ExtractionStatus(str, enum.Enum):
    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    COMPLETED = "completed"
    ERROR = "error"

    @classmethod
    def valid_transitions(cls) -> dict["ExtractionStatus", frozenset["ExtractionStatus"]]:
        """Allowed extraction status transitions for a checklist."""
        return {
            cls.UPLOADING: frozenset({cls.EXTRACTING, cls.ERROR}),
            cls.EXTRACTING: frozenset({cls.COMPLETED, cls.ERROR}),
            cls.COMPLETED: frozenset(),
            cls.ERROR: frozenset(),
        }


class QuestionStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    DONE = "done"
    NEEDS_SUPPORT = "needs-support"

    @classmethod
    def answered_statuses(cls) -> frozenset["QuestionStatus"]:
        """Statuses that require (and imply) a non-empty answer."""
        return frozenset({cls.COMPLETED, cls.DONE})

    @classmethod
    def valid_transitions(cls) -> dict["QuestionStatus", frozenset["QuestionStatus"]]:
        """Allowed status transitions in the question lifecycle.

        IN_PROGRESS may fall back to any earlier status when an edit is
        cancelled; DONE is only entered from COMPLETED or from an edit save.
        """
        return {
            cls.PENDING: frozenset({cls.IN_PROGRESS, cls.NEEDS_SUPPORT}),
            cls.IN_PROGRESS: frozenset(
                {cls.PENDING, cls.COMPLETED, cls.DONE, cls.NEEDS_SUPPORT}
            ),
            cls.COMPLETED: frozenset({cls.DONE, cls.IN_PROGRESS}),
            cls.DONE: frozenset({cls.IN_PROGRESS}),
            cls.NEEDS_SUPPORT: frozenset({cls.IN_PROGRESS}),
        }


class FollowUpType(str, enum.Enum):
    INITIAL = "initial"
    FOLLOW_UP = "follow_up"
    RESUBMISSION = "resubmission"
    CLARIFICATION = "clarification"
    ADDITIONAL_DOCS = "additional_docs"


class SubmissionSubject(str, enum.Enum):
    CHECKLIST = "checklist"
    QUESTION = "question"
    DOCUMENT = "document"


class PortalCategory(str, enum.Enum):
    QUESTIONNAIRE = "Questionnaire"
    EVIDENCE = "Evidence"
