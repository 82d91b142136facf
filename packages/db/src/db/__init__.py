# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, SessionLocal, get_db, get_session_factory
from .enums import (
    ExtractionStatus,
    FollowUpType,
    PortalCategory,
    QuestionStatus,
    SubmissionSubject,
)
from .models import (
    AuditEvent,
    Checklist,
    Question,
    SubmissionRecord,
    SupportingDocument,
)

__all__ = [
    "Base",
    "SessionLocal",
    "get_db",
    "get_session_factory",
    "__version__",
    # Enums
    "ExtractionStatus",
    "FollowUpType",
    "PortalCategory",
    "QuestionStatus",
    "SubmissionSubject",
    # Models
    "AuditEvent",
    "Checklist",
    "Question",
    "SubmissionRecord",
    "SupportingDocument",
]
