# This project was developed with assistance from AI tools.
"""
Garnet questionnaire workflow -- domain models

Checklists extracted from uploaded compliance documents, their questions,
supporting evidence, portal submissions, and the audit trail.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import ExtractionStatus, FollowUpType, PortalCategory, QuestionStatus


class Checklist(Base):
    """Uploaded compliance checklist reduced to an ordered set of questions."""

    __tablename__ = "checklists"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    vendor_id = Column(Integer, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    original_filename = Column(String(500), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=True)
    storage_key = Column(String(500), nullable=True)
    storage_url = Column(String(1000), nullable=True)
    extraction_status = Column(
        Enum(ExtractionStatus, name="extraction_status", native_enum=False),
        nullable=False,
        default=ExtractionStatus.UPLOADING,
    )
    error_message = Column(Text, nullable=True)
    sent_to_trust_portal = Column(Boolean, nullable=False, default=False)
    trust_portal_submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    questions = relationship(
        "Question",
        back_populates="checklist",
        cascade="all, delete-orphan",
        order_by="Question.question_order",
    )

    def __repr__(self):
        return f"<Checklist(id={self.id}, status='{self.extraction_status}')>"


class Question(Base):
    """Extracted or manually added compliance question."""

    __tablename__ = "questions"
    __table_args__ = (
        CheckConstraint(
            "confidence IS NULL OR (confidence >= 0 AND confidence <= 1)",
            name="ck_question_confidence_range",
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    checklist_id = Column(
        Integer, ForeignKey("checklists.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    vendor_id = Column(Integer, nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_order = Column(Integer, nullable=False, default=0)
    category = Column(String(100), nullable=True)
    status = Column(
        Enum(QuestionStatus, name="question_status", native_enum=False),
        nullable=False,
        default=QuestionStatus.PENDING,
    )
    answer = Column(Text, nullable=True)
    confidence = Column(Float, nullable=True)
    requires_document = Column(Boolean, nullable=False, default=False)
    document_description = Column(Text, nullable=True)
    is_done = Column(Boolean, nullable=False, default=False)
    # Edit mode bookkeeping
    is_editing = Column(Boolean, nullable=False, default=False)
    pre_edit_status = Column(
        Enum(QuestionStatus, name="question_pre_edit_status", native_enum=False),
        nullable=True,
    )
    # Single-question generation ordering: issued vs last applied call
    generation_seq = Column(Integer, nullable=False, default=0)
    answered_seq = Column(Integer, nullable=False, default=0)
    batch_job_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    checklist = relationship("Checklist", back_populates="questions")
    documents = relationship("SupportingDocument", back_populates="question")

    def __repr__(self):
        return f"<Question(id={self.id}, status='{self.status}')>"


class SupportingDocument(Base):
    """Evidence file attached to a question, or general vendor evidence."""

    __tablename__ = "supporting_documents"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    question_id = Column(
        Integer, ForeignKey("questions.id", ondelete="CASCADE"), nullable=True, index=True,
    )
    vendor_id = Column(Integer, nullable=False, index=True)
    filename = Column(String(500), nullable=False)
    file_type = Column(String(100), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    storage_key = Column(String(500), nullable=True)
    storage_url = Column(String(1000), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    question = relationship("Question", back_populates="documents")

    def __repr__(self):
        return f"<SupportingDocument(id={self.id}, question_id={self.question_id})>"


class SubmissionRecord(Base):
    """Immutable snapshot sent to the review portal. INSERT + SELECT only.

    Subject ids are plain integers so the record outlives its subject.
    """

    __tablename__ = "submission_records"
    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN checklist_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN question_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN document_id IS NULL THEN 0 ELSE 1 END) = 1",
            name="ck_submission_single_subject",
        ),
        CheckConstraint(
            "(is_follow_up AND parent_submission_id IS NOT NULL)"
            " OR (NOT is_follow_up AND parent_submission_id IS NULL)",
            name="ck_submission_follow_up_parent",
        ),
    )
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    checklist_id = Column(Integer, nullable=True, index=True)
    question_id = Column(Integer, nullable=True, index=True)
    document_id = Column(Integer, nullable=True, index=True)
    vendor_id = Column(Integer, nullable=False, index=True)
    title = Column(String(500), nullable=False)
    category = Column(
        Enum(PortalCategory, name="portal_category", native_enum=False),
        nullable=False,
    )
    content = Column(Text, nullable=False)
    is_follow_up = Column(Boolean, nullable=False, default=False)
    follow_up_type = Column(
        Enum(FollowUpType, name="follow_up_type", native_enum=False),
        nullable=False,
        default=FollowUpType.INITIAL,
    )
    follow_up_reason = Column(Text, nullable=True)
    parent_submission_id = Column(
        Integer, ForeignKey("submission_records.id"), nullable=True, index=True,
    )
    portal_id = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    parent = relationship("SubmissionRecord", remote_side=[id])

    def __repr__(self):
        return f"<SubmissionRecord(id={self.id}, follow_up='{self.follow_up_type}')>"


class AuditEvent(Base):
    """Append-only audit trail. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "audit_events"
    __mapper_args__ = {"eager_defaults": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    prev_hash = Column(String(64), nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    vendor_id = Column(Integer, nullable=True, index=True)
    checklist_id = Column(Integer, nullable=True, index=True)
    question_id = Column(Integer, nullable=True, index=True)
    event_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, type='{self.event_type}')>"
