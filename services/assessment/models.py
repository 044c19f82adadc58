"""SQLAlchemy models for the Assessment service.

Defines one table:
- SubmissionRecord: a learner's attempt at a quiz and its grading state.
  Answers are kept as a JSON document, exactly as submitted.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Index, String, text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionRecord(Base):
    """Stored submission.

    Attributes:
        id: Primary key (uuid4 hex).
        learner_id: Owning learner (JWT subject).
        quiz_id: Referenced quiz in the quiz service.
        answers: List of `{"questionId", "selectedValue"}` documents.
        score: Raw points; NULL unless status is Submitted/Completed/Graded.
        status: `SubmissionStatus` value.
        submitted_at: Set when submitted inline or finalized for grading.
        graded_at: Set when the grading worker finished.
    """

    __tablename__ = "submissions"
    __table_args__ = (
        # At most one draft per learner and quiz.
        Index(
            "uq_submissions_one_draft",
            "learner_id",
            "quiz_id",
            unique=True,
            postgresql_where=text("status = 'Draft'"),
            sqlite_where=text("status = 'Draft'"),
        ),
        Index("ix_submissions_learner_submitted", "learner_id", "submitted_at"),
        Index("ix_submissions_quiz_status", "quiz_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    learner_id: Mapped[str] = mapped_column(String(64))
    quiz_id: Mapped[str] = mapped_column(String(64))
    answers: Mapped[list] = mapped_column(JSON, default=list)
    score: Mapped[float | None] = mapped_column(Float, nullable=True)
    status: Mapped[str] = mapped_column(String(16))
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    graded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
