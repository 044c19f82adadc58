"""SQLAlchemy models for the Quiz service.

Defines one table:
- QuizRecord: a quiz document; questions (with correct answers) are stored as
  a JSON list in the authoring order.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class QuizRecord(Base):
    """Stored quiz.

    Attributes:
        id: Primary key (uuid4 hex).
        title: Human-readable quiz title.
        description: Optional long description.
        instructor_id: Author (JWT subject of the instructor).
        is_published: Whether learners see it in the published list.
        questions: JSON list of question documents (camelCase keys).
        start_time, end_time: Optional availability window.
        duration: Optional time limit in minutes.
    """

    __tablename__ = "quizzes"
    __table_args__ = (
        Index("ix_quizzes_instructor_published", "instructor_id", "is_published"),
        Index("ix_quizzes_published_created", "is_published", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(32), primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    instructor_id: Mapped[str] = mapped_column(String(64))
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    questions: Mapped[list] = mapped_column(JSON, default=list)
    start_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
