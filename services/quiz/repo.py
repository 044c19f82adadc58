"""Repository layer for the Quiz service.

Provides async database initialization and CRUD helpers for quiz documents.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from packages.schemas.quiz import Quiz, QuizIn
from .models import Base, QuizRecord, utcnow


def make_engine(dsn: str) -> AsyncEngine:
    return create_async_engine(dsn, echo=False, pool_pre_ping=True)


async def init_db(engine: AsyncEngine) -> None:
    """Create database schema if it doesn't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def to_schema(row: QuizRecord) -> Quiz:
    return Quiz.model_validate(row, from_attributes=True)


def _question_documents(payload: QuizIn) -> list[dict]:
    docs = []
    for q in payload.questions:
        doc = q.model_dump(mode="json", by_alias=True)
        doc["id"] = q.id or uuid.uuid4().hex
        docs.append(doc)
    return docs


class QuizRepository:
    """Quiz documents in the quiz database."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessionmaker

    @classmethod
    def from_engine(cls, engine: AsyncEngine) -> "QuizRepository":
        return cls(async_sessionmaker(engine, expire_on_commit=False))

    async def create(self, instructor_id: str, payload: QuizIn) -> Quiz:
        """Insert a new quiz and return it with generated ids."""
        now = utcnow()
        row = QuizRecord(
            id=uuid.uuid4().hex,
            title=payload.title,
            description=payload.description,
            instructor_id=instructor_id,
            is_published=payload.is_published,
            questions=_question_documents(payload),
            start_time=payload.start_time,
            end_time=payload.end_time,
            duration=payload.duration,
            created_at=now,
            updated_at=now,
        )
        async with self._sessions() as session:
            session.add(row)
            await session.commit()
        return to_schema(row)

    async def replace(self, quiz_id: str, payload: QuizIn) -> Optional[Quiz]:
        """Overwrite a quiz's content; None if it does not exist."""
        async with self._sessions() as session:
            row = await session.get(QuizRecord, quiz_id)
            if row is None:
                return None
            row.title = payload.title
            row.description = payload.description
            row.is_published = payload.is_published
            row.questions = _question_documents(payload)
            row.start_time = payload.start_time
            row.end_time = payload.end_time
            row.duration = payload.duration
            row.updated_at = utcnow()
            await session.commit()
            return to_schema(row)

    async def delete(self, quiz_id: str) -> bool:
        async with self._sessions() as session:
            row = await session.get(QuizRecord, quiz_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    async def get(self, quiz_id: str) -> Optional[Quiz]:
        async with self._sessions() as session:
            row = await session.get(QuizRecord, quiz_id)
            return to_schema(row) if row is not None else None

    async def get_many(self, quiz_ids: Sequence[str]) -> list[Quiz]:
        """Quizzes whose id is in `quiz_ids`, published or not."""
        if not quiz_ids:
            return []
        async with self._sessions() as session:
            res = await session.execute(select(QuizRecord).where(QuizRecord.id.in_(list(quiz_ids))))
            return [to_schema(r) for r in res.scalars()]

    async def list_published(self) -> list[Quiz]:
        async with self._sessions() as session:
            res = await session.execute(
                select(QuizRecord).where(QuizRecord.is_published.is_(True)).order_by(QuizRecord.created_at.desc())
            )
            return [to_schema(r) for r in res.scalars()]

    async def list_by_instructor(self, instructor_id: str) -> list[Quiz]:
        """All quizzes authored by `instructor_id`, published or not, newest first."""
        async with self._sessions() as session:
            res = await session.execute(
                select(QuizRecord)
                .where(QuizRecord.instructor_id == instructor_id)
                .order_by(QuizRecord.created_at.desc())
            )
            return [to_schema(r) for r in res.scalars()]
