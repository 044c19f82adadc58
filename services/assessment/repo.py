"""Repository layer for the Assessment service.

`SubmissionStore` is the only component that touches the submissions table.
Every state transition is a single statement or a single transaction, so a
submission is never observed half-written:
- inline submit inserts the scored row and drops the learner's draft together
- grading updates overwrite score/status/graded_at in one UPDATE
"""

import logging
import uuid
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import delete, distinct, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from packages.schemas.assessment import (
    HISTORY_STATUSES,
    Answer,
    Submission,
    SubmissionStatus,
)
from .models import Base, SubmissionRecord, utcnow

log = logging.getLogger(__name__)


def make_engine(dsn: str) -> AsyncEngine:
    """Create the async engine for `dsn` (postgresql+asyncpg://... in production)."""
    return create_async_engine(dsn, echo=False, pool_pre_ping=True)


async def init_db(engine: AsyncEngine) -> None:
    """Create database schema if it doesn't exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def to_schema(row: SubmissionRecord) -> Submission:
    """Convert a stored row into the wire model."""
    return Submission.model_validate(row, from_attributes=True)


def _documents(answers: Iterable[Answer]) -> list[dict]:
    return [a.model_dump(by_alias=True) for a in answers]


class SubmissionStore:
    """Durable submission records and their lifecycle transitions."""

    def __init__(
        self,
        sessionmaker: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Args:
            sessionmaker: Factory for sessions bound to the submissions database.
            clock: Source of timestamps (injectable for tests).
        """
        self._sessions = sessionmaker
        self._now = clock

    @classmethod
    def from_engine(cls, engine: AsyncEngine, **kwargs) -> "SubmissionStore":
        return cls(async_sessionmaker(engine, expire_on_commit=False), **kwargs)

    async def get(self, submission_id: str) -> Optional[SubmissionRecord]:
        async with self._sessions() as session:
            return await session.get(SubmissionRecord, submission_id)

    async def get_draft(self, learner_id: str, quiz_id: str) -> Optional[SubmissionRecord]:
        async with self._sessions() as session:
            return await self._find_draft(session, learner_id, quiz_id)

    @staticmethod
    async def _find_draft(session: AsyncSession, learner_id: str, quiz_id: str) -> Optional[SubmissionRecord]:
        res = await session.execute(
            select(SubmissionRecord).where(
                SubmissionRecord.learner_id == learner_id,
                SubmissionRecord.quiz_id == quiz_id,
                SubmissionRecord.status == SubmissionStatus.DRAFT.value,
            )
        )
        return res.scalar_one_or_none()

    async def save_draft(self, learner_id: str, quiz_id: str, answers: Sequence[Answer]) -> SubmissionRecord:
        """Upsert the learner's draft for `quiz_id`, replacing its answers.

        The overwrite only matches a row that is still a Draft. If the draft
        was finalized in between, it is left alone and a fresh draft is
        created. A concurrent save that wins the insert race trips the
        one-draft unique index; the loser retries as an update of the
        winner's row.
        """
        docs = _documents(answers)
        for _ in range(3):
            async with self._sessions() as session:
                draft = await self._find_draft(session, learner_id, quiz_id)
                now = self._now()
                if draft is not None:
                    res = await session.execute(
                        update(SubmissionRecord)
                        .where(
                            SubmissionRecord.id == draft.id,
                            SubmissionRecord.status == SubmissionStatus.DRAFT.value,
                        )
                        .values(answers=docs, updated_at=now)
                        .execution_options(synchronize_session=False)
                    )
                    await session.commit()
                    if res.rowcount > 0:
                        await session.refresh(draft)
                        return draft
                    log.info("Draft left Draft state during save; creating a new one", extra={"submission_id": draft.id})
                    continue
                draft = SubmissionRecord(
                    id=uuid.uuid4().hex,
                    learner_id=learner_id,
                    quiz_id=quiz_id,
                    answers=docs,
                    status=SubmissionStatus.DRAFT.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(draft)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    log.info("Draft insert raced; retrying as update", extra={"learner_id": learner_id, "quiz_id": quiz_id})
                    continue
                await session.refresh(draft)
                return draft
        raise RuntimeError(f"Could not save draft for learner {learner_id} on quiz {quiz_id}")

    async def create_submitted(
        self, learner_id: str, quiz_id: str, answers: Sequence[Answer], score: float
    ) -> SubmissionRecord:
        """Insert a scored Submitted row and drop the learner's draft, atomically."""
        now = self._now()
        row = SubmissionRecord(
            id=uuid.uuid4().hex,
            learner_id=learner_id,
            quiz_id=quiz_id,
            answers=_documents(answers),
            score=score,
            status=SubmissionStatus.SUBMITTED.value,
            submitted_at=now,
            created_at=now,
            updated_at=now,
        )
        async with self._sessions() as session:
            async with session.begin():
                await session.execute(
                    delete(SubmissionRecord).where(
                        SubmissionRecord.learner_id == learner_id,
                        SubmissionRecord.quiz_id == quiz_id,
                        SubmissionRecord.status == SubmissionStatus.DRAFT.value,
                    )
                )
                session.add(row)
        return row

    async def mark_processing(self, submission_id: str) -> bool:
        """Move a Draft into the deferred grading queue state.

        Returns False if the row is gone or no longer a draft.
        """
        now = self._now()
        return await self._update(
            submission_id,
            only_from=SubmissionStatus.DRAFT,
            status=SubmissionStatus.PROCESSING.value,
            score=None,
            submitted_at=now,
            updated_at=now,
        )

    async def mark_graded(self, submission_id: str, score: float) -> bool:
        """Overwrite the grading outcome; safe to repeat with the same score."""
        now = self._now()
        return await self._update(
            submission_id,
            status=SubmissionStatus.GRADED.value,
            score=score,
            graded_at=now,
            updated_at=now,
        )

    async def mark_error(self, submission_id: str) -> bool:
        """Record a terminal grading failure; the score is cleared."""
        return await self._update(
            submission_id,
            status=SubmissionStatus.ERROR.value,
            score=None,
            graded_at=None,
            updated_at=self._now(),
        )

    async def _update(self, submission_id: str, only_from: Optional[SubmissionStatus] = None, **values) -> bool:
        stmt = update(SubmissionRecord).where(SubmissionRecord.id == submission_id)
        if only_from is not None:
            stmt = stmt.where(SubmissionRecord.status == only_from.value)
        async with self._sessions() as session:
            res = await session.execute(stmt.values(**values))
            await session.commit()
        return res.rowcount > 0

    async def history(self, learner_id: str, limit: int) -> list[SubmissionRecord]:
        """Most recent scored submissions of a learner, newest first."""
        async with self._sessions() as session:
            res = await session.execute(
                select(SubmissionRecord)
                .where(
                    SubmissionRecord.learner_id == learner_id,
                    SubmissionRecord.status.in_([s.value for s in HISTORY_STATUSES]),
                )
                .order_by(SubmissionRecord.submitted_at.desc().nulls_last(), SubmissionRecord.created_at.desc())
                .limit(limit)
            )
            return list(res.scalars())

    async def quiz_summary(self, quiz_ids: Sequence[str]) -> tuple[int, Optional[float]]:
        """(distinct learners, mean score) over Submitted rows of the given quizzes."""
        if not quiz_ids:
            return 0, None
        async with self._sessions() as session:
            res = await session.execute(
                select(func.count(distinct(SubmissionRecord.learner_id)), func.avg(SubmissionRecord.score)).where(
                    SubmissionRecord.quiz_id.in_(list(quiz_ids)),
                    SubmissionRecord.status == SubmissionStatus.SUBMITTED.value,
                )
            )
            learners, mean = res.one()
        return int(learners or 0), (float(mean) if mean is not None else None)

    async def learner_summary(self, learner_id: str, threshold: float) -> tuple[int, int]:
        """(Submitted rows, Submitted rows with score >= threshold) of a learner."""
        async with self._sessions() as session:
            res = await session.execute(
                select(
                    func.count(SubmissionRecord.id),
                    func.count(SubmissionRecord.id).filter(SubmissionRecord.score >= threshold),
                ).where(
                    SubmissionRecord.learner_id == learner_id,
                    SubmissionRecord.status == SubmissionStatus.SUBMITTED.value,
                )
            )
            completed, certificates = res.one()
        return int(completed or 0), int(certificates or 0)
