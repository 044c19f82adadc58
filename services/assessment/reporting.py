"""Read side of the Assessment service: learner history and aggregate stats."""

import logging
from typing import Iterable, Optional, Protocol

from packages.common.errors import ServiceError
from packages.schemas.assessment import HistoryEntry, InstructorStats, StudentStats
from packages.schemas.quiz import Quiz
from .repo import SubmissionStore, to_schema
from .scorer import round_half_up

log = logging.getLogger(__name__)

UNKNOWN_TITLE = "Unknown Assessment"


class QuizCatalog(Protocol):
    async def get_quizzes(self, quiz_ids: Iterable[str], authorization: Optional[str] = None) -> dict[str, Quiz]: ...


async def history(
    store: SubmissionStore,
    quizzes: QuizCatalog,
    learner_id: str,
    limit: int = 5,
    authorization: Optional[str] = None,
) -> list[HistoryEntry]:
    """Most recent scored submissions of a learner, newest first, with quiz titles.

    Titles come from one batch lookup. If it fails, or a quiz is gone, the
    entry carries a placeholder title instead of failing the call.
    """
    rows = await store.history(learner_id, limit)
    titles: dict[str, str] = {}
    if rows:
        try:
            found = await quizzes.get_quizzes({r.quiz_id for r in rows}, authorization)
            titles = {qid: q.title for qid, q in found.items()}
        except ServiceError as exc:
            log.warning("Quiz titles unavailable for history: %s", exc.detail, extra={"learner_id": learner_id})
    return [
        HistoryEntry(**to_schema(r).model_dump(), quiz_title=titles.get(r.quiz_id, UNKNOWN_TITLE))
        for r in rows
    ]


async def instructor_stats(store: SubmissionStore, quiz_ids: Iterable[str]) -> InstructorStats:
    """Distinct learners and mean score (nearest integer) over Submitted rows of the quizzes."""
    learners, mean = await store.quiz_summary(sorted(set(quiz_ids)))
    average = int(round_half_up(mean, 0)) if mean is not None else 0
    return InstructorStats(active_learner_count=learners, average_score=average)


async def student_stats(store: SubmissionStore, learner_id: str, threshold: float = 70) -> StudentStats:
    """Submitted count and how many of those reached the certificate threshold."""
    completed, certificates = await store.learner_summary(learner_id, threshold)
    return StudentStats(completed_count=completed, certificate_count=certificates)
