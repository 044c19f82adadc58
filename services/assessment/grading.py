"""Grading paths of the Assessment service.

- save_draft: upsert of the learner's in-progress answers, never scored.
- InlineGrader.submit: lookup + score + persist inside the caller's request.
- DeferredGrader.finalize / enqueue: hand a draft to the grading worker.
- DeferredGrader.process_job: the worker side, always ends in Graded or Error.

Both graders call the same `scorer.score`; neither path has its own rules.
"""

import logging
import time
from typing import Any, Mapping, Optional, Protocol, Sequence

from pydantic import ValidationError as SchemaError

from packages.common.errors import NotFoundError, ServiceError, UpstreamError, parse_payload
from packages.common.tracing import xapi_event
from packages.schemas.assessment import (
    Answer,
    FinalizeRequest,
    FinalizeResponse,
    GradingJob,
    Submission,
    SubmissionRequest,
    SubmissionStatus,
    SubmitResponse,
)
from packages.schemas.quiz import Quiz
from . import scorer
from .metrics import grading_latency_seconds, mark_job, mark_submission
from .repo import SubmissionStore, to_schema

log = logging.getLogger(__name__)


class QuizSource(Protocol):
    async def get_quiz(self, quiz_id: str, authorization: Optional[str] = None) -> Quiz: ...


class JobQueue(Protocol):
    async def publish(self, topic: str, key: str, value: dict[str, Any]) -> None: ...


async def save_draft(store: SubmissionStore, learner_id: str, payload: Any) -> Submission:
    """Create or overwrite the learner's single draft for the quiz. No scoring."""
    req = parse_payload(SubmissionRequest, payload)
    row = await store.save_draft(learner_id, req.quiz_id, req.answers)
    mark_submission("draft", "saved")
    log.info("Draft saved", extra={"submission_id": row.id, "quiz_id": req.quiz_id, "learner_id": learner_id})
    return to_schema(row)


class InlineGrader:
    """Synchronous grading: the caller gets the final score or an error, never 'pending'."""

    def __init__(self, store: SubmissionStore, quizzes: QuizSource) -> None:
        self._store = store
        self._quizzes = quizzes

    async def submit(self, learner_id: str, payload: Any, authorization: Optional[str] = None) -> SubmitResponse:
        """Validate, look up the quiz, score, persist, and return the score.

        Nothing is written unless the score was computed.

        Raises:
            ValidationError: Malformed payload.
            NotFoundError: The quiz does not exist.
            UpstreamError: The quiz service could not be reached.
        """
        req = parse_payload(SubmissionRequest, payload)
        started = time.perf_counter()
        try:
            quiz = await self._quizzes.get_quiz(req.quiz_id, authorization)
        except ServiceError as exc:
            mark_submission("inline", exc.code)
            log.warning(
                "Inline grading aborted: %s", exc.detail,
                extra={"quiz_id": req.quiz_id, "learner_id": learner_id},
            )
            raise
        points = scorer.score(quiz, req.answers)
        row = await self._store.create_submitted(learner_id, req.quiz_id, req.answers, points)
        grading_latency_seconds.labels(path="inline").observe(time.perf_counter() - started)
        mark_submission("inline", "graded")
        log.info(
            "Submission graded inline",
            extra={"submission_id": row.id, "quiz_id": req.quiz_id, "learner_id": learner_id, "score": points},
        )
        xapi_event(learner_id, "completed", req.quiz_id, submission_id=row.id, score=points,
                   max_score=scorer.max_score(quiz))
        return SubmitResponse(submission_id=row.id, score=points)


class DeferredGrader:
    """Queue-backed grading; producers return immediately, the worker grades later."""

    def __init__(
        self,
        store: SubmissionStore,
        quizzes: QuizSource,
        queue: Optional[JobQueue] = None,
        topic: str = "grading-jobs",
    ) -> None:
        """
        Args:
            store: Submission store shared with the inline path.
            quizzes: Quiz lookups (the worker's client carries a service token).
            queue: Job producer; the worker process, which only consumes, omits it.
            topic: Topic grading jobs are published to.
        """
        self._store = store
        self._quizzes = quizzes
        self._queue = queue
        self._topic = topic

    async def enqueue(self, submission_id: str, quiz_id: str, answers: Sequence[Answer]) -> None:
        """Publish a grading job for an existing submission, keyed by its id."""
        if self._queue is None:
            raise RuntimeError("DeferredGrader was built without a job queue")
        job = GradingJob(submission_id=submission_id, quiz_id=quiz_id, answers=list(answers))
        await self._queue.publish(self._topic, submission_id, job.model_dump(by_alias=True))

    async def finalize(self, learner_id: str, payload: Any) -> FinalizeResponse:
        """Move the learner's draft for a quiz to Processing and queue it.

        If the job cannot be published the submission is marked Error, so it
        never waits on a job that does not exist.

        Raises:
            ValidationError: Malformed payload.
            NotFoundError: No draft exists for this learner and quiz.
            UpstreamError: The job queue rejected the message.
        """
        req = parse_payload(FinalizeRequest, payload)
        draft = await self._store.get_draft(learner_id, req.quiz_id)
        if draft is None or not await self._store.mark_processing(draft.id):
            raise NotFoundError("No draft to finalize for this quiz")
        answers = [Answer.model_validate(a) for a in draft.answers]
        try:
            await self.enqueue(draft.id, req.quiz_id, answers)
        except Exception as exc:
            log.exception("Could not queue grading job", extra={"submission_id": draft.id, "quiz_id": req.quiz_id})
            await self._store.mark_error(draft.id)
            mark_submission("finalize", "queue_failed")
            raise UpstreamError("Could not queue submission for grading") from exc
        mark_submission("finalize", "queued")
        xapi_event(learner_id, "submitted", req.quiz_id, submission_id=draft.id)
        return FinalizeResponse(submission_id=draft.id, status=SubmissionStatus.PROCESSING)

    async def process_job(self, raw: Mapping[str, Any] | GradingJob) -> Optional[SubmissionStatus]:
        """Grade one queued submission.

        Idempotent: the outcome overwrites score/status/graded_at, and scoring
        is a pure function of the quiz and the answers, so a redelivered job
        stores the same score again.

        Returns:
            The terminal status written, or None if the job was discarded
            (unreadable job, or the submission no longer exists).
        """
        try:
            job = GradingJob.model_validate(raw)
        except SchemaError:
            sid = raw.get("submissionId") if isinstance(raw, Mapping) else None
            if isinstance(sid, str) and sid:
                log.error("Malformed grading job; marking submission as failed", extra={"submission_id": sid})
                await self._store.mark_error(sid)
                mark_job("error")
                return SubmissionStatus.ERROR
            log.error("Discarding grading job without a submission reference: %r", raw)
            mark_job("discarded")
            return None

        row = await self._store.get(job.submission_id)
        if row is None:
            log.warning("Submission vanished before grading", extra={"submission_id": job.submission_id})
            mark_job("discarded")
            return None

        started = time.perf_counter()
        try:
            quiz = await self._quizzes.get_quiz(job.quiz_id)
            points = scorer.score(quiz, job.answers)
        except Exception:
            log.exception("Grading failed", extra={"submission_id": job.submission_id, "quiz_id": job.quiz_id})
            await self._store.mark_error(job.submission_id)
            mark_job("error")
            xapi_event(row.learner_id, "failed", job.quiz_id, submission_id=job.submission_id)
            return SubmissionStatus.ERROR

        await self._store.mark_graded(job.submission_id, points)
        grading_latency_seconds.labels(path="deferred").observe(time.perf_counter() - started)
        mark_job("graded")
        log.info(
            "Submission graded",
            extra={"submission_id": job.submission_id, "quiz_id": job.quiz_id, "score": points},
        )
        xapi_event(row.learner_id, "graded", job.quiz_id, submission_id=job.submission_id, score=points)
        return SubmissionStatus.GRADED
