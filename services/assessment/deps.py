"""Dependency wiring for the Assessment service.

Collaborators are built once (at startup, or by tests) and attached to
`app.state`; route handlers receive them through these dependencies.
"""

from dataclasses import dataclass

from fastapi import FastAPI, Request

from .grading import DeferredGrader, InlineGrader, JobQueue
from .quiz_client import QuizLookupClient
from .repo import SubmissionStore


@dataclass
class GradingContext:
    store: SubmissionStore
    quizzes: QuizLookupClient
    inline: InlineGrader
    deferred: DeferredGrader
    history_limit: int = 5
    certificate_threshold: float = 70


def configure_state(
    app: FastAPI,
    *,
    store: SubmissionStore,
    quizzes: QuizLookupClient,
    queue: JobQueue,
    topic: str,
    history_limit: int = 5,
    certificate_threshold: float = 70,
) -> GradingContext:
    """Build both graders around the shared store and quiz client and attach them to `app`."""
    ctx = GradingContext(
        store=store,
        quizzes=quizzes,
        inline=InlineGrader(store, quizzes),
        deferred=DeferredGrader(store, quizzes, queue, topic),
        history_limit=history_limit,
        certificate_threshold=certificate_threshold,
    )
    app.state.grading = ctx
    return ctx


def get_context(request: Request) -> GradingContext:
    return request.app.state.grading
