"""Shared pytest fixtures for the QMS services.

Databases are in-memory SQLite (aiosqlite) shared through a StaticPool; the
quiz service and the job queue are replaced by in-process fakes, and the
authenticated caller is injected through `app.dependency_overrides`.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Iterable, Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from packages.common.auth import User, get_current_user
from packages.common.errors import NotFoundError, UpstreamError
from packages.schemas.quiz import Quiz

SQLITE_DSN = "sqlite+aiosqlite:///:memory:"


class TickingClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(minutes=1)) -> None:
        self.now = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self) -> datetime:
        self.now += self.step
        return self.now


class FakeQuizSource:
    """In-process stand-in for `QuizLookupClient`."""

    def __init__(self, *quizzes: Quiz) -> None:
        self.quizzes = {q.id: q for q in quizzes}
        self.failure: Optional[Exception] = None
        self.calls: list[tuple[str, Any, Optional[str]]] = []

    def add(self, quiz: Quiz) -> Quiz:
        self.quizzes[quiz.id] = quiz
        return quiz

    async def get_quiz(self, quiz_id: str, authorization: Optional[str] = None) -> Quiz:
        self.calls.append(("get_quiz", quiz_id, authorization))
        if self.failure is not None:
            raise self.failure
        if quiz_id not in self.quizzes:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        return self.quizzes[quiz_id]

    async def get_quizzes(self, quiz_ids: Iterable[str], authorization: Optional[str] = None) -> dict[str, Quiz]:
        ids = sorted(set(quiz_ids))
        self.calls.append(("get_quizzes", ids, authorization))
        if self.failure is not None:
            raise self.failure
        return {i: self.quizzes[i] for i in ids if i in self.quizzes}

    async def aclose(self) -> None:
        pass


class FakeQueue:
    """Records published jobs; raises `failure` instead when it is set."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str, dict[str, Any]]] = []
        self.failure: Optional[Exception] = None

    async def publish(self, topic: str, key: str, value: dict[str, Any]) -> None:
        if self.failure is not None:
            raise self.failure
        self.published.append((topic, key, value))


def make_quiz(quiz_id: str = "quiz-1", title: str = "Algebra Basics", **overrides: Any) -> Quiz:
    """A small quiz touching every question type (max score 6)."""
    data: dict[str, Any] = {
        "id": quiz_id,
        "title": title,
        "instructorId": "teacher-1",
        "isPublished": True,
        "questions": [
            {"id": "q1", "type": "single-choice", "options": ["3", "4"], "correctAnswer": "4", "points": 1},
            {"id": "q2", "type": "boolean", "correctAnswer": True, "points": 1},
            {"id": "q3", "type": "free-text", "correctAnswer": "Paris", "points": 2},
            {"id": "q4", "type": "multi-select", "options": ["a", "b", "c", "d"], "correctAnswer": ["a", "b"], "points": 2},
        ],
    }
    data.update(overrides)
    return Quiz.model_validate(data)


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def quiz() -> Quiz:
    return make_quiz()


@pytest.fixture
def quiz_source(quiz: Quiz) -> FakeQuizSource:
    return FakeQuizSource(quiz)


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


@pytest_asyncio.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    eng = create_async_engine(SQLITE_DSN, poolclass=StaticPool, connect_args={"check_same_thread": False})
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def store(engine: AsyncEngine, clock: TickingClock):
    from services.assessment.repo import SubmissionStore, init_db

    await init_db(engine)
    return SubmissionStore.from_engine(engine, clock=clock)


class CallerOverride:
    """Mutable authenticated caller used by the API tests."""

    def __init__(self) -> None:
        self.user = User(sub="learner-1", roles=["Student"], token="learner-token")

    def set(self, sub: str, *roles: str, token: Optional[str] = None) -> User:
        self.user = User(sub=sub, roles=list(roles), token=token or f"{sub}-token")
        return self.user

    def __call__(self) -> User:
        return self.user


@pytest.fixture
def caller() -> CallerOverride:
    return CallerOverride()


@pytest_asyncio.fixture
async def assessment_client(store, quiz_source: FakeQuizSource, queue: FakeQueue, caller: CallerOverride):
    from services.assessment.app import app
    from services.assessment.deps import configure_state

    configure_state(app, store=store, quizzes=quiz_source, queue=queue, topic="grading-jobs")
    app.dependency_overrides[get_current_user] = caller
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def catalog(engine: AsyncEngine):
    from packages.common.cache import MemoryBackend, ReadThroughCache
    from services.quiz.catalog import QuizCatalog
    from services.quiz.repo import QuizRepository, init_db

    await init_db(engine)
    cache = ReadThroughCache(MemoryBackend(), prefix="quiz", ttl_sec=300, jitter_sec=0)
    return QuizCatalog(QuizRepository.from_engine(engine), cache, list_ttl_sec=60)


@pytest_asyncio.fixture
async def quiz_client(catalog, caller: CallerOverride):
    from services.quiz.app import app

    app.state.catalog = catalog
    app.state.batch_limit = 3
    app.dependency_overrides[get_current_user] = caller
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def raise_upstream() -> UpstreamError:
    return UpstreamError("Quiz service unreachable")
