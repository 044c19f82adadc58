"""FastAPI app for the QMS Assessment Service:
- /api/assessment/submit: inline grading, score returned in the response
- /api/assessment/save-draft, /finalize: drafts and deferred grading
- /api/assessment/history, /stats: learner history and aggregate stats

Collaborators (submission store, quiz client, Kafka producer) are created in
the lifespan handler from settings and attached through `configure_state`.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from packages.common.config import get_settings
from packages.common.errors import install_error_handlers
from packages.common.events import EventBus
from packages.common.logging import configure_logging
from packages.common.tracing import trace_middleware
from .deps import configure_state
from .quiz_client import QuizLookupClient
from .repo import SubmissionStore, init_db, make_engine
from .routes import router as assessment_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize service dependencies at startup and release them on shutdown."""
    s = get_settings()
    logger = configure_logging(s.LOG_LEVEL)
    engine = make_engine(s.POSTGRES_DSN)
    await init_db(engine)
    quizzes = QuizLookupClient(s.QUIZ_SERVICE_URL, timeout=s.QUIZ_SERVICE_TIMEOUT)
    bus = EventBus(s.KAFKA_BOOTSTRAP, client_id=f"{s.SERVICE_NAME}-assessment")
    configure_state(
        app,
        store=SubmissionStore.from_engine(engine),
        quizzes=quizzes,
        queue=bus,
        topic=s.GRADING_TOPIC,
        history_limit=s.HISTORY_LIMIT,
        certificate_threshold=s.CERTIFICATE_THRESHOLD,
    )
    logger.info("Assessment service started (env=%s)", s.ENV)
    try:
        yield
    finally:
        await quizzes.aclose()
        bus.close()
        await engine.dispose()


app = FastAPI(title="QMS Assessment Service", version="1.0.0", lifespan=lifespan)
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(assessment_router)


@app.get("/healthz", tags=["infra"])
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["infra"])
def metrics() -> PlainTextResponse:
    data = generate_latest()
    return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
