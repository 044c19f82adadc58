"""FastAPI app for the QMS Quiz Service:
- /api/quizzes: quiz CRUD for instructors, published listing and batch lookup

Reads of single quizzes and of the published list go through the Redis
read-through cache; every write invalidates the affected keys.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from packages.common.cache import ReadThroughCache, RedisBackend
from packages.common.config import get_settings
from packages.common.errors import install_error_handlers
from packages.common.logging import configure_logging
from packages.common.tracing import trace_middleware
from .catalog import QuizCatalog
from .repo import QuizRepository, init_db, make_engine
from .routes import router as quiz_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize database and cache at startup; release them on shutdown."""
    s = get_settings()
    logger = configure_logging(s.LOG_LEVEL)
    engine = make_engine(s.POSTGRES_DSN)
    await init_db(engine)
    backend = RedisBackend(s.REDIS_URL)
    cache = ReadThroughCache(backend, prefix="quiz", ttl_sec=s.QUIZ_CACHE_TTL)
    app.state.catalog = QuizCatalog(QuizRepository.from_engine(engine), cache, s.QUIZ_LIST_CACHE_TTL)
    app.state.batch_limit = s.QUIZ_BATCH_LIMIT
    logger.info("Quiz service started (env=%s)", s.ENV)
    try:
        yield
    finally:
        await backend.close()
        await engine.dispose()


app = FastAPI(title="QMS Quiz Service", version="1.0.0", lifespan=lifespan)
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(quiz_router)


@app.get("/healthz", tags=["infra"])
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/metrics", tags=["infra"])
def metrics() -> PlainTextResponse:
    return PlainTextResponse(generate_latest().decode("utf-8"), media_type=CONTENT_TYPE_LATEST)
