"""Quiz catalog: repository reads behind the read-through cache, writes with invalidation.

Cache keys (prefix `quiz`):
- quiz:<id>            one quiz, TTL `ttl_sec`
- quiz:all_published   the published list, TTL `list_ttl_sec`

Every create, update and delete drops the list key, and update/delete also
drop the quiz's own key, so the grading side never scores against stale
correct-answers for longer than the TTL.
"""

import logging
from typing import Optional, Sequence

from packages.common.cache import ReadThroughCache
from packages.schemas.quiz import Quiz, QuizIn
from .repo import QuizRepository

log = logging.getLogger(__name__)

ALL_PUBLISHED = "all_published"


class QuizCatalog:
    def __init__(self, repo: QuizRepository, cache: ReadThroughCache, list_ttl_sec: int = 60) -> None:
        self._repo = repo
        self._cache = cache
        self._list_ttl = list_ttl_sec

    async def get(self, quiz_id: str) -> Optional[Quiz]:
        async def load() -> Optional[dict]:
            quiz = await self._repo.get(quiz_id)
            return quiz.model_dump(mode="json", by_alias=True) if quiz else None

        data = await self._cache.get_or_load(quiz_id, load)
        return Quiz.model_validate(data) if data is not None else None

    async def list_published(self) -> list[Quiz]:
        async def load() -> list[dict]:
            return [q.model_dump(mode="json", by_alias=True) for q in await self._repo.list_published()]

        data = await self._cache.get_or_load(ALL_PUBLISHED, load, ttl_sec=self._list_ttl)
        return [Quiz.model_validate(d) for d in data]

    async def get_many(self, quiz_ids: Sequence[str]) -> list[Quiz]:
        """Batch lookup by id set; served from the database."""
        return await self._repo.get_many(sorted(set(quiz_ids)))

    async def list_by_instructor(self, instructor_id: str) -> list[Quiz]:
        """An author's own quizzes, drafts included; served from the database."""
        return await self._repo.list_by_instructor(instructor_id)

    async def create(self, instructor_id: str, payload: QuizIn) -> Quiz:
        quiz = await self._repo.create(instructor_id, payload)
        await self._cache.invalidate(ALL_PUBLISHED)
        log.info("Quiz created", extra={"quiz_id": quiz.id})
        return quiz

    async def replace(self, quiz_id: str, payload: QuizIn) -> Optional[Quiz]:
        quiz = await self._repo.replace(quiz_id, payload)
        await self._cache.invalidate(quiz_id, ALL_PUBLISHED)
        if quiz is not None:
            log.info("Quiz updated", extra={"quiz_id": quiz_id})
        return quiz

    async def delete(self, quiz_id: str) -> bool:
        removed = await self._repo.delete(quiz_id)
        await self._cache.invalidate(quiz_id, ALL_PUBLISHED)
        if removed:
            log.info("Quiz removed", extra={"quiz_id": quiz_id})
        return removed
