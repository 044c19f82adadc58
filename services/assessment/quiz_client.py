"""HTTP client for the quiz service, the grading core's source of correct answers.

Failures are translated into the shared error taxonomy:
- 404 from the quiz service -> NotFoundError
- transport errors, timeouts, other non-2xx, unparseable bodies -> UpstreamError
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError as SchemaError

from packages.common.errors import NotFoundError, UpstreamError
from packages.common.logging import get_request_id
from packages.schemas.quiz import Quiz

log = logging.getLogger(__name__)

_QUIZ_LIST = TypeAdapter(list[Quiz])


class QuizLookupClient:
    """Targeted and batch quiz lookups against `GET {base_url}/{id}` and `GET {base_url}/?ids=`."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        default_authorization: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Args:
            base_url: Quiz collection URL, e.g. http://quiz-service:5002/api/quizzes
            timeout: Per-request timeout in seconds.
            default_authorization: `Authorization` header used when the caller
                does not forward one (the grading worker).
            transport: Optional httpx transport (tests use `httpx.MockTransport`).
        """
        self._default_auth = default_authorization
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + "/",
            timeout=timeout,
            transport=transport,
        )

    def _headers(self, authorization: Optional[str]) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        auth = authorization or self._default_auth
        if auth:
            headers["Authorization"] = auth
        rid = get_request_id()
        if rid:
            headers["X-Request-ID"] = rid
        return headers

    async def _get(self, path: str, authorization: Optional[str], **params) -> httpx.Response:
        try:
            return await self._client.get(path, params=params or None, headers=self._headers(authorization))
        except httpx.HTTPError as exc:
            log.warning("Quiz service request failed: %s", exc)
            raise UpstreamError("Quiz service unreachable") from exc

    def _raise_for_error(self, resp: httpx.Response) -> None:
        if resp.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            log.error(
                "Quiz service rejected the credentials (%s); a static QUIZ_SERVICE_TOKEN must be rotated before it expires",
                resp.status_code,
            )
        if resp.is_error:
            raise UpstreamError(f"Quiz service answered {resp.status_code}")

    async def get_quiz(self, quiz_id: str, authorization: Optional[str] = None) -> Quiz:
        """Fetch one quiz with its correct answers.

        Raises:
            NotFoundError: The quiz service does not know `quiz_id`.
            UpstreamError: The lookup could not be completed.
        """
        resp = await self._get(quote(quiz_id, safe=""), authorization)
        if resp.status_code == httpx.codes.NOT_FOUND:
            raise NotFoundError(f"Quiz {quiz_id} not found")
        self._raise_for_error(resp)
        try:
            return Quiz.model_validate(resp.json())
        except (ValueError, SchemaError) as exc:
            raise UpstreamError("Quiz service returned an unreadable quiz") from exc

    async def get_quizzes(self, quiz_ids: Iterable[str], authorization: Optional[str] = None) -> Dict[str, Quiz]:
        """Fetch several quizzes in one call, keyed by id.

        Ids the quiz service does not know are simply absent from the result.

        Raises:
            UpstreamError: The lookup could not be completed.
        """
        ids = sorted(set(quiz_ids))
        if not ids:
            return {}
        resp = await self._get("", authorization, ids=ids)
        self._raise_for_error(resp)
        try:
            quizzes = _QUIZ_LIST.validate_python(resp.json())
        except (ValueError, SchemaError) as exc:
            raise UpstreamError("Quiz service returned an unreadable quiz list") from exc
        return {q.id: q for q in quizzes}

    async def aclose(self) -> None:
        await self._client.aclose()
