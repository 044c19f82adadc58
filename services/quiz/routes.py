# services/quiz/routes.py
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status

from packages.common.auth import User, get_current_user
from packages.common.errors import AuthorizationError, NotFoundError, ValidationError, parse_payload
from packages.common.rbac import ensure_self_or_elevated, require_roles
from packages.schemas.quiz import Quiz, QuizIn
from .catalog import QuizCatalog

router = APIRouter(prefix="/api/quizzes", tags=["quiz"])

instructor_only = require_roles("Instructor")


def get_catalog(request: Request) -> QuizCatalog:
    return request.app.state.catalog


def get_batch_limit(request: Request) -> int:
    return getattr(request.app.state, "batch_limit", 100)


async def _owned(catalog: QuizCatalog, quiz_id: str, user: User) -> Quiz:
    quiz = await catalog.get(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    if quiz.instructor_id != user.sub and not user.is_elevated:
        raise AuthorizationError("Quiz belongs to another instructor")
    return quiz


@router.post("/", response_model=Quiz, status_code=status.HTTP_201_CREATED)
async def create_quiz(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(instructor_only),
    catalog: QuizCatalog = Depends(get_catalog),
) -> Quiz:
    return await catalog.create(user.sub, parse_payload(QuizIn, payload))


@router.get("/", response_model=List[Quiz])
async def list_quizzes(
    ids: Optional[List[str]] = Query(None, description="Batch lookup by id; omit for all published quizzes"),
    _: User = Depends(get_current_user),
    catalog: QuizCatalog = Depends(get_catalog),
    batch_limit: int = Depends(get_batch_limit),
) -> List[Quiz]:
    """All published quizzes, or with `ids` the requested quizzes (published or not)."""
    # Responses include correctAnswer for any authenticated caller; the grading lookups depend on it.
    if ids is None:
        return await catalog.list_published()
    if len(set(ids)) > batch_limit:
        raise ValidationError(f"ids: at most {batch_limit} ids per batch lookup")
    return await catalog.get_many(ids)


@router.get("/instructor/{instructor_id}", response_model=List[Quiz])
async def list_instructor_quizzes(
    instructor_id: str,
    user: User = Depends(require_roles("Instructor", "Admin")),
    catalog: QuizCatalog = Depends(get_catalog),
) -> List[Quiz]:
    """Every quiz of one instructor, unpublished ones included (own quizzes unless elevated)."""
    ensure_self_or_elevated(user, instructor_id)
    return await catalog.list_by_instructor(instructor_id)


@router.get("/{quiz_id}", response_model=Quiz)
async def read_quiz(
    quiz_id: str,
    _: User = Depends(get_current_user),
    catalog: QuizCatalog = Depends(get_catalog),
) -> Quiz:
    # Includes correctAnswer, same as the list routes.
    quiz = await catalog.get(quiz_id)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    return quiz


@router.put("/{quiz_id}", response_model=Quiz)
async def replace_quiz(
    quiz_id: str,
    payload: dict[str, Any] = Body(...),
    user: User = Depends(instructor_only),
    catalog: QuizCatalog = Depends(get_catalog),
) -> Quiz:
    body = parse_payload(QuizIn, payload)
    await _owned(catalog, quiz_id, user)
    quiz = await catalog.replace(quiz_id, body)
    if quiz is None:
        raise NotFoundError("Quiz not found")
    return quiz


@router.delete("/{quiz_id}")
async def delete_quiz(
    quiz_id: str,
    user: User = Depends(instructor_only),
    catalog: QuizCatalog = Depends(get_catalog),
) -> dict[str, str]:
    await _owned(catalog, quiz_id, user)
    if not await catalog.delete(quiz_id):
        raise NotFoundError("Quiz not found")
    return {"message": "Quiz removed"}
