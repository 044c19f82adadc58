# services/assessment/routes.py
from typing import Any, List, Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from packages.common.auth import User, get_current_user
from packages.common.errors import NotFoundError, parse_payload
from packages.common.rbac import ensure_self_or_elevated, require_roles
from packages.schemas.assessment import (
    DraftResponse,
    FinalizeResponse,
    HistoryEntry,
    InstructorStats,
    InstructorStatsRequest,
    StudentStats,
    Submission,
    SubmitResponse,
)
from . import reporting
from .deps import GradingContext, get_context
from .grading import save_draft
from .repo import to_schema

router = APIRouter(prefix="/api/assessment", tags=["assessment"])


@router.post("/submit", response_model=SubmitResponse, status_code=status.HTTP_201_CREATED)
async def submit(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> SubmitResponse:
    """Grade a submission inline and return its score in this response."""
    return await ctx.inline.submit(user.sub, payload, user.authorization)


@router.post("/save-draft", response_model=DraftResponse)
async def save_draft_route(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> DraftResponse:
    """Create or overwrite the caller's draft for a quiz."""
    return DraftResponse(submission=await save_draft(ctx.store, user.sub, payload))


@router.post("/finalize", response_model=FinalizeResponse, status_code=status.HTTP_202_ACCEPTED)
async def finalize(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> FinalizeResponse:
    """Hand the caller's draft to the grading worker; poll /submissions/{id} for the result."""
    return await ctx.deferred.finalize(user.sub, payload)


@router.get("/submissions/{submission_id}", response_model=Submission)
async def read_submission(
    submission_id: str = Path(..., min_length=1),
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> Submission:
    """Return one submission owned by the caller (or any, for elevated callers)."""
    row = await ctx.store.get(submission_id)
    if row is None:
        raise NotFoundError("Submission not found")
    ensure_self_or_elevated(user, row.learner_id)
    return to_schema(row)


@router.get("/history/student/{learner_id}", response_model=List[HistoryEntry])
async def student_history(
    learner_id: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> List[HistoryEntry]:
    """Recent scored submissions of a learner, newest first, with quiz titles."""
    ensure_self_or_elevated(user, learner_id)
    return await reporting.history(
        ctx.store, ctx.quizzes, learner_id, limit or ctx.history_limit, user.authorization
    )


@router.get("/stats/student/{learner_id}", response_model=StudentStats)
async def student_stats(
    learner_id: str,
    user: User = Depends(get_current_user),
    ctx: GradingContext = Depends(get_context),
) -> StudentStats:
    ensure_self_or_elevated(user, learner_id)
    return await reporting.student_stats(ctx.store, learner_id, ctx.certificate_threshold)


@router.post("/stats/instructor", response_model=InstructorStats)
async def instructor_stats(
    payload: dict[str, Any] = Body(...),
    user: User = Depends(require_roles("Instructor", "Admin")),
    ctx: GradingContext = Depends(get_context),
) -> InstructorStats:
    """Active learners and mean score across the given quizzes."""
    req = parse_payload(InstructorStatsRequest, payload)
    return await reporting.instructor_stats(ctx.store, req.quiz_ids)
