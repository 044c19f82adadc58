"""Assessment schemas for submissions, grading jobs, history, and stats."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from pydantic import AliasChoices, Field

from .quiz import CamelModel

# A string for single-valued questions, a list of strings for multi-select.
SelectedValue = Union[str, List[str]]


class SubmissionStatus(str, Enum):
    """Lifecycle states of a submission."""
    DRAFT = "Draft"
    PROCESSING = "Processing"  # finalized, waiting for the grading worker
    SUBMITTED = "Submitted"
    COMPLETED = "Completed"  # legacy rows only
    GRADED = "Graded"
    ERROR = "Error"


SCORED_STATUSES = frozenset({SubmissionStatus.SUBMITTED, SubmissionStatus.COMPLETED, SubmissionStatus.GRADED})
HISTORY_STATUSES = SCORED_STATUSES


class Answer(CamelModel):
    """One answer: the question it targets and the learner's selection."""
    question_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("questionId", "question_id"),
    )
    selected_value: SelectedValue = Field(
        validation_alias=AliasChoices("selectedValue", "selected_value", "selectedOptions"),
    )


class SubmissionRequest(CamelModel):
    """Payload of submit and save-draft."""
    quiz_id: str = Field(min_length=1)
    answers: List[Answer]


class FinalizeRequest(CamelModel):
    """Payload of finalize: hand the learner's draft to deferred grading."""
    quiz_id: str = Field(min_length=1)


class InstructorStatsRequest(CamelModel):
    """Quizzes an instructor wants aggregate stats for."""
    quiz_ids: List[str]


class Submission(CamelModel):
    """A stored submission as returned to callers."""
    id: str
    learner_id: str
    quiz_id: str
    answers: List[Answer] = []
    score: Optional[float] = None
    status: SubmissionStatus
    submitted_at: Optional[datetime] = None
    graded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HistoryEntry(Submission):
    """A submission enriched with its quiz title."""
    quiz_title: str


class SubmitResponse(CamelModel):
    """Result of an inline submit: the final score, synchronously."""
    message: str = "Assessment completed successfully."
    submission_id: str
    score: float


class DraftResponse(CamelModel):
    message: str = "Draft saved"
    submission: Submission


class FinalizeResponse(CamelModel):
    message: str = "Submission queued for grading."
    submission_id: str
    status: SubmissionStatus


class GradingJob(CamelModel):
    """Message consumed by the grading worker."""
    submission_id: str = Field(min_length=1)
    quiz_id: str = Field(min_length=1)
    answers: List[Answer]


class InstructorStats(CamelModel):
    active_learner_count: int
    average_score: int


class StudentStats(CamelModel):
    completed_count: int
    certificate_count: int
