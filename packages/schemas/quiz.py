"""Quiz schemas: questions, quizzes, and authoring payloads.

Quizzes travel between the quiz service and the assessment service as
camelCase JSON; snake_case field names are accepted on input as well.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serializing to camelCase while accepting either case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QuestionType(str, Enum):
    """Question type tags understood by the scoring engine."""
    SINGLE_CHOICE = "single-choice"
    MULTI_SELECT = "multi-select"
    BOOLEAN = "boolean"
    FREE_TEXT = "free-text"


# Labels used by quizzes authored before the tags were normalized.
LEGACY_TYPE_ALIASES = {
    "MCQ": QuestionType.SINGLE_CHOICE,
    "Multi-Select": QuestionType.MULTI_SELECT,
    "True/False": QuestionType.BOOLEAN,
    "Short Answer": QuestionType.FREE_TEXT,
}


def canonical_type(tag: str) -> Optional[QuestionType]:
    """Map a stored type tag to a `QuestionType`, or None if unrecognized."""
    if tag in LEGACY_TYPE_ALIASES:
        return LEGACY_TYPE_ALIASES[tag]
    try:
        return QuestionType(tag)
    except ValueError:
        return None


CorrectAnswer = Union[str, bool, List[str], None]


class Question(CamelModel):
    """A quiz question as stored by the authoring side, correct answer included.

    `type` is kept as a plain string so a quiz carrying a tag this version does
    not know still loads; the scoring engine gives such questions 0 points.
    """
    id: str
    text: str = ""
    type: str
    options: List[str] = []
    correct_answer: CorrectAnswer = None
    points: int = Field(default=1, ge=0)


class Quiz(CamelModel):
    """A quiz definition with its ordered questions."""
    id: str
    title: str
    description: Optional[str] = None
    instructor_id: Optional[str] = None
    is_published: bool = False
    questions: List[Question] = []
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None  # minutes


class QuestionIn(CamelModel):
    """Question payload accepted when creating or replacing a quiz."""
    id: Optional[str] = None
    text: str = Field(min_length=1)
    type: QuestionType
    options: List[str] = []
    correct_answer: CorrectAnswer
    points: int = Field(default=1, ge=0)

    @field_validator("type", mode="before")
    @classmethod
    def _accept_legacy_tags(cls, v: object) -> object:
        if isinstance(v, str) and v in LEGACY_TYPE_ALIASES:
            return LEGACY_TYPE_ALIASES[v]
        return v

    @model_validator(mode="after")
    def _answer_matches_type(self) -> "QuestionIn":
        ans = self.correct_answer
        if self.type is QuestionType.MULTI_SELECT:
            if not isinstance(ans, list) or not ans:
                raise ValueError("multi-select questions need a non-empty list of correct answers")
        elif self.type is QuestionType.BOOLEAN:
            if not isinstance(ans, (bool, str)):
                raise ValueError("boolean questions need a true/false correct answer")
        elif not isinstance(ans, str) or not ans.strip():
            raise ValueError(f"{self.type.value} questions need a single correct answer string")
        if self.type is QuestionType.FREE_TEXT and self.options:
            raise ValueError("free-text questions take no options")
        return self


def _as_utc(ts: datetime) -> datetime:
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


class QuizIn(CamelModel):
    """Payload for creating or replacing a quiz."""
    title: str = Field(min_length=1)
    description: Optional[str] = None
    is_published: bool = False
    questions: List[QuestionIn] = Field(min_length=1)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, ge=0, description="Time limit in minutes")

    @model_validator(mode="after")
    def _window_is_ordered(self) -> "QuizIn":
        if self.start_time and self.end_time and _as_utc(self.end_time) <= _as_utc(self.start_time):
            raise ValueError("endTime must be after startTime")
        return self
