"""Scoring engine shared by the inline and deferred grading paths.

Functions:
- score_exact: single-choice / boolean / free-text, trimmed case-insensitive equality.
- score_multi_select: partial credit from matched vs. incorrect selections.
- score_question: dispatch on the question type tag, 0 for unknown types.
- score: sum over the quiz, rounded to one decimal at the end.
- max_score: summed point weights, for callers that want a percentage.

Everything here is pure: no I/O, no clock, no randomness.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, Iterable, Optional, Union

from packages.schemas.assessment import Answer, SelectedValue
from packages.schemas.quiz import Question, QuestionType, Quiz, canonical_type


def round_half_up(value: float, places: int = 1) -> float:
    """Round like `Math.round(x * 10**places) / 10**places` (ties away from zero for x >= 0)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _normalize(value: object) -> Optional[str]:
    """Trimmed lower-case form of a single-valued answer, None if not single-valued."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value.strip().lower()
    return None


def score_exact(q: Question, selected: SelectedValue) -> float:
    """Full points iff `selected` equals the correct answer after trim + lower-case."""
    if not isinstance(selected, str):
        return 0.0
    correct = _normalize(q.correct_answer)
    if correct is None:
        return 0.0
    return float(q.points) if _normalize(selected) == correct else 0.0


def score_multi_select(q: Question, selected: SelectedValue) -> float:
    """Partial credit for a multi-select question.

    matched   = |user ∩ correct|
    incorrect = |user| - matched
    points    = max(0, (matched - incorrect) / |correct|) * q.points

    The denominator is the size of the correct set, not the number of options.
    An empty correct set yields 0.
    """
    if not isinstance(q.correct_answer, list) or not isinstance(selected, list):
        return 0.0
    correct_set = {a.strip().lower() for a in q.correct_answer}
    if not correct_set:
        return 0.0
    user_set = {a.strip().lower() for a in selected}
    matched = len(user_set & correct_set)
    incorrect = len(user_set) - matched
    return max(0.0, (matched - incorrect) / len(correct_set)) * q.points


SCORERS: Dict[QuestionType, Callable[[Question, SelectedValue], float]] = {
    QuestionType.SINGLE_CHOICE: score_exact,
    QuestionType.BOOLEAN: score_exact,
    QuestionType.FREE_TEXT: score_exact,
    QuestionType.MULTI_SELECT: score_multi_select,
}


def score_question(q: Question, selected: SelectedValue) -> float:
    """Points earned on one question (unrounded); unknown types earn 0."""
    qtype = canonical_type(q.type)
    if qtype is None:
        return 0.0
    return SCORERS[qtype](q, selected)


def _selections(answers: Iterable[Union[Answer, dict]]) -> Dict[str, SelectedValue]:
    # First answer to a question wins.
    out: Dict[str, SelectedValue] = {}
    for a in answers:
        if not isinstance(a, Answer):
            a = Answer.model_validate(a)
        out.setdefault(a.question_id, a.selected_value)
    return out


def score(quiz: Quiz, answers: Iterable[Union[Answer, dict]]) -> float:
    """Raw points for `answers` against `quiz`, rounded to one decimal.

    Answers to questions that are not in the quiz are ignored; questions
    without an answer contribute 0. There is no cap against `max_score`.
    """
    selected = _selections(answers)
    total = 0.0
    for q in quiz.questions:
        if q.id in selected:
            total += score_question(q, selected[q.id])
    return round_half_up(total, 1)


def max_score(quiz: Quiz) -> int:
    """Sum of the quiz's point weights."""
    return sum(q.points for q in quiz.questions)
