"""Tests for the scoring engine shared by both grading paths."""

import pytest

from conftest import make_quiz
from packages.schemas.assessment import Answer
from packages.schemas.quiz import Question
from services.assessment.scorer import (
    max_score,
    round_half_up,
    score,
    score_exact,
    score_multi_select,
    score_question,
)


def _answers(**selected):
    return [{"questionId": qid, "selectedValue": value} for qid, value in selected.items()]


def _multi(correct, points=2):
    return Question(id="m", type="multi-select", options=["a", "b", "c", "d"], correct_answer=correct, points=points)


def test_all_correct_ignores_case_and_whitespace(quiz) -> None:
    answers = _answers(q1=" 4 ", q2="TRUE", q3="paris  ", q4=["A", " b"])
    assert score(quiz, answers) == 6.0
    assert max_score(quiz) == 6


def test_wrong_and_missing_answers_score_zero(quiz) -> None:
    assert score(quiz, _answers(q1="3", q2="false")) == 0.0
    assert score(quiz, []) == 0.0


def test_boolean_correct_answer_compares_as_text() -> None:
    q = Question(id="b", type="boolean", correct_answer=False, points=3)
    assert score_exact(q, "false") == 3.0
    assert score_exact(q, "False ") == 3.0
    assert score_exact(q, "true") == 0.0


@pytest.mark.parametrize(
    "selected, expected",
    [
        (["a", "b"], 2.0),
        (["a"], 1.0),
        (["a", "b", "c"], 1.0),
        (["a", "c"], 0.0),
        (["c", "d"], 0.0),
        ([], 0.0),
    ],
)
def test_multi_select_partial_credit(selected, expected) -> None:
    assert score_multi_select(_multi(["a", "b"]), selected) == expected


def test_multi_select_with_empty_correct_set_scores_zero() -> None:
    assert score_multi_select(_multi([]), ["a"]) == 0.0


def test_shape_mismatch_scores_zero(quiz) -> None:
    # a string for a multi-select question, a list for a single-choice one
    assert score(quiz, _answers(q4="a", q1=["4"])) == 0.0


def test_unknown_question_type_scores_zero() -> None:
    q = Question(id="x", type="essay", correct_answer="anything", points=5)
    assert score_question(q, "anything") == 0.0


def test_legacy_type_tags_are_scored() -> None:
    mcq = Question(id="l1", type="MCQ", correct_answer="B", points=2)
    multi = Question(id="l2", type="Multi-Select", correct_answer=["x", "y"], points=2)
    assert score_question(mcq, "b") == 2.0
    assert score_question(multi, ["x"]) == 1.0


def test_zero_point_questions_earn_nothing() -> None:
    quiz = make_quiz(questions=[{"id": "z", "type": "single-choice", "correctAnswer": "yes", "points": 0}])
    assert score(quiz, _answers(z="yes")) == 0.0
    assert max_score(quiz) == 0


def test_first_answer_to_a_question_wins(quiz) -> None:
    answers = [
        Answer(question_id="q1", selected_value="4"),
        Answer(question_id="q1", selected_value="3"),
    ]
    assert score(quiz, answers) == 1.0
    assert score(quiz, list(reversed(answers))) == 0.0


def test_answers_to_foreign_questions_are_ignored(quiz) -> None:
    assert score(quiz, _answers(q1="4", nope="4")) == 1.0


def test_total_is_rounded_half_up_to_one_decimal() -> None:
    quiz = make_quiz(
        questions=[
            {"id": "m1", "type": "multi-select", "correctAnswer": ["a", "b", "c"], "points": 1},
            {"id": "m2", "type": "multi-select", "correctAnswer": ["a", "b", "c"], "points": 1},
        ]
    )
    # 1/3 + 1/3 = 0.666.. -> 0.7
    assert score(quiz, _answers(m1=["a"], m2=["b"])) == 0.7


@pytest.mark.parametrize(
    "value, places, expected",
    [(0.25, 1, 0.3), (0.35, 1, 0.4), (2.675, 2, 2.68), (84.5, 0, 85.0), (3.04, 1, 3.0)],
)
def test_round_half_up(value, places, expected) -> None:
    assert round_half_up(value, places) == expected


def test_scoring_is_deterministic(quiz) -> None:
    answers = _answers(q1="4", q3="Lyon", q4=["a", "d", "b"])
    assert score(quiz, answers) == score(quiz, answers) == 2.0
