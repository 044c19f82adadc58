"""Tests for learner history and the aggregate statistics."""

import pytest

from conftest import make_quiz
from packages.schemas.assessment import Answer, SubmissionStatus
from services.assessment import reporting

ANSWERS = [Answer(question_id="q1", selected_value="4")]


async def _submitted(store, learner_id, quiz_id, score):
    return await store.create_submitted(learner_id, quiz_id, ANSWERS, score)


@pytest.mark.asyncio
async def test_history_is_newest_first_and_limited(store, quiz_source) -> None:
    quiz_source.add(make_quiz("quiz-2", title="Geometry"))
    t1 = await _submitted(store, "learner-1", "quiz-1", 1.0)
    t2 = await _submitted(store, "learner-1", "quiz-2", 2.0)
    t3 = await _submitted(store, "learner-1", "quiz-1", 3.0)

    entries = await reporting.history(store, quiz_source, "learner-1", limit=2)

    assert [e.id for e in entries] == [t3.id, t2.id]
    assert t1.id not in {e.id for e in entries}
    assert [e.quiz_title for e in entries] == ["Algebra Basics", "Geometry"]
    assert quiz_source.calls == [("get_quizzes", ["quiz-1", "quiz-2"], None)]


@pytest.mark.asyncio
async def test_history_only_lists_scored_submissions(store, quiz_source, queue) -> None:
    from services.assessment.grading import DeferredGrader, save_draft

    await save_draft(store, "learner-1", {"quizId": "quiz-1", "answers": []})
    graded = await _submitted(store, "learner-1", "quiz-1", 5.0)
    await save_draft(store, "learner-1", {"quizId": "quiz-2", "answers": []})
    await DeferredGrader(store, quiz_source, queue).finalize("learner-1", {"quizId": "quiz-2"})

    entries = await reporting.history(store, quiz_source, "learner-1")

    assert [e.id for e in entries] == [graded.id]
    assert entries[0].status is SubmissionStatus.SUBMITTED


@pytest.mark.asyncio
async def test_history_uses_placeholder_title(store, quiz_source, raise_upstream) -> None:
    await _submitted(store, "learner-1", "deleted-quiz", 1.0)
    entries = await reporting.history(store, quiz_source, "learner-1")
    assert entries[0].quiz_title == reporting.UNKNOWN_TITLE

    quiz_source.failure = raise_upstream
    entries = await reporting.history(store, quiz_source, "learner-1")
    assert entries[0].quiz_title == reporting.UNKNOWN_TITLE


@pytest.mark.asyncio
async def test_history_of_unknown_learner_is_empty(store, quiz_source) -> None:
    assert await reporting.history(store, quiz_source, "nobody") == []
    assert quiz_source.calls == []


@pytest.mark.asyncio
async def test_instructor_stats(store) -> None:
    await _submitted(store, "learner-1", "quiz-1", 80.0)
    await _submitted(store, "learner-1", "quiz-2", 85.0)
    await _submitted(store, "learner-2", "quiz-1", 90.0)
    await _submitted(store, "learner-3", "other", 10.0)

    stats = await reporting.instructor_stats(store, ["quiz-1", "quiz-2"])

    assert stats.active_learner_count == 2
    assert stats.average_score == 85


@pytest.mark.asyncio
async def test_instructor_stats_rounds_half_up(store) -> None:
    await _submitted(store, "learner-1", "quiz-1", 84.0)
    await _submitted(store, "learner-2", "quiz-1", 85.0)
    stats = await reporting.instructor_stats(store, ["quiz-1"])
    assert stats.average_score == 85


@pytest.mark.asyncio
async def test_instructor_stats_without_rows(store) -> None:
    stats = await reporting.instructor_stats(store, [])
    assert (stats.active_learner_count, stats.average_score) == (0, 0)
    stats = await reporting.instructor_stats(store, ["quiz-1"])
    assert (stats.active_learner_count, stats.average_score) == (0, 0)


@pytest.mark.asyncio
async def test_student_stats_counts_certificates(store) -> None:
    await _submitted(store, "learner-1", "quiz-1", 69.9)
    await _submitted(store, "learner-1", "quiz-2", 70.0)
    await _submitted(store, "learner-1", "quiz-3", 95.0)
    await _submitted(store, "learner-2", "quiz-1", 100.0)

    stats = await reporting.student_stats(store, "learner-1", threshold=70)

    assert stats.completed_count == 3
    assert stats.certificate_count == 2


@pytest.mark.asyncio
async def test_history_puts_undated_legacy_rows_last(engine, store, quiz_source) -> None:
    from sqlalchemy.ext.asyncio import async_sessionmaker

    from services.assessment.models import SubmissionRecord

    async with async_sessionmaker(engine)() as session:
        session.add(
            SubmissionRecord(
                id="legacy-1",
                learner_id="learner-1",
                quiz_id="quiz-1",
                answers=[],
                score=3.0,
                status=SubmissionStatus.COMPLETED.value,
            )
        )
        await session.commit()
    recent = await _submitted(store, "learner-1", "quiz-1", 5.0)

    entries = await reporting.history(store, quiz_source, "learner-1")

    assert [e.id for e in entries] == [recent.id, "legacy-1"]
    assert entries[1].status is SubmissionStatus.COMPLETED
