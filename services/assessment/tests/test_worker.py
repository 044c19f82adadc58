"""Tests for the grading worker's poll, commit and seek-back behaviour."""

import json

import pytest
from confluent_kafka import KafkaError, KafkaException

from packages.schemas.assessment import SubmissionStatus
from services.assessment.grading import DeferredGrader, save_draft
from services.assessment.worker import GradingWorker


class FakeError:
    def __init__(self, code):
        self._code = code

    def code(self):
        return self._code


class FakeMessage:
    def __init__(self, value, offset=7, error=None):
        self._value = value if value is None or isinstance(value, bytes) else json.dumps(value).encode()
        self._offset = offset
        self._error = error

    def error(self):
        return self._error

    def value(self):
        return self._value

    def topic(self):
        return "grading-jobs"

    def partition(self):
        return 0

    def offset(self):
        return self._offset


class FakeConsumer:
    def __init__(self, *messages):
        self.messages = list(messages)
        self.committed = []
        self.seeks = []
        self.closed = False
        self.on_empty = None

    def poll(self, timeout):
        if self.messages:
            return self.messages.pop(0)
        if self.on_empty:
            self.on_empty()
        return None

    def commit(self, message, asynchronous):
        assert asynchronous is False
        self.committed.append(message.offset())

    def seek(self, partition):
        self.seeks.append((partition.topic, partition.partition, partition.offset))

    def close(self):
        self.closed = True


class ExplodingGrader:
    async def process_job(self, raw):
        raise ConnectionError("database unavailable")


@pytest.mark.asyncio
async def test_job_is_graded_then_committed(store, quiz_source, queue) -> None:
    await save_draft(store, "learner-1", {"quizId": "quiz-1", "answers": [{"questionId": "q1", "selectedValue": "4"}]})
    grader = DeferredGrader(store, quiz_source, queue)
    res = await grader.finalize("learner-1", {"quizId": "quiz-1"})
    consumer = FakeConsumer(FakeMessage(queue.published[0][2], offset=3))

    assert await GradingWorker(consumer, grader).poll_once() is True

    assert consumer.committed == [3]
    row = await store.get(res.submission_id)
    assert row.status == SubmissionStatus.GRADED.value
    assert row.score == 1.0


@pytest.mark.asyncio
async def test_undecodable_message_is_committed_and_skipped(store, quiz_source) -> None:
    consumer = FakeConsumer(FakeMessage(b"{not json", offset=1), FakeMessage(b"[1, 2]", offset=2))
    worker = GradingWorker(consumer, DeferredGrader(store, quiz_source))

    assert await worker.poll_once() is True
    assert await worker.poll_once() is True
    assert consumer.committed == [1, 2]


@pytest.mark.asyncio
async def test_handler_failure_seeks_back_without_commit() -> None:
    consumer = FakeConsumer(FakeMessage({"submissionId": "s1", "quizId": "quiz-1", "answers": []}, offset=9))
    worker = GradingWorker(consumer, ExplodingGrader())

    with pytest.raises(ConnectionError):
        await worker.poll_once()

    assert consumer.committed == []
    assert consumer.seeks == [("grading-jobs", 0, 9)]


@pytest.mark.asyncio
async def test_empty_poll_and_partition_eof() -> None:
    consumer = FakeConsumer(FakeMessage(None, error=FakeError(KafkaError._PARTITION_EOF)))
    worker = GradingWorker(consumer, ExplodingGrader())

    assert await worker.poll_once() is False
    assert await worker.poll_once() is False
    assert consumer.committed == []


@pytest.mark.asyncio
async def test_broker_error_raises() -> None:
    consumer = FakeConsumer(FakeMessage(None, error=FakeError(KafkaError._TRANSPORT)))
    with pytest.raises(KafkaException):
        await GradingWorker(consumer, ExplodingGrader()).poll_once()


@pytest.mark.asyncio
async def test_run_stops_and_closes_consumer(store, quiz_source) -> None:
    consumer = FakeConsumer(FakeMessage(b"", offset=4))
    worker = GradingWorker(consumer, DeferredGrader(store, quiz_source), poll_timeout=0.01)
    consumer.on_empty = worker.stop

    await worker.run()

    assert consumer.closed is True
    assert consumer.committed == [4]
