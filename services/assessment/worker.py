"""Deferred grading worker: Kafka consumer loop around `DeferredGrader.process_job`.

Processing pattern (at-least-once):
- auto-commit disabled; one message at a time per worker instance
- decode JSON, run `process_job`, commit only after the submission reached a
  terminal state (Graded or Error) or the message was discarded as unreadable
- if handling raised (e.g. the submission store is down) seek back to the
  message and back off, so it is processed again instead of being skipped

Quiz lookups carry the static QUIZ_SERVICE_TOKEN. The quiz service enforces
its exp claim, so the token has to be rotated (and the worker restarted)
before it expires; after expiry every job ends in Error.

Run with: python -m services.assessment.worker
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from typing import Any, Optional, Protocol

from confluent_kafka import KafkaError, KafkaException, TopicPartition

from packages.common.config import get_settings
from packages.common.kafka_client import get_consumer
from packages.common.logging import configure_logging
from .grading import DeferredGrader
from .metrics import mark_job, start_metrics_server
from .quiz_client import QuizLookupClient
from .repo import SubmissionStore, init_db, make_engine

log = logging.getLogger(__name__)


class ConsumerProto(Protocol):
    """Subset of `confluent_kafka.Consumer` the worker uses."""
    def poll(self, timeout: float) -> Any: ...
    def commit(self, message: Any, asynchronous: bool) -> Any: ...
    def seek(self, partition: TopicPartition) -> None: ...
    def close(self) -> None: ...


class GradingWorker:
    """Pull grading jobs and process them one by one until `stop()` is called."""

    def __init__(
        self,
        consumer: ConsumerProto,
        grader: DeferredGrader,
        poll_timeout: float = 1.0,
        backoff_base: float = 0.5,
        backoff_max: float = 10.0,
    ) -> None:
        self._consumer = consumer
        self._grader = grader
        self._poll_timeout = poll_timeout
        self._backoff_base = backoff_base
        self._backoff_max = backoff_max
        self._running = True

    def stop(self) -> None:
        """Signal the consumer loop to stop gracefully."""
        self._running = False

    async def poll_once(self) -> bool:
        """Poll for one message and handle it.

        Returns:
            True if a message was handled and committed, False on an empty poll.

        Raises:
            KafkaException: On a broker error other than partition EOF.
        """
        msg = await asyncio.to_thread(self._consumer.poll, self._poll_timeout)
        if msg is None:
            return False
        err = msg.error()
        if err is not None:
            if err.code() == KafkaError._PARTITION_EOF:
                return False
            raise KafkaException(err)

        try:
            await self._handle(msg.value())
        except Exception:
            self._consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))
            raise
        self._consumer.commit(message=msg, asynchronous=False)
        return True

    async def _handle(self, value: Optional[bytes]) -> None:
        try:
            data = json.loads(value) if value else None
        except ValueError:
            data = None
        if not isinstance(data, dict):
            log.error("Undecodable grading job; skipping")
            mark_job("discarded")
            return
        await self._grader.process_job(data)

    async def run(self) -> None:
        """Run the poll -> process -> commit loop with exponential backoff on errors."""
        backoff = self._backoff_base
        try:
            while self._running:
                try:
                    await self.poll_once()
                    backoff = self._backoff_base
                except KafkaException:
                    log.warning("KafkaException in consumer loop; backing off for %.2fs", backoff)
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, self._backoff_max)
                except Exception:
                    log.exception("Unexpected error in consumer loop; backing off for %.2fs", backoff)
                    await asyncio.sleep(backoff)
                    backoff = min(backoff * 2, self._backoff_max)
        finally:
            self._consumer.close()


async def main() -> None:
    """Build the worker from settings and run it until SIGINT/SIGTERM."""
    s = get_settings()
    configure_logging(s.LOG_LEVEL)
    if s.WORKER_METRICS_PORT:
        start_metrics_server(s.WORKER_METRICS_PORT)

    engine = make_engine(s.POSTGRES_DSN)
    await init_db(engine)
    token = f"Bearer {s.QUIZ_SERVICE_TOKEN}" if s.QUIZ_SERVICE_TOKEN else None
    quizzes = QuizLookupClient(s.QUIZ_SERVICE_URL, timeout=s.QUIZ_SERVICE_TIMEOUT, default_authorization=token)
    grader = DeferredGrader(SubmissionStore.from_engine(engine), quizzes, topic=s.GRADING_TOPIC)
    consumer = get_consumer(s.GRADING_GROUP_ID, [s.GRADING_TOPIC], client_id=f"{s.SERVICE_NAME}-grading-worker")
    worker = GradingWorker(consumer, grader)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    log.info("Grading worker consuming %s as %s", s.GRADING_TOPIC, s.GRADING_GROUP_ID)
    try:
        await worker.run()
    finally:
        await quizzes.aclose()
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
