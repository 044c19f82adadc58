"""Kafka producer for durable job/event messages.

The assessment service publishes deferred grading jobs here, keyed by
submission id so redeliveries of the same submission land on one partition.
`publish` only returns once the broker acknowledged the message.
"""

from confluent_kafka import KafkaException, Producer
from typing import Any
import asyncio, json, logging

log = logging.getLogger(__name__)


class EventBus:
    """Thin Kafka publisher with acknowledged, idempotent delivery."""

    def __init__(self, bootstrap_servers: str, client_id: str = "qms-assessment", flush_timeout: float = 10.0) -> None:
        """Create the underlying producer.

        Args:
            bootstrap_servers: Kafka bootstrap servers string (host:port,...).
            client_id: Client identifier reported to the broker.
            flush_timeout: Seconds to wait for the broker acknowledgement.
        """
        self._producer = Producer({
            "bootstrap.servers": bootstrap_servers,
            "client.id": client_id,
            "acks": "all",
            "enable.idempotence": True,
        })
        self._flush_timeout = flush_timeout

    def publish_sync(self, topic: str, key: str, value: dict[str, Any]) -> None:
        """Publish a message and block until it is acknowledged.

        Args:
            topic: Kafka topic name.
            key: Message key (used for partitioning).
            value: JSON-serializable payload dictionary.

        Raises:
            KafkaException: If the broker rejected the message or did not
                acknowledge it within `flush_timeout`.
        """
        payload = json.dumps(value, default=str).encode("utf-8")
        failures: list[Any] = []

        def _on_delivery(err: Any, _msg: Any) -> None:
            if err is not None:
                failures.append(err)

        self._producer.produce(topic, key=key, value=payload, on_delivery=_on_delivery)
        pending = self._producer.flush(self._flush_timeout)
        if failures:
            raise KafkaException(failures[0])
        if pending:
            raise KafkaException(f"{pending} message(s) not acknowledged within {self._flush_timeout}s")
        log.info(f"PUBLISH topic={topic} key={key}")

    async def publish(self, topic: str, key: str, value: dict[str, Any]) -> None:
        """Async wrapper around `publish_sync` that keeps the event loop free."""
        await asyncio.to_thread(self.publish_sync, topic, key, value)

    def close(self) -> None:
        """Flush whatever is still buffered."""
        self._producer.flush(self._flush_timeout)
