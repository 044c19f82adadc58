"""Kafka consumer helpers for the QMS services.

Provides a thin factory to create a Confluent Kafka `Consumer` from settings.
Offsets are committed manually by the caller once a message was handled.
"""

from __future__ import annotations

from typing import List, Optional

from confluent_kafka import Consumer

from .config import get_settings


def get_consumer(group_id: str, topics: List[str], client_id: Optional[str] = None) -> Consumer:
    """Create and subscribe a Kafka Consumer using app settings.

    Args:
        group_id: Kafka consumer group id.
        topics: List of topic names to subscribe to.
        client_id: Optional client identifier; defaults to the group id.

    Returns:
        A configured, subscribed `confluent_kafka.Consumer` with auto-commit
        disabled.
    """
    s = get_settings()
    c = Consumer({
        'bootstrap.servers': s.KAFKA_BOOTSTRAP,
        'group.id': group_id,
        'client.id': client_id or group_id,
        'enable.auto.commit': False,
        'auto.offset.reset': 'earliest',
        'max.poll.interval.ms': 300000,
    })
    c.subscribe(topics)
    return c
