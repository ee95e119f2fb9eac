"""Kafka sink for account events."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from confluent_kafka import KafkaException, Producer

from conta_import.config import KafkaConfig
from conta_import.exceptions import SinkError, SinkTimeoutError
from conta_import.sinks.base import EventSink
from conta_import.sinks.serialization import to_json_bytes

logger = logging.getLogger(__name__)

DEFAULT_TOPICS = ("conta-criada", "conta-revogada")


@dataclass
class ProducerStats:
    """Track producer delivery statistics."""

    sent: int = 0
    delivered: int = 0
    failed: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate success rate."""
        total = self.delivered + self.failed
        return self.delivered / total if total > 0 else 0.0

    @property
    def pending(self) -> int:
        """Messages sent but not yet acknowledged either way."""
        return self.sent - self.delivered - self.failed


class KafkaEventSink(EventSink):
    """Publish JSON-encoded events to Kafka topics.

    ``publish`` only enqueues the message in the producer's local buffer;
    broker acknowledgements arrive later through the delivery callback and
    are counted, never raised to the caller.
    """

    def __init__(self, config: KafkaConfig | str) -> None:
        """Initialize Kafka sink.

        Parameters
        ----------
        config : KafkaConfig | str
            Producer configuration or bootstrap servers string.
        """
        if isinstance(config, str):
            config = KafkaConfig(bootstrap_servers=config)

        self.config = config
        self.producer = Producer(config.to_dict())
        self.stats = ProducerStats()
        self._stats_lock = threading.Lock()

    def _delivery_callback(self, err: Any, msg: Any) -> None:
        """Handle delivery reports."""
        with self._stats_lock:
            if err:
                self.stats.failed += 1
            else:
                self.stats.delivered += 1
        if err:
            logger.error("Delivery failed for key %s: %s", msg.key() if msg else None, err)
        else:
            logger.debug("Delivered to %s[%d]@%d", msg.topic(), msg.partition(), msg.offset())

    def publish(self, topic: str, key: str, payload: Any) -> None:
        """Enqueue one message keyed by ``key``.

        Raises
        ------
        SinkTimeoutError
            The local queue stayed full for ``produce_timeout`` seconds.
        SinkError
            The producer rejected the message.
        """
        value = to_json_bytes(payload)
        deadline = time.monotonic() + self.config.produce_timeout

        while True:
            try:
                self.producer.produce(
                    topic=topic,
                    key=key.encode("utf-8"),
                    value=value,
                    callback=self._delivery_callback,
                )
                break
            except BufferError:
                # Local queue full: serve delivery reports to make room
                if time.monotonic() >= deadline:
                    raise SinkTimeoutError(
                        f"Producer queue full for {self.config.produce_timeout}s publishing {topic}/{key}"
                    ) from None
                self.producer.poll(0.1)
            except KafkaException as e:
                raise SinkError(f"Failed to publish {topic}/{key}: {e}") from e

        with self._stats_lock:
            self.stats.sent += 1
        self.producer.poll(0)

    def flush(self, timeout: float | None = None) -> None:
        """Flush pending messages.

        Raises
        ------
        SinkTimeoutError
            Messages were still queued when the timeout expired.
        """
        timeout = self.config.flush_timeout if timeout is None else timeout
        remaining = self.producer.flush(timeout)
        if remaining:
            raise SinkTimeoutError(f"{remaining} messages still pending after {timeout}s flush")

    def close(self) -> None:
        """Flush and close the producer."""
        try:
            self.flush()
        finally:
            logger.info(
                "Kafka sink closed: sent=%d, delivered=%d, failed=%d",
                self.stats.sent,
                self.stats.delivered,
                self.stats.failed,
            )


def create_topics(
    bootstrap_servers: str,
    topics: tuple[str, ...] = DEFAULT_TOPICS,
    num_partitions: int = 3,
    replication_factor: int = 1,
) -> None:
    """Create Kafka topics if they don't exist.

    Parameters
    ----------
    bootstrap_servers : str
        Kafka bootstrap servers.
    topics : tuple[str, ...]
        Topic names to ensure.
    num_partitions : int
        Partitions per new topic.
    replication_factor : int
        Topic replication factor (default: 1, use 3 for multi-broker clusters).
    """
    from confluent_kafka.admin import AdminClient, NewTopic

    admin = AdminClient({"bootstrap.servers": bootstrap_servers})

    existing = admin.list_topics(timeout=10).topics
    to_create = [
        NewTopic(topic, num_partitions=num_partitions, replication_factor=replication_factor)
        for topic in topics
        if topic not in existing
    ]

    if not to_create:
        logger.info("All topics already exist")
        return

    futures = admin.create_topics(to_create)
    for topic, future in futures.items():
        try:
            future.result()
            logger.info("Created topic: %s", topic)
        except KafkaException as e:
            logger.warning("Failed to create topic %s: %s", topic, e)
