"""Event sinks for outbound account events."""

from conta_import.sinks.base import EventSink
from conta_import.sinks.console import ConsoleEventSink
from conta_import.sinks.kafka import KafkaEventSink

__all__ = ["ConsoleEventSink", "EventSink", "KafkaEventSink"]
