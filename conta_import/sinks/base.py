"""Event sink interface."""

from abc import ABC, abstractmethod
from typing import Any


class EventSink(ABC):
    """Publish-only destination for outbound events."""

    @abstractmethod
    def publish(self, topic: str, key: str, payload: Any) -> None:
        """Publish one message; delivery is not awaited."""

    def flush(self) -> None:
        """Wait for pending messages, if the sink buffers any."""

    def close(self) -> None:
        """Flush and release resources."""
        self.flush()
