"""Console sink for dry runs and debugging."""

import json
import threading
from typing import Any

from conta_import.sinks.base import EventSink
from conta_import.sinks.serialization import to_dict


class ConsoleEventSink(EventSink):
    """Print events to stdout instead of publishing them."""

    def __init__(self, pretty: bool = True, max_records: int | None = None) -> None:
        """Initialize console sink.

        Parameters
        ----------
        pretty : bool
            Pretty-print JSON output.
        max_records : int | None
            Maximum events to print per topic (None for all); the rest are
            only counted.
        """
        self.pretty = pretty
        self.max_records = max_records
        self._counts: dict[str, int] = {}
        self._lock = threading.Lock()

    def publish(self, topic: str, key: str, payload: Any) -> None:
        with self._lock:
            count = self._counts.get(topic, 0) + 1
            self._counts[topic] = count
            if self.max_records is not None and count > self.max_records:
                return

            data = to_dict(payload)
            if self.pretty:
                body = json.dumps(data, indent=2, ensure_ascii=False, default=str)
            else:
                body = json.dumps(data, ensure_ascii=False, default=str)
            print(f"[{topic}] key={key} {body}")

    def close(self) -> None:
        """Print summary and close."""
        print(f"\n{'='*60}")
        print("Console Sink Summary")
        print("=" * 60)
        for topic, count in self._counts.items():
            print(f"  {topic}: {count} events")
