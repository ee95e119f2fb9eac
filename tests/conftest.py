"""Pytest configuration and fixtures."""

import threading
from datetime import datetime, timedelta
from typing import Any, Iterator

import pytest

from conta_import.config import EmissionMode, ImportConfig
from conta_import.exceptions import SinkError
from conta_import.models import AccountDetail, AccountRecord, Consent
from conta_import.service import ImportContasService
from conta_import.sinks.base import EventSink
from conta_import.store.memory import InMemoryContaStore


class TickClock:
    """Clock that advances one second per call."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, 12, 0, 0)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


class RecordingSink(EventSink):
    """Sink that keeps every published message in memory."""

    def __init__(self, fail_on: set[str] | None = None, error: type[Exception] = SinkError) -> None:
        self.messages: list[tuple[str, str, Any]] = []
        self.fail_on = fail_on or set()
        self.error = error
        self.closed = False
        self._lock = threading.Lock()

    def publish(self, topic: str, key: str, payload: Any) -> None:
        if key in self.fail_on:
            raise self.error(f"broker unavailable for {key}")
        with self._lock:
            self.messages.append((topic, key, payload))

    def close(self) -> None:
        self.closed = True

    def keys(self, topic: str) -> list[str]:
        return [key for t, key, _ in self.messages if t == topic]


@pytest.fixture
def clock() -> TickClock:
    """Deterministic store clock."""
    return TickClock()


@pytest.fixture
def store(clock: TickClock) -> InMemoryContaStore:
    """Fresh in-memory store for each test."""
    return InMemoryContaStore(clock=clock)


@pytest.fixture
def sink() -> RecordingSink:
    """Recording event sink."""
    return RecordingSink()


@pytest.fixture
def service(store: InMemoryContaStore, sink: RecordingSink) -> Iterator[ImportContasService]:
    """Service with inline emission."""
    svc = ImportContasService(store, sink, ImportConfig(emission_mode=EmissionMode.INLINE))
    yield svc
    svc.close()


@pytest.fixture
def itau_record() -> AccountRecord:
    """Sample ITAU record."""
    return AccountRecord(
        conta_id="A1",
        usuario_id=7,
        detalhe=AccountDetail(campo1="agencia 0001", campo2="conta corrente"),
    )


@pytest.fixture
def opf_record() -> AccountRecord:
    """Sample OPF record with consent."""
    return AccountRecord(conta_id="O1", usuario_id=8, consent=Consent(payload="c1"))
