"""Event emission: build account events and run them inline or on a bounded pool."""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable

from conta_import.config import EmissionMode, ImportConfig, OverflowPolicy
from conta_import.exceptions import EmissionRejectedError
from conta_import.models import AccountUserView, build_message
from conta_import.sinks.base import EventSink
from conta_import.store.base import ContaStore

logger = logging.getLogger(__name__)


class EventEmitter:
    """Turn an account id into a published ``{"usuario", "conta"}`` message."""

    def __init__(self, store: ContaStore, sink: EventSink) -> None:
        self.store = store
        self.sink = sink

    def emit(self, topic: str, conta_id: str) -> bool:
        """Load the account-user view and publish it.

        Returns
        -------
        bool
            False when the account has no linked user; nothing is published.
        """
        view = self.store.load_account_user_view(conta_id)
        if view is None:
            logger.debug("No linked user for conta %s; skipping %s", conta_id, topic)
            return False
        self.emit_view(topic, view)
        return True

    def emit_view(self, topic: str, view: AccountUserView) -> None:
        """Publish an already loaded view."""
        key, payload = build_message(view)
        self.sink.publish(topic, key, payload)
        logger.debug("Event %s sent for conta %s usuario %d", topic, view.conta_id, view.usuario_id)


@dataclass
class EmissionStats:
    """Counters for dispatched emission tasks."""

    dispatched: int = 0
    completed: int = 0
    failed: int = 0
    dropped: int = 0


class EmissionStrategy(ABC):
    """Decide where an emission task runs."""

    #: True when tasks run in the caller's thread (and transaction)
    runs_in_caller: bool = True

    def __init__(self) -> None:
        self.stats = EmissionStats()
        self._stats_lock = threading.Lock()

    @abstractmethod
    def dispatch(self, description: str, task: Callable[[], Any]) -> bool:
        """Run or schedule ``task``; ``description`` is used in logs.

        Returns False when the task was discarded without running.
        """

    def close(self, wait: bool = True) -> None:
        """Release resources; pending tasks finish when ``wait`` is True."""

    def __enter__(self) -> "EmissionStrategy":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _count(self, name: str) -> None:
        with self._stats_lock:
            setattr(self.stats, name, getattr(self.stats, name) + 1)


class InlineEmission(EmissionStrategy):
    """Run each task immediately; its errors belong to the caller."""

    runs_in_caller = True

    def dispatch(self, description: str, task: Callable[[], Any]) -> bool:
        self._count("dispatched")
        try:
            task()
        except Exception:
            self._count("failed")
            raise
        self._count("completed")
        return True


class PooledEmission(EmissionStrategy):
    """Fire-and-forget tasks on a fixed thread pool with a bounded backlog.

    At most ``workers + queue_capacity`` tasks are in flight. When that
    limit is reached, ``overflow_policy`` applies:

    - BLOCK: wait up to ``submit_timeout`` seconds, then raise
      :class:`EmissionRejectedError`
    - REJECT: raise :class:`EmissionRejectedError` at once
    - DROP: log a warning and discard the task

    Task failures are logged and counted, never raised.
    """

    runs_in_caller = False

    def __init__(
        self,
        workers: int = 4,
        queue_capacity: int = 1000,
        overflow_policy: OverflowPolicy = OverflowPolicy.BLOCK,
        submit_timeout: float = 30.0,
    ) -> None:
        super().__init__()
        self.workers = workers
        self.queue_capacity = queue_capacity
        self.overflow_policy = overflow_policy
        self.submit_timeout = submit_timeout
        self._slots = threading.BoundedSemaphore(workers + queue_capacity)
        self._executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="conta-emitter")
        self._closed = False

    def dispatch(self, description: str, task: Callable[[], Any]) -> bool:
        if self._closed:
            raise EmissionRejectedError(f"Emission pool is closed; cannot run {description}")

        if not self._acquire_slot():
            if self.overflow_policy is OverflowPolicy.DROP:
                self._count("dropped")
                logger.warning("Emission queue full; dropped %s", description)
                return False
            raise EmissionRejectedError(
                f"Emission queue full ({self.workers + self.queue_capacity} in flight); "
                f"rejected {description}"
            )

        try:
            self._executor.submit(self._run, description, task)
        except RuntimeError as e:
            self._slots.release()
            raise EmissionRejectedError(f"Emission pool is shut down; cannot run {description}") from e
        self._count("dispatched")
        return True

    def _acquire_slot(self) -> bool:
        if self.overflow_policy is OverflowPolicy.BLOCK:
            return self._slots.acquire(timeout=self.submit_timeout)
        return self._slots.acquire(blocking=False)

    def _run(self, description: str, task: Callable[[], Any]) -> None:
        try:
            task()
        except Exception:
            self._count("failed")
            logger.exception("Event emission failed: %s", description)
        else:
            self._count("completed")
        finally:
            self._slots.release()

    def close(self, wait: bool = True) -> None:
        if self._closed:
            return
        self._closed = True
        self._executor.shutdown(wait=wait)
        logger.info(
            "Emission pool closed: dispatched=%d, completed=%d, failed=%d, dropped=%d",
            self.stats.dispatched,
            self.stats.completed,
            self.stats.failed,
            self.stats.dropped,
        )


def create_strategy(config: ImportConfig) -> EmissionStrategy:
    """Build the emission strategy selected by ``config.emission_mode``."""
    if config.emission_mode is EmissionMode.POOLED:
        return PooledEmission(
            workers=config.workers,
            queue_capacity=config.queue_capacity,
            overflow_policy=config.overflow_policy,
            submit_timeout=config.submit_timeout,
        )
    return InlineEmission()
