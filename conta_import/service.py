"""Batch import of ITAU/OPF accounts with creation and revocation events."""

import logging
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Iterable, Sequence

from conta_import.batching import partition
from conta_import.config import ImportConfig, RevocationLookup
from conta_import.emission import EmissionStrategy, EventEmitter, create_strategy
from conta_import.logging import ImportLogAdapter
from conta_import.models import AccountRecord, AccountUserView, SourceType
from conta_import.sinks.base import EventSink
from conta_import.store.base import ContaStore

logger = logging.getLogger(__name__)


@dataclass
class ImportSummary:
    """What one ``import_accounts`` call did."""

    itau_records: int = 0
    opf_records: int = 0
    lots: int = 0
    new_accounts: int = 0
    existing_accounts: int = 0
    revoked_ids: int = 0
    links_deleted: int = 0
    creation_dispatched: int = 0
    revocation_dispatched: int = 0
    revocation_failures: int = 0
    events_dropped: int = 0
    elapsed_ms: float = 0.0


class ImportContasService:
    """Import account lists lot by lot and notify downstream consumers.

    Each lot is applied in one store transaction (accounts, details,
    user links, then consents for OPF) and every record of the lot gets a
    ``conta-criada`` event. Revoked ids lose their user links and get a
    ``conta-revogada`` event.

    The service owns its emission strategy; call :meth:`close` (or use it
    as a context manager) to shut a pooled strategy down. The store and
    sink belong to the caller.
    """

    def __init__(
        self,
        store: ContaStore,
        sink: EventSink,
        config: ImportConfig | None = None,
        strategy: EmissionStrategy | None = None,
    ) -> None:
        """Initialize the service.

        Parameters
        ----------
        store : ContaStore
            Relational store holding the four account tables.
        sink : EventSink
            Destination of creation/revocation events.
        config : ImportConfig | None
            Import behaviour; defaults to ``ImportConfig()``.
        strategy : EmissionStrategy | None
            Overrides the strategy built from ``config.emission_mode``.
        """
        self.config = config or ImportConfig()
        self.store = store
        self.emitter = EventEmitter(store, sink)
        self.strategy = strategy or create_strategy(self.config)

    def import_accounts(
        self,
        itau_accounts: Sequence[AccountRecord] | None,
        opf_accounts: Sequence[AccountRecord] | None,
        revoked_ids: Sequence[str] | None,
    ) -> ImportSummary:
        """Import both account lists, then process revocations.

        Every record is validated before the first store call. Lots run
        sequentially and the first failing lot aborts the call; lots
        committed before it stay committed.

        Raises
        ------
        ValidationError
            A record is missing its account id or has an invalid user id.
        StoreError
            A lot or the revocation delete failed.
        SinkError
            A publish failed under inline emission.
        EmissionRejectedError
            The pooled emission queue refused a creation event.
        """
        itau = list(itau_accounts or [])
        opf = list(opf_accounts or [])
        revoked = list(revoked_ids or [])

        for record in (*itau, *opf):
            record.validate()

        summary = ImportSummary(itau_records=len(itau), opf_records=len(opf))
        start = time.perf_counter()
        logger.info("Starting import: itau=%d opf=%d revoked=%d", len(itau), len(opf), len(revoked))

        self._process_in_lots(itau, SourceType.ITAU, summary)
        self._process_in_lots(opf, SourceType.OPF, summary)
        self.process_revocations(revoked, summary)

        summary.elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Import finished in %.0f ms: lots=%d, creation_events=%d, revocation_events=%d",
            summary.elapsed_ms,
            summary.lots,
            summary.creation_dispatched,
            summary.revocation_dispatched,
        )
        return summary

    def _process_in_lots(
        self,
        records: list[AccountRecord],
        source_type: SourceType,
        summary: ImportSummary,
    ) -> None:
        for lot in partition(records, self.config.batch_size):
            lot_log = ImportLogAdapter(logger, {"source": source_type.value, "lot_size": len(lot)})
            t0 = time.perf_counter()
            try:
                self.process_lot(lot, source_type, summary)
            except Exception:
                lot_log.exception("Error processing lot source=%s size=%d", source_type.value, len(lot))
                raise
            summary.lots += 1
            elapsed_ms = (time.perf_counter() - t0) * 1000
            lot_log.info(
                "Lot processed source=%s size=%d elapsed_ms=%.1f",
                source_type.value,
                len(lot),
                elapsed_ms,
                extra={"elapsed_ms": round(elapsed_ms, 1)},
            )

    def process_lot(
        self,
        lot: Sequence[AccountRecord],
        source_type: SourceType,
        summary: ImportSummary | None = None,
    ) -> None:
        """Apply one lot atomically and emit its creation events.

        Inline emission happens inside the transaction, so a publish
        failure rolls the lot back. Pooled emission is dispatched only
        after the commit.
        """
        if not lot:
            return
        summary = summary if summary is not None else ImportSummary()

        with self.store.transaction():
            if self.config.track_existing:
                self._count_existing(lot, summary)
            self.store.upsert_accounts(lot, source_type)
            self.store.upsert_details(lot)
            self.store.insert_links_if_absent(lot)
            if source_type.has_consents:
                self.store.upsert_consents(lot)
            if self.strategy.runs_in_caller:
                self._emit_created(lot, summary)

        if not self.strategy.runs_in_caller:
            self._emit_created(lot, summary)

    def _count_existing(self, lot: Sequence[AccountRecord], summary: ImportSummary) -> None:
        ids = {record.conta_id for record in lot}
        existing = self.store.existing_account_ids(ids)
        summary.existing_accounts += len(existing)
        summary.new_accounts += len(ids) - len(existing)
        new = len(ids) - len(existing)
        logger.info(
            "Lot diff: new=%d existing=%d",
            new,
            len(existing),
            extra={"new_accounts": new, "existing_accounts": len(existing)},
        )

    def _emit_created(self, lot: Sequence[AccountRecord], summary: ImportSummary) -> None:
        topic = self.config.created_topic
        for record in lot:
            accepted = self.strategy.dispatch(
                f"{topic} conta={record.conta_id}",
                partial(self.emitter.emit, topic, record.conta_id),
            )
            if accepted:
                summary.creation_dispatched += 1
            else:
                summary.events_dropped += 1

    def process_revocations(
        self,
        revoked_ids: Iterable[str] | None,
        summary: ImportSummary | None = None,
    ) -> None:
        """Remove the user links of revoked accounts and emit ``conta-revogada``.

        With ``RevocationLookup.BEFORE_DELETE`` the account-user views are
        read before the links are deleted, so every revoked account that
        had a link produces an event. ``AFTER_DELETE`` reads them after the
        delete, where the join through ``usuario_conta`` normally finds
        nothing and no event is sent.

        A failed delete raises. A failed lookup or publish for one id is
        logged and counted, and the remaining ids are still processed.
        """
        ids = list(dict.fromkeys(revoked_ids or []))
        if not ids:
            return
        summary = summary if summary is not None else ImportSummary()
        summary.revoked_ids += len(ids)

        captured: dict[str, AccountUserView] = {}
        if self.config.revocation_lookup is RevocationLookup.BEFORE_DELETE:
            captured = self._capture_views(ids, summary)

        deleted = self.store.delete_links(ids)
        summary.links_deleted += deleted
        logger.info("Deleted %d usuario_conta rows for %d revoked accounts", deleted, len(ids))

        topic = self.config.revoked_topic
        for conta_id in ids:
            if self.config.revocation_lookup is RevocationLookup.BEFORE_DELETE:
                view = captured.get(conta_id)
                if view is None:
                    continue
                task: Any = partial(self.emitter.emit_view, topic, view)
            else:
                task = partial(self.emitter.emit, topic, conta_id)

            try:
                accepted = self.strategy.dispatch(f"{topic} conta={conta_id}", task)
            except Exception:
                summary.revocation_failures += 1
                logger.exception(
                    "Revocation event failed for conta %s",
                    conta_id,
                    extra={"conta_id": conta_id, "topic": topic},
                )
                continue
            if accepted:
                summary.revocation_dispatched += 1
            else:
                summary.events_dropped += 1

    def _capture_views(self, ids: list[str], summary: ImportSummary) -> dict[str, AccountUserView]:
        views: dict[str, AccountUserView] = {}
        for conta_id in ids:
            try:
                view = self.store.load_account_user_view(conta_id)
            except Exception:
                summary.revocation_failures += 1
                logger.exception(
                    "Could not load view of revoked conta %s", conta_id, extra={"conta_id": conta_id}
                )
                continue
            if view is not None:
                views[conta_id] = view
        return views

    def close(self, wait: bool = True) -> None:
        """Shut down the emission strategy."""
        self.strategy.close(wait=wait)

    def __enter__(self) -> "ImportContasService":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
