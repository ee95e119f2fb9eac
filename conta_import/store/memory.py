"""In-memory store with the same upsert semantics as the SQL adapter."""

import copy
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Iterator, Sequence

from conta_import.models import (
    AccountRecord,
    AccountUserView,
    Consentimento,
    Conta,
    ContaDetalhe,
    SourceType,
)
from conta_import.store.base import ContaStore


@dataclass
class InMemoryContaStore(ContaStore):
    """Dict-backed store used for dry runs and tests.

    A transaction snapshots the four tables and restores them if the
    block raises. Transactions are re-entrant on the owning thread.
    """

    contas: dict[str, Conta] = field(default_factory=dict)
    detalhes: dict[str, ContaDetalhe] = field(default_factory=dict)
    consentimentos: dict[str, Consentimento] = field(default_factory=dict)
    # Insertion-ordered set of (usuario_id, conta_id)
    usuario_conta: dict[tuple[int, str], None] = field(default_factory=dict)
    clock: Callable[[], datetime] = datetime.now

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _depth: int = field(default=0, repr=False)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            snapshot = self._snapshot()
            self._depth = 1
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                raise
            finally:
                self._depth = 0

    def upsert_accounts(self, batch: Sequence[AccountRecord], source_type: SourceType) -> None:
        if not batch:
            return
        with self._lock:
            for record in batch:
                now = self.clock()
                existing = self.contas.get(record.conta_id)
                if existing is None:
                    self.contas[record.conta_id] = Conta(
                        cod_idt_conta=record.conta_id,
                        tipo=source_type,
                        datahora_criacao=now,
                        datahora_alteracao=now,
                    )
                elif source_type.refreshes_on_conflict:
                    existing.datahora_alteracao = now

    def upsert_details(self, batch: Sequence[AccountRecord]) -> None:
        if not batch:
            return
        with self._lock:
            for record in batch:
                detalhe = record.detalhe
                self.detalhes[record.conta_id] = ContaDetalhe(
                    conta_id=record.conta_id,
                    campo1=detalhe.campo1 if detalhe else None,
                    campo2=detalhe.campo2 if detalhe else None,
                )

    def insert_links_if_absent(self, batch: Sequence[AccountRecord]) -> None:
        if not batch:
            return
        with self._lock:
            for record in batch:
                self.usuario_conta.setdefault((record.usuario_id, record.conta_id), None)

    def upsert_consents(self, batch: Sequence[AccountRecord]) -> None:
        with self._lock:
            for record in batch:
                payload = record.consent_payload
                if payload is None:
                    continue
                self.consentimentos[record.conta_id] = Consentimento(
                    conta_id=record.conta_id,
                    consent=payload,
                    datahora_criacao=self.clock(),
                )

    def delete_links(self, conta_ids: Sequence[str]) -> int:
        if not conta_ids:
            return 0
        targets = set(conta_ids)
        with self._lock:
            doomed = [key for key in self.usuario_conta if key[1] in targets]
            for key in doomed:
                del self.usuario_conta[key]
            return len(doomed)

    def load_account_user_view(self, conta_id: str) -> AccountUserView | None:
        with self._lock:
            conta = self.contas.get(conta_id)
            if conta is None:
                return None
            usuarios = [usuario for usuario, linked in self.usuario_conta if linked == conta_id]
            if not usuarios:
                return None
            return AccountUserView(conta_id=conta_id, tipo=conta.tipo, usuario_id=min(usuarios))

    def existing_account_ids(self, conta_ids: Iterable[str]) -> set[str]:
        with self._lock:
            return {conta_id for conta_id in conta_ids if conta_id in self.contas}

    def links_for(self, conta_id: str) -> list[int]:
        """Return the user ids linked to an account."""
        with self._lock:
            return [usuario for usuario, linked in self.usuario_conta if linked == conta_id]

    def _snapshot(self) -> tuple:
        return copy.deepcopy(
            (self.contas, self.detalhes, self.consentimentos, self.usuario_conta)
        )

    def _restore(self, snapshot: tuple) -> None:
        self.contas, self.detalhes, self.consentimentos, self.usuario_conta = snapshot
