"""Relational store interface consumed by the importer."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Iterable, Sequence

from conta_import.models import AccountRecord, AccountUserView, SourceType


class ContaStore(ABC):
    """Batched access to ``contas``, ``conta_detalhes``, ``usuario_conta`` and ``consentimentos``.

    Every write method accepts an empty batch and does nothing with it.
    Implementations raise :class:`~conta_import.exceptions.StoreError`
    (or its timeout subclass) for any failure.
    """

    @abstractmethod
    def transaction(self) -> AbstractContextManager[None]:
        """Open an atomic unit of work; any exception inside rolls it back."""

    @abstractmethod
    def upsert_accounts(self, batch: Sequence[AccountRecord], source_type: SourceType) -> None:
        """Insert accounts, applying the source type's conflict policy."""

    @abstractmethod
    def upsert_details(self, batch: Sequence[AccountRecord]) -> None:
        """Insert or overwrite both detail fields, nulls included."""

    @abstractmethod
    def insert_links_if_absent(self, batch: Sequence[AccountRecord]) -> None:
        """Insert (usuario_id, conta_id) links, ignoring existing pairs."""

    @abstractmethod
    def upsert_consents(self, batch: Sequence[AccountRecord]) -> None:
        """Insert or refresh consents, skipping records without a payload."""

    @abstractmethod
    def delete_links(self, conta_ids: Sequence[str]) -> int:
        """Delete every link of the given accounts; return rows removed."""

    @abstractmethod
    def load_account_user_view(self, conta_id: str) -> AccountUserView | None:
        """Return the account joined with its first linked user, if any."""

    @abstractmethod
    def existing_account_ids(self, conta_ids: Iterable[str]) -> set[str]:
        """Return the subset of ``conta_ids`` already present in ``contas``."""

    def close(self) -> None:
        """Release any held resources."""
