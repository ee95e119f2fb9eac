"""Account import records and persisted row models."""

from dataclasses import dataclass
from datetime import datetime

from conta_import.exceptions import ValidationError
from conta_import.models.enums import SourceType


@dataclass(frozen=True)
class AccountDetail:
    """Free-text detail fields stored in ``conta_detalhes``."""

    campo1: str | None = None
    campo2: str | None = None


@dataclass(frozen=True)
class Consent:
    """Opaque Open Finance consent payload."""

    payload: str | None = None


@dataclass(frozen=True)
class AccountRecord:
    """One account as received from a source system.

    Transient: consumed once per import call, never persisted as-is.
    """

    conta_id: str
    usuario_id: int
    detalhe: AccountDetail | None = None
    consent: Consent | None = None

    @property
    def consent_payload(self) -> str | None:
        return self.consent.payload if self.consent is not None else None

    def validate(self) -> None:
        """Raise ValidationError if the record cannot be imported."""
        if not isinstance(self.conta_id, str) or not self.conta_id.strip():
            raise ValidationError(f"Account record without conta_id: {self!r}")
        if isinstance(self.usuario_id, bool) or not isinstance(self.usuario_id, int):
            raise ValidationError(
                f"Account {self.conta_id} has invalid usuario_id {self.usuario_id!r}"
            )


@dataclass
class Conta:
    """Row of the ``contas`` table."""

    cod_idt_conta: str
    tipo: SourceType
    datahora_criacao: datetime
    datahora_alteracao: datetime


@dataclass
class ContaDetalhe:
    """Row of the ``conta_detalhes`` table."""

    conta_id: str
    campo1: str | None
    campo2: str | None


@dataclass
class Consentimento:
    """Row of the ``consentimentos`` table."""

    conta_id: str
    consent: str
    datahora_criacao: datetime


@dataclass(frozen=True)
class AccountUserView:
    """Account joined with its first linked user; read-only."""

    conta_id: str
    tipo: SourceType
    usuario_id: int
