"""Outbound event payloads."""

from dataclasses import dataclass

from conta_import.models.conta import AccountUserView
from conta_import.models.enums import SourceType


@dataclass(frozen=True)
class ContaEvento:
    """Account part of a creation/revocation message."""

    id: str
    cod_idt_conta: str
    tipo: SourceType

    @classmethod
    def from_view(cls, view: AccountUserView) -> "ContaEvento":
        return cls(id=view.conta_id, cod_idt_conta=view.conta_id, tipo=view.tipo)


@dataclass(frozen=True)
class UsuarioEvento:
    """User part of a creation/revocation message."""

    id: int

    @classmethod
    def from_view(cls, view: AccountUserView) -> "UsuarioEvento":
        return cls(id=view.usuario_id)


def build_message(view: AccountUserView) -> tuple[str, dict[str, object]]:
    """Build the ``(key, payload)`` pair published for a view.

    The key is the event id, which is the account identifier.
    """
    conta = ContaEvento.from_view(view)
    usuario = UsuarioEvento.from_view(view)
    return conta.id, {"usuario": usuario, "conta": conta}
