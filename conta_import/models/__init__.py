"""Domain models for the account import pipeline."""

from conta_import.models.conta import (
    AccountDetail,
    AccountRecord,
    AccountUserView,
    Consent,
    Consentimento,
    Conta,
    ContaDetalhe,
)
from conta_import.models.enums import SourceType
from conta_import.models.events import ContaEvento, UsuarioEvento, build_message

__all__ = [
    "AccountDetail",
    "AccountRecord",
    "AccountUserView",
    "Consent",
    "Consentimento",
    "Conta",
    "ContaDetalhe",
    "ContaEvento",
    "SourceType",
    "UsuarioEvento",
    "build_message",
]
