"""Enumeration types for the account import domain."""

from enum import Enum


class SourceType(str, Enum):
    """Source system an account was imported from.

    The two sources share the ``contas`` table but differ on conflict:
    - ITAU: insert-ignore, a re-imported account is left untouched
    - OPF: insert-or-update, ``datahora_alteracao`` is refreshed and
      consents are upserted alongside the account
    """

    ITAU = "ITAU"
    OPF = "OPF"

    @property
    def refreshes_on_conflict(self) -> bool:
        return self is SourceType.OPF

    @property
    def has_consents(self) -> bool:
        return self is SourceType.OPF
