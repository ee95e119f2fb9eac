"""Batch import of ITAU/OPF accounts with Kafka event emission."""

from conta_import.config import (
    ContaImportConfig,
    EmissionMode,
    ImportConfig,
    OverflowPolicy,
    RevocationLookup,
)
from conta_import.models import AccountDetail, AccountRecord, Consent, SourceType
from conta_import.service import ImportContasService, ImportSummary

__version__ = "0.1.0"

__all__ = [
    "AccountDetail",
    "AccountRecord",
    "Consent",
    "ContaImportConfig",
    "EmissionMode",
    "ImportConfig",
    "ImportContasService",
    "ImportSummary",
    "OverflowPolicy",
    "RevocationLookup",
    "SourceType",
]
