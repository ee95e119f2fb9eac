"""Custom exception hierarchy for conta-import."""


class ContaImportError(Exception):
    """Base exception for all conta-import errors."""


class ConfigurationError(ContaImportError):
    """Raised when configuration is invalid or missing."""


class ValidationError(ContaImportError):
    """Raised when an account record is malformed."""


class StoreError(ContaImportError):
    """Raised when a relational store operation fails."""


class StoreTimeoutError(StoreError):
    """Raised when a store statement exceeds its timeout."""


class SinkError(ContaImportError):
    """Raised when an event sink operation fails."""


class SinkTimeoutError(SinkError):
    """Raised when a produce or flush does not finish in time."""


class EmissionRejectedError(ContaImportError):
    """Raised when the emission queue is full and the task cannot be accepted."""
