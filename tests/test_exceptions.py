"""Tests for custom exception hierarchy."""

from conta_import.exceptions import (
    ConfigurationError,
    ContaImportError,
    EmissionRejectedError,
    SinkError,
    SinkTimeoutError,
    StoreError,
    StoreTimeoutError,
    ValidationError,
)


class TestExceptionHierarchy:
    """Test exception inheritance chain."""

    def test_conta_import_error_is_exception(self) -> None:
        assert isinstance(ContaImportError("test"), Exception)

    def test_configuration_error_is_conta_import_error(self) -> None:
        assert isinstance(ConfigurationError("test"), ContaImportError)

    def test_validation_error_is_conta_import_error(self) -> None:
        assert isinstance(ValidationError("test"), ContaImportError)

    def test_store_timeout_is_store_error(self) -> None:
        err = StoreTimeoutError("test")
        assert isinstance(err, StoreError)
        assert isinstance(err, ContaImportError)

    def test_sink_timeout_is_sink_error(self) -> None:
        err = SinkTimeoutError("test")
        assert isinstance(err, SinkError)
        assert isinstance(err, ContaImportError)

    def test_store_and_sink_errors_are_distinct(self) -> None:
        assert not isinstance(StoreError("test"), SinkError)
        assert not isinstance(SinkError("test"), StoreError)

    def test_emission_rejected_is_conta_import_error(self) -> None:
        assert isinstance(EmissionRejectedError("test"), ContaImportError)

    def test_exception_message(self) -> None:
        err = StoreError("duplicate key value violates unique constraint")
        assert str(err) == "duplicate key value violates unique constraint"
