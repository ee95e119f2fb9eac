"""Tests for the PostgreSQL store with a mocked psycopg connection."""

from unittest.mock import MagicMock, patch

import psycopg
import pytest
from psycopg import errors

from conta_import.config import PostgresConfig
from conta_import.exceptions import StoreError, StoreTimeoutError
from conta_import.models import AccountRecord, Consent, SourceType
from conta_import.store.postgres import (
    DELETE_LINKS_SQL,
    INSERT_LINK_SQL,
    UPSERT_ACCOUNT_SQL,
    UPSERT_CONSENT_SQL,
    UPSERT_DETAIL_SQL,
    PostgresContaStore,
)


@pytest.fixture
def mock_connect():
    with patch("conta_import.store.postgres.psycopg.connect") as connect:
        yield connect


@pytest.fixture
def pg_store(mock_connect: MagicMock) -> PostgresContaStore:
    return PostgresContaStore(PostgresConfig(statement_timeout_ms=1500))


def cursor_of(store: PostgresContaStore) -> MagicMock:
    """Cursor yielded by ``with conn.cursor() as cur``."""
    return store.conn.cursor.return_value.__enter__.return_value


class TestConnection:
    """Tests for connection setup."""

    def test_connect_arguments(self, mock_connect: MagicMock) -> None:
        config = PostgresConfig(host="db", port=5433, database="contas", user="u", password="p")

        PostgresContaStore(config)

        args, kwargs = mock_connect.call_args
        assert args[0] == "postgresql://u:p@db:5433/contas"
        assert kwargs["autocommit"] is True
        assert kwargs["connect_timeout"] == 10
        assert kwargs["options"] == "-c statement_timeout=30000"

    def test_connect_with_connection_string(self, mock_connect: MagicMock) -> None:
        PostgresContaStore("postgresql://x@y/z")

        assert mock_connect.call_args[0][0] == "postgresql://x@y/z"

    def test_connect_failure(self, mock_connect: MagicMock) -> None:
        mock_connect.side_effect = psycopg.OperationalError("connection refused")

        with pytest.raises(StoreError, match="Cannot connect"):
            PostgresContaStore(PostgresConfig())

    def test_close(self, pg_store: PostgresContaStore) -> None:
        pg_store.close()

        pg_store.conn.close.assert_called_once()


class TestBatchedStatements:
    """Tests for the batched upserts."""

    def test_itau_accounts_insert_ignore(
        self, pg_store: PostgresContaStore, itau_record: AccountRecord
    ) -> None:
        pg_store.upsert_accounts([itau_record], SourceType.ITAU)

        sql, rows = cursor_of(pg_store).executemany.call_args[0]
        assert sql == UPSERT_ACCOUNT_SQL[SourceType.ITAU]
        assert "DO NOTHING" in sql
        assert rows == [("A1", "ITAU")]

    def test_opf_accounts_refresh(
        self, pg_store: PostgresContaStore, opf_record: AccountRecord
    ) -> None:
        pg_store.upsert_accounts([opf_record], SourceType.OPF)

        sql, rows = cursor_of(pg_store).executemany.call_args[0]
        assert "DO UPDATE SET datahora_alteracao = now()" in sql
        assert rows == [("O1", "OPF")]

    def test_details_with_nulls(
        self, pg_store: PostgresContaStore, itau_record: AccountRecord, opf_record: AccountRecord
    ) -> None:
        pg_store.upsert_details([itau_record, opf_record])

        sql, rows = cursor_of(pg_store).executemany.call_args[0]
        assert sql == UPSERT_DETAIL_SQL
        assert rows == [("A1", "agencia 0001", "conta corrente"), ("O1", None, None)]

    def test_links(self, pg_store: PostgresContaStore, itau_record: AccountRecord) -> None:
        pg_store.insert_links_if_absent([itau_record])

        sql, rows = cursor_of(pg_store).executemany.call_args[0]
        assert sql == INSERT_LINK_SQL
        assert rows == [(7, "A1")]

    def test_consents_skip_missing_payload(
        self, pg_store: PostgresContaStore, opf_record: AccountRecord
    ) -> None:
        no_consent = AccountRecord(conta_id="O2", usuario_id=9, consent=Consent())

        pg_store.upsert_consents([opf_record, no_consent])

        sql, rows = cursor_of(pg_store).executemany.call_args[0]
        assert sql == UPSERT_CONSENT_SQL
        assert rows == [("O1", "c1")]

    def test_consents_all_missing_is_noop(self, pg_store: PostgresContaStore) -> None:
        pg_store.upsert_consents([AccountRecord(conta_id="O2", usuario_id=9)])

        pg_store.conn.cursor.assert_not_called()

    def test_empty_batches_do_not_touch_connection(self, pg_store: PostgresContaStore) -> None:
        pg_store.upsert_accounts([], SourceType.ITAU)
        pg_store.upsert_details([])
        pg_store.insert_links_if_absent([])

        pg_store.conn.cursor.assert_not_called()


class TestQueries:
    """Tests for delete and lookup queries."""

    def test_delete_links_returns_rowcount(self, pg_store: PostgresContaStore) -> None:
        cur = cursor_of(pg_store)
        cur.rowcount = 3

        assert pg_store.delete_links(["A1", "A2"]) == 3
        cur.execute.assert_called_once_with(DELETE_LINKS_SQL, (["A1", "A2"],))

    def test_delete_links_empty(self, pg_store: PostgresContaStore) -> None:
        assert pg_store.delete_links([]) == 0
        pg_store.conn.cursor.assert_not_called()

    def test_load_view_maps_row(self, pg_store: PostgresContaStore) -> None:
        cursor_of(pg_store).fetchone.return_value = ("O1", "OPF", 8)

        view = pg_store.load_account_user_view("O1")

        assert view.conta_id == "O1"
        assert view.tipo is SourceType.OPF
        assert view.usuario_id == 8

    def test_load_view_absent(self, pg_store: PostgresContaStore) -> None:
        cursor_of(pg_store).fetchone.return_value = None

        assert pg_store.load_account_user_view("A1") is None

    def test_existing_account_ids(self, pg_store: PostgresContaStore) -> None:
        cursor_of(pg_store).fetchall.return_value = [("A1",)]

        assert pg_store.existing_account_ids(["A1", "A2"]) == {"A1"}

    def test_create_tables(self, pg_store: PostgresContaStore) -> None:
        pg_store.create_tables()

        ddl = cursor_of(pg_store).execute.call_args[0][0]
        for table in PostgresContaStore.TABLES:
            assert f"CREATE TABLE IF NOT EXISTS {table}" in ddl
        assert "UNIQUE (usuario_id, conta_id)" in ddl

    def test_truncate_tables(self, pg_store: PostgresContaStore) -> None:
        pg_store.truncate_tables()

        sql = cursor_of(pg_store).execute.call_args[0][0]
        assert sql == "TRUNCATE contas, conta_detalhes, usuario_conta, consentimentos"


class TestErrorTranslation:
    """Tests for psycopg error mapping."""

    def test_query_canceled_is_timeout(
        self, pg_store: PostgresContaStore, itau_record: AccountRecord
    ) -> None:
        cursor_of(pg_store).executemany.side_effect = errors.QueryCanceled(
            "canceling statement due to statement timeout"
        )

        with pytest.raises(StoreTimeoutError):
            pg_store.upsert_accounts([itau_record], SourceType.ITAU)

    def test_other_errors_are_store_errors(
        self, pg_store: PostgresContaStore, itau_record: AccountRecord
    ) -> None:
        cursor_of(pg_store).executemany.side_effect = errors.ForeignKeyViolation("fk")

        with pytest.raises(StoreError) as exc_info:
            pg_store.upsert_details([itau_record])

        assert not isinstance(exc_info.value, StoreTimeoutError)
        assert isinstance(exc_info.value.__cause__, psycopg.Error)

    def test_lookup_timeout(self, pg_store: PostgresContaStore) -> None:
        cursor_of(pg_store).execute.side_effect = errors.QueryCanceled("timeout")

        with pytest.raises(StoreTimeoutError):
            pg_store.load_account_user_view("A1")

    def test_transaction_uses_connection_transaction(self, pg_store: PostgresContaStore) -> None:
        with pg_store.transaction():
            pass

        pg_store.conn.transaction.assert_called_once()

    def test_commit_failure_translated(self, pg_store: PostgresContaStore) -> None:
        pg_store.conn.transaction.return_value.__exit__.side_effect = errors.SerializationFailure(
            "could not serialize"
        )

        with pytest.raises(StoreError, match="serialize"):
            with pg_store.transaction():
                pass
