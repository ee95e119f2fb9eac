"""PostgreSQL store using psycopg 3 batched statements."""

import logging
import threading
from contextlib import contextmanager
from typing import Iterable, Iterator, Sequence

import psycopg
from psycopg import errors

from conta_import.config import PostgresConfig
from conta_import.exceptions import StoreError, StoreTimeoutError
from conta_import.models import AccountRecord, AccountUserView, SourceType
from conta_import.store.base import ContaStore

logger = logging.getLogger(__name__)

DDL = """
CREATE TABLE IF NOT EXISTS contas (
    cod_idt_conta VARCHAR(64) PRIMARY KEY,
    tipo VARCHAR(8) NOT NULL,
    datahora_criacao TIMESTAMP NOT NULL,
    datahora_alteracao TIMESTAMP NOT NULL
);

CREATE TABLE IF NOT EXISTS conta_detalhes (
    conta_id VARCHAR(64) PRIMARY KEY REFERENCES contas(cod_idt_conta),
    campo1 TEXT,
    campo2 TEXT
);

CREATE TABLE IF NOT EXISTS usuario_conta (
    usuario_id BIGINT NOT NULL,
    conta_id VARCHAR(64) NOT NULL REFERENCES contas(cod_idt_conta),
    CONSTRAINT uk_usuario_conta UNIQUE (usuario_id, conta_id)
);

CREATE INDEX IF NOT EXISTS idx_usuario_conta_conta ON usuario_conta(conta_id);

CREATE TABLE IF NOT EXISTS consentimentos (
    conta_id VARCHAR(64) PRIMARY KEY REFERENCES contas(cod_idt_conta),
    consent TEXT NOT NULL,
    datahora_criacao TIMESTAMP NOT NULL
);
"""

# Conflict policy per source type
UPSERT_ACCOUNT_SQL = {
    SourceType.ITAU: (
        "INSERT INTO contas (cod_idt_conta, tipo, datahora_criacao, datahora_alteracao) "
        "VALUES (%s, %s, now(), now()) "
        "ON CONFLICT (cod_idt_conta) DO NOTHING"
    ),
    SourceType.OPF: (
        "INSERT INTO contas (cod_idt_conta, tipo, datahora_criacao, datahora_alteracao) "
        "VALUES (%s, %s, now(), now()) "
        "ON CONFLICT (cod_idt_conta) DO UPDATE SET datahora_alteracao = now()"
    ),
}

UPSERT_DETAIL_SQL = (
    "INSERT INTO conta_detalhes (conta_id, campo1, campo2) VALUES (%s, %s, %s) "
    "ON CONFLICT (conta_id) DO UPDATE SET campo1 = EXCLUDED.campo1, campo2 = EXCLUDED.campo2"
)

INSERT_LINK_SQL = (
    "INSERT INTO usuario_conta (usuario_id, conta_id) VALUES (%s, %s) "
    "ON CONFLICT (usuario_id, conta_id) DO NOTHING"
)

UPSERT_CONSENT_SQL = (
    "INSERT INTO consentimentos (conta_id, consent, datahora_criacao) VALUES (%s, %s, now()) "
    "ON CONFLICT (conta_id) DO UPDATE SET consent = EXCLUDED.consent, datahora_criacao = now()"
)

DELETE_LINKS_SQL = "DELETE FROM usuario_conta WHERE conta_id = ANY(%s)"

LOAD_VIEW_SQL = (
    "SELECT c.cod_idt_conta, c.tipo, u.usuario_id "
    "FROM contas c "
    "JOIN usuario_conta u ON u.conta_id = c.cod_idt_conta "
    "WHERE c.cod_idt_conta = %s "
    "ORDER BY u.usuario_id "
    "LIMIT 1"
)

EXISTING_IDS_SQL = "SELECT cod_idt_conta FROM contas WHERE cod_idt_conta = ANY(%s)"


class PostgresContaStore(ContaStore):
    """Store backed by a single autocommit psycopg connection.

    Lots run inside ``conn.transaction()`` blocks. A re-entrant lock is
    held for the whole transaction, so statements issued from other
    threads (pooled event emission) wait and only see committed rows.
    """

    TABLES = ["contas", "conta_detalhes", "usuario_conta", "consentimentos"]

    def __init__(self, config: PostgresConfig | str) -> None:
        """Connect to PostgreSQL.

        Parameters
        ----------
        config : PostgresConfig | str
            Connection configuration or a ready connection string.
        """
        if isinstance(config, str):
            self.config = PostgresConfig()
            self._conninfo = config
        else:
            self.config = config
            self._conninfo = config.connection_string
        self._lock = threading.RLock()
        self.conn = self._connect()

    def _connect(self) -> psycopg.Connection:
        try:
            return psycopg.connect(
                self._conninfo,
                autocommit=True,
                connect_timeout=self.config.connect_timeout,
                options=f"-c statement_timeout={self.config.statement_timeout_ms}",
            )
        except psycopg.Error as e:
            raise StoreError(f"Cannot connect to PostgreSQL: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            try:
                with self.conn.transaction():
                    yield
            except psycopg.Error as e:
                raise _translate(e) from e

    def create_tables(self) -> None:
        """Create the four tables if they do not exist."""
        self._execute(DDL)
        logger.info("Tables ensured: %s", ", ".join(self.TABLES))

    def truncate_tables(self) -> None:
        """Remove every row from the four tables."""
        self._execute(f"TRUNCATE {', '.join(self.TABLES)}")
        logger.info("Tables truncated")

    def upsert_accounts(self, batch: Sequence[AccountRecord], source_type: SourceType) -> None:
        if not batch:
            return
        rows = [(record.conta_id, source_type.value) for record in batch]
        self._executemany(UPSERT_ACCOUNT_SQL[source_type], rows)

    def upsert_details(self, batch: Sequence[AccountRecord]) -> None:
        if not batch:
            return
        rows = [
            (
                record.conta_id,
                record.detalhe.campo1 if record.detalhe else None,
                record.detalhe.campo2 if record.detalhe else None,
            )
            for record in batch
        ]
        self._executemany(UPSERT_DETAIL_SQL, rows)

    def insert_links_if_absent(self, batch: Sequence[AccountRecord]) -> None:
        if not batch:
            return
        rows = [(record.usuario_id, record.conta_id) for record in batch]
        self._executemany(INSERT_LINK_SQL, rows)

    def upsert_consents(self, batch: Sequence[AccountRecord]) -> None:
        rows = [
            (record.conta_id, record.consent_payload)
            for record in batch
            if record.consent_payload is not None
        ]
        if not rows:
            return
        self._executemany(UPSERT_CONSENT_SQL, rows)

    def delete_links(self, conta_ids: Sequence[str]) -> int:
        if not conta_ids:
            return 0
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(DELETE_LINKS_SQL, (list(conta_ids),))
                    return cur.rowcount
            except psycopg.Error as e:
                raise _translate(e) from e

    def load_account_user_view(self, conta_id: str) -> AccountUserView | None:
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(LOAD_VIEW_SQL, (conta_id,))
                    row = cur.fetchone()
            except psycopg.Error as e:
                raise _translate(e) from e
        if row is None:
            return None
        return AccountUserView(conta_id=row[0], tipo=SourceType(row[1]), usuario_id=row[2])

    def existing_account_ids(self, conta_ids: Iterable[str]) -> set[str]:
        ids = list(conta_ids)
        if not ids:
            return set()
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(EXISTING_IDS_SQL, (ids,))
                    return {row[0] for row in cur.fetchall()}
            except psycopg.Error as e:
                raise _translate(e) from e

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
        logger.info("PostgreSQL store closed")

    def _execute(self, sql: str) -> None:
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.execute(sql)
            except psycopg.Error as e:
                raise _translate(e) from e

    def _executemany(self, sql: str, rows: list[tuple]) -> None:
        with self._lock:
            try:
                with self.conn.cursor() as cur:
                    cur.executemany(sql, rows)
            except psycopg.Error as e:
                raise _translate(e) from e


def _translate(error: psycopg.Error) -> StoreError:
    """Map a psycopg error to the store error hierarchy."""
    if isinstance(error, errors.QueryCanceled):
        return StoreTimeoutError(f"Statement timed out: {error}")
    return StoreError(str(error))
