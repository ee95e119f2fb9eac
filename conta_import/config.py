"""Configuration management for conta-import."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from conta_import.exceptions import ConfigurationError


class EmissionMode(str, Enum):
    """Where creation/revocation events are published from."""

    INLINE = "sync"
    POOLED = "async"


class OverflowPolicy(str, Enum):
    """What a full emission queue does with a new task."""

    BLOCK = "block"
    REJECT = "reject"
    DROP = "drop"


class RevocationLookup(str, Enum):
    """When the account-user view of a revoked account is read."""

    BEFORE_DELETE = "before_delete"
    AFTER_DELETE = "after_delete"


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3
    client_id: str = "conta-import"
    produce_timeout: float = 10.0  # seconds to wait for room in the local queue
    flush_timeout: float = 30.0

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
            "client.id": self.client_id,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""

    host: str = "localhost"
    port: int = 5432
    database: str = "contas"
    user: str = "postgres"
    password: str = "postgres"
    connect_timeout: int = 10
    statement_timeout_ms: int = 30000

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class ImportConfig:
    """Batch import behaviour."""

    batch_size: int = 500
    emission_mode: EmissionMode = EmissionMode.INLINE
    workers: int = 4
    queue_capacity: int = 1000
    overflow_policy: OverflowPolicy = OverflowPolicy.BLOCK
    submit_timeout: float = 30.0
    revocation_lookup: RevocationLookup = RevocationLookup.BEFORE_DELETE
    track_existing: bool = False
    created_topic: str = "conta-criada"
    revoked_topic: str = "conta-revogada"

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be >= 1, got {self.batch_size}")
        if self.workers < 1:
            raise ConfigurationError(f"workers must be >= 1, got {self.workers}")
        if self.queue_capacity < 0:
            raise ConfigurationError(f"queue_capacity must be >= 0, got {self.queue_capacity}")


@dataclass
class ContaImportConfig:
    """Main configuration for conta-import."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    importer: ImportConfig = field(default_factory=ImportConfig)
    log_level: str = "INFO"
    log_format: str = "standard"

    @classmethod
    def from_env(cls) -> "ContaImportConfig":
        """Create config from environment variables."""
        import os

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            client_id=os.getenv("KAFKA_CLIENT_ID", "conta-import"),
            produce_timeout=float(os.getenv("KAFKA_PRODUCE_TIMEOUT", "10")),
            flush_timeout=float(os.getenv("KAFKA_FLUSH_TIMEOUT", "30")),
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "contas"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
            statement_timeout_ms=int(os.getenv("POSTGRES_STATEMENT_TIMEOUT_MS", "30000")),
        )

        importer = ImportConfig(
            batch_size=int(os.getenv("IMPORT_BATCH_SIZE", "500")),
            emission_mode=_parse_enum(EmissionMode, os.getenv("IMPORT_EMISSION_MODE", "sync")),
            workers=int(os.getenv("IMPORT_WORKERS", "4")),
            queue_capacity=int(os.getenv("IMPORT_QUEUE_CAPACITY", "1000")),
            overflow_policy=_parse_enum(OverflowPolicy, os.getenv("IMPORT_OVERFLOW_POLICY", "block")),
            submit_timeout=float(os.getenv("IMPORT_SUBMIT_TIMEOUT", "30")),
            revocation_lookup=_parse_enum(
                RevocationLookup, os.getenv("IMPORT_REVOCATION_LOOKUP", "before_delete")
            ),
            track_existing=os.getenv("IMPORT_TRACK_EXISTING", "false").lower() == "true",
        )

        return cls(
            kafka=kafka,
            postgres=postgres,
            importer=importer,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )


def _parse_enum(enum_cls: type[Enum], value: str) -> Any:
    try:
        return enum_cls(value.lower())
    except ValueError:
        valid = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"Invalid {enum_cls.__name__} '{value}' (expected one of: {valid})"
        ) from None
