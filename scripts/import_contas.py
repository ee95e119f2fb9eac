#!/usr/bin/env python3
"""Run a batch account import against PostgreSQL and Kafka.

This script generates synthetic ITAU and OPF account records and imports
them through ImportContasService:
- PostgreSQL: contas, conta_detalhes, usuario_conta, consentimentos
- Kafka: conta-criada / conta-revogada events

A share of the generated accounts is revoked at the end of the run.
Use --dry-run to run against the in-memory store and print events to the
console instead.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from conta_import.config import (
    ContaImportConfig,
    EmissionMode,
    ImportConfig,
    OverflowPolicy,
    RevocationLookup,
)
from conta_import.exceptions import ContaImportError
from conta_import.generators import AccountRecordGenerator
from conta_import.logging import setup_logging
from conta_import.models import SourceType
from conta_import.service import ImportContasService, ImportSummary
from conta_import.sinks import ConsoleEventSink, EventSink, KafkaEventSink
from conta_import.sinks.kafka import create_topics
from conta_import.store import ContaStore, InMemoryContaStore, PostgresContaStore

logger = logging.getLogger(__name__)


def print_summary(summary: ImportSummary) -> None:
    """Log the import summary as a table."""
    logger.info("=" * 60)
    logger.info("Import summary")
    logger.info("=" * 60)
    logger.info("  ITAU records:          %s", f"{summary.itau_records:,}")
    logger.info("  OPF records:           %s", f"{summary.opf_records:,}")
    logger.info("  Lots:                  %d", summary.lots)
    if summary.new_accounts or summary.existing_accounts:
        logger.info("  New / existing:        %d / %d", summary.new_accounts, summary.existing_accounts)
    logger.info("  Revoked ids:           %d", summary.revoked_ids)
    logger.info("  Links deleted:         %d", summary.links_deleted)
    logger.info("  conta-criada tasks:    %d", summary.creation_dispatched)
    logger.info("  conta-revogada tasks:  %d", summary.revocation_dispatched)
    logger.info("  Revocation failures:   %d", summary.revocation_failures)
    if summary.events_dropped:
        logger.info("  Events dropped:        %d", summary.events_dropped)
    logger.info("  Elapsed:               %.1fs", summary.elapsed_ms / 1000)
    logger.info("=" * 60)


def main() -> int:
    """Main entry point."""
    env = ContaImportConfig.from_env()

    parser = argparse.ArgumentParser(description="Import ITAU/OPF accounts and emit Kafka events")
    parser.add_argument("--itau", type=int, default=1000, help="ITAU records to generate (default: 1000)")
    parser.add_argument("--opf", type=int, default=1000, help="OPF records to generate (default: 1000)")
    parser.add_argument(
        "--revoke-rate",
        type=float,
        default=0.05,
        help="Share of generated accounts revoked after the import (default: 0.05)",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for reproducibility (default: 42)")
    parser.add_argument(
        "--postgres-url",
        type=str,
        default=env.postgres.connection_string,
        help="PostgreSQL connection string",
    )
    parser.add_argument(
        "--kafka-bootstrap",
        type=str,
        default=env.kafka.bootstrap_servers,
        help="Kafka bootstrap servers",
    )
    parser.add_argument(
        "--emission",
        choices=[mode.value for mode in EmissionMode],
        default=env.importer.emission_mode.value,
        help="sync: publish inside each lot transaction; async: bounded worker pool",
    )
    parser.add_argument("--workers", type=int, default=env.importer.workers, help="Emission pool size")
    parser.add_argument(
        "--queue-capacity",
        type=int,
        default=env.importer.queue_capacity,
        help="Emission backlog before the overflow policy applies",
    )
    parser.add_argument(
        "--overflow",
        choices=[policy.value for policy in OverflowPolicy],
        default=env.importer.overflow_policy.value,
        help="What a full emission backlog does (default: block)",
    )
    parser.add_argument(
        "--revocation-lookup",
        choices=[lookup.value for lookup in RevocationLookup],
        default=env.importer.revocation_lookup.value,
        help="Read the revoked account's user before or after deleting its links",
    )
    parser.add_argument("--batch-size", type=int, default=env.importer.batch_size, help="Records per lot")
    parser.add_argument(
        "--track-existing",
        action="store_true",
        default=env.importer.track_existing,
        help="Count new vs already imported accounts per lot",
    )
    parser.add_argument("--create-tables", action="store_true", help="Create tables before importing")
    parser.add_argument("--truncate", action="store_true", help="Truncate tables before importing")
    parser.add_argument("--create-topics", action="store_true", help="Create Kafka topics before importing")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Use the in-memory store and print events to the console",
    )
    parser.add_argument("--log-level", type=str, default=env.log_level, help="Log level (default: INFO)")
    parser.add_argument(
        "--log-format",
        choices=["standard", "json"],
        default=env.log_format,
        help="Log format (default: standard)",
    )

    args = parser.parse_args()
    setup_logging(args.log_level, args.log_format)

    if not 0.0 <= args.revoke_rate <= 1.0:
        parser.error("--revoke-rate must be between 0 and 1")

    try:
        importer_config = ImportConfig(
            batch_size=args.batch_size,
            emission_mode=EmissionMode(args.emission),
            workers=args.workers,
            queue_capacity=args.queue_capacity,
            overflow_policy=OverflowPolicy(args.overflow),
            submit_timeout=env.importer.submit_timeout,
            revocation_lookup=RevocationLookup(args.revocation_lookup),
            track_existing=args.track_existing,
        )
    except ContaImportError as e:
        parser.error(str(e))

    logger.info("=" * 60)
    logger.info("Conta Import")
    logger.info("=" * 60)
    logger.info("ITAU: %d, OPF: %d, revoke rate: %.2f", args.itau, args.opf, args.revoke_rate)
    logger.info("Emission: %s, lot size: %d", importer_config.emission_mode.value, importer_config.batch_size)
    logger.info("PostgreSQL: %s", "in-memory" if args.dry_run else args.postgres_url)
    logger.info("Kafka: %s", "console" if args.dry_run else args.kafka_bootstrap)
    logger.info("=" * 60)

    t0 = time.perf_counter()
    generator = AccountRecordGenerator(seed=args.seed)
    itau = generator.generate_batch(args.itau, SourceType.ITAU)
    opf = generator.generate_batch(args.opf, SourceType.OPF)
    candidates = [record.conta_id for record in itau + opf]
    revoked = generator.random.sample(candidates, int(len(candidates) * args.revoke_rate))
    logger.info("Generated %d records in %.1fs", len(candidates), time.perf_counter() - t0)

    store: ContaStore
    sink: EventSink
    try:
        if args.dry_run:
            store = InMemoryContaStore()
            sink = ConsoleEventSink(pretty=False, max_records=10)
        else:
            store = PostgresContaStore(args.postgres_url)
            if args.create_tables:
                store.create_tables()
            if args.truncate:
                store.truncate_tables()
            if args.create_topics:
                create_topics(args.kafka_bootstrap)
            sink = KafkaEventSink(replace(env.kafka, bootstrap_servers=args.kafka_bootstrap))
    except ContaImportError as e:
        logger.error("Setup failed: %s", e)
        return 1

    try:
        with ImportContasService(store, sink, importer_config) as service:
            summary = service.import_accounts(itau, opf, revoked)
    except ContaImportError as e:
        logger.error("Import aborted: %s", e)
        return 1
    finally:
        try:
            sink.close()
        finally:
            store.close()

    print_summary(summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
