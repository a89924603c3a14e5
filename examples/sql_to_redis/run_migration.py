#!/usr/bin/env python3
"""
Example: SQL to Redis Migration

This script demonstrates how to use storeshift to preview, plan, run and
verify a migration of JSON documents from a SQL database into Redis.

Usage:
    # Demo with sample data (in-memory SQLite into a memory store)
    python run_migration.py --demo

    # Dry run against configured providers
    python run_migration.py --dry-run

    # Full migration
    python run_migration.py --tables users orders
"""

import argparse
import json
import logging
import sys

from storeshift.config import StoreSettings
from storeshift.orchestrator import MigrationOrchestrator
from storeshift.registry import ProviderRegistry, build_registry
from storeshift.services import (
    MigrationAnalyzer,
    compare_data,
    generate_migration_plan,
    generate_report,
    validate_migration_plan,
)
from storeshift.stores import MemoryStore, SQLStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
        logging.FileHandler('migration.log')
    ]
)
logger = logging.getLogger(__name__)


SAMPLE_USERS = {
    "u1": {
        "name": "John Doe",
        "email": "john@example.com",
        "tags": ["admin", "beta"],
        "address": {"city": "San Francisco", "country": "US"},
        "created_at": "2024-01-01T00:00:00.000Z",
    },
    "u2": {
        "name": "Jane Roe",
        "email": "jane@example.com",
        "tags": [],
        "address": {"city": "New York", "country": "US"},
        "created_at": "2024-02-15T09:30:00.000Z",
    },
}


def run_migration(registry: ProviderRegistry, from_provider: str, to_provider: str, tables, dry_run: bool):
    """Preview, plan, execute and verify a migration."""
    logger.info("=" * 60)
    logger.info("STARTING MIGRATION")
    logger.info("=" * 60)

    preview = MigrationAnalyzer(registry).preview_migration(from_provider, to_provider, tables)
    for warning in preview.summary.warnings:
        logger.warning(f"Preview warning: {warning}")

    plan = generate_migration_plan(preview, dry_run=dry_run, backup_before_migration=not dry_run)
    validation = validate_migration_plan(plan, registry)
    if not validation.valid:
        for error in validation.errors:
            logger.error(f"Plan error: {error}")
        return None

    result = MigrationOrchestrator(registry).execute_migration_plan(plan)

    logger.info("=" * 60)
    logger.info(f"MIGRATION {result.status.value.upper()}")
    logger.info("=" * 60)
    logger.info(f"Tables: {result.summary.successful_tables}/{result.summary.total_tables}")
    logger.info(f"Records: {result.summary.migrated_records}/{result.summary.total_records}")

    if not dry_run:
        report = compare_data(registry, from_provider, to_provider, tables, key_field="originalKey")
        for table_name, table in report.tables.items():
            logger.info(f"{table_name}: {'CONSISTENT' if table.consistency else 'INCONSISTENT'}")

    return result


def demo_with_sample_data():
    """
    Demo migration with sample data (no external services needed).

    Documents move from an in-memory SQLite database into a memory store.
    """
    logger.info("Running demo with sample data...")

    source = SQLStore(url="sqlite://")
    for key, document in SAMPLE_USERS.items():
        source.create(document, "users", id=key)

    registry = ProviderRegistry({"postgres": source, "memory": MemoryStore()})
    result = run_migration(registry, "postgres", "memory", ["users"], dry_run=False)

    logger.info("\n=== Migrated Documents ===")
    logger.info(json.dumps(registry.get_store("memory").read_all("users"), indent=2))
    logger.info("\n" + generate_report(result))

    source.close()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="SQL to Redis Migration"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Simulate migration without making changes"
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Run demo with sample data (no database needed)"
    )
    parser.add_argument(
        "--config",
        help="Path to JSON store configuration (default: environment)"
    )
    parser.add_argument(
        "--tables",
        nargs="+",
        default=["users"],
        help="Tables to migrate"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.demo:
        demo_with_sample_data()
        return

    settings = StoreSettings.from_json_file(args.config) if args.config else StoreSettings.from_env()
    registry = build_registry(settings)

    missing = [name for name in ("postgres", "redis") if not registry.has_provider(name)]
    if missing:
        logger.error(f"Missing providers: {', '.join(missing)}")
        logger.info("Configure them or use --demo for a local run")
        sys.exit(1)

    result = run_migration(registry, "postgres", "redis", args.tables, args.dry_run)
    if result is not None and result.status.value != "completed":
        sys.exit(1)


if __name__ == "__main__":
    main()
