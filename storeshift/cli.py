"""Command-line interface for storeshift."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .config import StoreSettings
from .exceptions import StoreShiftError
from .models.migration import MigrationOptions, MigrationPlan, MigrationStatus
from .models.schema import DocumentSchema
from .orchestrator import MigrationOrchestrator, log_progress
from .registry import ProviderRegistry, build_registry
from .services.analyzer import MigrationAnalyzer
from .services.backup import BackupManager
from .services.comparator import compare_data
from .services.connectivity import test_connections
from .services.planner import generate_migration_plan, validate_migration_plan
from .services.reporting import export_results, generate_report, import_results, save_report
from .services.transformer import (
    AddDefaults,
    Transform,
    ValidateRequiredFields,
    ValidateSchema,
    combine,
    get_recommended_transformation,
)

logger = logging.getLogger(__name__)


def main(argv: Optional[List[str]] = None, registry: Optional[ProviderRegistry] = None) -> int:
    """
    Main entry point for the CLI.

    Returns the process exit code. A pre-built registry can be passed in
    place of the --config file or environment.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    # Set up logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1

    try:
        if args.command == "report":
            return handler(args, None)
        registry = registry or _load_registry(args)
        return handler(args, registry)
    except StoreShiftError as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storeshift",
        description="Storeshift - Migrate JSON documents between storage providers",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", help="Path to a JSON store configuration (default: environment)")
    common.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Migrate
    migrate_parser = subparsers.add_parser("migrate", parents=[common], help="Migrate tables between providers")
    migrate_parser.add_argument("--from", dest="from_provider", help="Source provider")
    migrate_parser.add_argument("--to", dest="to_provider", help="Target provider")
    migrate_parser.add_argument("--tables", nargs="+", default=[], help="Tables to migrate")
    migrate_parser.add_argument("--plan", help="Execute a saved migration plan instead")
    migrate_parser.add_argument("--batch-size", type=int, default=100, help="Records per batch")
    migrate_parser.add_argument("--dry-run", action="store_true", help="Transform without writing")
    migrate_parser.add_argument("--preserve-keys", action="store_true", help="Reuse source ids in the target")
    migrate_parser.add_argument("--backup", action="store_true", help="Back up target tables first")
    migrate_parser.add_argument("--stop-on-error", action="store_true", help="Abort on the first failure")
    migrate_parser.add_argument("--required-fields", nargs="+", help="Fields every document must carry")
    migrate_parser.add_argument("--schema", help="Path to a document schema JSON file")
    migrate_parser.add_argument("--defaults", help="JSON object of default field values")
    migrate_parser.add_argument("--output", help="Write results JSON to this path")
    migrate_parser.add_argument("--report", help="Write a Markdown report to this path")

    # Preview
    preview_parser = subparsers.add_parser("preview", parents=[common], help="Preview a migration")
    preview_parser.add_argument("--from", dest="from_provider", required=True, help="Source provider")
    preview_parser.add_argument("--to", dest="to_provider", required=True, help="Target provider")
    preview_parser.add_argument("--tables", nargs="+", required=True, help="Tables to analyze")
    preview_parser.add_argument("--sample-size", type=int, default=5, help="Records sampled per table")
    preview_parser.add_argument("--output", help="Write the preview JSON to this path")

    # Plan
    plan_parser = subparsers.add_parser("plan", parents=[common], help="Generate and validate a migration plan")
    plan_parser.add_argument("--from", dest="from_provider", required=True, help="Source provider")
    plan_parser.add_argument("--to", dest="to_provider", required=True, help="Target provider")
    plan_parser.add_argument("--tables", nargs="+", required=True, help="Tables to plan")
    plan_parser.add_argument("--batch-size", type=int, default=100, help="Records per batch")
    plan_parser.add_argument("--dry-run", action="store_true", help="Plan a dry run")
    plan_parser.add_argument("--no-backup", action="store_true", help="Skip the target backup")
    plan_parser.add_argument("--preserve-keys", action="store_true", help="Reuse source ids in the target")
    plan_parser.add_argument("--output", help="Write the plan JSON to this path")

    # Compare
    compare_parser = subparsers.add_parser("compare", parents=[common], help="Compare tables on two providers")
    compare_parser.add_argument("--left", required=True, help="First provider")
    compare_parser.add_argument("--right", required=True, help="Second provider")
    compare_parser.add_argument("--tables", nargs="+", required=True, help="Tables to compare")
    compare_parser.add_argument("--key-field", help="Field identifying records on the right side, e.g. originalKey")
    compare_parser.add_argument("--ignore-fields", nargs="+", default=[], help="Fields excluded from comparison")
    compare_parser.add_argument("--output", help="Write the report JSON to this path")

    # Test connections
    test_parser = subparsers.add_parser("test-connections", parents=[common], help="Round-trip test providers")
    test_parser.add_argument("--providers", nargs="+", help="Providers to test (default: all)")

    # Report
    report_parser = subparsers.add_parser("report", parents=[common], help="Render a report from results JSON")
    report_parser.add_argument("--results", required=True, help="Path to exported results JSON")
    report_parser.add_argument("--output", help="Write the Markdown report to this path")

    # Restore
    restore_parser = subparsers.add_parser("restore", parents=[common], help="Restore a backup file")
    restore_parser.add_argument("--backup-file", required=True, help="Path to a backup JSON file")
    restore_parser.add_argument("--provider", help="Restore into this provider (default: the backup's)")
    restore_parser.add_argument("--tables", nargs="+", help="Tables to restore (default: all)")
    restore_parser.add_argument("--overwrite", action="store_true", help="Clear tables before restoring")
    restore_parser.add_argument("--new-keys", action="store_true", help="Generate new ids instead of reusing keys")

    return parser


def _load_registry(args) -> ProviderRegistry:
    settings = StoreSettings.from_json_file(args.config) if args.config else StoreSettings.from_env()
    return build_registry(settings)


def _write_json(path: str, data: Dict[str, Any]) -> None:
    with open(path, "w") as f:
        json.dump(data, f, indent=2, default=str)
    print(f"Saved to {path}")


def _print_json(data: Dict[str, Any]) -> None:
    print(json.dumps(data, indent=2, default=str))


def build_transformation(args, from_kind, to_kind) -> Optional[Transform]:
    """Prepend validation and defaults steps to the recommended chain."""
    defaults = json.loads(args.defaults) if args.defaults else None
    schema = DocumentSchema.from_json_file(args.schema) if args.schema else None

    if not (args.required_fields or schema or defaults):
        return None

    return combine(
        AddDefaults(defaults) if defaults else None,
        ValidateRequiredFields(args.required_fields) if args.required_fields else None,
        ValidateSchema(schema) if schema else None,
        get_recommended_transformation(from_kind, to_kind),
    )


def run_migrate(args, registry: ProviderRegistry) -> int:
    """Run a migration from flags or a saved plan."""
    orchestrator = MigrationOrchestrator(registry)

    if args.plan:
        plan = MigrationPlan.from_json_file(args.plan)
        result = orchestrator.execute_migration_plan(plan, args.tables or None)
    else:
        if not args.from_provider or not args.to_provider:
            print("Error: --from and --to are required without --plan", file=sys.stderr)
            return 1
        source = registry.describe(args.from_provider)
        target = registry.describe(args.to_provider)
        options = MigrationOptions(
            batch_size=args.batch_size,
            dry_run=args.dry_run,
            transform_data=build_transformation(args, source.kind, target.kind),
            on_progress=log_progress,
            continue_on_error=not args.stop_on_error,
            backup_before_migration=args.backup,
            preserve_keys=args.preserve_keys,
        )
        result = orchestrator.migrate_data(source.name, target.name, args.tables, options)

    print("\n" + "=" * 60)
    print(f"MIGRATION {result.status.value.upper()}")
    print("=" * 60)
    print(f"Tables: {result.summary.successful_tables}/{result.summary.total_tables} successful")
    print(f"Records: {result.summary.migrated_records}/{result.summary.total_records} migrated")
    print(f"Duration: {result.duration_ms}ms")

    if args.output:
        export_results(result, args.output)
    if args.report:
        save_report(result, args.report)

    return 0 if result.status == MigrationStatus.COMPLETED else 1


def run_preview(args, registry: ProviderRegistry) -> int:
    analyzer = MigrationAnalyzer(registry)
    preview = analyzer.preview_migration(args.from_provider, args.to_provider, args.tables, args.sample_size)

    if args.output:
        _write_json(args.output, preview.to_dict())
    else:
        _print_json(preview.to_dict())
    return 0


def run_plan(args, registry: ProviderRegistry) -> int:
    """Preview, plan and validate in one step."""
    preview = MigrationAnalyzer(registry).preview_migration(args.from_provider, args.to_provider, args.tables)
    plan = generate_migration_plan(
        preview,
        batch_size=args.batch_size,
        backup_before_migration=not args.no_backup,
        dry_run=args.dry_run,
        preserve_keys=args.preserve_keys,
    )
    validation = validate_migration_plan(plan, registry)

    if args.output:
        _write_json(args.output, plan.to_dict())
    else:
        _print_json(plan.to_dict())

    print("\n=== Plan Validation ===")
    for error in validation.errors:
        print(f"  ERROR: {error}")
    for warning in validation.warnings:
        print(f"  WARNING: {warning}")
    for recommendation in validation.recommendations:
        print(f"  - {recommendation}")
    print("Plan is valid" if validation.valid else "Plan is not valid")
    return 0 if validation.valid else 1


def run_compare(args, registry: ProviderRegistry) -> int:
    report = compare_data(
        registry,
        args.left,
        args.right,
        args.tables,
        key_field=args.key_field,
        ignore_fields=args.ignore_fields,
    )

    for table_name, table in report.tables.items():
        state = "CONSISTENT" if table.consistency else "INCONSISTENT"
        print(f"{table_name}: {state} ({table.common} common, {len(table.only_in_1)} only in {report.provider_1}, "
              f"{len(table.only_in_2)} only in {report.provider_2}, {table.content_differences} differ, "
              f"{len(table.duplicates_in_2)} duplicate)")

    if args.output:
        _write_json(args.output, report.to_dict())
    return 0 if report.consistent else 1


def run_test_connections(args, registry: ProviderRegistry) -> int:
    results = test_connections(registry, args.providers)
    _print_json(results)
    return 0 if all(r.get("status") == "success" for r in results.values()) else 1


def run_report(args, registry: Optional[ProviderRegistry]) -> int:
    result = import_results(args.results)
    if args.output:
        save_report(result, args.output)
    else:
        print(generate_report(result))
    return 0


def run_restore(args, registry: ProviderRegistry) -> int:
    manager = BackupManager(registry)
    backup = manager.load_backup(args.backup_file)
    result = manager.restore_from_backup(
        backup,
        overwrite=args.overwrite,
        tables=args.tables,
        provider=args.provider,
        preserve_keys=not args.new_keys,
    )
    _print_json(result.to_dict())
    failed = [t for t in result.tables.values() if t.status not in ("success", "missing")]
    return 1 if failed else 0


COMMANDS = {
    "migrate": run_migrate,
    "preview": run_preview,
    "plan": run_plan,
    "compare": run_compare,
    "test-connections": run_test_connections,
    "report": run_report,
    "restore": run_restore,
}


if __name__ == "__main__":
    sys.exit(main())
