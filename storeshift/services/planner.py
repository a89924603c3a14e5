"""Migration time estimates, plan generation and plan validation."""

import logging
import math
from typing import Any, Optional

from ..models.migration import MigrationPlan, PlanPhase
from ..models.preview import PlanValidation, Preview
from ..stores.base import KIND_CAPABILITIES, ProviderKind

logger = logging.getLogger(__name__)

# Records per second for each kind pair
THROUGHPUT = {
    (ProviderKind.SQL, ProviderKind.REDIS): 50,
    (ProviderKind.REDIS, ProviderKind.SQL): 30,
}
DEFAULT_THROUGHPUT = 40
LARGE_DATASET_FACTOR = 0.7
LARGE_DATASET_BYTES = 100 * 1024 * 1024
LARGE_RECORD_BYTES = 10 * 1024

LARGE_PLAN_RECORDS = 50000
MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 1000


def _kind(value: Optional[str]) -> Optional[ProviderKind]:
    return ProviderKind.parse(value) if value else None


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds} seconds"
    if seconds < 3600:
        return f"{math.ceil(seconds / 60)} minutes"
    return f"{math.ceil(seconds / 3600)} hours"


def estimate_migration_time(preview: Preview) -> str:
    """
    Estimate wall-clock duration from a fixed throughput per kind pair.

    Throughput drops by 30% for datasets above 100 MB or with an average
    record above 10 KB.
    """
    records_per_second = THROUGHPUT.get((_kind(preview.from_kind), _kind(preview.to_kind)), DEFAULT_THROUGHPUT)

    total_records = preview.summary.total_estimated_records
    total_size = preview.summary.estimated_data_size
    average_size = total_size / total_records if total_records else 0

    if total_size > LARGE_DATASET_BYTES or average_size > LARGE_RECORD_BYTES:
        records_per_second *= LARGE_DATASET_FACTOR

    return format_duration(math.ceil(total_records / records_per_second))


def _ttl_lost(preview: Preview) -> bool:
    source, target = _kind(preview.from_kind), _kind(preview.to_kind)
    if source is None or target is None:
        return False
    return KIND_CAPABILITIES[source].supports_ttl and not KIND_CAPABILITIES[target].supports_ttl


def generate_migration_plan(
    preview: Preview,
    batch_size: int = 100,
    enable_progress_tracking: bool = True,
    backup_before_migration: bool = True,
    continue_on_error: bool = True,
    dry_run: bool = False,
    transformation: Optional[Any] = None,
    preserve_keys: bool = False,
) -> MigrationPlan:
    """
    Turn a preview into an executable plan.

    Args:
        preview: Preview of the source tables
        batch_size: Records per batch
        enable_progress_tracking: Log progress while the plan runs
        backup_before_migration: Snapshot target tables first
        continue_on_error: Keep going past failing records and tables
        dry_run: Transform without writing
        transformation: Chain to apply (default: recommended for the kind pair)
        preserve_keys: Reuse source ids in the target

    Returns:
        Immutable MigrationPlan
    """
    estimated_duration = preview.summary.estimated_duration or estimate_migration_time(preview)
    total_records = preview.summary.total_estimated_records
    tables = tuple(preview.tables.keys())

    pre_steps = [
        "Test connections to both databases",
        "Validate source data structure",
    ]
    if backup_before_migration:
        pre_steps.append("Create backup of target database")
    pre_steps.extend(["Set up progress tracking", "Prepare error handling"])

    phases = (
        PlanPhase(
            phase="pre-migration",
            description="Preparation and validation",
            steps=tuple(pre_steps),
            estimated_time="2-5 minutes",
        ),
        PlanPhase(
            phase="migration",
            description=f"Migrate {len(tables)} tables with {total_records} total records",
            steps=tuple(
                f"Migrate table '{name}' ({table.record_count} records)" for name, table in preview.tables.items()
            ),
            estimated_time=estimated_duration,
        ),
        PlanPhase(
            phase="post-migration",
            description="Validation and cleanup",
            steps=(
                "Validate migrated data",
                "Compare source vs target data",
                "Generate migration report",
                "Clean up temporary data",
            ),
            estimated_time="1-3 minutes",
        ),
    )

    risks = []
    if preview.warning_count:
        risks.append(f"{preview.warning_count} data compatibility warnings detected")
    if total_records > LARGE_PLAN_RECORDS:
        risks.append("Large dataset - migration may take significant time")
    if _ttl_lost(preview):
        risks.append("Redis TTL settings will be lost during migration")
    if not backup_before_migration and not dry_run:
        risks.append("No backup of the target will be taken before writing")

    recommendations = list(preview.summary.recommendations) + [
        "Monitor migration progress closely",
        "Have rollback plan ready",
        "Test with small dataset first",
    ]

    plan = MigrationPlan(
        from_provider=preview.from_provider,
        to_provider=preview.to_provider,
        tables=tables,
        batch_size=batch_size,
        dry_run=dry_run,
        continue_on_error=continue_on_error,
        backup_before_migration=backup_before_migration,
        transformation=transformation,
        enable_progress_tracking=enable_progress_tracking,
        preserve_keys=preserve_keys,
        estimated_duration=estimated_duration,
        total_records=total_records,
        phases=phases,
        risks=tuple(risks),
        recommendations=tuple(recommendations),
    )
    logger.info(f"Generated migration plan {plan.from_provider} -> {plan.to_provider}: {len(tables)} tables, {total_records} records")
    return plan


def validate_migration_plan(plan: MigrationPlan, registry) -> PlanValidation:
    """Check a plan against the providers available in a registry."""
    validation = PlanValidation()
    available = registry.available_providers()

    if plan.from_provider not in available:
        validation.add_error(f"Source provider '{plan.from_provider}' is not available")
    if plan.to_provider not in available:
        validation.add_error(f"Target provider '{plan.to_provider}' is not available")
    if plan.from_provider == plan.to_provider:
        validation.add_error("Source and destination providers cannot be the same")
    if not plan.tables:
        validation.add_error("Plan has no tables to migrate")

    if plan.batch_size < MIN_BATCH_SIZE:
        validation.add_error(f"Batch size must be at least {MIN_BATCH_SIZE}")
    elif plan.batch_size > MAX_BATCH_SIZE:
        validation.warnings.append("Unusual batch size - recommend 50-500 for optimal performance")
    if plan.total_records > 100000 and plan.batch_size < 100:
        validation.warnings.append("Small batch size for large dataset - consider increasing batch size")

    if plan.to_provider in available:
        target_kind = registry.describe(plan.to_provider).kind
        if target_kind == ProviderKind.REDIS and plan.total_records > 10000:
            validation.recommendations.append("Ensure Redis instance has sufficient memory")
        if target_kind == ProviderKind.MEMORY:
            validation.warnings.append("Target is an in-process memory store; data is lost when the process exits")

    if plan.from_provider in available and plan.to_provider in available:
        source_caps = registry.describe(plan.from_provider).capabilities
        target_caps = registry.describe(plan.to_provider).capabilities
        if source_caps.supports_ttl and not target_caps.supports_ttl:
            validation.warnings.append("TTL settings will be lost in the target")

    return validation
