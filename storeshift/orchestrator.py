"""Migration orchestrator - moves tables from one provider to another."""

import copy
import logging
from typing import Any, Iterator, List, Optional, Tuple

from .exceptions import ConfigurationError, StoreConnectionError
from .models.migration import (
    MigrationOptions,
    MigrationPlan,
    MigrationResult,
    MigrationStatus,
    ProgressEvent,
    TableResult,
    TableStatus,
)
from .models.record import RecordError, RecordOutcome, RecordStatus
from .registry import ProviderRegistry, StoreSession
from .services.backup import BackupManager
from .services.transformer import Transform, as_transform, get_recommended_transformation
from .stores.base import Document, now_iso, utc_now

logger = logging.getLogger(__name__)

# Outcome of a single table run
CONTINUE = "continue"
ABORT = "abort"
CANCEL = "cancel"


class MigrationOrchestrator:
    """
    Orchestrates a migration between two registered providers.

    Handles:
    - Up-front configuration checks
    - Optional backup of the target tables
    - Batched read, transform and write per table
    - Progress events and cooperative cancellation
    - Result aggregation, plan execution and rollback
    """

    def __init__(self, registry: ProviderRegistry, backups: Optional[BackupManager] = None):
        """
        Initialize the orchestrator.

        Args:
            registry: Registry holding the source and target providers
            backups: Backup manager (default: one bound to the registry)
        """
        self.registry = registry
        self.backups = backups or BackupManager(registry)

    def migrate_data(
        self,
        from_provider: str,
        to_provider: str,
        tables: List[str],
        options: Optional[MigrationOptions] = None,
        **overrides: Any,
    ) -> MigrationResult:
        """
        Migrate tables from one provider to another.

        Args:
            from_provider: Source provider name
            to_provider: Target provider name
            tables: Tables to migrate, in order
            options: Migration options
            **overrides: Individual option overrides (batch_size, dry_run, ...)

        Returns:
            MigrationResult describing every table and record

        Raises:
            ConfigurationError: If the request is invalid. Nothing is read or
                written in that case. Once validation passes, failures are
                reported in the result instead of raised.
        """
        options = self._resolve_options(options, overrides)
        source, target = self._validate(from_provider, to_provider, tables, options)
        transform = self._resolve_transform(options, source, target)

        result = MigrationResult(from_provider=source.name, to_provider=target.name, dry_run=options.dry_run)
        result.summary.total_tables = len(tables)

        logger.info(f"=== MIGRATION STARTED: {source.name} -> {target.name} ===")
        logger.info(f"Tables: {', '.join(tables)}; transformation: {', '.join(transform.describe())}")
        if options.dry_run:
            logger.info("Dry run: target will not be modified")

        status = MigrationStatus.COMPLETED

        if options.backup_before_migration and not options.dry_run:
            logger.info("=== PHASE 1: BACKUP ===")
            try:
                result.backup = self.backups.create_backup(target.name, tables)
            except Exception as e:
                logger.error(f"Backup failed: {e}")
                result.backup_error = str(e)
                result.summary.errors.append({"table": None, "error": f"Backup failed: {e}"})
                if not options.continue_on_error:
                    return self._finish(result, MigrationStatus.FAILED)

        logger.info("=== PHASE 2: MIGRATION ===")
        for index, table in enumerate(tables):
            self._emit(options, ProgressEvent(
                phase="migration",
                current_table=table,
                table_index=index,
                total_tables=len(tables),
                overall_progress=round(index / len(tables) * 100),
            ))

            outcome = self._migrate_table(source, target, table, transform, options, result)

            if outcome == CANCEL:
                logger.warning(f"Migration cancelled during table {table}")
                status = MigrationStatus.CANCELLED
                break
            if outcome == ABORT:
                logger.error(f"Stopping migration after failure in table {table}")
                status = MigrationStatus.FAILED
                break

            self._emit(options, ProgressEvent(
                phase="migration",
                current_table=table,
                table_index=index,
                total_tables=len(tables),
                overall_progress=round((index + 1) / len(tables) * 100),
            ))

        return self._finish(result, status)

    def execute_migration_plan(self, plan: MigrationPlan, tables: Optional[List[str]] = None) -> MigrationResult:
        """
        Run a previously generated plan.

        Args:
            plan: Plan to execute
            tables: Subset of the plan's tables (default: all of them)
        """
        logger.info(f"Executing migration plan {plan.from_provider} -> {plan.to_provider} (estimated {plan.estimated_duration or 'unknown'})")
        on_progress = log_progress if plan.enable_progress_tracking else None

        result = self.migrate_data(
            plan.from_provider,
            plan.to_provider,
            list(tables or plan.tables),
            plan.to_options(on_progress),
        )
        result.plan_executed = {
            "plan": plan.metadata(),
            "configuration": plan.configuration(),
            "executed_at": now_iso(),
        }
        return result

    def rollback(self, result: MigrationResult, delete_target_data: bool = False):
        """Undo a migration. See BackupManager.rollback_migration."""
        return self.backups.rollback_migration(result, delete_target_data=delete_target_data)

    def _resolve_options(self, options: Optional[MigrationOptions], overrides: dict) -> MigrationOptions:
        try:
            return (options or MigrationOptions()).with_overrides(**overrides)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e

    def _validate(
        self,
        from_provider: str,
        to_provider: str,
        tables: List[str],
        options: MigrationOptions,
    ) -> Tuple[StoreSession, StoreSession]:
        source = self.registry.session(from_provider)
        target = self.registry.session(to_provider)

        if source.name == target.name:
            raise ConfigurationError("Source and destination providers cannot be the same")
        if not tables:
            raise ConfigurationError("At least one table must be specified")
        if options.batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {options.batch_size}")
        return source, target

    def _resolve_transform(self, options: MigrationOptions, source: StoreSession, target: StoreSession) -> Transform:
        if options.transform_data is None:
            return get_recommended_transformation(source.kind, target.kind)
        try:
            return as_transform(options.transform_data)
        except TypeError as e:
            raise ConfigurationError(str(e)) from e

    def _migrate_table(
        self,
        source: StoreSession,
        target: StoreSession,
        table: str,
        transform: Transform,
        options: MigrationOptions,
        result: MigrationResult,
    ) -> str:
        table_result = TableResult(table_name=table, status=TableStatus.IN_PROGRESS, started_at=utc_now())
        result.tables[table] = table_result
        logger.info(f"Migrating table: {table}")

        try:
            return self._copy_records(source, target, table, transform, options, table_result)
        except Exception as e:
            logger.error(f"Table {table} failed: {e}")
            table_result.status = TableStatus.FAILED
            table_result.errors.append(RecordError(error=str(e), error_type="table-level"))
            result.summary.errors.append({"table": table, "error": str(e)})
            return CONTINUE if options.continue_on_error else ABORT
        finally:
            table_result.completed_at = utc_now()

    def _copy_records(
        self,
        source: StoreSession,
        target: StoreSession,
        table: str,
        transform: Transform,
        options: MigrationOptions,
        table_result: TableResult,
    ) -> str:
        records = source.read_all(table)
        total = len(records)
        table_result.total_records = total

        if not total:
            logger.info(f"Table {table} is empty, skipping")
            table_result.status = TableStatus.SKIPPED
            return CONTINUE

        processed = 0
        for batch in _batches(list(records.items()), options.batch_size):
            if options.cancelled:
                table_result.status = TableStatus.CANCELLED
                return CANCEL

            for key, document in batch:
                try:
                    new_key = self._migrate_record(source, target, table, key, document, transform, options)
                except StoreConnectionError:
                    # Lost connection fails the whole table
                    raise
                except Exception as e:
                    logger.debug(f"Record {table}/{key} failed: {e}")
                    table_result.records.append(RecordOutcome(original_key=key, status=RecordStatus.ERROR, error=str(e)))
                    table_result.errors.append(RecordError(error=str(e), original_key=key, data=document))
                    if not options.continue_on_error:
                        table_result.status = TableStatus.FAILED
                        return ABORT
                    continue

                table_result.records.append(RecordOutcome(original_key=key, status=RecordStatus.SUCCESS, new_key=new_key))
                table_result.migrated_records += 1

            processed += len(batch)
            self._emit(options, ProgressEvent(
                phase="migration",
                current_table=table,
                table_progress=round(processed / total * 100),
                records_processed=processed,
                total_records_in_table=total,
            ))

        if table_result.errors:
            table_result.status = TableStatus.PARTIAL_SUCCESS
        elif options.dry_run:
            table_result.status = TableStatus.DRY_RUN_SUCCESS
        else:
            table_result.status = TableStatus.SUCCESS

        logger.info(f"Migrated {table_result.migrated_records}/{total} records of {table} ({table_result.status.value})")
        return CONTINUE

    def _migrate_record(
        self,
        source: StoreSession,
        target: StoreSession,
        table: str,
        key: str,
        document: Document,
        transform: Transform,
        options: MigrationOptions,
    ) -> Optional[str]:
        transformed = transform.apply(copy.deepcopy(document), key, table, source.name, target.name)
        if options.dry_run:
            return None
        return target.create(transformed, table, id=key if options.preserve_keys else None)

    def _emit(self, options: MigrationOptions, event: ProgressEvent) -> None:
        if options.on_progress is None:
            return
        try:
            options.on_progress(event)
        except Exception as e:
            logger.warning(f"Progress callback raised: {e}")

    def _finish(self, result: MigrationResult, status: MigrationStatus) -> MigrationResult:
        summary = result.summary
        for table_result in result.tables.values():
            summary.total_records += table_result.total_records
            summary.migrated_records += table_result.migrated_records

            if table_result.status in (TableStatus.SUCCESS, TableStatus.DRY_RUN_SUCCESS) and not table_result.errors:
                summary.successful_tables += 1
            elif table_result.status in (TableStatus.FAILED, TableStatus.PARTIAL_SUCCESS):
                summary.failed_tables += 1
            elif table_result.status == TableStatus.SKIPPED:
                summary.skipped_tables += 1

        result.finalize(status)
        logger.info(f"=== MIGRATION {status.value.upper()} ===")
        logger.info(
            f"Tables: {summary.successful_tables}/{summary.total_tables} successful, "
            f"records: {summary.migrated_records}/{summary.total_records} migrated in {result.duration_ms}ms"
        )
        return result


def _batches(items: List[Any], batch_size: int) -> Iterator[List[Any]]:
    for i in range(0, len(items), batch_size):
        yield items[i:i + batch_size]


def log_progress(event: ProgressEvent) -> None:
    """Progress callback that writes events to the log."""
    if event.table_progress is not None:
        logger.info(
            f"[{event.current_table}] {event.table_progress}% "
            f"({event.records_processed}/{event.total_records_in_table} records)"
        )
    elif event.overall_progress is not None:
        logger.info(f"Overall progress: {event.overall_progress}% (table {event.current_table})")
