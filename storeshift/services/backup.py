"""Backup, restore and rollback of provider tables."""

import json
import logging
from pathlib import Path
from typing import List, Optional, Union

from ..exceptions import StoreShiftError
from ..models.migration import (
    Backup,
    MigrationResult,
    RestoreResult,
    RollbackResult,
    TableRestore,
    TableRollback,
    TableStatus,
)
from ..models.record import RecordError
from ..stores.base import now_iso

logger = logging.getLogger(__name__)

ROLLBACK_STATUSES = (TableStatus.SUCCESS, TableStatus.PARTIAL_SUCCESS)


class BackupManager:
    """
    Snapshot and restore tables through a provider registry.

    Every operation opens its own store session, so the registry's current
    provider is left untouched.
    """

    def __init__(self, registry):
        self.registry = registry

    def create_backup(self, provider: str, tables: List[str]) -> Backup:
        """
        Snapshot the full contents of tables on a provider.

        Raises:
            UnknownProviderError: If the provider is not registered
            StoreError: If a table cannot be read
        """
        session = self.registry.session(provider)
        backup = Backup(provider=session.name)

        for table in tables:
            logger.info(f"Backing up table: {table}")
            backup.tables[table] = session.read_all(table)

        logger.info(f"Backup of {len(tables)} tables ({backup.record_count} records) from {session.name} created")
        return backup

    def save_backup(self, backup: Backup, path: Union[str, Path, None] = None) -> Path:
        """Write a backup as JSON. Returns the file path."""
        if path is None:
            stamp = backup.timestamp.replace(":", "-").replace(".", "-")
            path = f"backup-{backup.provider}-{stamp}.json"
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(backup.to_dict(), f, indent=2, default=str)
        logger.info(f"Backup saved to {path}")
        return path

    def load_backup(self, path: Union[str, Path]) -> Backup:
        with open(path) as f:
            return Backup.from_dict(json.load(f))

    def restore_from_backup(
        self,
        backup: Backup,
        overwrite: bool = False,
        tables: Optional[List[str]] = None,
        provider: Optional[str] = None,
        preserve_keys: bool = True,
    ) -> RestoreResult:
        """
        Restore tables from a backup.

        Args:
            backup: Backup to restore
            overwrite: Delete each table's current contents first
            tables: Subset of tables to restore (default: all in the backup)
            provider: Provider to restore into (default: the backup's provider)
            preserve_keys: Reuse the backed-up ids instead of generating new ones

        Returns:
            RestoreResult with per-table counts. Record failures are
            recorded and do not stop the restore.
        """
        session = self.registry.session(provider or backup.provider)
        result = RestoreResult(provider=session.name, backup_timestamp=backup.timestamp)

        for table in tables or list(backup.tables.keys()):
            if table not in backup.tables:
                result.tables[table] = TableRestore(table_name=table, status="missing", error="Table not found in backup")
                logger.warning(f"Table {table} not found in backup")
                continue

            records = backup.tables[table]
            table_result = TableRestore(table_name=table, total_records=len(records))
            result.tables[table] = table_result

            try:
                if overwrite:
                    session.delete_all(table)

                for key, document in records.items():
                    try:
                        session.create(document, table, id=key if preserve_keys else None)
                        table_result.restored_records += 1
                    except Exception as e:
                        logger.error(f"Error restoring record {key}: {e}")
                        table_result.errors.append(RecordError(error=str(e), original_key=key))

            except Exception as e:
                table_result.status = "failed"
                table_result.error = str(e)
                logger.error(f"Restore failed for table {table}: {e}")
                continue

            if table_result.errors:
                table_result.status = "partial-success"
            logger.info(f"Restored {table_result.restored_records}/{table_result.total_records} records into {table}")

        return result

    def rollback_migration(self, result: MigrationResult, delete_target_data: bool = False) -> RollbackResult:
        """
        Undo a migration using the new keys recorded in its result.

        Only success and partial-success tables are rolled back. Without
        `delete_target_data` the rollback only records which tables it
        would touch.
        """
        logger.info("Starting migration rollback...")
        rollback = RollbackResult(
            from_provider=result.from_provider,
            to_provider=result.to_provider,
            delete_target_data=delete_target_data,
        )
        session = self.registry.session(result.to_provider) if delete_target_data else None

        for table_name, table_result in result.tables.items():
            if table_result.status not in ROLLBACK_STATUSES:
                continue

            logger.info(f"Rolling back table: {table_name}")
            successful = [r for r in table_result.records if r.succeeded and r.new_key]
            table_rollback = TableRollback(table_name=table_name, total_records=len(successful))
            rollback.tables[table_name] = table_rollback

            try:
                if session is not None:
                    for record in successful:
                        try:
                            if session.delete(record.new_key, table_name):
                                table_rollback.deleted_records += 1
                        except StoreShiftError as e:
                            logger.warning(f"Failed to delete record {record.new_key}: {e}")
            except Exception as e:
                table_rollback.status = "failed"
                table_rollback.error = str(e)
                logger.error(f"Rollback failed for table {table_name}: {e}")

            table_rollback.completed_at = now_iso()

        rollback.completed_at = now_iso()
        logger.info(
            f"Migration rollback completed: {rollback.successful_tables} successful, {rollback.failed_tables} failed"
        )
        return rollback
