"""Migration execution models."""

from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, List, Optional, Tuple
from enum import Enum
from datetime import datetime
import json
import threading

from dateutil import parser as date_parser

from .record import RecordError, RecordOutcome
from ..stores.base import Document, now_iso, to_iso, utc_now


class MigrationStatus(str, Enum):
    """Final status of a migration run."""
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TableStatus(str, Enum):
    """Status of a single table within a run."""
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    SUCCESS = "success"
    PARTIAL_SUCCESS = "partial-success"
    FAILED = "failed"
    SKIPPED = "skipped"
    DRY_RUN_SUCCESS = "dry-run-success"
    CANCELLED = "cancelled"


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return date_parser.isoparse(value) if value else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return to_iso(value) if value else None


@dataclass
class ProgressEvent:
    """Progress notification passed to `on_progress` callbacks."""
    phase: str
    current_table: Optional[str] = None
    table_index: Optional[int] = None
    total_tables: Optional[int] = None
    overall_progress: Optional[int] = None
    table_progress: Optional[int] = None
    records_processed: Optional[int] = None
    total_records_in_table: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase wire shape, omitting unset fields."""
        mapping = {
            "phase": self.phase,
            "currentTable": self.current_table,
            "tableIndex": self.table_index,
            "totalTables": self.total_tables,
            "overallProgress": self.overall_progress,
            "tableProgress": self.table_progress,
            "recordsProcessed": self.records_processed,
            "totalRecordsInTable": self.total_records_in_table,
        }
        return {k: v for k, v in mapping.items() if v is not None}


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class MigrationOptions:
    """Options accepted by `migrate_data`."""
    batch_size: int = 100
    dry_run: bool = False
    transform_data: Optional[Any] = None  # Transform or plain function
    on_progress: Optional[ProgressCallback] = None
    continue_on_error: bool = True
    backup_before_migration: bool = False
    preserve_keys: bool = False  # Reuse source ids in the target
    cancel_event: Optional[threading.Event] = None

    def with_overrides(self, **overrides: Any) -> "MigrationOptions":
        """Return a copy with keyword overrides applied."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise TypeError(f"Unknown migration options: {', '.join(unknown)}")
        return replace(self, **overrides)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


@dataclass(frozen=True)
class PlanPhase:
    """One phase of a migration plan."""
    phase: str
    description: str
    steps: Tuple[str, ...] = ()
    estimated_time: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "description": self.description,
            "steps": list(self.steps),
            "estimated_time": self.estimated_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlanPhase":
        return cls(
            phase=data["phase"],
            description=data.get("description", ""),
            steps=tuple(data.get("steps", [])),
            estimated_time=data.get("estimated_time", ""),
        )


@dataclass(frozen=True)
class MigrationPlan:
    """
    Immutable description of a migration attempt.

    `transformation` holds the chain to apply; None means the recommended
    chain for the provider pair is resolved at execution time.
    """
    from_provider: str
    to_provider: str
    tables: Tuple[str, ...]
    batch_size: int = 100
    dry_run: bool = False
    continue_on_error: bool = True
    backup_before_migration: bool = True
    transformation: Optional[Any] = None
    enable_progress_tracking: bool = True
    preserve_keys: bool = False
    estimated_duration: str = ""
    total_records: int = 0
    generated_at: str = field(default_factory=now_iso)
    phases: Tuple[PlanPhase, ...] = ()
    risks: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()

    def to_options(self, on_progress: Optional[ProgressCallback] = None) -> MigrationOptions:
        return MigrationOptions(
            batch_size=self.batch_size,
            dry_run=self.dry_run,
            transform_data=self.transformation,
            on_progress=on_progress,
            continue_on_error=self.continue_on_error,
            backup_before_migration=self.backup_before_migration,
            preserve_keys=self.preserve_keys,
        )

    def metadata(self) -> Dict[str, Any]:
        return {
            "from_provider": self.from_provider,
            "to_provider": self.to_provider,
            "generated_at": self.generated_at,
            "estimated_duration": self.estimated_duration,
            "total_records": self.total_records,
        }

    def configuration(self) -> Dict[str, Any]:
        describe = getattr(self.transformation, "describe", None)
        return {
            "batch_size": self.batch_size,
            "dry_run": self.dry_run,
            "continue_on_error": self.continue_on_error,
            "backup_before_migration": self.backup_before_migration,
            "enable_progress_tracking": self.enable_progress_tracking,
            "preserve_keys": self.preserve_keys,
            "transformation": describe() if describe else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "metadata": self.metadata(),
            "configuration": self.configuration(),
            "tables": list(self.tables),
            "phases": [p.to_dict() for p in self.phases],
            "risks": list(self.risks),
            "recommendations": list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationPlan":
        """
        Load a plan saved with to_dict().

        The transformation is not serialized, so a loaded plan uses the
        recommended chain for its provider pair.
        """
        metadata = data.get("metadata", {})
        configuration = data.get("configuration", {})
        return cls(
            from_provider=metadata["from_provider"],
            to_provider=metadata["to_provider"],
            tables=tuple(data.get("tables", [])),
            batch_size=configuration.get("batch_size", 100),
            dry_run=configuration.get("dry_run", False),
            continue_on_error=configuration.get("continue_on_error", True),
            backup_before_migration=configuration.get("backup_before_migration", True),
            enable_progress_tracking=configuration.get("enable_progress_tracking", True),
            preserve_keys=configuration.get("preserve_keys", False),
            estimated_duration=metadata.get("estimated_duration", ""),
            total_records=metadata.get("total_records", 0),
            generated_at=metadata.get("generated_at") or now_iso(),
            phases=tuple(PlanPhase.from_dict(p) for p in data.get("phases", [])),
            risks=tuple(data.get("risks", [])),
            recommendations=tuple(data.get("recommendations", [])),
        )

    @classmethod
    def from_json_file(cls, path: str) -> "MigrationPlan":
        with open(path) as f:
            return cls.from_dict(json.load(f))


@dataclass
class TableResult:
    """Result of migrating one table."""
    table_name: str
    status: TableStatus = TableStatus.PENDING
    total_records: int = 0
    migrated_records: int = 0
    errors: List[RecordError] = field(default_factory=list)
    records: List[RecordOutcome] = field(default_factory=list)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @property
    def success_rate(self) -> float:
        """Migrated share of total records, in percent."""
        if not self.total_records:
            return 0.0
        return self.migrated_records / self.total_records * 100

    @property
    def duration_ms(self) -> Optional[int]:
        if self.started_at and self.completed_at:
            return int((self.completed_at - self.started_at).total_seconds() * 1000)
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "table_name": self.table_name,
            "status": self.status.value,
            "total_records": self.total_records,
            "migrated_records": self.migrated_records,
            "errors": [e.to_dict() for e in self.errors],
            "records": [r.to_dict() for r in self.records],
            "started_at": _format_time(self.started_at),
            "completed_at": _format_time(self.completed_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TableResult":
        return cls(
            table_name=data["table_name"],
            status=TableStatus(data.get("status", "pending")),
            total_records=data.get("total_records", 0),
            migrated_records=data.get("migrated_records", 0),
            errors=[RecordError.from_dict(e) for e in data.get("errors", [])],
            records=[RecordOutcome.from_dict(r) for r in data.get("records", [])],
            started_at=_parse_time(data.get("started_at")),
            completed_at=_parse_time(data.get("completed_at")),
        )


@dataclass
class MigrationSummary:
    """Aggregate counters over every table of a run."""
    total_tables: int = 0
    successful_tables: int = 0
    failed_tables: int = 0
    skipped_tables: int = 0
    total_records: int = 0
    migrated_records: int = 0
    errors: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tables": self.total_tables,
            "successful_tables": self.successful_tables,
            "failed_tables": self.failed_tables,
            "skipped_tables": self.skipped_tables,
            "total_records": self.total_records,
            "migrated_records": self.migrated_records,
            "errors": self.errors,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationSummary":
        return cls(
            total_tables=data.get("total_tables", 0),
            successful_tables=data.get("successful_tables", 0),
            failed_tables=data.get("failed_tables", 0),
            skipped_tables=data.get("skipped_tables", 0),
            total_records=data.get("total_records", 0),
            migrated_records=data.get("migrated_records", 0),
            errors=list(data.get("errors", [])),
        )


@dataclass
class Backup:
    """Snapshot of a provider's tables."""
    provider: str
    tables: Dict[str, Dict[str, Document]] = field(default_factory=dict)
    timestamp: str = field(default_factory=now_iso)

    @property
    def record_count(self) -> int:
        return sum(len(records) for records in self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "provider": self.provider,
            "tables": self.tables,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Backup":
        return cls(
            provider=data["provider"],
            tables=data.get("tables", {}),
            timestamp=data.get("timestamp") or now_iso(),
        )


@dataclass
class MigrationResult:
    """A complete migration run."""
    from_provider: str
    to_provider: str
    status: MigrationStatus = MigrationStatus.IN_PROGRESS
    tables: Dict[str, TableResult] = field(default_factory=dict)
    summary: MigrationSummary = field(default_factory=MigrationSummary)
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    dry_run: bool = False
    backup: Optional[Backup] = None
    backup_error: Optional[str] = None
    plan_executed: Optional[Dict[str, Any]] = None

    def finalize(self, status: MigrationStatus) -> "MigrationResult":
        """Stamp completion time and duration."""
        self.status = status
        self.completed_at = utc_now()
        self.duration_ms = int((self.completed_at - self.started_at).total_seconds() * 1000)
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "from_provider": self.from_provider,
            "to_provider": self.to_provider,
            "status": self.status.value,
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
            "summary": self.summary.to_dict(),
            "started_at": _format_time(self.started_at),
            "completed_at": _format_time(self.completed_at),
            "duration_ms": self.duration_ms,
            "dry_run": self.dry_run,
            "backup": self.backup.to_dict() if self.backup else None,
            "backup_error": self.backup_error,
            "plan_executed": self.plan_executed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationResult":
        """Create from dictionary representation."""
        return cls(
            from_provider=data["from_provider"],
            to_provider=data["to_provider"],
            status=MigrationStatus(data.get("status", "completed")),
            tables={name: TableResult.from_dict(t) for name, t in data.get("tables", {}).items()},
            summary=MigrationSummary.from_dict(data.get("summary", {})),
            started_at=_parse_time(data.get("started_at")) or utc_now(),
            completed_at=_parse_time(data.get("completed_at")),
            duration_ms=data.get("duration_ms"),
            dry_run=data.get("dry_run", False),
            backup=Backup.from_dict(data["backup"]) if data.get("backup") else None,
            backup_error=data.get("backup_error"),
            plan_executed=data.get("plan_executed"),
        )


@dataclass
class TableRestore:
    """Restore outcome for one table."""
    table_name: str
    status: str = "success"  # success, partial-success, failed, missing
    total_records: int = 0
    restored_records: int = 0
    errors: List[RecordError] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "status": self.status,
            "total_records": self.total_records,
            "restored_records": self.restored_records,
            "errors": [e.to_dict() for e in self.errors],
            "error": self.error,
        }


@dataclass
class RestoreResult:
    """Outcome of restoring a backup."""
    provider: str
    backup_timestamp: str
    tables: Dict[str, TableRestore] = field(default_factory=dict)

    @property
    def missing_tables(self) -> List[str]:
        return [name for name, t in self.tables.items() if t.status == "missing"]

    @property
    def restored_records(self) -> int:
        return sum(t.restored_records for t in self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "backup_timestamp": self.backup_timestamp,
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
            "missing_tables": self.missing_tables,
            "restored_records": self.restored_records,
        }


@dataclass
class TableRollback:
    """Rollback outcome for one table."""
    table_name: str
    status: str = "success"  # success, failed
    deleted_records: int = 0
    total_records: int = 0
    error: Optional[str] = None
    started_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "status": self.status,
            "deleted_records": self.deleted_records,
            "total_records": self.total_records,
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


@dataclass
class RollbackResult:
    """Outcome of undoing a migration."""
    from_provider: str
    to_provider: str
    delete_target_data: bool = False
    tables: Dict[str, TableRollback] = field(default_factory=dict)
    started_at: str = field(default_factory=now_iso)
    completed_at: Optional[str] = None

    @property
    def successful_tables(self) -> int:
        return sum(1 for t in self.tables.values() if t.status == "success")

    @property
    def failed_tables(self) -> int:
        return sum(1 for t in self.tables.values() if t.status == "failed")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from_provider": self.from_provider,
            "to_provider": self.to_provider,
            "delete_target_data": self.delete_target_data,
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
            "summary": {
                "successful_tables": self.successful_tables,
                "failed_tables": self.failed_tables,
            },
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }
