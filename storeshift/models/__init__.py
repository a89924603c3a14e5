"""Data models for migrations, previews and comparisons."""

from .schema import (
    FieldType,
    SchemaRule,
    DocumentSchema,
    SchemaViolation,
)
from .record import (
    RecordStatus,
    RecordOutcome,
    RecordError,
)
from .migration import (
    MigrationStatus,
    TableStatus,
    ProgressEvent,
    MigrationOptions,
    PlanPhase,
    MigrationPlan,
    TableResult,
    MigrationSummary,
    MigrationResult,
    Backup,
    TableRestore,
    RestoreResult,
    TableRollback,
    RollbackResult,
)
from .preview import (
    FieldStats,
    SampleRecord,
    TablePreview,
    PreviewSummary,
    Preview,
    PlanValidation,
)
from .consistency import (
    ContentDifference,
    TableConsistency,
    ConsistencyReport,
)

__all__ = [
    "FieldType",
    "SchemaRule",
    "DocumentSchema",
    "SchemaViolation",
    "RecordStatus",
    "RecordOutcome",
    "RecordError",
    "MigrationStatus",
    "TableStatus",
    "ProgressEvent",
    "MigrationOptions",
    "PlanPhase",
    "MigrationPlan",
    "TableResult",
    "MigrationSummary",
    "MigrationResult",
    "Backup",
    "TableRestore",
    "RestoreResult",
    "TableRollback",
    "RollbackResult",
    "FieldStats",
    "SampleRecord",
    "TablePreview",
    "PreviewSummary",
    "Preview",
    "PlanValidation",
    "ContentDifference",
    "TableConsistency",
    "ConsistencyReport",
]
