from .validator import SchemaValidator
from .transformer import (
    Transform,
    FunctionTransform,
    TransformChain,
    StripMetadata,
    AddMetadata,
    ConvertTimestamps,
    RestoreEpochTimestamps,
    SanitizeFieldNames,
    ValidateRequiredFields,
    ValidateSchema,
    AddDefaults,
    SerializeArrays,
    DeserializeArrays,
    FlattenNested,
    UnflattenNested,
    MarkLargeText,
    RestoreLargeText,
    as_transform,
    combine,
    get_recommended_transformation,
)
from .analyzer import MigrationAnalyzer
from .planner import estimate_migration_time, generate_migration_plan, validate_migration_plan
from .backup import BackupManager
from .comparator import compare_data
from .reporting import export_results, import_results, generate_report, save_report
from .connectivity import test_connections

__all__ = [
    "SchemaValidator",
    "Transform",
    "FunctionTransform",
    "TransformChain",
    "StripMetadata",
    "AddMetadata",
    "ConvertTimestamps",
    "RestoreEpochTimestamps",
    "SanitizeFieldNames",
    "ValidateRequiredFields",
    "ValidateSchema",
    "AddDefaults",
    "SerializeArrays",
    "DeserializeArrays",
    "FlattenNested",
    "UnflattenNested",
    "MarkLargeText",
    "RestoreLargeText",
    "as_transform",
    "combine",
    "get_recommended_transformation",
    "MigrationAnalyzer",
    "estimate_migration_time",
    "generate_migration_plan",
    "validate_migration_plan",
    "BackupManager",
    "compare_data",
    "export_results",
    "import_results",
    "generate_report",
    "save_report",
    "test_connections",
]
