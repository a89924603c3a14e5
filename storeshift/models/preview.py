"""Preview and plan-validation models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..stores.base import now_iso


@dataclass
class FieldStats:
    """Statistics of one field over a whole table."""
    count: int = 0
    null_count: int = 0
    types: List[str] = field(default_factory=list)
    max_length: int = 0
    examples: List[Any] = field(default_factory=list)
    presence: float = 0.0  # percent of records holding the field
    null_percentage: float = 0.0  # percent of holders with a null value

    def to_dict(self) -> Dict[str, Any]:
        return {
            "count": self.count,
            "null_count": self.null_count,
            "types": self.types,
            "max_length": self.max_length,
            "examples": self.examples,
            "presence": f"{self.presence:.1f}%",
            "null_percentage": f"{self.null_percentage:.1f}%",
        }


@dataclass
class SampleRecord:
    key: str
    data: str  # truncated JSON rendering

    def to_dict(self) -> Dict[str, Any]:
        return {"key": self.key, "data": self.data}


@dataclass
class TablePreview:
    """Read-only analysis of one source table."""
    table_name: str
    record_count: int = 0
    estimated_size: int = 0
    sample_records: List[SampleRecord] = field(default_factory=list)
    field_analysis: Dict[str, FieldStats] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    has_arrays: bool = False
    has_nested_objects: bool = False
    has_timestamps: bool = False

    @property
    def average_record_size(self) -> float:
        return self.estimated_size / self.record_count if self.record_count else 0.0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "table_name": self.table_name,
            "record_count": self.record_count,
            "estimated_size": self.estimated_size,
            "sample_records": [s.to_dict() for s in self.sample_records],
            "field_analysis": {name: stats.to_dict() for name, stats in self.field_analysis.items()},
            "warnings": self.warnings,
            "recommendations": self.recommendations,
        }


@dataclass
class PreviewSummary:
    total_tables: int = 0
    total_estimated_records: int = 0
    estimated_data_size: int = 0
    estimated_duration: str = ""
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_tables": self.total_tables,
            "total_estimated_records": self.total_estimated_records,
            "estimated_data_size": self.estimated_data_size,
            "estimated_duration": self.estimated_duration,
            "warnings": self.warnings,
            "recommendations": self.recommendations,
        }


@dataclass
class Preview:
    """Result of analyzing source tables before a migration."""
    from_provider: str
    to_provider: str
    from_kind: Optional[str] = None
    to_kind: Optional[str] = None
    timestamp: str = field(default_factory=now_iso)
    tables: Dict[str, TablePreview] = field(default_factory=dict)
    summary: PreviewSummary = field(default_factory=PreviewSummary)

    @property
    def warning_count(self) -> int:
        return sum(len(t.warnings) for t in self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "from_provider": self.from_provider,
            "to_provider": self.to_provider,
            "from_kind": self.from_kind,
            "to_kind": self.to_kind,
            "timestamp": self.timestamp,
            "tables": {name: t.to_dict() for name, t in self.tables.items()},
            "summary": self.summary.to_dict(),
        }


@dataclass
class PlanValidation:
    """Outcome of checking a plan against a registry."""
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def add_error(self, message: str) -> None:
        self.errors.append(message)
        self.valid = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": self.errors,
            "warnings": self.warnings,
            "recommendations": self.recommendations,
        }
