"""Per-record outcome models."""

from dataclasses import dataclass
from typing import Any, Dict, Optional
from enum import Enum


class RecordStatus(str, Enum):
    """Outcome of migrating one record."""
    SUCCESS = "success"
    ERROR = "error"


@dataclass
class RecordOutcome:
    """What happened to a single source record."""
    original_key: str
    status: RecordStatus
    new_key: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RecordStatus.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result = {
            "original_key": self.original_key,
            "new_key": self.new_key,
            "status": self.status.value,
        }
        if self.error:
            result["error"] = self.error
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordOutcome":
        return cls(
            original_key=data["original_key"],
            status=RecordStatus(data.get("status", "success")),
            new_key=data.get("new_key"),
            error=data.get("error"),
        )


@dataclass
class RecordError:
    """An error captured in a table result."""
    error: str
    original_key: Optional[str] = None
    error_type: str = "record"  # record, table-level
    data: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "original_key": self.original_key,
            "error": self.error,
            "error_type": self.error_type,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RecordError":
        return cls(
            error=data.get("error", ""),
            original_key=data.get("original_key"),
            error_type=data.get("error_type", "record"),
            data=data.get("data"),
        )
