"""Consistency comparison models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..stores.base import now_iso


@dataclass
class ContentDifference:
    """A key present on both sides with different content."""
    key: str
    left: Dict[str, Any]
    right: Dict[str, Any]

    def to_dict(self, left_name: str = "provider_1", right_name: str = "provider_2") -> Dict[str, Any]:
        return {"key": self.key, left_name: self.left, right_name: self.right}


@dataclass
class TableConsistency:
    """Comparison of one table across two providers."""
    table_name: str
    total_1: int = 0
    total_2: int = 0
    only_in_1: List[str] = field(default_factory=list)
    only_in_2: List[str] = field(default_factory=list)
    duplicates_in_2: List[str] = field(default_factory=list)  # record ids colliding on the key field
    common: int = 0
    content_differences: int = 0
    differences: List[ContentDifference] = field(default_factory=list)  # at most 10 samples

    @property
    def consistency(self) -> bool:
        return (
            not self.only_in_1
            and not self.only_in_2
            and not self.duplicates_in_2
            and self.content_differences == 0
        )

    def to_dict(self, left_name: str = "provider_1", right_name: str = "provider_2") -> Dict[str, Any]:
        return {
            "table_name": self.table_name,
            "total_1": self.total_1,
            "total_2": self.total_2,
            "only_in_1": self.only_in_1,
            "only_in_2": self.only_in_2,
            "duplicates_in_2": self.duplicates_in_2,
            "common": self.common,
            "content_differences": self.content_differences,
            "consistency": self.consistency,
            "differences": [d.to_dict(left_name, right_name) for d in self.differences],
        }


@dataclass
class ConsistencyReport:
    """Per-table comparison between two providers."""
    provider_1: str
    provider_2: str
    tables: Dict[str, TableConsistency] = field(default_factory=dict)
    key_field: str = ""
    timestamp: str = field(default_factory=now_iso)

    @property
    def consistent(self) -> bool:
        return all(t.consistency for t in self.tables.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider_1": self.provider_1,
            "provider_2": self.provider_2,
            "key_field": self.key_field or None,
            "timestamp": self.timestamp,
            "consistent": self.consistent,
            "tables": {
                name: t.to_dict(self.provider_1, self.provider_2) for name, t in self.tables.items()
            },
        }
