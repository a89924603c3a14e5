"""Schema rules used to validate documents during migration."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
import json


class FieldType(str, Enum):
    """JSON value types a rule can require."""
    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"


@dataclass
class SchemaRule:
    """Constraints on a single document field."""
    name: str
    type: Optional[FieldType] = None
    required: bool = False
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    enum_values: Optional[List[Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        result: Dict[str, Any] = {"required": self.required}
        if self.type:
            result["type"] = self.type.value
        if self.max_length is not None:
            result["maxLength"] = self.max_length
        if self.pattern:
            result["pattern"] = self.pattern
        if self.enum_values is not None:
            result["enum"] = self.enum_values
        return result

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "SchemaRule":
        """Create from dictionary representation. Accepts camelCase or snake_case keys."""
        field_type = data.get("type")
        if field_type is not None and not isinstance(field_type, FieldType):
            try:
                field_type = FieldType(field_type)
            except ValueError:
                raise ValueError(f"Unknown field type for {name}: {field_type}") from None

        max_length = data.get("maxLength", data.get("max_length"))

        return cls(
            name=name,
            type=field_type,
            required=bool(data.get("required", False)),
            max_length=max_length,
            pattern=data.get("pattern"),
            enum_values=data.get("enum", data.get("enum_values")),
        )


@dataclass
class DocumentSchema:
    """Set of field rules for the documents of one table."""
    fields: Dict[str, SchemaRule] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {name: rule.to_dict() for name, rule in self.fields.items()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DocumentSchema":
        """Build from `{field: {required, type, maxLength, pattern, enum}}`."""
        return cls(fields={name: SchemaRule.from_dict(name, rule) for name, rule in data.items()})

    @classmethod
    def from_json_file(cls, path: str) -> "DocumentSchema":
        with open(path) as f:
            return cls.from_dict(json.load(f))


@dataclass
class SchemaViolation:
    """A document failing one rule."""
    field: str
    message: str
    error_type: str = "validation"
    value: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "message": self.message,
            "error_type": self.error_type,
            "value": self.value,
        }

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"
