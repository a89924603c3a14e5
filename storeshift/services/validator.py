"""Schema validation for documents moving between providers."""

import re
import logging
from typing import Any, Dict, List, Optional, Union

from ..models.schema import (
    FieldType,
    DocumentSchema,
    SchemaRule,
    SchemaViolation,
)
from ..stores.base import Document, KIND_CAPABILITIES, ProviderKind

logger = logging.getLogger(__name__)

SchemaLike = Union[DocumentSchema, Dict[str, Any]]


class SchemaValidator:
    """
    Validator for documents against per-field rules.

    Supports:
    - Required field validation
    - Type validation
    - Max length validation
    - Pattern validation
    - Enum validation
    - Target-specific field name checks
    """

    _type_checks = {
        FieldType.STRING: lambda v: isinstance(v, str),
        FieldType.NUMBER: lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
        FieldType.INTEGER: lambda v: isinstance(v, int) and not isinstance(v, bool),
        FieldType.BOOLEAN: lambda v: isinstance(v, bool),
        FieldType.OBJECT: lambda v: isinstance(v, dict),
        FieldType.ARRAY: lambda v: isinstance(v, list),
    }

    @staticmethod
    def coerce_schema(schema: SchemaLike) -> DocumentSchema:
        if isinstance(schema, DocumentSchema):
            return schema
        return DocumentSchema.from_dict(schema)

    def validate(
        self,
        document: Document,
        schema: SchemaLike,
        target_kind: Optional[ProviderKind] = None,
    ) -> List[SchemaViolation]:
        """
        Validate a document against a schema.

        Args:
            document: The document to validate
            schema: DocumentSchema or raw `{field: rules}` mapping
            target_kind: Backend kind whose field-name rules also apply

        Returns:
            List of violations, empty when the document is valid
        """
        schema = self.coerce_schema(schema)
        invalid_chars = None
        if target_kind is not None:
            invalid_chars = KIND_CAPABILITIES[ProviderKind.parse(target_kind)].invalid_field_pattern

        violations = []
        for field_name, rule in schema.fields.items():
            violations.extend(self._validate_field(field_name, document.get(field_name), rule))

            if invalid_chars and document.get(field_name) is not None and invalid_chars.search(field_name):
                violations.append(SchemaViolation(
                    field=field_name,
                    message=f"Field name '{field_name}' contains invalid characters for {target_kind.value}",
                    error_type="field_name",
                ))

        return violations

    def _validate_field(self, field_name: str, value: Any, rule: SchemaRule) -> List[SchemaViolation]:
        """Validate a single field."""
        if value is None:
            if rule.required:
                return [SchemaViolation(
                    field=field_name,
                    message=f"Field '{field_name}' is required",
                    error_type="required",
                )]
            return []

        errors = []

        if rule.type:
            check = self._type_checks[rule.type]
            if not check(value):
                errors.append(SchemaViolation(
                    field=field_name,
                    message=f"Field '{field_name}' must be of type {rule.type.value}, got {type(value).__name__}",
                    error_type="type",
                    value=value,
                ))

        if rule.max_length is not None and isinstance(value, str) and len(value) > rule.max_length:
            errors.append(SchemaViolation(
                field=field_name,
                message=f"Field '{field_name}' exceeds maximum length of {rule.max_length}",
                error_type="max_length",
                value=len(value),
            ))

        if rule.pattern and not re.search(rule.pattern, str(value)):
            errors.append(SchemaViolation(
                field=field_name,
                message=f"Field '{field_name}' does not match required pattern",
                error_type="pattern",
                value=value,
            ))

        if rule.enum_values is not None and value not in rule.enum_values:
            allowed = ", ".join(str(v) for v in rule.enum_values)
            errors.append(SchemaViolation(
                field=field_name,
                message=f"Field '{field_name}' must be one of: {allowed}",
                error_type="enum",
                value=value,
            ))

        return errors
