"""Read-only analysis of source tables before a migration."""

import json
import logging
import random
import re
from typing import Any, Dict, List, Optional

from ..exceptions import ConfigurationError
from ..models.preview import FieldStats, Preview, SampleRecord, TablePreview
from ..stores.base import Document, StoreCapabilities
from .planner import estimate_migration_time

logger = logging.getLogger(__name__)

SAMPLE_RENDER_COUNT = 3
SAMPLE_RENDER_CHARS = 200
MAX_FIELD_EXAMPLES = 3
NULL_WARNING_PERCENT = 50
LARGE_PREVIEW_BYTES = 100 * 1024 * 1024
LARGE_PREVIEW_RECORDS = 10000

ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}T")


def json_type(value: Any) -> str:
    """Name of a value's JSON type."""
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    return type(value).__name__


def json_size(document: Any) -> int:
    return len(json.dumps(document, separators=(",", ":"), default=str))


class MigrationAnalyzer:
    """
    Sample and profile source tables without writing anything.

    Only the source provider is read. The target is consulted for its
    capabilities alone.
    """

    def __init__(self, registry, rng: Optional[random.Random] = None):
        self.registry = registry
        self.rng = rng or random.Random()

    def preview_migration(
        self,
        from_provider: str,
        to_provider: str,
        tables: List[str],
        sample_size: int = 5,
    ) -> Preview:
        """
        Analyze source tables ahead of a migration.

        Args:
            from_provider: Source provider name
            to_provider: Target provider name
            tables: Tables to analyze
            sample_size: Random records sampled per table

        Returns:
            Preview with per-table statistics, warnings and recommendations
        """
        if sample_size < 0:
            raise ConfigurationError(f"sample_size must be non-negative, got {sample_size}")
        logger.info(f"Generating migration preview from {from_provider} to {to_provider}...")

        source = self.registry.session(from_provider)
        target = self.registry.describe(to_provider)

        preview = Preview(
            from_provider=source.name,
            to_provider=target.name,
            from_kind=source.kind.value,
            to_kind=target.kind.value,
        )
        preview.summary.total_tables = len(tables)

        for table in tables:
            logger.info(f"Analyzing table: {table}")
            table_preview = TablePreview(table_name=table)
            preview.tables[table] = table_preview

            try:
                records = source.read_all(table)
            except Exception as e:
                logger.error(f"Failed to analyze table {table}: {e}")
                table_preview.warnings.append(f"Failed to analyze table: {e}")
                continue

            self._analyze_table(table_preview, records, sample_size, target.capabilities)
            self._add_capability_notes(table_preview, source.capabilities, target.capabilities, target.name)

            preview.summary.total_estimated_records += table_preview.record_count
            preview.summary.estimated_data_size += table_preview.estimated_size

        self._add_global_notes(preview, source.capabilities, target.capabilities, target.name)
        preview.summary.estimated_duration = estimate_migration_time(preview)
        preview.summary.recommendations.append(f"Estimated duration: {preview.summary.estimated_duration}")
        return preview

    def _analyze_table(
        self,
        table_preview: TablePreview,
        records: Dict[str, Document],
        sample_size: int,
        target_caps: StoreCapabilities,
    ) -> None:
        entries = list(records.items())
        table_preview.record_count = len(entries)

        if not entries:
            table_preview.warnings.append("Table is empty")
            return

        sample = self.rng.sample(entries, min(sample_size, len(entries)))
        for key, document in sample[:SAMPLE_RENDER_COUNT]:
            rendered = json.dumps(document, default=str)
            if len(rendered) > SAMPLE_RENDER_CHARS:
                rendered = rendered[:SAMPLE_RENDER_CHARS] + "..."
            table_preview.sample_records.append(SampleRecord(key=key, data=rendered))

        stats: Dict[str, FieldStats] = {}
        for _, document in entries:
            table_preview.estimated_size += json_size(document)

            for field_name, value in document.items():
                field_stats = stats.setdefault(field_name, FieldStats())
                field_stats.count += 1

                if value is None:
                    field_stats.null_count += 1
                    continue

                value_type = json_type(value)
                if value_type not in field_stats.types:
                    field_stats.types.append(value_type)

                if isinstance(value, list):
                    table_preview.has_arrays = True
                elif isinstance(value, dict):
                    table_preview.has_nested_objects = True
                elif isinstance(value, str):
                    field_stats.max_length = max(field_stats.max_length, len(value))
                    if ISO_PREFIX.match(value):
                        table_preview.has_timestamps = True

                if len(field_stats.examples) < MAX_FIELD_EXAMPLES:
                    field_stats.examples.append(value)

        invalid_chars = target_caps.invalid_field_pattern
        for field_name, field_stats in stats.items():
            field_stats.presence = field_stats.count / len(entries) * 100
            field_stats.null_percentage = field_stats.null_count / field_stats.count * 100

            if len(field_stats.types) > 1:
                table_preview.warnings.append(f"Field '{field_name}' has mixed types: {', '.join(field_stats.types)}")
            if field_stats.null_percentage > NULL_WARNING_PERCENT:
                table_preview.warnings.append(
                    f"Field '{field_name}' is null in {field_stats.null_percentage:.1f}% of records"
                )
            if invalid_chars and invalid_chars.search(field_name):
                table_preview.warnings.append(f"Field name '{field_name}' contains characters invalid for the target")

        table_preview.field_analysis = stats

    def _add_capability_notes(
        self,
        table_preview: TablePreview,
        source_caps: StoreCapabilities,
        target_caps: StoreCapabilities,
        target_name: str,
    ) -> None:
        if not table_preview.record_count:
            return

        recommendations = table_preview.recommendations
        if table_preview.has_arrays and not target_caps.supports_arrays:
            recommendations.append(f"Arrays will be JSON-serialized for {target_name} storage")
        if table_preview.has_nested_objects and not target_caps.supports_nested_objects:
            recommendations.append(f"Nested objects can be flattened with FlattenNested for better {target_name} performance")
        if table_preview.has_timestamps:
            recommendations.append("Timestamps will be normalized during migration")
        if target_caps.supports_ttl and not source_caps.supports_ttl:
            recommendations.append(f"Consider setting TTL for time-sensitive data in {target_name}")
        if source_caps.supports_ttl and not target_caps.supports_ttl:
            table_preview.warnings.append(f"TTL settings will be lost in {target_name}")
        if not source_caps.supports_arrays and target_caps.supports_arrays:
            recommendations.append("Serialized arrays will be restored to native arrays")

    def _add_global_notes(
        self,
        preview: Preview,
        source_caps: StoreCapabilities,
        target_caps: StoreCapabilities,
        target_name: str,
    ) -> None:
        summary = preview.summary
        size_mb = summary.estimated_data_size / (1024 * 1024)

        if summary.estimated_data_size > LARGE_PREVIEW_BYTES:
            summary.recommendations.append(f"Large dataset ({size_mb:.2f}MB) - consider batch processing")
        if summary.total_estimated_records > LARGE_PREVIEW_RECORDS:
            summary.recommendations.append(
                "Large number of records - enable progress monitoring and increase batch size"
            )
        if target_caps.supports_ttl and not source_caps.supports_ttl:
            summary.recommendations.append(f"Plan {target_name} memory usage and persistence strategy")
        if source_caps.supports_ttl and not target_caps.supports_ttl:
            summary.warnings.append(f"TTL settings will be lost in {target_name}")

        for table_preview in preview.tables.values():
            for warning in table_preview.warnings:
                if warning.startswith("Failed to analyze table"):
                    summary.warnings.append(f"{table_preview.table_name}: {warning}")
