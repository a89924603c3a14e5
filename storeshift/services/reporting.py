"""JSON export and Markdown reports for migration results."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from ..models.migration import MigrationResult
from ..stores.base import to_iso

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 5

PathLike = Union[str, Path]


def _file_stamp(result: MigrationResult) -> str:
    return to_iso(result.started_at).replace(":", "-").replace(".", "-")


def export_results(result: MigrationResult, filename: Optional[PathLike] = None) -> Path:
    """Write the full result as JSON. Returns the file path."""
    path = Path(filename or f"migration-results-{result.from_provider}-to-{result.to_provider}-{_file_stamp(result)}.json")
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        json.dump(result.to_dict(), f, indent=2, default=str)
    logger.info(f"Migration results exported to: {path}")
    return path


def import_results(filename: PathLike) -> MigrationResult:
    with open(filename) as f:
        return MigrationResult.from_dict(json.load(f))


def generate_report(result: MigrationResult) -> str:
    """Render a human-readable Markdown report."""
    summary = result.summary
    duration_ms = result.duration_ms or 0
    success_rate = (summary.migrated_records / summary.total_records * 100) if summary.total_records else 0.0

    lines = [
        f"# Migration Report: {result.from_provider} → {result.to_provider}",
        f"**Date:** {to_iso(result.started_at)}",
        f"**Status:** {result.status.value}{' (dry run)' if result.dry_run else ''}",
        f"**Duration:** {duration_ms}ms ({duration_ms / 1000:.2f}s)",
        "",
        "## Summary",
        "",
        "| Metric | Value |",
        "|--------|-------|",
        f"| Tables | {summary.successful_tables}/{summary.total_tables} successful |",
        f"| Failed tables | {summary.failed_tables} |",
        f"| Skipped tables | {summary.skipped_tables} |",
        f"| Records | {summary.migrated_records}/{summary.total_records} migrated |",
        f"| Success rate | {success_rate:.2f}% |",
        "",
    ]

    if result.backup_error:
        lines.extend(["## Backup", f"- Backup failed: {result.backup_error}", ""])
    elif result.backup:
        lines.extend([
            "## Backup",
            f"- {result.backup.record_count} records from {result.backup.provider} at {result.backup.timestamp}",
            "",
        ])

    if summary.errors:
        lines.append("## Global Errors")
        for error in summary.errors:
            prefix = f"{error['table']}: " if error.get("table") else ""
            lines.append(f"- {prefix}{error.get('error', error)}")
        lines.append("")

    lines.append("## Table Details")
    for table_name, table in result.tables.items():
        lines.append(f"### {table_name}")
        lines.append(f"- **Status:** {table.status.value}")
        lines.append(f"- **Records:** {table.migrated_records}/{table.total_records} ({table.success_rate:.2f}%)")
        if table.duration_ms is not None:
            lines.append(f"- **Duration:** {table.duration_ms}ms")

        if table.errors:
            lines.append(f"- **Errors:** {len(table.errors)}")
            for error in table.errors[:MAX_REPORTED_ERRORS]:
                prefix = f"{error.original_key}: " if error.original_key else ""
                lines.append(f"  - {prefix}{error.error}")
            if len(table.errors) > MAX_REPORTED_ERRORS:
                lines.append(f"  - ... and {len(table.errors) - MAX_REPORTED_ERRORS} more")
        lines.append("")

    return "\n".join(lines)


def save_report(result: MigrationResult, filename: Optional[PathLike] = None) -> Path:
    """Write the Markdown report. Returns the file path."""
    path = Path(filename or f"migration-report-{result.from_provider}-to-{result.to_provider}-{_file_stamp(result)}.md")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(generate_report(result))
    logger.info(f"Migration report saved to: {path}")
    return path
