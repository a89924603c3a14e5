"""Tests for result export and Markdown reports."""

from datetime import datetime, timezone

import pytest

from storeshift.models import MigrationResult, MigrationStatus, RecordError, TableResult, TableStatus
from storeshift.orchestrator import MigrationOrchestrator
from storeshift.services.reporting import export_results, generate_report, import_results, save_report


@pytest.fixture
def result(memory_registry) -> MigrationResult:
    return MigrationOrchestrator(memory_registry).migrate_data("source", "target", ["users"], preserve_keys=True)


def failing_result(error_count: int) -> MigrationResult:
    result = MigrationResult(
        from_provider="postgres",
        to_provider="redis",
        started_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
    )
    table = TableResult(
        table_name="orders",
        status=TableStatus.PARTIAL_SUCCESS,
        total_records=error_count + 1,
        migrated_records=1,
        errors=[RecordError(error="Required fields missing: sku", original_key=f"o{i}") for i in range(error_count)],
    )
    result.tables["orders"] = table
    result.summary.total_tables = 1
    result.summary.failed_tables = 1
    result.summary.total_records = table.total_records
    result.summary.migrated_records = 1
    result.summary.errors.append({"table": None, "error": "Backup failed: timeout"})
    return result.finalize(MigrationStatus.COMPLETED)


class TestExport:
    """Tests for JSON export and import."""

    def test_round_trip(self, result, tmp_path) -> None:
        path = export_results(result, tmp_path / "out" / "results.json")
        loaded = import_results(path)

        assert loaded.status == MigrationStatus.COMPLETED
        assert loaded.summary.migrated_records == 3
        assert loaded.tables["users"].status == TableStatus.SUCCESS
        assert [r.new_key for r in loaded.tables["users"].records] == ["a", "b", "c"]
        assert loaded.started_at == result.started_at.replace(microsecond=result.started_at.microsecond // 1000 * 1000)

    def test_default_file_name(self, result, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)

        path = export_results(result)

        assert path.name.startswith("migration-results-source-to-target-")
        assert path.suffix == ".json"
        assert path.exists()


class TestReport:
    """Tests for the Markdown report."""

    def test_header_and_summary(self, result) -> None:
        report = generate_report(result)

        assert report.startswith("# Migration Report: source → target")
        assert "**Status:** completed" in report
        assert "| Tables | 1/1 successful |" in report
        assert "| Records | 3/3 migrated |" in report
        assert "| Success rate | 100.00% |" in report
        assert "### users" in report

    def test_dry_run_marker(self, memory_registry) -> None:
        result = MigrationOrchestrator(memory_registry).migrate_data("source", "target", ["users"], dry_run=True)

        assert "(dry run)" in generate_report(result)

    def test_errors_are_truncated(self) -> None:
        report = generate_report(failing_result(8))

        assert "- **Errors:** 8" in report
        assert "  - o0: Required fields missing: sku" in report
        assert "  - o4: Required fields missing: sku" in report
        assert "o5:" not in report
        assert "  - ... and 3 more" in report

    def test_global_errors(self) -> None:
        report = generate_report(failing_result(1))

        assert "## Global Errors" in report
        assert "- Backup failed: timeout" in report
        assert "... and" not in report

    def test_save_report(self, result, tmp_path) -> None:
        path = save_report(result, tmp_path / "report.md")

        assert path.read_text() == generate_report(result)
