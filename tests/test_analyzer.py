"""
Tests for MigrationAnalyzer and the planner.

Tests cover:
- Field statistics, sampling and warnings in previews
- Capability-driven recommendations
- Duration estimates
- Plan generation, serialization and validation
"""

import random

import pytest

from storeshift.exceptions import ConfigurationError, StoreError, UnknownProviderError
from storeshift.models import MigrationPlan, Preview
from storeshift.registry import ProviderRegistry
from storeshift.services.analyzer import MigrationAnalyzer, json_type
from storeshift.services.planner import (
    estimate_migration_time,
    format_duration,
    generate_migration_plan,
    validate_migration_plan,
)
from storeshift.stores import MemoryStore, RedisStore

from tests.fixtures import FakeRedis


class UnreadableStore(MemoryStore):
    def read_all(self, table):
        if table == "broken":
            raise StoreError("permission denied")
        return super().read_all(table)


@pytest.fixture
def catalog_registry() -> ProviderRegistry:
    return ProviderRegistry({
        "source": UnreadableStore(initial_data={
            "products": {
                "p1": {"title": "Lamp", "tags": ["home"], "dims": {"w": 1}, "price": 10, "listed": "2024-01-02T00:00:00Z"},
                "p2": {"title": "Desk", "tags": [], "dims": {"w": 2}, "price": "12", "note": None},
                "p3": {"title": "Chair", "tags": ["office"], "dims": {"w": 3}, "price": 8, "note": None},
            },
        }),
        "cache": RedisStore(client=FakeRedis()),
    })


@pytest.fixture
def analyzer(catalog_registry) -> MigrationAnalyzer:
    return MigrationAnalyzer(catalog_registry, rng=random.Random(7))


class TestPreview:
    """Tests for preview_migration."""

    def test_counts_and_kinds(self, analyzer) -> None:
        preview = analyzer.preview_migration("source", "cache", ["products"])

        assert preview.from_kind == "memory"
        assert preview.to_kind == "redis"
        assert preview.summary.total_tables == 1
        assert preview.summary.total_estimated_records == 3
        assert preview.tables["products"].estimated_size > 0

    def test_field_statistics(self, analyzer) -> None:
        stats = analyzer.preview_migration("source", "cache", ["products"]).tables["products"].field_analysis

        assert stats["title"].count == 3
        assert stats["title"].max_length == 5
        assert stats["note"].presence == pytest.approx(200 / 3)
        assert stats["note"].null_percentage == 100
        assert stats["price"].types == ["number", "string"]
        assert len(stats["title"].examples) == 3

    def test_field_statistics_render_percentages(self, analyzer) -> None:
        preview = analyzer.preview_migration("source", "cache", ["products"])

        rendered = preview.to_dict()["tables"]["products"]["field_analysis"]["note"]
        assert rendered["presence"] == "66.7%"
        assert rendered["null_percentage"] == "100.0%"

    def test_warnings(self, analyzer) -> None:
        warnings = analyzer.preview_migration("source", "cache", ["products"]).tables["products"].warnings

        assert "Field 'price' has mixed types: number, string" in warnings
        assert "Field 'note' is null in 100.0% of records" in warnings

    def test_structure_flags(self, analyzer) -> None:
        table = analyzer.preview_migration("source", "cache", ["products"]).tables["products"]

        assert table.has_arrays
        assert table.has_nested_objects
        assert table.has_timestamps

    def test_recommendations_for_redis_target(self, analyzer) -> None:
        preview = analyzer.preview_migration("source", "cache", ["products"])

        recommendations = preview.tables["products"].recommendations
        assert "Arrays will be JSON-serialized for cache storage" in recommendations
        assert "Consider setting TTL for time-sensitive data in cache" in recommendations
        assert any(r.startswith("Estimated duration: ") for r in preview.summary.recommendations)

    def test_ttl_warning_out_of_redis(self, catalog_registry) -> None:
        catalog_registry.get_store("cache").create({"n": 1}, "sessions", id="s1")

        preview = MigrationAnalyzer(catalog_registry).preview_migration("cache", "source", ["sessions"])

        assert "TTL settings will be lost in source" in preview.summary.warnings

    def test_sampling(self, analyzer) -> None:
        table = analyzer.preview_migration("source", "cache", ["products"], sample_size=2).tables["products"]

        assert len(table.sample_records) == 2
        assert {s.key for s in table.sample_records} <= {"p1", "p2", "p3"}

    def test_negative_sample_size(self, analyzer) -> None:
        with pytest.raises(ConfigurationError):
            analyzer.preview_migration("source", "cache", ["products"], sample_size=-1)

    def test_zero_sample_size(self, analyzer) -> None:
        table = analyzer.preview_migration("source", "cache", ["products"], sample_size=0).tables["products"]

        assert table.sample_records == []
        assert table.record_count == 3

    def test_sample_rendering_is_truncated(self, catalog_registry) -> None:
        catalog_registry.get_store("source").create({"body": "x" * 500}, "posts", id="long")

        table = MigrationAnalyzer(catalog_registry).preview_migration("source", "cache", ["posts"]).tables["posts"]

        assert table.sample_records[0].data.endswith("...")
        assert len(table.sample_records[0].data) == 203

    def test_empty_table(self, analyzer) -> None:
        table = analyzer.preview_migration("source", "cache", ["orders"]).tables["orders"]

        assert table.record_count == 0
        assert table.warnings == ["Table is empty"]
        assert table.recommendations == []

    def test_unreadable_table(self, analyzer) -> None:
        """A table that cannot be read is reported without aborting the preview."""
        preview = analyzer.preview_migration("source", "cache", ["broken", "products"])

        assert preview.tables["broken"].warnings == ["Failed to analyze table: permission denied"]
        assert preview.tables["products"].record_count == 3
        assert "broken: Failed to analyze table: permission denied" in preview.summary.warnings

    def test_nothing_is_written(self, analyzer, catalog_registry) -> None:
        analyzer.preview_migration("source", "cache", ["products"])

        assert catalog_registry.get_store("cache").read_all("products") == {}

    def test_unknown_provider(self, analyzer) -> None:
        with pytest.raises(UnknownProviderError):
            analyzer.preview_migration("source", "mongo", ["products"])

    def test_current_provider_unchanged(self, analyzer, catalog_registry) -> None:
        catalog_registry.switch_provider("cache")

        analyzer.preview_migration("source", "cache", ["broken", "products"])

        assert catalog_registry.get_provider() == "cache"


class TestJsonType:
    @pytest.mark.parametrize("value,expected", [
        (True, "boolean"),
        (3, "number"),
        (2.5, "number"),
        ("x", "string"),
        ([1], "array"),
        ({"a": 1}, "object"),
    ])
    def test_names(self, value, expected) -> None:
        assert json_type(value) == expected


def make_preview(from_kind: str, to_kind: str, records: int, size: int) -> Preview:
    preview = Preview(from_provider="a", to_provider="b", from_kind=from_kind, to_kind=to_kind)
    preview.summary.total_estimated_records = records
    preview.summary.estimated_data_size = size
    return preview


class TestEstimates:
    """Tests for duration estimates."""

    @pytest.mark.parametrize("seconds,expected", [
        (0, "0 seconds"),
        (59, "59 seconds"),
        (60, "1 minutes"),
        (61, "2 minutes"),
        (3600, "1 hours"),
        (3601, "2 hours"),
    ])
    def test_format_duration(self, seconds, expected) -> None:
        assert format_duration(seconds) == expected

    def test_sql_to_redis_throughput(self) -> None:
        assert estimate_migration_time(make_preview("sql", "redis", 500, 1000)) == "10 seconds"

    def test_redis_to_sql_throughput(self) -> None:
        assert estimate_migration_time(make_preview("redis", "sql", 300, 1000)) == "10 seconds"

    def test_default_throughput(self) -> None:
        assert estimate_migration_time(make_preview("memory", "sql", 400, 1000)) == "10 seconds"

    def test_large_records_slow_down(self) -> None:
        # 50 rps * 0.7 = 35 rps
        assert estimate_migration_time(make_preview("sql", "redis", 340, 340 * 20 * 1024)) == "10 seconds"

    def test_empty(self) -> None:
        assert estimate_migration_time(make_preview("sql", "redis", 0, 0)) == "0 seconds"


class TestPlanGeneration:
    """Tests for generate_migration_plan."""

    def test_phases(self, analyzer) -> None:
        preview = analyzer.preview_migration("source", "cache", ["products", "orders"])

        plan = generate_migration_plan(preview)

        assert [p.phase for p in plan.phases] == ["pre-migration", "migration", "post-migration"]
        assert plan.phases[1].description == "Migrate 2 tables with 3 total records"
        assert "Migrate table 'products' (3 records)" in plan.phases[1].steps
        assert "Create backup of target database" in plan.phases[0].steps
        assert plan.tables == ("products", "orders")
        assert plan.total_records == 3

    def test_without_backup(self, analyzer) -> None:
        plan = generate_migration_plan(
            analyzer.preview_migration("source", "cache", ["products"]),
            backup_before_migration=False,
        )

        assert "Create backup of target database" not in plan.phases[0].steps
        assert "No backup of the target will be taken before writing" in plan.risks

    def test_risks(self, analyzer) -> None:
        preview = analyzer.preview_migration("source", "cache", ["products"])

        plan = generate_migration_plan(preview)

        assert f"{preview.warning_count} data compatibility warnings detected" in plan.risks

    def test_ttl_risk(self) -> None:
        plan = generate_migration_plan(make_preview("redis", "sql", 10, 100))

        assert "Redis TTL settings will be lost during migration" in plan.risks

    def test_plan_is_immutable(self, analyzer) -> None:
        plan = generate_migration_plan(analyzer.preview_migration("source", "cache", ["products"]))

        with pytest.raises(AttributeError):
            plan.batch_size = 5

    def test_round_trip_through_dict(self, analyzer) -> None:
        plan = generate_migration_plan(analyzer.preview_migration("source", "cache", ["products"]), batch_size=25)

        loaded = MigrationPlan.from_dict(plan.to_dict())

        assert loaded.tables == plan.tables
        assert loaded.batch_size == 25
        assert loaded.phases == plan.phases
        assert loaded.risks == plan.risks
        assert loaded.generated_at == plan.generated_at

    def test_options(self) -> None:
        plan = MigrationPlan(from_provider="a", to_provider="b", tables=("t",), batch_size=7, dry_run=True)

        options = plan.to_options()

        assert options.batch_size == 7
        assert options.dry_run is True
        assert options.backup_before_migration is True


class TestPlanValidation:
    """Tests for validate_migration_plan."""

    def test_valid(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="source", to_provider="cache", tables=("products",))

        validation = validate_migration_plan(plan, catalog_registry)

        assert validation.valid
        assert validation.errors == []

    def test_unknown_providers(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="mongo", to_provider="dynamo", tables=("products",))

        validation = validate_migration_plan(plan, catalog_registry)

        assert not validation.valid
        assert "Source provider 'mongo' is not available" in validation.errors
        assert "Target provider 'dynamo' is not available" in validation.errors

    def test_same_provider_and_no_tables(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="source", to_provider="source", tables=())

        errors = validate_migration_plan(plan, catalog_registry).errors

        assert "Source and destination providers cannot be the same" in errors
        assert "Plan has no tables to migrate" in errors

    def test_large_batch_size_warns(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="source", to_provider="cache", tables=("t",), batch_size=5000)

        validation = validate_migration_plan(plan, catalog_registry)

        assert validation.valid
        assert "Unusual batch size - recommend 50-500 for optimal performance" in validation.warnings

    @pytest.mark.parametrize("batch_size", [0, -3])
    def test_non_positive_batch_size_is_invalid(self, catalog_registry, batch_size) -> None:
        """A plan the orchestrator would reject never validates."""
        plan = MigrationPlan(from_provider="source", to_provider="cache", tables=("t",), batch_size=batch_size)

        validation = validate_migration_plan(plan, catalog_registry)

        assert not validation.valid
        assert "Batch size must be at least 1" in validation.errors

    def test_redis_memory_recommendation(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="source", to_provider="cache", tables=("t",), total_records=20000)

        validation = validate_migration_plan(plan, catalog_registry)

        assert "Ensure Redis instance has sufficient memory" in validation.recommendations

    def test_memory_target_and_ttl_warnings(self, catalog_registry) -> None:
        plan = MigrationPlan(from_provider="cache", to_provider="source", tables=("t",))

        warnings = validate_migration_plan(plan, catalog_registry).warnings

        assert "TTL settings will be lost in the target" in warnings
        assert any("in-process memory store" in w for w in warnings)
