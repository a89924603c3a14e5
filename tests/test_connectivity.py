"""Tests for the provider connectivity self-test."""

from unittest.mock import MagicMock

import redis

from storeshift.registry import ProviderRegistry
from storeshift.services import connectivity
from storeshift.stores import MemoryStore, RedisStore


class TestProbeConnection:
    """Tests for probe_connection."""

    def test_memory_round_trip(self) -> None:
        registry = ProviderRegistry({"memory": MemoryStore()})

        outcome = connectivity.probe_connection(registry.session("memory"))

        assert outcome["status"] == "success"
        assert outcome["connection"] is True
        assert outcome["kind"] == "memory"
        assert outcome["operations"] == {"create": True, "read": True, "update": True, "delete": True}
        assert outcome["features"] == {
            "supports_arrays": True,
            "supports_nested_objects": True,
            "preserves_data_types": True,
        }

    def test_probe_record_is_removed(self, mixed_registry) -> None:
        connectivity.probe_connection(mixed_registry.session("redis"))
        connectivity.probe_connection(mixed_registry.session("postgres"))

        assert mixed_registry.get_store("redis").read_all(connectivity.TEST_TABLE) == {}
        assert mixed_registry.get_store("postgres").read_all(connectivity.TEST_TABLE) == {}

    def test_sql_round_trip(self, mixed_registry) -> None:
        outcome = connectivity.probe_connection(mixed_registry.session("postgres"))

        assert outcome["status"] == "success"
        assert outcome["kind"] == "sql"
        assert all(outcome["operations"].values())

    def test_unreachable_redis(self) -> None:
        client = MagicMock()
        client.ping.side_effect = redis.ConnectionError("refused")
        client.set.side_effect = redis.ConnectionError("refused")
        registry = ProviderRegistry({"redis": RedisStore(client=client)})

        outcome = connectivity.probe_connection(registry.session("redis"))

        assert outcome["status"] == "error"
        assert outcome["connection"] is False
        assert "refused" in outcome["error"]
        assert outcome["health"]["status"] == "error"


class TestTestConnections:
    """Tests for test_connections."""

    def test_all_registered(self, mixed_registry) -> None:
        results = connectivity.test_connections(mixed_registry)

        assert set(results) == {"postgres", "redis"}
        assert all(r["status"] == "success" for r in results.values())

    def test_unknown_provider(self, mixed_registry) -> None:
        results = connectivity.test_connections(mixed_registry, ["redis", "mongo"])

        assert results["redis"]["status"] == "success"
        assert results["mongo"] == {
            "status": "error",
            "connection": False,
            "error": "Unknown database provider: mongo",
        }
