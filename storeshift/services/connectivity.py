"""Connectivity self-test for registered providers."""

import logging
from typing import Any, Dict, List, Optional

from ..stores.base import now_iso

logger = logging.getLogger(__name__)

TEST_TABLE = "migration_test"


def _probe_document() -> Dict[str, Any]:
    return {
        "testField": "testValue",
        "timestamp": now_iso(),
        "number": 123,
        "array": [1, 2, 3],
        "nested": {"inner": "value"},
    }


def probe_connection(session) -> Dict[str, Any]:
    """Run a create/read/update/delete round trip on one store session."""
    health = session.health_check()
    created_id = None
    deleted = False

    try:
        created_id = session.create(_probe_document(), TEST_TABLE)
        read = session.read(created_id, TEST_TABLE)
        updated = session.update(created_id, {"updated": True}, TEST_TABLE)
        deleted = session.delete(created_id, TEST_TABLE)
    except Exception as e:
        logger.error(f"Connection test failed for {session.name}: {e}")
        return {"status": "error", "connection": False, "error": str(e), "health": health}
    finally:
        if created_id is not None and not deleted:
            try:
                session.delete(created_id, TEST_TABLE)
            except Exception as cleanup_error:
                logger.warning(f"Could not remove test record {created_id} from {session.name}: {cleanup_error}")

    return {
        "status": "success",
        "connection": health.get("status") == "connected",
        "kind": session.kind.value,
        "operations": {
            "create": bool(created_id),
            "read": read is not None,
            "update": bool(updated) and updated.get("updated") is True,
            "delete": bool(deleted),
        },
        "features": {
            "supports_arrays": read is not None and isinstance(read.get("array"), list),
            "supports_nested_objects": read is not None and isinstance(read.get("nested"), dict),
            "preserves_data_types": read is not None and isinstance(read.get("number"), int),
        },
        "health": health,
    }


def test_connections(registry, providers: Optional[List[str]] = None) -> Dict[str, Dict[str, Any]]:
    """
    Test every listed provider (default: all registered).

    Unknown provider names are reported as errors rather than raised.
    """
    results = {}
    for provider in providers or registry.available_providers():
        logger.info(f"Testing {provider} connection...")
        if not registry.has_provider(provider):
            results[provider] = {"status": "error", "connection": False, "error": f"Unknown database provider: {provider}"}
            continue
        results[provider] = probe_connection(registry.session(provider))
    return results
