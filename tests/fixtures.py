"""Test doubles and constants shared across the test suite."""

import fnmatch
from datetime import datetime, timezone
from typing import Dict, Optional

FIXED_NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return FIXED_NOW


class FakeRedis:
    """In-memory stand-in for the subset of redis.Redis used by RedisStore."""

    def __init__(self) -> None:
        self.data: Dict[str, str] = {}
        self.ttls: Dict[str, int] = {}
        self.closed = False

    def set(self, key: str, value: str, nx: bool = False, xx: bool = False, keepttl: bool = False) -> Optional[bool]:
        if nx and key in self.data:
            return None
        if xx and key not in self.data:
            return None
        self.data[key] = value
        if not keepttl:
            self.ttls.pop(key, None)
        return True

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def scan_iter(self, match: str = "*", count: Optional[int] = None):
        return iter([key for key in list(self.data) if fnmatch.fnmatchcase(key, match)])

    def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    def expire(self, key: str, seconds: int) -> bool:
        if key not in self.data:
            return False
        self.ttls[key] = seconds
        return True

    def ttl(self, key: str) -> int:
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)

    def ping(self) -> bool:
        return True

    def close(self) -> None:
        self.closed = True
