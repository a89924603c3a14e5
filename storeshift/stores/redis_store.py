"""Redis store: one JSON string per `table:id` key."""

import json
import logging
from typing import Any, Dict, Optional

import redis

from .base import BaseStore, Document, ProviderKind, generate_id, stamp_timestamps, translates_connection_errors
from ..exceptions import ConfigurationError, DuplicateKeyError

logger = logging.getLogger(__name__)

redis_errors = translates_connection_errors(redis.ConnectionError, redis.TimeoutError)


class RedisStore(BaseStore):
    """
    Store documents as JSON strings in Redis.

    Keys follow the `table:id` pattern. Table scans use SCAN rather than
    KEYS so large keyspaces do not block the server.
    """

    kind = ProviderKind.REDIS

    def __init__(
        self,
        url: Optional[str] = None,
        name: Optional[str] = None,
        object_storage: Optional[Any] = None,
        client: Optional[Any] = None,
        scan_count: int = 500,
    ):
        """
        Initialize the Redis store.

        Args:
            url: Redis connection URL (ignored when client is given)
            name: Provider name
            object_storage: Optional object storage for uploads
            client: Pre-built client exposing the redis-py API
            scan_count: COUNT hint for SCAN iterations
        """
        super().__init__(name, object_storage)
        self.url = url
        self.scan_count = scan_count
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.url:
                raise ConfigurationError(f"No Redis URL configured for provider {self.name}")
            self._client = redis.Redis.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
            )
            logger.info(f"Redis client created for provider {self.name}")
        return self._client

    @staticmethod
    def build_key(table: str, id: str) -> str:
        return f"{table}:{id}"

    @staticmethod
    def extract_id(key: str, table: str) -> str:
        return key[len(table) + 1:]

    def _table_keys(self, table: str):
        pattern = f"{table}:*"
        for key in self.client.scan_iter(match=pattern, count=self.scan_count):
            key = key.decode("utf-8") if isinstance(key, bytes) else key
            # Glob characters in table names can over-match.
            if key.startswith(f"{table}:"):
                yield key

    @staticmethod
    def _decode(raw: Any) -> Optional[Document]:
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        return json.loads(raw)

    @redis_errors
    def create(self, document: Document, table: str, id: Optional[str] = None) -> str:
        record_id = id or generate_id()
        key = self.build_key(table, record_id)
        payload = json.dumps(stamp_timestamps(document))

        if not self.client.set(key, payload, nx=True):
            raise DuplicateKeyError(record_id, table)
        return record_id

    @redis_errors
    def read(self, id: str, table: str) -> Optional[Document]:
        return self._decode(self.client.get(self.build_key(table, id)))

    @redis_errors
    def read_all(self, table: str) -> Dict[str, Document]:
        results = {}
        for key in self._table_keys(table):
            document = self._decode(self.client.get(key))
            if document is not None:
                results[self.extract_id(key, table)] = document
        return results

    @redis_errors
    def update(self, id: str, update_data: Document, table: str) -> Document:
        key = self.build_key(table, id)
        merged = self._merge_update(self._decode(self.client.get(key)), id, update_data, table)
        self.client.set(key, json.dumps(merged), xx=True, keepttl=True)
        return merged

    @redis_errors
    def delete(self, id: str, table: str) -> bool:
        return self.client.delete(self.build_key(table, id)) > 0

    @redis_errors
    def delete_all(self, table: str) -> bool:
        keys = list(self._table_keys(table))
        if keys:
            self.client.delete(*keys)
        return True

    @redis_errors
    def set_expiration(self, id: str, table: str, ttl_seconds: int) -> bool:
        return bool(self.client.expire(self.build_key(table, id), ttl_seconds))

    @redis_errors
    def get_ttl(self, id: str, table: str) -> int:
        return self.client.ttl(self.build_key(table, id))

    @redis_errors
    def ping(self) -> None:
        self.client.ping()

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.error(f"Error disconnecting from Redis: {e}")
            self._client = None
