"""Store adapters for each supported backend kind."""

from typing import Optional

from .base import (
    BaseStore,
    Document,
    FILE_METADATA_TABLE,
    KIND_CAPABILITIES,
    ProviderKind,
    StoreCapabilities,
    UploadedFile,
)
from .memory_store import MemoryStore
from .object_storage import S3ObjectStorage
from .redis_store import RedisStore
from .sql_store import SQLStore


def create_store(config, object_storage: Optional[S3ObjectStorage] = None) -> BaseStore:
    """Build a store from a ProviderConfig."""
    if config.kind == ProviderKind.REDIS:
        return RedisStore(
            url=config.url,
            name=config.name,
            object_storage=object_storage,
            scan_count=config.scan_count,
        )
    if config.kind == ProviderKind.SQL:
        return SQLStore(
            url=config.url,
            name=config.name,
            object_storage=object_storage,
            table_name=config.table_name,
        )
    return MemoryStore(name=config.name, object_storage=object_storage)


__all__ = [
    "BaseStore",
    "Document",
    "FILE_METADATA_TABLE",
    "KIND_CAPABILITIES",
    "ProviderKind",
    "StoreCapabilities",
    "UploadedFile",
    "MemoryStore",
    "RedisStore",
    "SQLStore",
    "S3ObjectStorage",
    "create_store",
]
