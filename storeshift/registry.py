"""Provider registry: named stores, the current provider and store sessions."""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .config import StoreSettings
from .exceptions import NoProviderConfiguredError, StoreShiftError, UnknownProviderError
from .stores import BaseStore, Document, ProviderKind, S3ObjectStorage, StoreCapabilities, UploadedFile, create_store

logger = logging.getLogger(__name__)


@dataclass
class StoreResult:
    """Outcome of a facade call. Adapter errors never escape the facade."""
    success: bool
    data: Any = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"success": self.success, "data": self.data}
        if self.message:
            result["message"] = self.message
        return result


@dataclass(frozen=True)
class Provider:
    """A registered backend as seen by callers."""
    name: str
    kind: ProviderKind
    capabilities: StoreCapabilities

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "capabilities": self.capabilities.to_dict(),
        }


class StoreSession:
    """
    Handle bound to one named store.

    Services receive sessions instead of switching the registry's current
    provider, so concurrent callers never see each other's provider.
    """

    def __init__(self, name: str, store: BaseStore):
        self.name = name
        self.store = store

    def __repr__(self) -> str:
        return f"StoreSession({self.name!r}, kind={self.kind.value})"

    @property
    def kind(self) -> ProviderKind:
        return self.store.kind

    @property
    def capabilities(self) -> StoreCapabilities:
        return self.store.capabilities

    def create(self, document: Document, table: str, id: Optional[str] = None) -> str:
        return self.store.create(document, table, id=id)

    def read(self, id: str, table: str) -> Optional[Document]:
        return self.store.read(id, table)

    def read_all(self, table: str) -> Dict[str, Document]:
        return self.store.read_all(table)

    def read_by(self, field_name: str, value: Any, table: str) -> Optional[Document]:
        return self.store.read_by(field_name, value, table)

    def get_items_by_key_value(self, field_name: str, value: Any, table: str) -> Optional[Dict[str, Document]]:
        return self.store.get_items_by_key_value(field_name, value, table)

    def get_item_key(self, field_name: str, value: Any, table: str) -> Optional[str]:
        return self.store.get_item_key(field_name, value, table)

    def update(self, id: str, update_data: Document, table: str) -> Document:
        return self.store.update(id, update_data, table)

    def delete(self, id: str, table: str) -> bool:
        return self.store.delete(id, table)

    def delete_all(self, table: str) -> bool:
        return self.store.delete_all(table)

    def upload(self, file: Any, destination_path: str, content_type: Optional[str] = None) -> UploadedFile:
        return self.store.upload(file, destination_path, content_type)

    def set_expiration(self, id: str, table: str, ttl_seconds: int) -> bool:
        return self.store.set_expiration(id, table, ttl_seconds)

    def get_ttl(self, id: str, table: str) -> int:
        return self.store.get_ttl(id, table)

    def health_check(self) -> Dict[str, Any]:
        return self.store.health_check()


class ProviderRegistry:
    """
    Registry of named stores with a switchable current provider.

    The facade methods (create, read, ...) act on the current provider and
    return StoreResult objects. Everything else in the package works with
    explicit sessions from `session(name)`.
    """

    def __init__(self, stores: Optional[Dict[str, BaseStore]] = None, default_provider: Optional[str] = None):
        """
        Initialize the registry.

        Args:
            stores: Initial {name: store} mapping
            default_provider: Name of the initial current provider. Defaults
                to the first registered store.
        """
        self._stores: Dict[str, BaseStore] = {}
        self._current: Optional[str] = None
        self._lock = threading.RLock()

        for name, store in (stores or {}).items():
            self.register(name, store)

        if default_provider:
            self.switch_provider(default_provider)

        if self._current:
            logger.info(f"Database provider initialized: {self._current}")
            logger.info(f"Available providers: {', '.join(self.available_providers())}")
        else:
            logger.info("No database provider configured")

    def register(self, name: str, store: BaseStore) -> None:
        """Register a store. The first registered store becomes current."""
        name = name.lower()
        with self._lock:
            self._stores[name] = store
            if store.name != name:
                store.name = name
            if self._current is None:
                self._current = name

    def available_providers(self) -> List[str]:
        return list(self._stores.keys())

    def has_provider(self, name: str) -> bool:
        return name.lower() in self._stores

    def get_store(self, name: str) -> BaseStore:
        """
        Look up a store by name.

        Raises:
            UnknownProviderError: If no store is registered under the name
        """
        store = self._stores.get(name.lower()) if name else None
        if store is None:
            raise UnknownProviderError(name, self.available_providers())
        return store

    def describe(self, name: str) -> Provider:
        store = self.get_store(name)
        return Provider(name=name.lower(), kind=store.kind, capabilities=store.capabilities)

    def session(self, name: Optional[str] = None) -> StoreSession:
        """
        Open a session on a named store, or on the current provider.

        Raises:
            UnknownProviderError: If the name is not registered
            NoProviderConfiguredError: If no name is given and nothing is configured
        """
        if name is None:
            name = self._current
            if name is None:
                raise NoProviderConfiguredError("No database provider configured")
        return StoreSession(name.lower(), self.get_store(name))

    # Current provider

    def get_provider(self) -> Optional[str]:
        return self._current

    def switch_provider(self, name: str) -> str:
        """Make another registered store the current provider."""
        self.get_store(name)
        with self._lock:
            self._current = name.lower()
        logger.info(f"Database provider switched to: {self._current}")
        return self._current

    @contextmanager
    def using(self, name: str) -> Iterator[StoreSession]:
        """Temporarily switch the current provider, restoring it on exit."""
        session = self.session(name)
        with self._lock:
            previous = self._current
            self._current = session.name
        try:
            yield session
        finally:
            with self._lock:
                self._current = previous

    # Facade

    def _dispatch(self, operation: str, *args: Any, empty: Any = None, **kwargs: Any) -> StoreResult:
        if self._current is None:
            logger.warning(f"{operation} skipped: no database provider configured")
            return StoreResult(success=False, data=empty, message="No database provider configured")

        provider = self._current
        store = self._stores[provider]
        try:
            data = getattr(store, operation)(*args, **kwargs)
            return StoreResult(success=True, data=data)
        except StoreShiftError as e:
            logger.error(f"Error in {operation} ({provider}): {e}")
            return StoreResult(success=False, data=empty, message=str(e))
        except Exception as e:
            logger.exception(f"Unexpected error in {operation} ({provider})")
            return StoreResult(success=False, data=empty, message=f"{operation} failed: {e}")

    def create(self, document: Document, table: str, id: Optional[str] = None) -> StoreResult:
        return self._dispatch("create", document, table, id=id)

    def read(self, id: str, table: str) -> StoreResult:
        return self._dispatch("read", id, table)

    def read_all(self, table: str) -> StoreResult:
        return self._dispatch("read_all", table, empty={})

    def read_by(self, field_name: str, value: Any, table: str) -> StoreResult:
        return self._dispatch("read_by", field_name, value, table)

    def get_items_by_key_value(self, field_name: str, value: Any, table: str) -> StoreResult:
        return self._dispatch("get_items_by_key_value", field_name, value, table)

    def get_item_key(self, field_name: str, value: Any, table: str) -> StoreResult:
        return self._dispatch("get_item_key", field_name, value, table)

    def update(self, id: str, update_data: Document, table: str) -> StoreResult:
        return self._dispatch("update", id, update_data, table)

    def delete(self, id: str, table: str) -> StoreResult:
        return self._dispatch("delete", id, table, empty=False)

    def delete_all(self, table: str) -> StoreResult:
        return self._dispatch("delete_all", table, empty=False)

    def upload(self, file: Any, destination_path: str, content_type: Optional[str] = None) -> StoreResult:
        return self._dispatch("upload", file, destination_path, content_type)

    def set_expiration(self, id: str, table: str, ttl_seconds: int) -> StoreResult:
        return self._dispatch("set_expiration", id, table, ttl_seconds, empty=False)

    def get_ttl(self, id: str, table: str) -> StoreResult:
        return self._dispatch("get_ttl", id, table)

    def get_file_metadata(self, path: str) -> StoreResult:
        return self._dispatch("get_file_metadata", path)

    def list_uploaded_files(self) -> StoreResult:
        return self._dispatch("list_uploaded_files", empty=[])

    def delete_file_metadata(self, path: str) -> StoreResult:
        return self._dispatch("delete_file_metadata", path, empty=False)

    def health_check(self) -> StoreResult:
        if self._current is None:
            return StoreResult(success=False, message="No database provider configured")
        status = self._stores[self._current].health_check()
        return StoreResult(success=status["status"] == "connected", data=status, message=status.get("error"))

    def close(self) -> None:
        for name, store in self._stores.items():
            try:
                store.close()
            except Exception as e:
                logger.error(f"Error closing provider {name}: {e}")


def build_registry(settings: Optional[StoreSettings] = None) -> ProviderRegistry:
    """Construct a registry with one store per configured provider."""
    settings = settings or StoreSettings.from_env()

    object_storage = None
    if settings.object_storage:
        storage = settings.object_storage
        object_storage = S3ObjectStorage(
            bucket=storage.bucket,
            region=storage.region,
            endpoint_url=storage.endpoint_url,
            aws_access_key_id=storage.aws_access_key_id,
            aws_secret_access_key=storage.aws_secret_access_key,
            public_url=storage.public_url,
        )

    stores = {config.name: create_store(config, object_storage) for config in settings.providers}
    return ProviderRegistry(stores, default_provider=settings.resolved_default)
