"""Base store interface shared by every backend."""

import functools
import logging
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Dict, List, Optional, Pattern, Union

from ..exceptions import (
    ConfigurationError,
    RecordNotFoundError,
    StoreConnectionError,
    UnsupportedOperationError,
)

logger = logging.getLogger(__name__)

FILE_METADATA_TABLE = "file_metadata"

Document = Dict[str, Any]


class ProviderKind(str, Enum):
    """Backend kinds a provider can be built on."""
    REDIS = "redis"
    SQL = "sql"
    MEMORY = "memory"

    @classmethod
    def parse(cls, value: Union[str, "ProviderKind"]) -> "ProviderKind":
        """Parse a kind name, rejecting anything unknown."""
        if isinstance(value, ProviderKind):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            known = ", ".join(k.value for k in cls)
            raise ConfigurationError(f"Unknown provider kind: {value}. Known kinds: {known}") from None


@dataclass(frozen=True)
class StoreCapabilities:
    """Optional features of a backend kind."""
    supports_arrays: bool = True
    supports_nested_objects: bool = True
    supports_ttl: bool = False
    supports_upload: bool = False
    invalid_field_chars: Optional[str] = None

    @property
    def invalid_field_pattern(self) -> Optional[Pattern[str]]:
        if not self.invalid_field_chars:
            return None
        return re.compile(self.invalid_field_chars)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "supports_arrays": self.supports_arrays,
            "supports_nested_objects": self.supports_nested_objects,
            "supports_ttl": self.supports_ttl,
            "supports_upload": self.supports_upload,
            "invalid_field_chars": self.invalid_field_chars,
        }


KIND_CAPABILITIES: Dict[ProviderKind, StoreCapabilities] = {
    # Values are flat JSON strings, so arrays and nested objects get encoded.
    ProviderKind.REDIS: StoreCapabilities(
        supports_arrays=False,
        supports_nested_objects=False,
        supports_ttl=True,
        invalid_field_chars=r"[^a-zA-Z0-9_.-]",
    ),
    # Characters with meaning in JSON path expressions.
    ProviderKind.SQL: StoreCapabilities(
        invalid_field_chars=r"[.$#\[\]/]",
    ),
    ProviderKind.MEMORY: StoreCapabilities(),
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Render a datetime as ISO-8601 with millisecond precision and a Z suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return to_iso(utc_now())


def generate_id() -> str:
    """Generate a record id of the form <epoch-ms>_<9 hex chars>."""
    millis = int(utc_now().timestamp() * 1000)
    return f"{millis}_{uuid.uuid4().hex[:9]}"


def stamp_timestamps(document: Document) -> Document:
    """Return a copy of the document with createdAt/updatedAt filled in if absent."""
    now = now_iso()
    stamped = dict(document)
    if not stamped.get("createdAt"):
        stamped["createdAt"] = now
    if not stamped.get("updatedAt"):
        stamped["updatedAt"] = now
    return stamped


def file_metadata_key(path: str) -> str:
    """Key under which upload metadata for a path is stored."""
    clean_path = path[1:] if path.startswith("/") else path
    return re.sub(r"[^a-zA-Z0-9]", "_", clean_path)


@dataclass
class UploadedFile:
    """Result of an upload to object storage."""
    url: str
    path: str
    size: int
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "publicUrl": self.url,
            "path": self.path,
            "size": self.size,
            "metadata": self.metadata,
        }


def translates_connection_errors(*error_types):
    """
    Decorate store methods so backend connectivity errors surface as
    StoreConnectionError, carrying the provider name and operation.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, **kwargs):
            try:
                return method(self, *args, **kwargs)
            except error_types as e:
                raise StoreConnectionError(self.name, method.__name__, e) from e
        return wrapper
    return decorator


def read_file_payload(file: Union[bytes, bytearray, BinaryIO, Any]) -> bytes:
    """Extract raw bytes from the accepted upload inputs."""
    if isinstance(file, (bytes, bytearray)):
        return bytes(file)
    buffer = getattr(file, "buffer", None)
    if isinstance(buffer, (bytes, bytearray)):
        return bytes(buffer)
    if hasattr(file, "read"):
        data = file.read()
        return data.encode("utf-8") if isinstance(data, str) else bytes(data)
    raise TypeError(f"Unsupported upload payload type: {type(file).__name__}")


class BaseStore(ABC):
    """
    Base class for document stores.

    Stores address opaque JSON documents by (table, id). Every write
    stamps createdAt/updatedAt so that transformation chains behave the
    same way whatever the backend.
    """

    kind: ProviderKind = ProviderKind.MEMORY

    def __init__(self, name: Optional[str] = None, object_storage: Optional[Any] = None):
        """
        Initialize the store.

        Args:
            name: Provider name used in logs and results
            object_storage: Optional object storage used by upload()
        """
        self.name = name or self.kind.value
        self.object_storage = object_storage

    @property
    def capabilities(self) -> StoreCapabilities:
        base = KIND_CAPABILITIES[self.kind]
        if self.object_storage is None:
            return base
        return StoreCapabilities(
            supports_arrays=base.supports_arrays,
            supports_nested_objects=base.supports_nested_objects,
            supports_ttl=base.supports_ttl,
            supports_upload=True,
            invalid_field_chars=base.invalid_field_chars,
        )

    @abstractmethod
    def create(self, document: Document, table: str, id: Optional[str] = None) -> str:
        """
        Persist a new document.

        Args:
            document: The document to store
            table: Table name
            id: Explicit id to use instead of a generated one

        Returns:
            The id of the new record

        Raises:
            DuplicateKeyError: If the id is already taken
        """

    @abstractmethod
    def read(self, id: str, table: str) -> Optional[Document]:
        """Read a document by id."""

    @abstractmethod
    def read_all(self, table: str) -> Dict[str, Document]:
        """Read every document of a table as {id: document}."""

    @abstractmethod
    def update(self, id: str, update_data: Document, table: str) -> Document:
        """Shallow-merge update_data onto an existing document."""

    @abstractmethod
    def delete(self, id: str, table: str) -> bool:
        """Delete a document, returning True if something was removed."""

    @abstractmethod
    def delete_all(self, table: str) -> bool:
        """Delete every document of a table."""

    def read_by(self, field_name: str, value: Any, table: str) -> Optional[Document]:
        """Return the first document whose field equals value."""
        for document in self.read_all(table).values():
            if document.get(field_name) == value:
                return document
        return None

    def get_items_by_key_value(self, field_name: str, value: Any, table: str) -> Optional[Dict[str, Document]]:
        """Return every {id: document} whose field equals value, or None."""
        matches = {
            record_id: document
            for record_id, document in self.read_all(table).items()
            if document.get(field_name) == value
        }
        return matches or None

    def get_item_key(self, field_name: str, value: Any, table: str) -> Optional[str]:
        """Return the id of the first document whose field equals value."""
        for record_id, document in self.read_all(table).items():
            if document.get(field_name) == value:
                return record_id
        return None

    def _merge_update(self, existing: Optional[Document], id: str, update_data: Document, table: str) -> Document:
        if existing is None:
            raise RecordNotFoundError(id, table)
        merged = {**existing, **update_data}
        merged["updatedAt"] = now_iso()
        return merged

    # Object storage

    def upload(
        self,
        file: Union[bytes, BinaryIO, Any],
        destination_path: str,
        content_type: Optional[str] = None,
    ) -> UploadedFile:
        """
        Upload a file to the attached object storage and record its metadata.

        Raises:
            UnsupportedOperationError: If no object storage is configured
        """
        if self.object_storage is None:
            raise UnsupportedOperationError(
                "upload",
                self.name,
                "Configure object storage (S3_BUCKET) to enable file uploads",
            )

        clean_path = destination_path[1:] if destination_path.startswith("/") else destination_path
        payload = read_file_payload(file)
        content_type = content_type or getattr(file, "content_type", None) or "application/octet-stream"

        uploaded = self.object_storage.put(clean_path, payload, content_type)

        metadata = {
            "originalPath": destination_path,
            "blobUrl": uploaded.url,
            "fileName": clean_path,
            "size": uploaded.size,
            "uploadedAt": now_iso(),
            "contentType": content_type,
            "originalName": getattr(file, "filename", None) or getattr(file, "name", None) or clean_path,
        }
        key = file_metadata_key(destination_path)
        if self.read(key, FILE_METADATA_TABLE) is not None:
            self.delete(key, FILE_METADATA_TABLE)
        self.create(metadata, FILE_METADATA_TABLE, id=key)

        uploaded.metadata = metadata
        logger.info(f"Uploaded {clean_path} ({uploaded.size} bytes) via {self.name}")
        return uploaded

    def get_file_metadata(self, path: str) -> Optional[Document]:
        return self.read(file_metadata_key(path), FILE_METADATA_TABLE)

    def list_uploaded_files(self) -> List[Document]:
        files = list(self.read_all(FILE_METADATA_TABLE).values())
        return sorted(files, key=lambda f: f.get("uploadedAt", ""), reverse=True)

    def delete_file_metadata(self, path: str) -> bool:
        """Forget an upload. The object itself stays in object storage."""
        return self.delete(file_metadata_key(path), FILE_METADATA_TABLE)

    # Expiration

    def set_expiration(self, id: str, table: str, ttl_seconds: int) -> bool:
        raise UnsupportedOperationError("set_expiration", self.name, "Expiration requires a Redis provider")

    def get_ttl(self, id: str, table: str) -> int:
        raise UnsupportedOperationError("get_ttl", self.name, "Expiration requires a Redis provider")

    # Lifecycle

    def ping(self) -> None:
        """Raise if the backend cannot be reached."""
        self.read("ping", "health_check")

    def health_check(self) -> Dict[str, Any]:
        """Report connectivity without raising."""
        try:
            self.ping()
            return {"provider": self.name, "status": "connected", "timestamp": now_iso()}
        except Exception as e:
            logger.error(f"Health check failed for {self.name}: {e}")
            return {"provider": self.name, "status": "error", "error": str(e), "timestamp": now_iso()}

    def close(self) -> None:
        """Release backend resources."""
