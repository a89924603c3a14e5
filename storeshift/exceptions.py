"""Exception hierarchy for store adapters and migrations."""

from typing import List, Optional


class StoreShiftError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(StoreShiftError):
    """Invalid configuration detected before any I/O happens."""


class UnknownProviderError(ConfigurationError):
    """A provider name is not registered."""

    def __init__(self, name: str, available: Optional[List[str]] = None):
        self.name = name
        self.available = available or []
        message = f"Unknown database provider: {name}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


class NoProviderConfiguredError(ConfigurationError):
    """No backend has been configured at all."""


class StoreError(StoreShiftError):
    """A backend operation failed."""


class StoreConnectionError(StoreError):
    """The backend could not be reached."""

    def __init__(self, provider: str, operation: str, cause: Exception):
        self.provider = provider
        self.operation = operation
        self.cause = cause
        super().__init__(f"Connection to {provider} failed during {operation}: {cause}")


class RecordNotFoundError(StoreError):
    """The addressed record does not exist."""

    def __init__(self, record_id: str, table: str):
        self.record_id = record_id
        self.table = table
        super().__init__(f"Item with id {record_id} not found in table {table}")


class DuplicateKeyError(StoreError):
    """A create would overwrite an existing record."""

    def __init__(self, record_id: str, table: str):
        self.record_id = record_id
        self.table = table
        super().__init__(f"Item with id {record_id} already exists in table {table}")


class UnsupportedOperationError(StoreError):
    """The backend does not implement an optional operation."""

    def __init__(self, operation: str, provider: str, hint: str = ""):
        self.operation = operation
        self.provider = provider
        message = f"Operation '{operation}' is not supported by the {provider} store"
        if hint:
            message += f". {hint}"
        super().__init__(message)


class TransformValidationError(StoreShiftError):
    """A transformation rejected a document."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)
