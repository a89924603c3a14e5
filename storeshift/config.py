"""Configuration models for providers and object storage."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError
from .stores.base import ProviderKind

logger = logging.getLogger(__name__)


class ProviderConfig(BaseModel):
    """One named backend."""
    name: str
    kind: ProviderKind
    url: Optional[str] = None
    table_name: str = "kv_store"  # SQL only
    scan_count: int = 500  # Redis only

    @field_validator("kind", mode="before")
    @classmethod
    def _parse_kind(cls, value: Any) -> ProviderKind:
        try:
            return ProviderKind.parse(value)
        except ConfigurationError as e:
            raise ValueError(str(e)) from None

    @field_validator("name")
    @classmethod
    def _normalize_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("Provider name cannot be empty")
        return value


class ObjectStorageConfig(BaseModel):
    """S3-compatible bucket used for uploads."""
    bucket: str
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    public_url: Optional[str] = None
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None


class StoreSettings(BaseModel):
    """
    Complete store configuration.

    The default provider is `default_provider` when set, otherwise the
    first configured backend. An empty provider list is valid.
    """
    providers: List[ProviderConfig] = Field(default_factory=list)
    default_provider: Optional[str] = None
    object_storage: Optional[ObjectStorageConfig] = None

    @model_validator(mode="after")
    def _check_providers(self) -> "StoreSettings":
        names = self.provider_names
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ValueError(f"Duplicate provider names: {', '.join(duplicates)}")
        if self.default_provider:
            self.default_provider = self.default_provider.lower()
            if self.default_provider not in names:
                raise ValueError(
                    f"Unknown database provider: {self.default_provider}. Available: {', '.join(names)}"
                )
        return self

    @property
    def provider_names(self) -> List[str]:
        return [p.name for p in self.providers]

    @property
    def resolved_default(self) -> Optional[str]:
        if self.default_provider:
            return self.default_provider
        return self.providers[0].name if self.providers else None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StoreSettings":
        """Validate a raw mapping, raising ConfigurationError on bad input."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid store configuration: {e}") from e

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "StoreSettings":
        """Load settings from a JSON file."""
        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "StoreSettings":
        """
        Build settings from environment variables.

        Recognized variables:
            REDIS_URL: registers a `redis` provider
            DATABASE_URL / POSTGRES_URL: registers a `postgres` provider (sql kind)
            DATABASE_PROVIDER: default provider name
            S3_BUCKET, S3_REGION, S3_ENDPOINT_URL, S3_PUBLIC_URL,
            AWS_ACCESS_KEY_ID, AWS_SECRET_ACCESS_KEY: object storage
        """
        env = os.environ if environ is None else environ
        providers = []

        if env.get("REDIS_URL"):
            providers.append({"name": "redis", "kind": "redis", "url": env["REDIS_URL"]})

        database_url = env.get("DATABASE_URL") or env.get("POSTGRES_URL")
        if database_url:
            providers.append({"name": "postgres", "kind": "sql", "url": database_url})

        data: Dict[str, Any] = {"providers": providers}

        default_provider = env.get("DATABASE_PROVIDER")
        if default_provider:
            if default_provider.lower() in [p["name"] for p in providers]:
                data["default_provider"] = default_provider
            else:
                logger.warning(f"DATABASE_PROVIDER={default_provider} is not configured, using first available")

        if env.get("S3_BUCKET"):
            data["object_storage"] = {
                "bucket": env["S3_BUCKET"],
                "region": env.get("S3_REGION") or env.get("AWS_REGION") or "us-east-1",
                "endpoint_url": env.get("S3_ENDPOINT_URL"),
                "public_url": env.get("S3_PUBLIC_URL"),
                "aws_access_key_id": env.get("AWS_ACCESS_KEY_ID"),
                "aws_secret_access_key": env.get("AWS_SECRET_ACCESS_KEY"),
            }

        if not providers:
            logger.info("No database provider configured")

        return cls.from_dict(data)
