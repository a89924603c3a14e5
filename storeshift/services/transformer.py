"""Transformation pipeline for documents moving between providers."""

import copy
import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from dateutil import parser as date_parser

from .validator import SchemaLike, SchemaValidator
from ..exceptions import TransformValidationError
from ..stores.base import Document, KIND_CAPABILITIES, ProviderKind, to_iso, utc_now

logger = logging.getLogger(__name__)

TransformFunction = Callable[[Document, str, str, str, str], Document]
Clock = Callable[[], datetime]

MIGRATION_METADATA_FIELDS = ("migratedFrom", "migratedAt", "originalKey")
EXPORT_BOOKKEEPING_FIELDS = (".key", ".priority", ".value")

# Substring heuristic: `dateOfBirthTextDescription` also matches.
TIMESTAMP_FIELD_MARKERS = ("_at", "Time", "Date", "timestamp")
EPOCH_MS_THRESHOLD = 10 ** 12
ISO_DATETIME_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}")

ARRAY_SUFFIX = "_array"
LARGE_TEXT_SUFFIX = "_large"
LARGE_TEXT_MARKER = re.compile(r"^\[LARGE_TEXT:(\d+)\]$")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def is_timestamp_field(field_name: str) -> bool:
    return any(marker in field_name for marker in TIMESTAMP_FIELD_MARKERS)


def epoch_ms_to_iso(value: Union[int, float]) -> str:
    return to_iso(EPOCH + timedelta(milliseconds=value))


class Transform(ABC):
    """
    A pure per-document transformation.

    Instances are callable with the same arguments as `apply`, so they can
    be used wherever a plain transform function is expected.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(
        self,
        document: Document,
        original_key: str,
        table: str,
        from_provider: str,
        to_provider: str,
    ) -> Document:
        """Return the transformed copy of the document."""

    def __call__(
        self,
        document: Document,
        original_key: str = "",
        table: str = "",
        from_provider: str = "",
        to_provider: str = "",
    ) -> Document:
        return self.apply(document, original_key, table, from_provider, to_provider)

    def describe(self) -> List[str]:
        return [self.name]

    def __repr__(self) -> str:
        return f"{self.name}()"


class FunctionTransform(Transform):
    """Adapter turning a plain function into a Transform."""

    def __init__(self, func: TransformFunction, name: Optional[str] = None):
        self.func = func
        self._name = name or getattr(func, "__name__", "function")

    @property
    def name(self) -> str:
        return self._name

    def apply(self, document, original_key, table, from_provider, to_provider):
        return self.func(document, original_key, table, from_provider, to_provider)


def as_transform(transform: Union[Transform, TransformFunction]) -> Transform:
    if isinstance(transform, Transform):
        return transform
    if callable(transform):
        return FunctionTransform(transform)
    raise TypeError(f"Not a transform: {transform!r}")


class TransformChain(Transform):
    """Transforms applied strictly left to right."""

    def __init__(self, transforms: Iterable[Union[Transform, TransformFunction]] = ()):
        self.transforms: List[Transform] = [as_transform(t) for t in transforms]

    def apply(self, document, original_key, table, from_provider, to_provider):
        result = document
        for transform in self.transforms:
            result = transform.apply(result, original_key, table, from_provider, to_provider)
        return result

    def describe(self) -> List[str]:
        names = []
        for transform in self.transforms:
            names.extend(transform.describe())
        return names

    def __iter__(self) -> Iterator[Transform]:
        return iter(self.transforms)

    def __len__(self) -> int:
        return len(self.transforms)

    def __repr__(self) -> str:
        return f"TransformChain({', '.join(self.describe())})"


def combine(*transforms: Optional[Union[Transform, TransformFunction]]) -> TransformChain:
    """Compose transforms into one chain. None entries are skipped."""
    return TransformChain(t for t in transforms if t is not None)


# Metadata


class StripMetadata(Transform):
    """Remove migration metadata and export bookkeeping fields."""

    def __init__(self, extra_fields: Iterable[str] = ()):
        self.extra_fields = tuple(extra_fields)

    def apply(self, document, original_key, table, from_provider, to_provider):
        cleaned = dict(document)
        had_value = ".value" in cleaned
        value = cleaned.get(".value")
        for bookkeeping in EXPORT_BOOKKEEPING_FIELDS:
            cleaned.pop(bookkeeping, None)

        # A primitive exported as {".value": v}
        if had_value and not cleaned:
            return {"value": value}

        for metadata_field in MIGRATION_METADATA_FIELDS + self.extra_fields:
            cleaned.pop(metadata_field, None)
        return cleaned


class AddMetadata(Transform):
    """
    Record where a document came from.

    Adds originalKey, migratedFrom and migratedAt, and fills createdAt and
    updatedAt from their snake_case variants or the current time. Pass a
    fixed `clock` to make the output deterministic.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or utc_now

    def apply(self, document, original_key, table, from_provider, to_provider):
        now = to_iso(self.clock())
        return {
            **document,
            "originalKey": original_key,
            "createdAt": document.get("createdAt") or document.get("created_at") or now,
            "updatedAt": document.get("updatedAt") or document.get("updated_at") or now,
            "migratedFrom": from_provider,
            "migratedAt": now,
        }


# Timestamps


class ConvertTimestamps(Transform):
    """
    Normalize native timestamp values to ISO-8601 strings.

    Handles `{seconds, nanoseconds}` objects in any field and epoch
    millisecond integers in fields whose name looks like a timestamp.
    """

    @staticmethod
    def _is_seconds_object(value: Any) -> bool:
        if not isinstance(value, dict) or set(value) != {"seconds", "nanoseconds"}:
            return False
        return all(isinstance(value[k], int) and not isinstance(value[k], bool) for k in value)

    def apply(self, document, original_key, table, from_provider, to_provider):
        converted = dict(document)
        for field_name, value in document.items():
            if self._is_seconds_object(value):
                millis = value["seconds"] * 1000 + value["nanoseconds"] / 1_000_000
                converted[field_name] = epoch_ms_to_iso(millis)
            elif (
                is_timestamp_field(field_name)
                and isinstance(value, (int, float))
                and not isinstance(value, bool)
                and value > EPOCH_MS_THRESHOLD
            ):
                converted[field_name] = epoch_ms_to_iso(value)
        return converted


class RestoreEpochTimestamps(Transform):
    """Turn ISO-8601 strings in timestamp-like fields into epoch milliseconds."""

    def apply(self, document, original_key, table, from_provider, to_provider):
        restored = dict(document)
        for field_name, value in document.items():
            if not (is_timestamp_field(field_name) and isinstance(value, str) and ISO_DATETIME_PATTERN.match(value)):
                continue
            try:
                moment = date_parser.isoparse(value)
            except ValueError:
                logger.warning(f"Could not parse timestamp field {field_name}: {value!r}")
                continue
            if moment.tzinfo is None:
                moment = moment.replace(tzinfo=timezone.utc)
            restored[field_name] = int(round((moment - EPOCH).total_seconds() * 1000))
        return restored


# Field names and validation


class SanitizeFieldNames(Transform):
    """Replace characters the target backend rejects in field names with `_`."""

    def __init__(self, target_kind: Union[str, ProviderKind]):
        self.target_kind = ProviderKind.parse(target_kind)
        self.pattern = KIND_CAPABILITIES[self.target_kind].invalid_field_pattern

    def describe(self) -> List[str]:
        return [f"{self.name}({self.target_kind.value})"]

    def apply(self, document, original_key, table, from_provider, to_provider):
        if self.pattern is None:
            return dict(document)
        return {self.pattern.sub("_", field_name): value for field_name, value in document.items()}


class ValidateRequiredFields(Transform):
    """Reject documents missing any required field."""

    def __init__(self, fields: Iterable[str]):
        self.fields = tuple(fields)

    def apply(self, document, original_key, table, from_provider, to_provider):
        missing = [f for f in self.fields if document.get(f) is None]
        if missing:
            raise TransformValidationError(
                f"Required fields missing: {', '.join(missing)}",
                errors=[f"Field '{f}' is required" for f in missing],
            )
        return document


class ValidateSchema(Transform):
    """Reject documents violating a schema, listing every violation."""

    def __init__(self, schema: SchemaLike, target_kind: Optional[Union[str, ProviderKind]] = None):
        self.schema = SchemaValidator.coerce_schema(schema)
        self.target_kind = ProviderKind.parse(target_kind) if target_kind else None
        self.validator = SchemaValidator()

    def apply(self, document, original_key, table, from_provider, to_provider):
        violations = self.validator.validate(document, self.schema, self.target_kind)
        if violations:
            messages = [v.message for v in violations]
            raise TransformValidationError(f"Schema validation failed: {'; '.join(messages)}", errors=messages)
        return document


class AddDefaults(Transform):
    """Fill missing fields from defaults. Document values always win."""

    def __init__(self, defaults: Dict[str, Any]):
        self.defaults = defaults

    def apply(self, document, original_key, table, from_provider, to_provider):
        return {**copy.deepcopy(self.defaults), **document}


# Arrays


class SerializeArrays(Transform):
    """Store list values as JSON strings under `<field>_array`."""

    def apply(self, document, original_key, table, from_provider, to_provider):
        serialized = {}
        for field_name, value in document.items():
            if isinstance(value, list):
                serialized[f"{field_name}{ARRAY_SUFFIX}"] = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
            else:
                serialized[field_name] = value
        return serialized


class DeserializeArrays(Transform):
    """
    Restore `<field>_array` JSON strings to list values under `<field>`.

    Known limitation: a source field that was already named `<field>_array`
    and held a JSON list string is decoded as well, so it is renamed to
    `<field>` and comes back as a list.
    """

    def apply(self, document, original_key, table, from_provider, to_provider):
        deserialized = dict(document)
        for field_name, value in document.items():
            if not (field_name.endswith(ARRAY_SUFFIX) and isinstance(value, str)):
                continue
            original_field = field_name[:-len(ARRAY_SUFFIX)]
            try:
                parsed = json.loads(value)
            except ValueError as e:
                logger.warning(f"Failed to deserialize array field {field_name} of {original_key}: {e}")
                continue
            if not isinstance(parsed, list):
                logger.warning(f"Field {field_name} of {original_key} does not hold a JSON array, leaving it encoded")
                continue
            deserialized[original_field] = parsed
            del deserialized[field_name]
        return deserialized


# Nested objects


class FlattenNested(Transform):
    """
    Join nested object keys with `_`.

    At most `max_depth` levels of nesting are folded into the key; deeper
    objects stay as values of the joined key. Documents without nested objects are
    returned unchanged.
    """

    def __init__(self, max_depth: int = 2):
        if max_depth < 1:
            raise ValueError("max_depth must be at least 1")
        self.max_depth = max_depth

    def _flatten(self, obj: Dict[str, Any], prefix: str, depth: int) -> Dict[str, Any]:
        flattened = {}
        for key, value in obj.items():
            new_key = f"{prefix}_{key}" if prefix else key
            if isinstance(value, dict) and value and depth < self.max_depth:
                flattened.update(self._flatten(value, new_key, depth + 1))
            else:
                flattened[new_key] = value
        return flattened

    def apply(self, document, original_key, table, from_provider, to_provider):
        if not any(isinstance(v, dict) and v for v in document.values()):
            return dict(document)
        return self._flatten(document, "", 0)


class UnflattenNested(Transform):
    """
    Split `_`-joined keys back into nested objects.

    `created_at`, `updated_at` and encoded `_array`/`_large` fields are never
    split. Keys with empty segments, or whose path collides with an existing
    value, are kept as they are.

    Known limitation: any flat key containing `_` is split, including keys
    that were never nested in the source (`first_name` becomes
    `{"first": {"name": ...}}`). Exclude such fields through
    `excluded_fields`.
    """

    def __init__(self, excluded_fields: Iterable[str] = ("created_at", "updated_at")):
        self.excluded_fields = set(excluded_fields)

    def _splittable(self, field_name: str) -> bool:
        if "_" not in field_name or field_name in self.excluded_fields:
            return False
        if field_name.endswith((ARRAY_SUFFIX, LARGE_TEXT_SUFFIX)):
            return False
        return all(field_name.split("_"))

    def apply(self, document, original_key, table, from_provider, to_provider):
        result: Dict[str, Any] = {}
        created = set()
        deferred = []

        for field_name, value in document.items():
            if self._splittable(field_name):
                deferred.append((field_name, value))
            else:
                result[field_name] = value

        for field_name, value in deferred:
            parts = field_name.split("_")
            current = result
            placed = True
            for part in parts[:-1]:
                if part not in current:
                    current[part] = {}
                    created.add(id(current[part]))
                elif id(current[part]) not in created:
                    placed = False
                    break
                current = current[part]
            if placed and parts[-1] not in current:
                current[parts[-1]] = value
            else:
                result[field_name] = value

        return result


# Large text


class MarkLargeText(Transform):
    """Move long strings to `<field>_large`, leaving a `[LARGE_TEXT:<len>]` marker."""

    def __init__(self, threshold: int = 1000):
        self.threshold = threshold

    def apply(self, document, original_key, table, from_provider, to_provider):
        marked = dict(document)
        for field_name, value in document.items():
            if isinstance(value, str) and len(value) > self.threshold:
                marked[f"{field_name}{LARGE_TEXT_SUFFIX}"] = value
                marked[field_name] = f"[LARGE_TEXT:{len(value)}]"
        return marked


class RestoreLargeText(Transform):
    """Inverse of MarkLargeText."""

    def apply(self, document, original_key, table, from_provider, to_provider):
        restored = dict(document)
        for field_name, value in document.items():
            if not field_name.endswith(LARGE_TEXT_SUFFIX):
                continue
            original_field = field_name[:-len(LARGE_TEXT_SUFFIX)]
            marker = document.get(original_field)
            if isinstance(marker, str) and LARGE_TEXT_MARKER.match(marker):
                restored[original_field] = value
                del restored[field_name]
        return restored


# Recommended chains


def _into_redis(to_kind: ProviderKind, clock: Optional[Clock]) -> TransformChain:
    return combine(
        StripMetadata(),
        ConvertTimestamps(),
        SanitizeFieldNames(to_kind),
        SerializeArrays(),
        AddMetadata(clock),
    )


def _out_of_redis(to_kind: ProviderKind, clock: Optional[Clock]) -> TransformChain:
    return combine(
        StripMetadata(),
        DeserializeArrays(),
        RestoreEpochTimestamps(),
        SanitizeFieldNames(to_kind),
        AddMetadata(clock),
    )


def _between_documents(to_kind: ProviderKind, clock: Optional[Clock]) -> TransformChain:
    return combine(
        StripMetadata(),
        SanitizeFieldNames(to_kind),
        AddMetadata(clock),
    )


RECOMMENDED_CHAINS: Dict[Tuple[ProviderKind, ProviderKind], Callable[[ProviderKind, Optional[Clock]], TransformChain]] = {
    (ProviderKind.SQL, ProviderKind.REDIS): _into_redis,
    (ProviderKind.MEMORY, ProviderKind.REDIS): _into_redis,
    (ProviderKind.REDIS, ProviderKind.SQL): _out_of_redis,
    (ProviderKind.REDIS, ProviderKind.MEMORY): _out_of_redis,
    (ProviderKind.SQL, ProviderKind.MEMORY): _between_documents,
    (ProviderKind.MEMORY, ProviderKind.SQL): _between_documents,
}


def get_recommended_transformation(
    from_kind: Union[str, ProviderKind],
    to_kind: Union[str, ProviderKind],
    clock: Optional[Clock] = None,
) -> Transform:
    """
    Get the recommended chain for a pair of backend kinds.

    Pairs without a dedicated chain fall back to field-name sanitization.

    Raises:
        ConfigurationError: If either kind is unknown
    """
    source = ProviderKind.parse(from_kind)
    target = ProviderKind.parse(to_kind)

    builder = RECOMMENDED_CHAINS.get((source, target))
    if builder is None:
        logger.warning(f"No specific transformation found for {source.value} -> {target.value}, sanitizing field names only")
        return combine(SanitizeFieldNames(target))
    return builder(target, clock)
