"""Consistency comparison between two providers."""

import json
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..models.consistency import ConsistencyReport, ContentDifference, TableConsistency
from ..stores.base import Document
from .transformer import MIGRATION_METADATA_FIELDS

logger = logging.getLogger(__name__)

MAX_DIFFERENCE_SAMPLES = 10


def strip_migration_metadata(document: Document, extra_fields: Iterable[str] = ()) -> Document:
    excluded = set(MIGRATION_METADATA_FIELDS) | set(extra_fields)
    return {k: v for k, v in document.items() if k not in excluded}


def canonical_json(document: Any) -> str:
    """Order-insensitive JSON rendering used for equality checks."""
    return json.dumps(document, sort_keys=True, separators=(",", ":"), default=str)


def _rekey(records: Dict[str, Document], key_field: str) -> Tuple[Dict[str, Document], List[str]]:
    """
    Index records by a document field.

    Returns the re-keyed records and the ids of records whose field value
    was already taken by an earlier record. Records without the field keep
    their own id.
    """
    rekeyed: Dict[str, Document] = {}
    duplicates = []
    for record_id, document in records.items():
        value = document.get(key_field)
        key = str(value) if value is not None else record_id
        if key in rekeyed:
            duplicates.append(record_id)
            continue
        rekeyed[key] = document
    return rekeyed, duplicates


def compare_tables(
    table: str,
    records_1: Dict[str, Document],
    records_2: Dict[str, Document],
    ignore_fields: Iterable[str] = (),
    key_field: Optional[str] = None,
) -> TableConsistency:
    """
    Classify keys and deep-compare the content of common keys.

    With `key_field`, records_2 is matched by that document field. Records
    sharing a value with an earlier record are reported as duplicates.
    """
    total_2 = len(records_2)
    duplicates: List[str] = []
    if key_field:
        records_2, duplicates = _rekey(records_2, key_field)

    keys_1 = set(records_1)
    keys_2 = set(records_2)
    common = sorted(keys_1 & keys_2)

    result = TableConsistency(
        table_name=table,
        total_1=len(records_1),
        total_2=total_2,
        only_in_1=sorted(keys_1 - keys_2),
        only_in_2=sorted(keys_2 - keys_1),
        duplicates_in_2=sorted(duplicates),
        common=len(common),
    )

    for key in common:
        clean_1 = strip_migration_metadata(records_1[key], ignore_fields)
        clean_2 = strip_migration_metadata(records_2[key], ignore_fields)
        if canonical_json(clean_1) != canonical_json(clean_2):
            result.content_differences += 1
            if len(result.differences) < MAX_DIFFERENCE_SAMPLES:
                result.differences.append(ContentDifference(key=key, left=clean_1, right=clean_2))

    return result


def compare_data(
    registry,
    provider_1: str,
    provider_2: str,
    tables: List[str],
    key_field: Optional[str] = None,
    ignore_fields: Iterable[str] = (),
) -> ConsistencyReport:
    """
    Compare the contents of tables on two providers.

    Args:
        registry: ProviderRegistry holding both providers
        provider_1: First provider name
        provider_2: Second provider name
        tables: Tables to compare
        key_field: Document field identifying records on provider_2 (for
            example `originalKey` after a migration with generated ids)
        ignore_fields: Extra fields excluded from content comparison

    Returns:
        ConsistencyReport with one entry per table
    """
    session_1 = registry.session(provider_1)
    session_2 = registry.session(provider_2)
    report = ConsistencyReport(provider_1=session_1.name, provider_2=session_2.name, key_field=key_field or "")

    for table in tables:
        logger.info(f"Comparing table: {table} between {session_1.name} and {session_2.name}")
        records_1 = session_1.read_all(table)
        records_2 = session_2.read_all(table)

        table_report = compare_tables(table, records_1, records_2, ignore_fields, key_field)
        if table_report.duplicates_in_2:
            logger.warning(
                f"{table}: {len(table_report.duplicates_in_2)} records on {session_2.name} share a {key_field} value"
            )
        report.tables[table] = table_report
        logger.info(f"{table}: {'CONSISTENT' if table_report.consistency else 'INCONSISTENT'}")

    return report
