"""In-process store backed by plain dictionaries."""

import copy
import logging
from typing import Any, Dict, Optional

from .base import BaseStore, Document, ProviderKind, generate_id, stamp_timestamps
from ..exceptions import DuplicateKeyError

logger = logging.getLogger(__name__)


class MemoryStore(BaseStore):
    """
    Dictionary-backed store.

    Documents are deep-copied on the way in and out so callers can never
    mutate stored state by accident.
    """

    kind = ProviderKind.MEMORY

    def __init__(
        self,
        name: Optional[str] = None,
        object_storage: Optional[Any] = None,
        initial_data: Optional[Dict[str, Dict[str, Document]]] = None,
    ):
        super().__init__(name, object_storage)
        self._tables: Dict[str, Dict[str, Document]] = {}
        for table, records in (initial_data or {}).items():
            self._tables[table] = copy.deepcopy(records)

    def _table(self, table: str) -> Dict[str, Document]:
        return self._tables.setdefault(table, {})

    def create(self, document: Document, table: str, id: Optional[str] = None) -> str:
        records = self._table(table)
        record_id = id or generate_id()
        if record_id in records:
            raise DuplicateKeyError(record_id, table)
        records[record_id] = copy.deepcopy(stamp_timestamps(document))
        logger.debug(f"Created {table}:{record_id} in {self.name}")
        return record_id

    def read(self, id: str, table: str) -> Optional[Document]:
        document = self._tables.get(table, {}).get(id)
        return copy.deepcopy(document) if document is not None else None

    def read_all(self, table: str) -> Dict[str, Document]:
        return copy.deepcopy(self._tables.get(table, {}))

    def update(self, id: str, update_data: Document, table: str) -> Document:
        merged = self._merge_update(self._tables.get(table, {}).get(id), id, update_data, table)
        self._table(table)[id] = copy.deepcopy(merged)
        return merged

    def delete(self, id: str, table: str) -> bool:
        return self._tables.get(table, {}).pop(id, None) is not None

    def delete_all(self, table: str) -> bool:
        self._tables.pop(table, None)
        return True

    def ping(self) -> None:
        return None
