"""Relational store that uses a single key/value table."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    MetaData,
    String,
    Table,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.pool import StaticPool

from .base import BaseStore, Document, ProviderKind, generate_id, stamp_timestamps, translates_connection_errors
from ..exceptions import ConfigurationError, DuplicateKeyError

logger = logging.getLogger(__name__)

sql_errors = translates_connection_errors(OperationalError, InterfaceError)

IN_MEMORY_SQLITE_URLS = ("sqlite://", "sqlite:///:memory:")


def build_kv_table(metadata: MetaData, table_name: str = "kv_store") -> Table:
    """Define the key/value table holding every logical table."""
    return Table(
        table_name,
        metadata,
        Column("key", String, primary_key=True),
        Column("data", JSON().with_variant(JSONB(), "postgresql"), nullable=False),
        Column("created_at", DateTime(timezone=True), server_default=func.now(), nullable=False),
    )


class SQLStore(BaseStore):
    """
    Store documents in one relational table keyed by `table:id`.

    Works with any SQLAlchemy URL; PostgreSQL stores documents as JSONB.
    The table is created on first use.
    """

    kind = ProviderKind.SQL

    def __init__(
        self,
        url: Optional[str] = None,
        name: Optional[str] = None,
        object_storage: Optional[Any] = None,
        engine: Optional[Engine] = None,
        table_name: str = "kv_store",
    ):
        """
        Initialize the SQL store.

        Args:
            url: SQLAlchemy database URL (ignored when engine is given)
            name: Provider name
            object_storage: Optional object storage for uploads
            engine: Pre-built SQLAlchemy engine
            table_name: Name of the key/value table
        """
        super().__init__(name, object_storage)
        self.url = url
        self._engine = engine
        self._metadata = MetaData()
        self.kv = build_kv_table(self._metadata, table_name)
        self._initialized = False

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if not self.url:
                raise ConfigurationError(f"No database URL configured for provider {self.name}")
            if self.url in IN_MEMORY_SQLITE_URLS:
                self._engine = create_engine(
                    self.url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            else:
                self._engine = create_engine(self.url, pool_pre_ping=True)
        return self._engine

    def ensure_table(self) -> None:
        if self._initialized:
            return
        self._metadata.create_all(self.engine, tables=[self.kv])
        self._initialized = True
        logger.info(f"Ensured table {self.kv.name} for provider {self.name}")

    @staticmethod
    def build_key(table: str, id: str) -> str:
        return f"{table}:{id}"

    @staticmethod
    def extract_id(key: str, table: str) -> str:
        return key[len(table) + 1:]

    def _in_table(self, table: str):
        return self.kv.c.key.startswith(f"{table}:", autoescape=True)

    @sql_errors
    def create(self, document: Document, table: str, id: Optional[str] = None) -> str:
        self.ensure_table()
        record_id = id or generate_id()
        stmt = insert(self.kv).values(key=self.build_key(table, record_id), data=stamp_timestamps(document))
        try:
            with self.engine.begin() as conn:
                conn.execute(stmt)
        except IntegrityError as e:
            raise DuplicateKeyError(record_id, table) from e
        return record_id

    @sql_errors
    def read(self, id: str, table: str) -> Optional[Document]:
        self.ensure_table()
        stmt = select(self.kv.c.data).where(self.kv.c.key == self.build_key(table, id))
        with self.engine.connect() as conn:
            return conn.execute(stmt).scalar_one_or_none()

    @sql_errors
    def read_all(self, table: str) -> Dict[str, Document]:
        self.ensure_table()
        stmt = (
            select(self.kv.c.key, self.kv.c.data)
            .where(self._in_table(table))
            .order_by(self.kv.c.created_at.desc())
        )
        with self.engine.connect() as conn:
            rows = conn.execute(stmt).all()
        return {self.extract_id(row.key, table): row.data for row in rows}

    @sql_errors
    def update(self, id: str, update_data: Document, table: str) -> Document:
        self.ensure_table()
        key = self.build_key(table, id)
        with self.engine.begin() as conn:
            existing = conn.execute(select(self.kv.c.data).where(self.kv.c.key == key)).scalar_one_or_none()
            merged = self._merge_update(existing, id, update_data, table)
            conn.execute(update(self.kv).where(self.kv.c.key == key).values(data=merged))
        return merged

    @sql_errors
    def delete(self, id: str, table: str) -> bool:
        self.ensure_table()
        with self.engine.begin() as conn:
            result = conn.execute(delete(self.kv).where(self.kv.c.key == self.build_key(table, id)))
        return result.rowcount > 0

    @sql_errors
    def delete_all(self, table: str) -> bool:
        self.ensure_table()
        with self.engine.begin() as conn:
            conn.execute(delete(self.kv).where(self._in_table(table)))
        return True

    @sql_errors
    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(select(1))

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
