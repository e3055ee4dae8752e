"""
SQL Record Store - SQLAlchemy Core implementation of the RecordStore filter spec

Production runs against MySQL (mysql+pymysql); tests run the same code
against SQLite.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import Table, exc, select
from sqlalchemy.engine import Engine

from config import DATABASE, get_database_url
from fraud_engine.exceptions import StoreUnavailableError, StoreWriteError
from fraud_engine.repositories.db_connection import create_store_engine, with_retry
from fraud_engine.repositories.record_store import (
    RecordStore,
    normalize_condition,
    normalize_order,
)
from fraud_engine.repositories.schema import metadata
from fraud_engine.timezone_utils import utc_now

logger = logging.getLogger(__name__)

_SQL_OPERATORS = {
    "eq": lambda col, v: col.is_(None) if v is None else col == v,
    "neq": lambda col, v: col.is_not(None) if v is None else col != v,
    "gt": lambda col, v: col > v,
    "gte": lambda col, v: col >= v,
    "lt": lambda col, v: col < v,
    "lte": lambda col, v: col <= v,
    "in": lambda col, v: col.in_(list(v or [])),
}

_UNAVAILABLE = (exc.OperationalError, exc.InterfaceError)


class SQLRecordStore(RecordStore):
    """RecordStore over a SQLAlchemy engine"""

    def __init__(
        self,
        engine: Optional[Engine] = None,
        url: Optional[str] = None,
        create_tables: bool = False,
        max_retries: int = DATABASE.MAX_RETRIES,
    ):
        self.engine = engine or create_store_engine(url or get_database_url())
        self.max_retries = max_retries
        if create_tables:
            metadata.create_all(self.engine)
        logger.info(f"SQLRecordStore initialized for {self.engine.url.render_as_string(hide_password=True)}")

    def _table(self, entity: str) -> Table:
        table = metadata.tables.get(entity)
        if table is None:
            raise StoreUnavailableError(f"Unknown table: {entity}")
        return table

    def _where(self, table: Table, stmt, filters):
        for column, condition in (filters or {}).items():
            if column not in table.c:
                raise StoreUnavailableError(f"Unknown column {table.name}.{column}")
            op, value = normalize_condition(condition)
            stmt = stmt.where(_SQL_OPERATORS[op](table.c[column], value))
        return stmt

    def _fetch(self, stmt) -> List[Dict[str, Any]]:
        @with_retry(max_retries=self.max_retries)
        def run():
            with self.engine.connect() as conn:
                return [dict(row._mapping) for row in conn.execute(stmt)]

        return run()

    def select(self, entity, filters=None, order_by=None, limit=None):
        table = self._table(entity)
        stmt = self._where(table, select(table), filters)
        for column, direction in normalize_order(order_by):
            if column not in table.c:
                raise StoreUnavailableError(f"Unknown column {entity}.{column}")
            col = table.c[column]
            stmt = stmt.order_by(col.desc() if direction == "desc" else col.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        try:
            rows = self._fetch(stmt)
        except exc.SQLAlchemyError as e:
            logger.error(f"Select on {entity} failed: {e}")
            raise StoreUnavailableError(f"Select on {entity} failed: {e}") from e

        logger.debug(f"Fetched {len(rows)} rows from {entity}")
        return rows

    def insert(self, entity, record):
        table = self._table(entity)
        unknown = set(record) - set(table.c.keys())
        if unknown:
            raise StoreWriteError(f"Unknown columns for {entity}: {sorted(unknown)}")

        row = dict(record)
        if not row.get("id"):
            row["id"] = str(uuid.uuid4())
        if "created_at" in table.c and row.get("created_at") is None:
            row["created_at"] = utc_now()

        try:
            with self.engine.begin() as conn:
                conn.execute(table.insert().values(**row))
        except _UNAVAILABLE as e:
            raise StoreUnavailableError(f"Insert into {entity} failed: {e}") from e
        except exc.SQLAlchemyError as e:
            raise StoreWriteError(f"Insert into {entity} rejected: {e}") from e

        return self.get(entity, row["id"]) or row

    def update(self, entity, patch, filters):
        table = self._table(entity)
        unknown = set(patch) - set(table.c.keys())
        if unknown:
            raise StoreWriteError(f"Unknown columns for {entity}: {sorted(unknown)}")

        ids = [r["id"] for r in self.select(entity, filters)]
        if not ids:
            return []

        values = dict(patch)
        if "updated_at" in table.c and "updated_at" not in values:
            values["updated_at"] = utc_now()

        try:
            with self.engine.begin() as conn:
                conn.execute(table.update().where(table.c.id.in_(ids)).values(**values))
        except _UNAVAILABLE as e:
            raise StoreUnavailableError(f"Update of {entity} failed: {e}") from e
        except exc.SQLAlchemyError as e:
            raise StoreWriteError(f"Update of {entity} rejected: {e}") from e

        return self.select(entity, {"id": ids})
