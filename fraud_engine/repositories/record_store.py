"""
Record Store - filtered reads and writes over fleet tables

Filter spec (shared by every store implementation):

    {
        "status": "completed",                                   # equality
        "speed": {"operator": "gt", "value": 120},               # range
        "vehicle_id": ["v-1", "v-2"],                            # set membership
        "driver_id": {"operator": "in", "value": ["d-1"]},       # explicit set
    }

Order spec: ("column", "asc" | "desc") or a list of such pairs.

InMemoryRecordStore evaluates the same spec in Python and is used for tests,
dry runs and as a post-filtering fallback.
"""

import copy
import logging
import operator
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from fraud_engine.exceptions import StoreUnavailableError, StoreWriteError
from fraud_engine.repositories.schema import metadata
from fraud_engine.timezone_utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

FilterSpec = Dict[str, Any]
OrderSpec = Union[Tuple[str, str], Sequence[Tuple[str, str]], None]

SUPPORTED_OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte", "in")

_COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "eq": operator.eq,
    "neq": operator.ne,
    "gt": operator.gt,
    "gte": operator.ge,
    "lt": operator.lt,
    "lte": operator.le,
}


def normalize_condition(condition: Any) -> Tuple[str, Any]:
    """Turn one filter value into (operator, value)"""
    if isinstance(condition, dict):
        op = condition.get("operator", "eq")
        if op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        return op, condition.get("value")
    if isinstance(condition, (list, tuple, set, frozenset)):
        return "in", list(condition)
    return "eq", condition


def normalize_order(order_by: OrderSpec) -> List[Tuple[str, str]]:
    if not order_by:
        return []
    if isinstance(order_by[0], str):
        order_by = [order_by]
    result = []
    for column, direction in order_by:
        direction = (direction or "asc").lower()
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported order direction: {direction}")
        result.append((column, direction))
    return result


def _comparable(actual: Any, expected: Any) -> Tuple[Any, Any]:
    # Rows hydrated from JSON fixtures may carry ISO strings for datetimes
    if isinstance(expected, datetime) and isinstance(actual, str):
        return parse_timestamp(actual), expected
    if isinstance(actual, datetime) and isinstance(expected, str):
        return actual, parse_timestamp(expected)
    return actual, expected


def matches_condition(actual: Any, op: str, expected: Any) -> bool:
    if op == "in":
        return actual in (expected or [])
    if op == "eq" and expected is None:
        return actual is None
    if op == "neq" and expected is None:
        return actual is not None
    if actual is None or expected is None:
        return False
    actual, expected = _comparable(actual, expected)
    try:
        return _COMPARATORS[op](actual, expected)
    except TypeError:
        return False


def matches_filters(record: Dict[str, Any], filters: Optional[FilterSpec]) -> bool:
    """True when a record satisfies every condition in the filter spec"""
    for column, condition in (filters or {}).items():
        op, expected = normalize_condition(condition)
        if not matches_condition(record.get(column), op, expected):
            return False
    return True


def _sort_key(column: str):
    def key(record: Dict[str, Any]):
        value = record.get(column)
        if isinstance(value, str) and column.endswith(("_time", "_date", "_at", "timestamp")):
            value = parse_timestamp(value)
        # NULLs sort first ascending, like MySQL and SQLite
        return (value is not None, value if value is not None else 0)

    return key


def sort_records(records: List[Dict[str, Any]], order_by: OrderSpec) -> List[Dict[str, Any]]:
    ordered = list(records)
    # Stable sorts applied from the least significant key
    for column, direction in reversed(normalize_order(order_by)):
        ordered.sort(key=_sort_key(column), reverse=(direction == "desc"))
    return ordered


class RecordStore:
    """
    Store interface consumed by the repositories.

    Implementations raise StoreUnavailableError when the store cannot be
    queried and StoreWriteError when a single write is rejected.
    """

    def select(
        self,
        entity: str,
        filters: Optional[FilterSpec] = None,
        order_by: OrderSpec = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def insert(self, entity: str, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def update(
        self, entity: str, patch: Dict[str, Any], filters: FilterSpec
    ) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def get(self, entity: str, record_id: str) -> Optional[Dict[str, Any]]:
        rows = self.select(entity, {"id": record_id}, limit=1)
        return rows[0] if rows else None


class InMemoryRecordStore(RecordStore):
    """Dict-of-lists store with the same filter semantics as the SQL store"""

    def __init__(self, data: Optional[Dict[str, Iterable[Dict[str, Any]]]] = None):
        self._tables: Dict[str, List[Dict[str, Any]]] = {
            name: [] for name in metadata.tables
        }
        for entity, rows in (data or {}).items():
            for row in rows:
                self.insert(entity, row)

    def _table(self, entity: str) -> List[Dict[str, Any]]:
        if entity not in self._tables:
            raise StoreUnavailableError(f"Unknown table: {entity}")
        return self._tables[entity]

    def _columns(self, entity: str) -> List[str]:
        return [c.name for c in metadata.tables[entity].columns]

    def select(self, entity, filters=None, order_by=None, limit=None):
        rows = [r for r in self._table(entity) if matches_filters(r, filters)]
        rows = sort_records(rows, order_by)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def insert(self, entity, record):
        table = self._table(entity)
        columns = self._columns(entity)
        unknown = set(record) - set(columns)
        if unknown:
            raise StoreWriteError(f"Unknown columns for {entity}: {sorted(unknown)}")

        row = {column: None for column in columns}
        row.update(copy.deepcopy(record))
        if not row.get("id"):
            row["id"] = str(uuid.uuid4())
        if any(existing["id"] == row["id"] for existing in table):
            raise StoreWriteError(f"Duplicate id for {entity}: {row['id']}")
        if "created_at" in row and row["created_at"] is None:
            row["created_at"] = utc_now()
        table.append(row)
        return copy.deepcopy(row)

    def update(self, entity, patch, filters):
        table = self._table(entity)
        unknown = set(patch) - set(self._columns(entity))
        if unknown:
            raise StoreWriteError(f"Unknown columns for {entity}: {sorted(unknown)}")

        updated = []
        for row in table:
            if matches_filters(row, filters):
                row.update(copy.deepcopy(patch))
                if "updated_at" in row and "updated_at" not in patch:
                    row["updated_at"] = utc_now()
                updated.append(copy.deepcopy(row))
        return updated
