"""Persistence interface shared by every service.

The core treats storage as a document store with secondary lookups:
insert a row, fetch a row by id, update rows matching a filter, and query
rows by equality/range/contains filters ordered by a field and limited.
No row-level locking is assumed.

Two implementations:
- InMemoryStore: development and tests
- PostgresStore: production, over the pooled ConnectionManager
"""
import copy
import logging
import re
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

from .connection import ConnectionManager
from .repository import DuplicateError, RepositoryError

logger = logging.getLogger(__name__)

Row = Dict[str, Any]

_OPERATORS = frozenset({"eq", "gte", "lte", "in", "is_null", "contains"})
_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


@dataclass(frozen=True)
class Filter:
    """One predicate of a query or update.
    
    ``is_null`` takes a bool: True matches NULL, False matches NOT NULL.
    ``contains`` matches when every key/value (dict) or element (list)
    of ``value`` is present in the column.
    """
    column: str
    op: str
    value: Any = None

    def __post_init__(self):
        if self.op not in _OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Sequence[Any]) -> Filter:
    return Filter(column, "in", tuple(values))


def is_null(column: str, null: bool = True) -> Filter:
    return Filter(column, "is_null", null)


def contains(column: str, value: Any) -> Filter:
    return Filter(column, "contains", value)


class Store(ABC):
    """Abstract persistence interface."""

    @abstractmethod
    def insert(self, table: str, row: Row) -> Row:
        """Insert a row and return it as stored. Assigns ``id`` if absent."""

    @abstractmethod
    def get(self, table: str, row_id: str) -> Optional[Row]:
        """Fetch one row by id."""

    @abstractmethod
    def update(self, table: str, filters: Sequence[Filter], changes: Row) -> List[Row]:
        """Apply changes to all matching rows and return them."""

    @abstractmethod
    def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Return matching rows ordered by one column."""


class InMemoryStore(Store):
    """Dict-backed store.
    
    Rows are deep-copied in and out so callers never share state with
    the store. Queries are stable: rows with equal sort keys keep their
    insertion order.
    """

    def __init__(self):
        self._tables: Dict[str, List[Row]] = {}
        self._lock = threading.Lock()

    def insert(self, table: str, row: Row) -> Row:
        stored = copy.deepcopy(row)
        stored.setdefault("id", str(uuid.uuid4()))
        with self._lock:
            rows = self._tables.setdefault(table, [])
            if any(existing["id"] == stored["id"] for existing in rows):
                raise DuplicateError(f"{table} row {stored['id']} already exists")
            rows.append(stored)
        return copy.deepcopy(stored)

    def get(self, table: str, row_id: str) -> Optional[Row]:
        with self._lock:
            for row in self._tables.get(table, []):
                if row["id"] == row_id:
                    return copy.deepcopy(row)
        return None

    def update(self, table: str, filters: Sequence[Filter], changes: Row) -> List[Row]:
        updated = []
        with self._lock:
            for row in self._tables.get(table, []):
                if _matches(row, filters):
                    row.update(copy.deepcopy(changes))
                    updated.append(copy.deepcopy(row))
        return updated

    def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        with self._lock:
            rows = [copy.deepcopy(r) for r in self._tables.get(table, []) if _matches(r, filters)]
        if order_by is not None:
            # NULLs sort last ascending, first descending (PostgreSQL default)
            rows.sort(
                key=lambda r: (r.get(order_by) is None, r.get(order_by) if r.get(order_by) is not None else 0),
                reverse=descending,
            )
        if limit is not None:
            rows = rows[:limit]
        return rows


def _matches(row: Row, filters: Sequence[Filter]) -> bool:
    return all(_match_one(row.get(f.column), f) for f in filters)


def _match_one(actual: Any, f: Filter) -> bool:
    if f.op == "eq":
        return actual == f.value
    if f.op == "is_null":
        return (actual is None) == bool(f.value)
    if f.op == "in":
        return actual in f.value
    if f.op == "contains":
        if isinstance(f.value, dict):
            return isinstance(actual, dict) and all(
                actual.get(k) == v for k, v in f.value.items()
            )
        return isinstance(actual, list) and all(v in actual for v in f.value)
    if actual is None:
        return False
    if f.op == "gte":
        return actual >= f.value
    return actual <= f.value


class PostgresStore(Store):
    """Store backed by PostgreSQL tables of the same names.
    
    JSON-typed values (dicts and lists) are adapted to jsonb.
    """

    def __init__(self, connection_manager: ConnectionManager):
        self.connection_manager = connection_manager
        logger.info(
            "POSTGRES_STORE_INITIALIZED",
            extra={"database": connection_manager.config.database}
        )

    def insert(self, table: str, row: Row) -> Row:
        params = dict(row)
        params.setdefault("id", str(uuid.uuid4()))
        columns = [_identifier(c) for c in params]
        query = (
            f"INSERT INTO {_identifier(table)} ({', '.join(columns)}) "
            f"VALUES ({', '.join(['%s'] * len(columns))}) RETURNING *"
        )
        rows = self._execute(query, [_adapt(v) for v in params.values()], table)
        return rows[0]

    def get(self, table: str, row_id: str) -> Optional[Row]:
        rows = self.query(table, [eq("id", row_id)], limit=1)
        return rows[0] if rows else None

    def update(self, table: str, filters: Sequence[Filter], changes: Row) -> List[Row]:
        if not changes:
            return self.query(table, filters)
        assignments = ", ".join(f"{_identifier(c)} = %s" for c in changes)
        where, where_params = _where_clause(filters)
        query = f"UPDATE {_identifier(table)} SET {assignments}{where} RETURNING *"
        params = [_adapt(v) for v in changes.values()] + where_params
        return self._execute(query, params, table)

    def query(
        self,
        table: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        where, params = _where_clause(filters)
        query = f"SELECT * FROM {_identifier(table)}{where}"
        if order_by is not None:
            query += f" ORDER BY {_identifier(order_by)} {'DESC' if descending else 'ASC'}, ctid"
        if limit is not None:
            query += " LIMIT %s"
            params.append(int(limit))
        return self._execute(query, params, table)

    def _execute(self, query: str, params: List[Any], table: str) -> List[Row]:
        import psycopg2
        from psycopg2.extras import RealDictCursor

        with self.connection_manager.get_connection() as conn:
            try:
                with conn.cursor(cursor_factory=RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(r) for r in cur.fetchall()] if cur.description else []
                conn.commit()
                return rows
            except psycopg2.IntegrityError as e:
                conn.rollback()
                logger.warning(
                    "POSTGRES_INTEGRITY_ERROR",
                    extra={"table": table, "error": str(e)}
                )
                raise DuplicateError(f"Integrity error on {table}: {e}") from e
            except psycopg2.Error as e:
                conn.rollback()
                logger.error(
                    "POSTGRES_QUERY_FAILED",
                    extra={"table": table, "error": str(e)}
                )
                raise RepositoryError(f"Query on {table} failed: {e}") from e


def _identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _adapt(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        from psycopg2.extras import Json
        return Json(value)
    return value


def _where_clause(filters: Sequence[Filter]):
    clauses, params = [], []
    for f in filters:
        column = _identifier(f.column)
        if f.op == "eq":
            if f.value is None:
                clauses.append(f"{column} IS NULL")
            else:
                clauses.append(f"{column} = %s")
                params.append(f.value)
        elif f.op == "gte":
            clauses.append(f"{column} >= %s")
            params.append(f.value)
        elif f.op == "lte":
            clauses.append(f"{column} <= %s")
            params.append(f.value)
        elif f.op == "in":
            clauses.append(f"{column} = ANY(%s)")
            params.append(list(f.value))
        elif f.op == "is_null":
            clauses.append(f"{column} IS NULL" if f.value else f"{column} IS NOT NULL")
        elif f.op == "contains":
            clauses.append(f"{column} @> %s")
            params.append(_adapt(f.value))
    where = f" WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params
