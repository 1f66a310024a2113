"""
Database gateway used by the repository and services.

The gateway hides the SQL execution layer behind a small contract so the
same repository logic runs against the host ERP database or a local SQLite
file. Parameters are always bound with positional ``?`` placeholders.

Rows are returned as plain dicts keyed by column name.
"""

from __future__ import annotations

import logging
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Iterable, Optional

from amazon_invoices.config import DEFAULT_TABLE_PREFIX

logger = logging.getLogger(__name__)


class DatabaseGateway(ABC):
    """Contract for executing SQL against the staging database."""

    @property
    @abstractmethod
    def table_prefix(self) -> str: ...

    @abstractmethod
    def execute(self, query: str, params: Iterable[Any] = ()) -> Any:
        """Execute a statement with bound parameters and return a result handle."""

    @abstractmethod
    def fetch_one(self, result: Any) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def fetch_all(self, result: Any) -> list[dict[str, Any]]: ...

    @abstractmethod
    def last_insert_id(self) -> int: ...

    @abstractmethod
    def affected_rows(self) -> int: ...

    @abstractmethod
    def begin_transaction(self) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

    def escape(self, value: Any) -> str:
        """Quote a value as an SQL literal.

        Only for diagnostics and ad-hoc SQL; queries built by this package
        always bind parameters instead.
        """
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, (int, float)):
            return str(value)
        return "'" + str(value).replace("'", "''") + "'"

    def table_name(self, name: str) -> str:
        """Return the raw prefixed table name."""
        return f"{self.table_prefix}{name}"

    def table(self, name: str) -> str:
        """Return the prefixed table name quoted for use in SQL.

        Host ERP prefixes start with a digit (``0_``), so names are always quoted.
        """
        return f'"{self.table_name(name)}"'

    def query_one(self, query: str, params: Iterable[Any] = ()) -> Optional[dict[str, Any]]:
        return self.fetch_one(self.execute(query, params))

    def query_all(self, query: str, params: Iterable[Any] = ()) -> list[dict[str, Any]]:
        return self.fetch_all(self.execute(query, params))


class SqliteGateway(DatabaseGateway):
    """SQLite implementation of the gateway.

    Holds a single connection in autocommit mode; begin_transaction() opens an
    explicit transaction that spans statements until commit() or rollback().

    Usage:
        with SqliteGateway("data/amazon_invoices.db") as db:
            install_schema(db)
            repo = InvoiceRepository(db)
    """

    def __init__(self, db_path: str | Path, table_prefix: str = DEFAULT_TABLE_PREFIX):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._prefix = table_prefix
        self._conn = sqlite3.connect(self.db_path, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._last_cursor: Optional[sqlite3.Cursor] = None

    @property
    def table_prefix(self) -> str:
        return self._prefix

    def execute(self, query: str, params: Iterable[Any] = ()) -> sqlite3.Cursor:
        cursor = self._conn.execute(query, tuple(params))
        self._last_cursor = cursor
        return cursor

    def fetch_one(self, result: sqlite3.Cursor) -> Optional[dict[str, Any]]:
        row = result.fetchone()
        return dict(row) if row is not None else None

    def fetch_all(self, result: sqlite3.Cursor) -> list[dict[str, Any]]:
        return [dict(row) for row in result.fetchall()]

    def last_insert_id(self) -> int:
        if self._last_cursor is None or self._last_cursor.lastrowid is None:
            return 0
        return int(self._last_cursor.lastrowid)

    def affected_rows(self) -> int:
        if self._last_cursor is None:
            return 0
        return max(self._last_cursor.rowcount, 0)

    def begin_transaction(self) -> None:
        self._conn.execute("BEGIN")

    def commit(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("COMMIT")

    def rollback(self) -> None:
        if self._conn.in_transaction:
            self._conn.execute("ROLLBACK")
            logger.debug("Transaction rolled back on %s", self.db_path)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SqliteGateway:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["DatabaseGateway", "SqliteGateway"]
