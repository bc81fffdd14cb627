# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Repository protocol and its SQLAlchemy implementation.

Every store in the scheduler talks to its table through the same five
calls: find, insert, update, delete and upsert. Each call runs in its own
short transaction; nothing spans two calls, so callers must treat a
sequence of calls as non-atomic.

Filters map a column name to a value (equality), to None (IS NULL) or to
a list/tuple/set (membership).

Example:
    repo = SQLAlchemyRepository(engine, tables.session_enrollees, timeout=10)
    rows = await repo.find({"session_id": session_id})
    await repo.upsert(rows, conflict_key=("session_id", "enrollee_id"))
"""

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol
from uuid import uuid4

from sqlalchemy import Table, delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.sql import Executable

from src.infrastructure.database.connection import DatabaseError

logger = logging.getLogger(__name__)

Row = dict[str, Any]


class Repository(Protocol):
    """Row-level access to one table."""

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> list[Row]:
        """Return rows matching every filter."""
        ...

    async def insert(self, row: Mapping[str, Any]) -> Row:
        """Insert one row and return it as stored."""
        ...

    async def update(self, row_id: Any, patch: Mapping[str, Any]) -> int:
        """Patch the row with the given id; return affected rows."""
        ...

    async def delete(self, filters: Mapping[str, Any]) -> int:
        """Delete rows matching every filter; return affected rows."""
        ...

    async def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str],
    ) -> int:
        """Insert rows, updating those that collide on conflict_key."""
        ...


class SQLAlchemyRepository:
    """Repository over a SQLAlchemy Core table and an async engine.

    Attributes:
        table: Table this repository reads and writes.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        table: Table,
        timeout: float | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            engine: Async engine to run statements on.
            table: Table to operate on.
            timeout: Seconds allowed per call, None for no limit.
        """
        self._engine = engine
        self.table = table
        self._timeout = timeout

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> list[Row]:
        stmt = select(self.table)
        for clause in self._where(filters or {}):
            stmt = stmt.where(clause)
        if order_by:
            stmt = stmt.order_by(*(self._column(name) for name in order_by))
        return await self._fetch("find", stmt)

    async def insert(self, row: Mapping[str, Any]) -> Row:
        values = self._with_id(row)
        await self._execute("insert", insert(self.table).values(values))
        return values

    async def update(self, row_id: Any, patch: Mapping[str, Any]) -> int:
        if not patch:
            return 0
        stmt = (
            update(self.table)
            .where(self._column("id") == row_id)
            .values(dict(patch))
        )
        return await self._execute("update", stmt)

    async def delete(self, filters: Mapping[str, Any]) -> int:
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {self.table.name}")
        stmt = delete(self.table)
        for clause in self._where(filters):
            stmt = stmt.where(clause)
        return await self._execute("delete", stmt)

    async def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str],
    ) -> int:
        if not rows:
            return 0

        values = [self._with_id(row) for row in rows]
        dialect = self._engine.dialect.name
        if dialect == "postgresql":
            stmt = postgresql.insert(self.table).values(values)
        elif dialect == "sqlite":
            stmt = sqlite.insert(self.table).values(values)
        else:
            raise DatabaseError(f"Upsert is not supported on dialect {dialect}")

        protected = set(conflict_key) | set(self.table.primary_key.columns.keys())
        update_set = {
            name: stmt.excluded[name] for name in values[0] if name not in protected
        }
        if update_set:
            stmt = stmt.on_conflict_do_update(index_elements=list(conflict_key), set_=update_set)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_key))

        await self._execute("upsert", stmt)
        return len(values)

    def _column(self, name: str):
        try:
            return self.table.c[name]
        except KeyError as e:
            raise ValueError(f"Unknown column {self.table.name}.{name}") from e

    def _where(self, filters: Mapping[str, Any]) -> list[Any]:
        clauses = []
        for name, value in filters.items():
            column = self._column(name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)
        return clauses

    def _with_id(self, row: Mapping[str, Any]) -> Row:
        values = dict(row)
        if "id" in self.table.c and values.get("id") is None:
            values["id"] = uuid4()
        return values

    async def _fetch(self, operation: str, stmt: Executable) -> list[Row]:
        async def run() -> list[Row]:
            async with self._engine.connect() as conn:
                result = await conn.execute(stmt)
                return [dict(row) for row in result.mappings().all()]

        return await self._guard(operation, run())

    async def _execute(self, operation: str, stmt: Executable) -> int:
        async def run() -> int:
            async with self._engine.begin() as conn:
                result = await conn.execute(stmt)
                return result.rowcount or 0

        return await self._guard(operation, run())

    async def _guard(self, operation: str, call: Any) -> Any:
        try:
            async with asyncio.timeout(self._timeout):
                return await call
        except TimeoutError as e:
            logger.warning("Store %s on %s timed out", operation, self.table.name)
            raise DatabaseError(f"{operation} on {self.table.name} timed out", e) from e
        except SQLAlchemyError as e:
            raise DatabaseError(f"{operation} on {self.table.name} failed", e) from e
