# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit test fixtures.

Provides an in-memory Repository double with write counting and failure
injection, and the stores and engine wired on top of it.
"""

import datetime as dt
from collections.abc import Callable, Mapping, Sequence
from typing import Any
from uuid import uuid4

import pytest

from src.core.config.settings import ReconciliationSettings
from src.domains.attendance.service import AttendanceController
from src.domains.calendar.service import CalendarService
from src.domains.enrollment.service import EnrollmentService
from src.domains.reconciliation.service import ReconciliationEngine
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.stores import EnrollmentStore, LinkTable, SessionStore
from src.models.common import AttendanceStatus
from src.models.enrollee import AssignedSlot

Row = dict[str, Any]


def _sort_key(row: Row, columns: Sequence[str]) -> tuple:
    return tuple((row.get(c) is None, str(row.get(c))) for c in columns)


class InMemoryRepository:
    """Repository double keeping rows in a list.

    Attributes:
        name: Table name, for messages.
        rows: Stored rows.
        writes: Rows inserted, updated, upserted or deleted so far.
        calls: Every call made, as (operation, argument).
    """

    def __init__(self, name: str, has_id: bool = True) -> None:
        self.name = name
        self.has_id = has_id
        self.rows: list[Row] = []
        self.writes = 0
        self.calls: list[tuple[str, Any]] = []
        self._failures: list[tuple[str, Callable[[Any], bool] | None, list[int]]] = []

    def fail(
        self,
        operation: str,
        when: Callable[[Any], bool] | None = None,
        times: int = 1,
    ) -> None:
        """Make the next ``times`` matching calls raise DatabaseError."""
        self._failures.append((operation, when, [times]))

    def _maybe_fail(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        for op, when, remaining in self._failures:
            if op == operation and remaining[0] > 0 and (when is None or when(argument)):
                remaining[0] -= 1
                raise DatabaseError(f"{operation} on {self.name} failed", RuntimeError("injected"))

    @staticmethod
    def _matches(row: Row, filters: Mapping[str, Any]) -> bool:
        for column, value in filters.items():
            if isinstance(value, (list, tuple, set, frozenset)):
                if row.get(column) not in value:
                    return False
            elif row.get(column) != value:
                return False
        return True

    async def find(
        self,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] = (),
    ) -> list[Row]:
        self._maybe_fail("find", filters)
        found = [dict(row) for row in self.rows if self._matches(row, filters or {})]
        if order_by:
            found.sort(key=lambda row: _sort_key(row, order_by))
        return found

    async def insert(self, row: Mapping[str, Any]) -> Row:
        self._maybe_fail("insert", row)
        values = dict(row)
        if self.has_id and values.get("id") is None:
            values["id"] = uuid4()
        self.rows.append(values)
        self.writes += 1
        return dict(values)

    async def update(self, row_id: Any, patch: Mapping[str, Any]) -> int:
        self._maybe_fail("update", patch)
        affected = 0
        for row in self.rows:
            if row.get("id") == row_id:
                row.update(patch)
                affected += 1
        self.writes += affected
        return affected

    async def delete(self, filters: Mapping[str, Any]) -> int:
        self._maybe_fail("delete", filters)
        if not filters:
            raise ValueError(f"Refusing unfiltered delete on {self.name}")
        kept = [row for row in self.rows if not self._matches(row, filters)]
        affected = len(self.rows) - len(kept)
        self.rows = kept
        self.writes += affected
        return affected

    async def upsert(
        self,
        rows: Sequence[Mapping[str, Any]],
        conflict_key: Sequence[str],
    ) -> int:
        self._maybe_fail("upsert", rows)
        for row in rows:
            key = {column: row[column] for column in conflict_key}
            existing = next((r for r in self.rows if self._matches(r, key)), None)
            if existing is not None:
                existing.update({k: v for k, v in row.items() if k != "id"})
            else:
                values = dict(row)
                if self.has_id and values.get("id") is None:
                    values["id"] = uuid4()
                self.rows.append(values)
        self.writes += len(rows)
        return len(rows)


class Backend:
    """The four tables, their stores, and write counters."""

    def __init__(self) -> None:
        self.enrollee_rows = InMemoryRepository("enrollees")
        self.slot_rows = InMemoryRepository("enrollee_slots")
        self.session_rows = InMemoryRepository("sessions")
        self.link_rows = InMemoryRepository("session_enrollees", has_id=False)

        self.enrollments = EnrollmentStore(self.enrollee_rows, self.slot_rows)
        self.sessions = SessionStore(self.session_rows)
        self.links = LinkTable(self.link_rows)

    @property
    def writes(self) -> int:
        return (
            self.enrollee_rows.writes
            + self.slot_rows.writes
            + self.session_rows.writes
            + self.link_rows.writes
        )

    @property
    def session_writes(self) -> int:
        return self.session_rows.writes + self.link_rows.writes


@pytest.fixture
def backend() -> Backend:
    """Create an empty in-memory backend."""
    return Backend()


@pytest.fixture
def engine(backend: Backend) -> ReconciliationEngine:
    """Create a reconciliation engine matching on (date, start_time)."""
    return ReconciliationEngine(backend.enrollments, backend.sessions, backend.links)


@pytest.fixture
def full_match_engine(backend: Backend) -> ReconciliationEngine:
    """Create a reconciliation engine matching on the full slot and kind."""
    return ReconciliationEngine(
        backend.enrollments,
        backend.sessions,
        backend.links,
        ReconciliationSettings(session_match_key="full"),
    )


@pytest.fixture
def attendance(backend: Backend) -> AttendanceController:
    """Create an attendance controller."""
    return AttendanceController(backend.sessions, backend.links)


@pytest.fixture
def enrollment_service(backend: Backend, engine: ReconciliationEngine) -> EnrollmentService:
    """Create an enrollment service."""
    return EnrollmentService(backend.enrollments, backend.links, engine)


@pytest.fixture
def calendar_service(backend: Backend, engine: ReconciliationEngine) -> CalendarService:
    """Create a calendar service."""
    return CalendarService(backend.enrollments, backend.sessions, backend.links, engine)


@pytest.fixture
def make_slot() -> Callable[..., AssignedSlot]:
    """Build slots on February 2026 from compact arguments."""

    def build(
        day: int,
        start: int,
        end: int,
        intent: AttendanceStatus | str = AttendanceStatus.PENDING,
    ) -> AssignedSlot:
        return AssignedSlot(
            date=dt.date(2026, 2, day),
            start_time=dt.time(start, 0),
            end_time=dt.time(end, 0),
            attendance_intent=intent,
        )

    return build
