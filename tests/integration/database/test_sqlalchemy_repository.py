# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for SQLAlchemyRepository on SQLite.

Run with: pytest tests/integration/database -v
"""

import datetime as dt
from uuid import uuid4

import pytest

from src.infrastructure.database import (
    DatabaseError,
    LinkTable,
    SQLAlchemyRepository,
    check_database_connection,
    get_engine,
    tables,
)
from src.infrastructure.database.stores import LINK_CONFLICT_KEY
from src.models.common import AttendanceStatus
from src.models.link import Link


@pytest.fixture
def enrollees(db_engine) -> SQLAlchemyRepository:
    """Repository over the enrollees table."""
    return SQLAlchemyRepository(db_engine, tables.enrollees, timeout=5)


@pytest.fixture
def links(db_engine) -> SQLAlchemyRepository:
    """Repository over the link table."""
    return SQLAlchemyRepository(db_engine, tables.session_enrollees, timeout=5)


def enrollee_row(first_name: str, last_name: str | None = None) -> dict:
    return {
        "first_name": first_name,
        "last_name": last_name,
        "created_at": dt.datetime(2026, 1, 5, tzinfo=dt.timezone.utc),
    }


@pytest.mark.integration
class TestConnection:
    """Tests for engine lifecycle."""

    @pytest.mark.asyncio
    async def test_engine_is_reachable(self, db_engine) -> None:
        """Test the initialized engine answers queries."""
        assert get_engine() is db_engine
        assert await check_database_connection()


@pytest.mark.integration
class TestCrud:
    """Tests for find, insert, update and delete."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, enrollees) -> None:
        """Test inserted rows get an id and can be found again."""
        row = await enrollees.insert(enrollee_row("Ana", "Gómez"))

        [found] = await enrollees.find({"id": row["id"]})

        assert found["first_name"] == "Ana"
        assert found["id"] == row["id"]

    @pytest.mark.asyncio
    async def test_filters(self, enrollees) -> None:
        """Test equality, null and membership filters."""
        ana = await enrollees.insert(enrollee_row("Ana", "Gómez"))
        luis = await enrollees.insert(enrollee_row("Luis"))
        await enrollees.insert(enrollee_row("Eva", "Sanz"))

        assert [r["first_name"] for r in await enrollees.find({"last_name": None})] == ["Luis"]
        found = await enrollees.find({"id": [ana["id"], luis["id"]]}, order_by=("first_name",))
        assert [r["first_name"] for r in found] == ["Ana", "Luis"]

    @pytest.mark.asyncio
    async def test_update_and_delete(self, enrollees) -> None:
        """Test affected row counts."""
        row = await enrollees.insert(enrollee_row("Ana"))

        assert await enrollees.update(row["id"], {"last_name": "Ruiz"}) == 1
        assert await enrollees.update(uuid4(), {"last_name": "Ruiz"}) == 0
        assert await enrollees.delete({"id": row["id"]}) == 1
        assert await enrollees.find() == []

    @pytest.mark.asyncio
    async def test_unfiltered_delete_is_refused(self, enrollees) -> None:
        """Test deleting without filters is not allowed."""
        with pytest.raises(ValueError):
            await enrollees.delete({})

    @pytest.mark.asyncio
    async def test_store_errors_are_wrapped(self, enrollees) -> None:
        """Test driver errors surface as DatabaseError."""
        row = await enrollees.insert(enrollee_row("Ana"))

        with pytest.raises(DatabaseError) as exc_info:
            await enrollees.insert({**enrollee_row("Otra"), "id": row["id"]})

        assert exc_info.value.original_error is not None


@pytest.mark.integration
class TestUpsert:
    """Tests for upsert on the link table."""

    @pytest.mark.asyncio
    async def test_upsert_inserts_then_updates(self, links) -> None:
        """Test a colliding row updates the non-key columns."""
        session_id, enrollee_id = uuid4(), uuid4()
        row = {
            "session_id": session_id,
            "enrollee_id": enrollee_id,
            "name_snapshot": "ANA GÓMEZ",
            "attendance": "pending",
        }

        await links.upsert([row], conflict_key=LINK_CONFLICT_KEY)
        await links.upsert([{**row, "attendance": "present"}], conflict_key=LINK_CONFLICT_KEY)

        [stored] = await links.find({"session_id": session_id})
        assert stored["attendance"] == "present"

    @pytest.mark.asyncio
    async def test_link_table_round_trip(self, links) -> None:
        """Test the link table reads back what it wrote."""
        table = LinkTable(links)
        link = Link(
            session_id=uuid4(),
            enrollee_id=uuid4(),
            name_snapshot="ANA GÓMEZ",
            attendance=AttendanceStatus.ABSENT,
        )

        await table.upsert([link])

        assert await table.get(link.session_id, link.enrollee_id) == link
        assert await table.delete(link.session_id, link.enrollee_id) == 1
        assert await table.for_session(link.session_id) == []
