# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the enrollment store, session store and link table."""

import datetime as dt
from uuid import uuid4

import pytest

from src.infrastructure.database.stores import compose_session
from src.models.common import AttendanceStatus, SessionKind, SessionProvenance
from src.models.link import Link
from src.models.session import Session


class TestEnrollmentStore:
    """Tests for EnrollmentStore."""

    @pytest.mark.asyncio
    async def test_replace_slots_writes_only_differences(self, backend, make_slot) -> None:
        """Test unchanged slots are not rewritten."""
        enrollee = await backend.enrollments.insert("Ana", "Gómez")
        a, b, c = make_slot(1, 10, 12), make_slot(2, 10, 12), make_slot(3, 10, 12)

        assert await backend.enrollments.replace_slots(enrollee.id, [a, b]) == 2
        assert await backend.enrollments.replace_slots(enrollee.id, [a, b]) == 0
        assert await backend.enrollments.replace_slots(enrollee.id, [b, c]) == 2

        assert await backend.enrollments.load_slots(enrollee.id) == [b, c]

    @pytest.mark.asyncio
    async def test_intent_change_rewrites_slot(self, backend, make_slot) -> None:
        """Test a changed intent rewrites only that slot."""
        enrollee = await backend.enrollments.insert("Ana", "Gómez")
        await backend.enrollments.replace_slots(enrollee.id, [make_slot(1, 10, 12)])

        writes = await backend.enrollments.replace_slots(
            enrollee.id, [make_slot(1, 10, 12, "present")]
        )

        assert writes == 1
        [slot] = await backend.enrollments.load_slots(enrollee.id)
        assert slot.attendance_intent is AttendanceStatus.PRESENT

    @pytest.mark.asyncio
    async def test_get_returns_slots(self, backend, make_slot) -> None:
        """Test reading an enrollee joins its slots."""
        enrollee = await backend.enrollments.insert("Luis", None, SessionKind.TORNO)
        await backend.enrollments.replace_slots(enrollee.id, [make_slot(4, 9, 10)])

        found = await backend.enrollments.get(enrollee.id)

        assert found.preferred_kind is SessionKind.TORNO
        assert found.assigned_slots == [make_slot(4, 9, 10)]
        assert await backend.enrollments.get(uuid4()) is None


class TestSessionStore:
    """Tests for SessionStore."""

    @pytest.mark.asyncio
    async def test_insert_tags_provenance(self, backend) -> None:
        """Test sessions carry their provenance."""
        session = await backend.sessions.insert(
            {
                "date": dt.date(2026, 2, 10),
                "start_time": dt.time(10),
                "end_time": dt.time(12),
                "kind": SessionKind.MESA,
            },
            provenance=SessionProvenance.DERIVED,
        )

        stored = await backend.sessions.get(session.id)

        assert stored.provenance is SessionProvenance.DERIVED
        assert backend.session_rows.rows[0]["kind"] == "mesa"


class TestComposeSession:
    """Tests for compose_session."""

    def test_roster_and_marked_attendance(self) -> None:
        """Test roster lists every link and attendance only marked ones."""
        session = Session(
            id=uuid4(),
            date=dt.date(2026, 2, 10),
            start_time=dt.time(10),
            end_time=dt.time(12),
            kind=SessionKind.MESA,
        )
        links = [
            Link(session_id=session.id, enrollee_id=uuid4(), name_snapshot="ANA GÓMEZ",
                 attendance=AttendanceStatus.PRESENT),
            Link(session_id=session.id, enrollee_id=uuid4(), name_snapshot="LUIS PÉREZ"),
            Link(session_id=uuid4(), enrollee_id=uuid4(), name_snapshot="OTRA"),
        ]

        composed = compose_session(session, links)

        assert composed.roster == ["ANA GÓMEZ", "LUIS PÉREZ"]
        assert composed.attendance == {"ANA GÓMEZ": AttendanceStatus.PRESENT}
