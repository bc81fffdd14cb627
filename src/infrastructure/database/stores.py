# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment store, session store and link table.

Pure data access: these classes translate between repository rows and
the pydantic models. They hold no reconciliation logic; every write that
keeps sessions and enrollee slots consistent is decided by the
reconciliation engine.
"""

import asyncio
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any
from uuid import UUID

from src.infrastructure.database.repository import Repository, Row
from src.models.common import AttendanceStatus, SessionKind, SessionProvenance
from src.models.enrollee import AssignedSlot, Enrollee
from src.models.link import Link
from src.models.session import Session
from src.utils.datetime import ensure_utc, utc_now

SLOT_CONFLICT_KEY = ("enrollee_id", "date", "start_time", "end_time")
LINK_CONFLICT_KEY = ("session_id", "enrollee_id")


def _plain(value: Any) -> Any:
    """Store enums by value."""
    return value.value if isinstance(value, Enum) else value


def _slot_key(slot: AssignedSlot) -> tuple:
    return (slot.date, slot.start_time, slot.end_time)


def _slot_from_row(row: Row) -> AssignedSlot:
    return AssignedSlot(
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        attendance_intent=row.get("attendance_intent") or AttendanceStatus.PENDING,
    )


def _enrollee_from_row(row: Row, slots: Sequence[AssignedSlot]) -> Enrollee:
    return Enrollee(
        id=row["id"],
        first_name=row["first_name"],
        last_name=row.get("last_name"),
        preferred_kind=row.get("preferred_kind"),
        assigned_slots=list(slots),
    )


def _session_from_row(row: Row) -> Session:
    return Session(
        id=row["id"],
        date=row["date"],
        start_time=row["start_time"],
        end_time=row["end_time"],
        kind=SessionKind(row["kind"]),
        provenance=SessionProvenance(row.get("provenance") or SessionProvenance.MANUAL),
        teacher_id=row.get("teacher_id"),
        teacher_substitute_id=row.get("teacher_substitute_id"),
        completed_at=ensure_utc(row.get("completed_at")),
        workshop_name=row.get("workshop_name"),
        private_reason=row.get("private_reason"),
    )


def _link_from_row(row: Row) -> Link:
    return Link(
        session_id=row["session_id"],
        enrollee_id=row["enrollee_id"],
        name_snapshot=row["name_snapshot"],
        attendance=AttendanceStatus(row.get("attendance") or AttendanceStatus.PENDING),
    )


def _link_to_row(link: Link) -> Row:
    return {
        "session_id": link.session_id,
        "enrollee_id": link.enrollee_id,
        "name_snapshot": link.name_snapshot,
        "attendance": link.attendance.value,
    }


def compose_session(session: Session, links: Iterable[Link]) -> Session:
    """Derive a session's roster and attendance from its link rows.

    Args:
        session: Session as read from the session store.
        links: Link rows of that session.

    Returns:
        Copy of the session with roster and attendance filled in.
    """
    own = [link for link in links if link.session_id == session.id]
    return session.model_copy(
        update={
            "roster": [link.name_snapshot for link in own],
            "attendance": {
                link.name_snapshot: link.attendance
                for link in own
                if link.attendance.is_marked
            },
        }
    )


class EnrollmentStore:
    """Enrollees and their assigned slots."""

    def __init__(self, enrollees: Repository, slots: Repository) -> None:
        self._enrollees = enrollees
        self._slots = slots

    async def get(self, enrollee_id: UUID) -> Enrollee | None:
        rows = await self._enrollees.find({"id": enrollee_id})
        if not rows:
            return None
        slots = await self.load_slots(enrollee_id)
        return _enrollee_from_row(rows[0], slots)

    async def list_all(self) -> list[Enrollee]:
        """All enrollees with their slots; the two tables are read concurrently."""
        enrollee_rows, slot_rows = await asyncio.gather(
            self._enrollees.find(order_by=("first_name", "last_name")),
            self._slots.find(order_by=("date", "start_time", "end_time")),
        )
        by_enrollee: dict[Any, list[AssignedSlot]] = {}
        for row in slot_rows:
            by_enrollee.setdefault(row["enrollee_id"], []).append(_slot_from_row(row))
        return [
            _enrollee_from_row(row, by_enrollee.get(row["id"], []))
            for row in enrollee_rows
        ]

    async def insert(
        self,
        first_name: str,
        last_name: str | None = None,
        preferred_kind: SessionKind | None = None,
    ) -> Enrollee:
        row = await self._enrollees.insert(
            {
                "first_name": first_name,
                "last_name": last_name,
                "preferred_kind": _plain(preferred_kind),
                "created_at": utc_now(),
            }
        )
        return _enrollee_from_row(row, [])

    async def update(self, enrollee_id: UUID, patch: Mapping[str, Any]) -> int:
        return await self._enrollees.update(
            enrollee_id, {name: _plain(value) for name, value in patch.items()}
        )

    async def delete(self, enrollee_id: UUID) -> int:
        await self._slots.delete({"enrollee_id": enrollee_id})
        return await self._enrollees.delete({"id": enrollee_id})

    async def load_slots(self, enrollee_id: UUID) -> list[AssignedSlot]:
        rows = await self._slots.find(
            {"enrollee_id": enrollee_id},
            order_by=("date", "start_time", "end_time"),
        )
        return [_slot_from_row(row) for row in rows]

    async def replace_slots(self, enrollee_id: UUID, slots: Sequence[AssignedSlot]) -> int:
        """Make the stored slot list equal to ``slots``.

        Only differing rows are written, so storing an unchanged list
        issues no writes.

        Returns:
            Number of rows written or deleted.
        """
        rows = await self._slots.find({"enrollee_id": enrollee_id})
        stored = {
            (row["date"], row["start_time"], row["end_time"]): row for row in rows
        }
        desired = {_slot_key(slot): slot for slot in slots}

        stale_ids = [row["id"] for key, row in stored.items() if key not in desired]
        changed = [
            slot
            for key, slot in desired.items()
            if key not in stored
            or (stored[key].get("attendance_intent") or "pending") != slot.attendance_intent.value
        ]

        writes = 0
        if stale_ids:
            writes += await self._slots.delete({"id": stale_ids})
        if changed:
            writes += await self._slots.upsert(
                [
                    {
                        "enrollee_id": enrollee_id,
                        "date": slot.date,
                        "start_time": slot.start_time,
                        "end_time": slot.end_time,
                        "attendance_intent": slot.attendance_intent.value,
                    }
                    for slot in changed
                ],
                conflict_key=SLOT_CONFLICT_KEY,
            )
        return writes


class SessionStore:
    """Calendar sessions, without rosters."""

    def __init__(self, sessions: Repository) -> None:
        self._sessions = sessions

    async def get(self, session_id: UUID) -> Session | None:
        rows = await self._sessions.find({"id": session_id})
        return _session_from_row(rows[0]) if rows else None

    async def list_all(self) -> list[Session]:
        rows = await self._sessions.find(order_by=("date", "start_time", "created_at"))
        return [_session_from_row(row) for row in rows]

    async def find_matching(self, filters: Mapping[str, Any]) -> list[Session]:
        """Sessions whose columns equal every filter, oldest first."""
        rows = await self._sessions.find(
            {name: _plain(value) for name, value in filters.items()},
            order_by=("created_at",),
        )
        return [_session_from_row(row) for row in rows]

    async def insert(
        self,
        fields: Mapping[str, Any],
        provenance: SessionProvenance = SessionProvenance.MANUAL,
    ) -> Session:
        row = {name: _plain(value) for name, value in fields.items()}
        row["provenance"] = provenance.value
        row["created_at"] = utc_now()
        stored = await self._sessions.insert(row)
        return _session_from_row(stored)

    async def update(self, session_id: UUID, patch: Mapping[str, Any]) -> int:
        return await self._sessions.update(
            session_id, {name: _plain(value) for name, value in patch.items()}
        )

    async def delete(self, session_id: UUID) -> int:
        return await self._sessions.delete({"id": session_id})


class LinkTable:
    """Session/enrollee link rows."""

    def __init__(self, links: Repository) -> None:
        self._links = links

    async def for_session(self, session_id: UUID) -> list[Link]:
        rows = await self._links.find({"session_id": session_id}, order_by=("name_snapshot",))
        return [_link_from_row(row) for row in rows]

    async def for_enrollee(self, enrollee_id: UUID) -> list[Link]:
        rows = await self._links.find({"enrollee_id": enrollee_id})
        return [_link_from_row(row) for row in rows]

    async def get(self, session_id: UUID, enrollee_id: UUID) -> Link | None:
        rows = await self._links.find({"session_id": session_id, "enrollee_id": enrollee_id})
        return _link_from_row(rows[0]) if rows else None

    async def list_all(self) -> list[Link]:
        rows = await self._links.find(order_by=("session_id", "name_snapshot"))
        return [_link_from_row(row) for row in rows]

    async def upsert(self, links: Sequence[Link]) -> int:
        return await self._links.upsert(
            [_link_to_row(link) for link in links],
            conflict_key=LINK_CONFLICT_KEY,
        )

    async def delete(self, session_id: UUID, enrollee_id: UUID) -> int:
        return await self._links.delete({"session_id": session_id, "enrollee_id": enrollee_id})

    async def delete_for_session(self, session_id: UUID) -> int:
        return await self._links.delete({"session_id": session_id})

    async def delete_for_enrollee(self, enrollee_id: UUID) -> int:
        return await self._links.delete({"enrollee_id": enrollee_id})
