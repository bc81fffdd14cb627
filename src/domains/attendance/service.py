# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance controller for per-session attendance.

This module provides the AttendanceController class for:
- Marking an enrollee present or absent on a session
- Clearing a mark back to pending
- The calendar's click-to-toggle behavior
- Finalizing a session
"""

import logging
from typing import Any
from uuid import UUID

from src.domains.reconciliation.keys import normalize_display_name
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.stores import LinkTable, SessionStore
from src.models.common import AttendanceStatus
from src.models.link import Link
from src.models.session import Session
from src.utils.datetime import format_iso, utc_now

logger = logging.getLogger(__name__)


class AttendanceError(Exception):
    """Base exception for attendance errors."""

    pass


class NotOnRosterError(AttendanceError):
    """Raised when the enrollee is not a member of the session."""

    pass


class SessionNotFoundError(AttendanceError):
    """Raised when the session to finalize does not exist."""

    pass


class AttendanceController:
    """State machine over the attendance of link rows.

    pending, present and absent are the only states. Moving between
    present and absent is a single write; there is no intermediate state.

    Attributes:
        sessions: Session store.
        links: Link table.
    """

    def __init__(self, sessions: SessionStore, links: LinkTable) -> None:
        """Initialize attendance controller.

        Args:
            sessions: Session store, used by finalize.
            links: Link table holding attendance.
        """
        self.sessions = sessions
        self.links = links

    async def set_attendance(
        self,
        session: Session,
        enrollee_name: str,
        status: AttendanceStatus | str,
        enrollee_id: UUID | None = None,
    ) -> Link:
        """Set an enrollee's attendance on a session.

        Re-asserting the current status writes nothing. Setting pending
        is the same as clearing.

        Args:
            session: Session to mark.
            enrollee_name: Roster name of the enrollee.
            status: New status.
            enrollee_id: Resolves the member by id instead of by name.

        Returns:
            The link row as stored after the call.

        Raises:
            AttendanceError: If the status is unknown or the store fails.
            NotOnRosterError: If the enrollee is not on the session.
        """
        try:
            status = AttendanceStatus(status)
        except ValueError as e:
            raise AttendanceError(f"Unknown attendance status: {status!r}") from e

        link = await self._find_member(session, enrollee_name, enrollee_id)
        if link.attendance == status:
            return link

        updated = link.with_attendance(status)
        try:
            await self.links.upsert([updated])
        except DatabaseError as e:
            raise AttendanceError(
                f"Could not store attendance of {link.name_snapshot}"
            ) from e

        logger.info(
            "Attendance changed: session=%s, enrollee=%s, %s -> %s",
            session.id,
            link.enrollee_id,
            link.attendance.value,
            status.value,
        )
        return updated

    async def clear_attendance(
        self,
        session: Session,
        enrollee_name: str,
        enrollee_id: UUID | None = None,
    ) -> Link:
        """Reset an enrollee's attendance to pending."""
        return await self.set_attendance(
            session, enrollee_name, AttendanceStatus.PENDING, enrollee_id=enrollee_id
        )

    async def toggle_attendance(
        self,
        session: Session,
        enrollee_name: str,
        status: AttendanceStatus | str,
        enrollee_id: UUID | None = None,
    ) -> Link:
        """Calendar click behavior.

        Clicking the status the enrollee already has clears it; clicking
        any other status sets it.
        """
        current = await self.get_attendance(session, enrollee_name, enrollee_id=enrollee_id)
        if current.is_marked and current.value == status:
            return await self.clear_attendance(session, enrollee_name, enrollee_id=enrollee_id)
        return await self.set_attendance(session, enrollee_name, status, enrollee_id=enrollee_id)

    async def get_attendance(
        self,
        session: Session,
        enrollee_name: str,
        enrollee_id: UUID | None = None,
    ) -> AttendanceStatus:
        """Current status; a missing link row reads as pending."""
        link = await self._lookup(session, enrollee_name, enrollee_id)
        return link.attendance if link else AttendanceStatus.PENDING

    async def finalize(
        self,
        session: Session,
        substitute_id: UUID | None = None,
    ) -> Session:
        """Mark a session complete.

        Roster and attendance are left as they are. Calling it again keeps
        the first completion stamp and stores the latest substitute given;
        a call without a substitute keeps the one already stored.

        Args:
            session: Session to finalize.
            substitute_id: Substitute teacher chosen during the session.

        Returns:
            The finalized session as stored.

        Raises:
            SessionNotFoundError: If the session no longer exists.
            AttendanceError: If the store fails.
        """
        try:
            stored = await self.sessions.get(session.id)
            if stored is None:
                raise SessionNotFoundError(f"Session {session.id} not found")

            patch: dict[str, Any] = {}
            if substitute_id is not None:
                patch["teacher_substitute_id"] = substitute_id
            if stored.completed_at is None:
                patch["completed_at"] = utc_now()
            if patch:
                await self.sessions.update(session.id, patch)
        except DatabaseError as e:
            raise AttendanceError(f"Could not finalize session {session.id}") from e

        finalized = stored.model_copy(update=patch)
        logger.info(
            "Finalized session: session=%s, completed_at=%s, substitute=%s",
            session.id,
            format_iso(finalized.completed_at),
            finalized.teacher_substitute_id,
        )
        return finalized

    async def _lookup(
        self,
        session: Session,
        enrollee_name: str,
        enrollee_id: UUID | None,
    ) -> Link | None:
        try:
            if enrollee_id is not None:
                return await self.links.get(session.id, enrollee_id)
            wanted = normalize_display_name(enrollee_name)
            for link in await self.links.for_session(session.id):
                if normalize_display_name(link.name_snapshot) == wanted:
                    return link
        except DatabaseError as e:
            raise AttendanceError(f"Could not read the roster of session {session.id}") from e
        return None

    async def _find_member(
        self,
        session: Session,
        enrollee_name: str,
        enrollee_id: UUID | None,
    ) -> Link:
        link = await self._lookup(session, enrollee_name, enrollee_id)
        if link is None:
            raise NotOnRosterError(
                f"{enrollee_name!r} is not on the roster of session {session.id}"
            )
        return link
