# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calendar service for managing sessions.

This module provides the CalendarService class for:
- Manual session creation, update and deletion
- Roster and attendance edits made on a session
- Loading the whole calendar in one pass
"""

import asyncio
import logging
from uuid import UUID

from src.domains.reconciliation.keys import SessionMatcher
from src.domains.reconciliation.operations import ReconciliationReport
from src.domains.reconciliation.service import ReconciliationEngine
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.stores import (
    EnrollmentStore,
    LinkTable,
    SessionStore,
    compose_session,
)
from src.models.common import SessionProvenance
from src.models.link import Link
from src.models.session import (
    CalendarSnapshot,
    Session,
    SessionCreateRequest,
    SessionUpdateRequest,
)

logger = logging.getLogger(__name__)


class CalendarServiceError(Exception):
    """Base exception for calendar service errors."""

    pass


class CalendarSessionNotFoundError(CalendarServiceError):
    """Raised when session is not found."""

    pass


class DuplicateSessionError(CalendarServiceError):
    """Raised when a session already occupies the same slot."""

    pass


class CalendarService:
    """Service for managing calendar sessions.

    Attributes:
        enrollments: Enrollee and slot store.
        sessions: Session store.
        links: Link table.
        engine: Reconciliation engine.
    """

    def __init__(
        self,
        enrollments: EnrollmentStore,
        sessions: SessionStore,
        links: LinkTable,
        engine: ReconciliationEngine,
    ) -> None:
        """Initialize calendar service.

        Args:
            enrollments: Enrollee and slot store.
            sessions: Session store.
            links: Link table.
            engine: Reconciliation engine; its matcher also guards against
                duplicate manual sessions.
        """
        self.enrollments = enrollments
        self.sessions = sessions
        self.links = links
        self.engine = engine

    @property
    def matcher(self) -> SessionMatcher:
        return self.engine.matcher

    async def create_session(
        self,
        request: SessionCreateRequest,
    ) -> tuple[Session, ReconciliationReport | None]:
        """Create a manual session.

        Args:
            request: Session data, optionally with an initial roster.

        Returns:
            Tuple of (created session with its roster, report of the
            roster run or None when no roster was given).

        Raises:
            DuplicateSessionError: If a session already matches the slot.
            CalendarServiceError: If the session row cannot be stored.
        """
        filters = self.matcher.session_filters(
            request.date, request.start_time, request.end_time, request.kind
        )
        try:
            if await self.sessions.find_matching(filters):
                raise DuplicateSessionError(
                    f"A session already exists on {request.date} at {request.start_time}"
                )
            session = await self.sessions.insert(
                request.row_fields(), provenance=SessionProvenance.MANUAL
            )
        except DatabaseError as e:
            raise CalendarServiceError("Could not create session") from e

        report = None
        if request.roster or request.attendance:
            report = await self.engine.reconcile_on_session_roster_change(
                session, request.roster, request.attendance
            )

        logger.info(
            "Created session: id=%s, date=%s, kind=%s, roster=%d",
            session.id,
            session.date,
            session.kind.value,
            len(request.roster),
        )

        return await self._compose(session), report

    async def update_session(
        self,
        session_id: UUID,
        request: SessionUpdateRequest,
    ) -> tuple[Session, ReconciliationReport | None]:
        """Update a session.

        A roster replaces the membership; an attendance map without a
        roster only syncs attendance. Turning a session into a holiday
        empties its roster.

        Args:
            session_id: Session identifier.
            request: Fields to change.

        Returns:
            Tuple of (updated session, report of the roster run or None).

        Raises:
            CalendarSessionNotFoundError: If session not found.
            CalendarServiceError: If the session row cannot be stored.
        """
        stored = await self._get_session(session_id)

        patch = request.row_patch()
        updated = Session.model_validate({**stored.model_dump(), **patch})
        if updated.start_time >= updated.end_time:
            raise CalendarServiceError("Session start time must be before its end time")

        if patch:
            try:
                await self.sessions.update(session_id, patch)
            except DatabaseError as e:
                raise CalendarServiceError(f"Could not update session {session_id}") from e

        report = None
        became_holiday = updated.is_holiday and not stored.is_holiday
        if request.roster is not None or request.attendance is not None or became_holiday:
            report = await self.engine.reconcile_on_session_roster_change(
                updated, request.roster, request.attendance
            )

        logger.info(
            "Updated session: id=%s, fields=%s, roster_run=%s",
            session_id,
            sorted(patch),
            report is not None,
        )

        return await self._compose(updated), report

    async def delete_session(self, session_id: UUID) -> None:
        """Delete a session and its link rows.

        Raises:
            CalendarSessionNotFoundError: If session not found.
            CalendarServiceError: If the store fails.
        """
        await self._get_session(session_id)

        try:
            removed = await self.links.delete_for_session(session_id)
            await self.sessions.delete(session_id)
        except DatabaseError as e:
            raise CalendarServiceError(f"Could not delete session {session_id}") from e

        logger.info("Deleted session: id=%s, links=%d", session_id, removed)

    async def get_session(self, session_id: UUID) -> Session:
        """Get session by ID with its roster and attendance.

        Raises:
            CalendarSessionNotFoundError: If session not found.
        """
        session = await self._get_session(session_id)
        return await self._compose(session)

    async def load_calendar(self) -> CalendarSnapshot:
        """Load enrollees, sessions and link rows concurrently and join them."""
        try:
            enrollees, sessions, links = await asyncio.gather(
                self.enrollments.list_all(),
                self.sessions.list_all(),
                self.links.list_all(),
            )
        except DatabaseError as e:
            raise CalendarServiceError("Could not load the calendar") from e

        by_session: dict[UUID, list[Link]] = {}
        for link in links:
            by_session.setdefault(link.session_id, []).append(link)

        return CalendarSnapshot(
            enrollees=enrollees,
            sessions=[
                compose_session(session, by_session.get(session.id, []))
                for session in sessions
            ],
        )

    async def _get_session(self, session_id: UUID) -> Session:
        try:
            session = await self.sessions.get(session_id)
        except DatabaseError as e:
            raise CalendarServiceError(f"Could not load session {session_id}") from e

        if not session:
            raise CalendarSessionNotFoundError(f"Session {session_id} not found")

        return session

    async def _compose(self, session: Session) -> Session:
        try:
            links = await self.links.for_session(session.id)
        except DatabaseError as e:
            raise CalendarServiceError(f"Could not load the roster of session {session.id}") from e
        return compose_session(session, links)
