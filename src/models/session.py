# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calendar session models.

A session's roster and attendance are never stored on the session row;
they are derived from its link rows every time a session is read.
"""

import datetime as dt
from typing import Any, Self
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from src.models.common import AttendanceStatus, SessionKind, SessionProvenance
from src.models.enrollee import Enrollee


class Session(BaseModel):
    """A time-boxed calendar session.

    Attributes:
        id: Session identifier.
        date: Calendar date.
        start_time: Start time.
        end_time: End time.
        kind: Session kind.
        provenance: Manual (staff) or derived (reconciliation engine).
        roster: Name snapshots of the session's link rows, in link order.
        attendance: Name snapshot to present/absent for marked links.
        teacher_id: Assigned teacher.
        teacher_substitute_id: Substitute chosen when the session was finalized.
        completed_at: Completion stamp set by finalization.
        workshop_name: Workshop title, for workshop sessions.
        private_reason: Reason, for private sessions.
    """

    id: UUID
    date: dt.date
    start_time: dt.time
    end_time: dt.time
    kind: SessionKind
    provenance: SessionProvenance = SessionProvenance.MANUAL
    roster: list[str] = Field(default_factory=list)
    attendance: dict[str, AttendanceStatus] = Field(default_factory=dict)
    teacher_id: UUID | None = None
    teacher_substitute_id: UUID | None = None
    completed_at: dt.datetime | None = None
    workshop_name: str | None = None
    private_reason: str | None = None

    @property
    def is_completed(self) -> bool:
        """Whether the session has been finalized."""
        return self.completed_at is not None

    @property
    def is_holiday(self) -> bool:
        """Holiday sessions close the workshop and carry no roster."""
        return self.kind is SessionKind.FERIADO


class SessionCreateRequest(BaseModel):
    """Request to create a manual session."""

    date: dt.date
    start_time: dt.time
    end_time: dt.time
    kind: SessionKind
    teacher_id: UUID | None = None
    workshop_name: str | None = None
    private_reason: str | None = None
    roster: list[str] = Field(default_factory=list)
    attendance: dict[str, AttendanceStatus] | None = None

    @model_validator(mode="after")
    def check_time_span(self) -> Self:
        """Start must come before end."""
        if self.start_time >= self.end_time:
            raise ValueError("Session start time must be before its end time")
        return self

    def row_fields(self) -> dict[str, Any]:
        """Columns of the session row this request sets."""
        return self.model_dump(exclude={"roster", "attendance"})


class SessionUpdateRequest(BaseModel):
    """Partial update of a session.

    ``roster`` replaces the membership when given; ``attendance`` alone
    only syncs attendance over the current members.
    """

    date: dt.date | None = None
    start_time: dt.time | None = None
    end_time: dt.time | None = None
    kind: SessionKind | None = None
    teacher_id: UUID | None = None
    workshop_name: str | None = None
    private_reason: str | None = None
    roster: list[str] | None = None
    attendance: dict[str, AttendanceStatus] | None = None

    @model_validator(mode="after")
    def check_time_span(self) -> Self:
        """Start must come before end when both are given."""
        if self.start_time and self.end_time and self.start_time >= self.end_time:
            raise ValueError("Session start time must be before its end time")
        return self

    def row_patch(self) -> dict[str, Any]:
        """Columns of the session row this request changes.

        Explicit nulls on the span and kind are ignored; those columns
        cannot be cleared.
        """
        patch = self.model_dump(exclude={"roster", "attendance"}, exclude_unset=True)
        return {
            name: value
            for name, value in patch.items()
            if value is not None or name not in ("date", "start_time", "end_time", "kind")
        }


class CalendarSnapshot(BaseModel):
    """Everything the calendar views read, joined in one pass."""

    enrollees: list[Enrollee] = Field(default_factory=list)
    sessions: list[Session] = Field(default_factory=list)

    def sessions_on(self, day: dt.date) -> list[Session]:
        """Sessions of one day ordered by start time."""
        return sorted(
            (s for s in self.sessions if s.date == day),
            key=lambda s: s.start_time,
        )
