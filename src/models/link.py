# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Session/enrollee link model."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.models.common import AttendanceStatus


class Link(BaseModel):
    """Join row between one session and one enrollee.

    Unique on (session_id, enrollee_id). ``name_snapshot`` caches the
    enrollee's normalized display name and is what rosters show.
    """

    model_config = ConfigDict(frozen=True)

    session_id: UUID
    enrollee_id: UUID
    name_snapshot: str = Field(min_length=1)
    attendance: AttendanceStatus = AttendanceStatus.PENDING

    def with_attendance(self, status: AttendanceStatus) -> "Link":
        """Return a copy carrying another attendance status."""
        return self.model_copy(update={"attendance": status})

    def with_name(self, name_snapshot: str) -> "Link":
        """Return a copy carrying another name snapshot."""
        return self.model_copy(update={"name_snapshot": name_snapshot})
