# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pydantic models shared by the stores and the domain services."""

from src.models.common import AttendanceStatus, SessionKind, SessionProvenance
from src.models.enrollee import (
    AssignedSlot,
    Enrollee,
    EnrolleeCreateRequest,
    EnrolleeUpdateRequest,
)
from src.models.link import Link
from src.models.session import (
    CalendarSnapshot,
    Session,
    SessionCreateRequest,
    SessionUpdateRequest,
)

__all__ = [
    "AttendanceStatus",
    "SessionKind",
    "SessionProvenance",
    "AssignedSlot",
    "Enrollee",
    "EnrolleeCreateRequest",
    "EnrolleeUpdateRequest",
    "Link",
    "CalendarSnapshot",
    "Session",
    "SessionCreateRequest",
    "SessionUpdateRequest",
]
