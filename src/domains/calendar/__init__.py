# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calendar domain package.

This package provides session management functionality including:
- Manual session CRUD
- Roster and attendance edits on a session
- Whole-calendar loading
"""

from src.domains.calendar.service import (
    CalendarService,
    CalendarServiceError,
    CalendarSessionNotFoundError,
    DuplicateSessionError,
)

__all__ = [
    "CalendarService",
    "CalendarServiceError",
    "CalendarSessionNotFoundError",
    "DuplicateSessionError",
]
