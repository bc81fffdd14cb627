# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Attendance domain package.

This package provides per-session attendance functionality including:
- Setting and clearing attendance marks
- Session finalization
"""

from src.domains.attendance.service import (
    AttendanceController,
    AttendanceError,
    NotOnRosterError,
    SessionNotFoundError,
)

__all__ = [
    "AttendanceController",
    "AttendanceError",
    "NotOnRosterError",
    "SessionNotFoundError",
]
