# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment domain package.

This package provides enrollee management functionality including:
- Enrollee creation, update and deletion
- Slot-list changes reconciled onto the calendar
"""

from src.domains.enrollment.service import (
    EnrolleeNotFoundError,
    EnrollmentService,
    EnrollmentServiceError,
)

__all__ = [
    "EnrollmentService",
    "EnrollmentServiceError",
    "EnrolleeNotFoundError",
]
