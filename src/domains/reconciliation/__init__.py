# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reconciliation domain package.

This package keeps enrollee slots and session rosters consistent:
- Slot-list changes attach and detach the enrollee on matching sessions
- Roster edits on a session link and unlink enrollees by name
- Every run returns a report that can be resumed after partial failure
"""

from src.domains.reconciliation.keys import (
    SessionMatcher,
    SlotDiff,
    diff_slots,
    normalize_display_name,
    normalize_name,
)
from src.domains.reconciliation.operations import (
    OperationKind,
    OperationStatus,
    PendingOperation,
    ReconciliationReport,
    Trigger,
)
from src.domains.reconciliation.service import (
    InvalidAttendanceError,
    InvalidEnrolleeError,
    InvalidSlotError,
    ReconciliationEngine,
    ReconciliationError,
)

__all__ = [
    "ReconciliationEngine",
    "ReconciliationError",
    "InvalidSlotError",
    "InvalidAttendanceError",
    "InvalidEnrolleeError",
    "ReconciliationReport",
    "PendingOperation",
    "OperationKind",
    "OperationStatus",
    "Trigger",
    "SessionMatcher",
    "SlotDiff",
    "diff_slots",
    "normalize_display_name",
    "normalize_name",
]
