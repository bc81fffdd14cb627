# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for the workshop scheduler.

This package contains domain services that encapsulate business logic.
Each domain module provides services that orchestrate operations
across the enrollment, session and link stores.

Domains:
    reconciliation: Keeps enrollee slots and session rosters consistent.
    attendance: Per-session attendance state and session finalization.
    enrollment: Enrollee CRUD routed through the reconciliation engine.
    calendar: Session CRUD and calendar snapshots.
"""
