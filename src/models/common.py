# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enumerations shared across models."""

from enum import Enum


class AttendanceStatus(str, Enum):
    """Attendance state of one enrollee on one session.

    A missing link row is read as PENDING.
    """

    PENDING = "pending"
    PRESENT = "present"
    ABSENT = "absent"

    @property
    def is_marked(self) -> bool:
        """Whether the status carries a present/absent signal."""
        return self is not AttendanceStatus.PENDING


class SessionKind(str, Enum):
    """Kind of calendar session."""

    MESA = "mesa"
    TORNO = "torno"
    WORKSHOP = "workshop"
    PRIVADA = "privada"
    FERIADO = "feriado"


class SessionProvenance(str, Enum):
    """Who created a session.

    MANUAL sessions come from staff; DERIVED sessions are created by the
    reconciliation engine. Only an explicit user action deletes either.
    """

    MANUAL = "manual"
    DERIVED = "derived"
