# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Table definitions for the scheduling store.

Tables:
    enrollees: One row per enrollee.
    enrollee_slots: Assigned slots, unique on (enrollee_id, date, start_time, end_time).
    sessions: Calendar sessions. No roster column; rosters come from links.
    session_enrollees: Link table, primary key (session_id, enrollee_id).
"""

from sqlalchemy import (
    Column,
    Date,
    DateTime,
    ForeignKey,
    MetaData,
    PrimaryKeyConstraint,
    String,
    Table,
    Time,
    UniqueConstraint,
    Uuid,
)

metadata = MetaData()

enrollees = Table(
    "enrollees",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=True),
    Column("preferred_kind", String(20), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

enrollee_slots = Table(
    "enrollee_slots",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column(
        "enrollee_id",
        Uuid,
        ForeignKey("enrollees.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("date", Date, nullable=False),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("attendance_intent", String(20), nullable=False, default="pending"),
    UniqueConstraint("enrollee_id", "date", "start_time", "end_time", name="uq_enrollee_slot"),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("date", Date, nullable=False, index=True),
    Column("start_time", Time, nullable=False),
    Column("end_time", Time, nullable=False),
    Column("kind", String(20), nullable=False),
    Column("provenance", String(20), nullable=False, default="manual"),
    Column("teacher_id", Uuid, nullable=True),
    Column("teacher_substitute_id", Uuid, nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    Column("workshop_name", String(200), nullable=True),
    Column("private_reason", String(500), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

session_enrollees = Table(
    "session_enrollees",
    metadata,
    Column(
        "session_id",
        Uuid,
        ForeignKey("sessions.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column(
        "enrollee_id",
        Uuid,
        ForeignKey("enrollees.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("name_snapshot", String(200), nullable=False),
    Column("attendance", String(20), nullable=False, default="pending"),
    PrimaryKeyConstraint("session_id", "enrollee_id", name="pk_session_enrollee"),
)
