# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pending-operation arena for reconciliation runs.

A run first plans every write it intends as a PendingOperation, then
applies them one at a time. Each operation re-reads the state it touches
before writing, so applying it twice converges instead of double-writing.
Failed operations stay in the report and can be resumed.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from src.models.common import AttendanceStatus
from src.models.enrollee import AssignedSlot, Enrollee
from src.models.link import Link
from src.models.session import Session


class OperationKind(str, Enum):
    """What a pending operation does."""

    DETACH_SLOT = "detach_slot"
    ATTACH_SLOT = "attach_slot"
    UNLINK = "unlink"
    LINK = "link"
    SYNC_ATTENDANCE = "sync_attendance"


class OperationStatus(str, Enum):
    """Outcome of a pending operation."""

    PENDING = "pending"
    APPLIED = "applied"
    NOOP = "noop"
    SKIPPED = "skipped"
    FAILED = "failed"


class Trigger(str, Enum):
    """Which entry point produced a report."""

    ENROLLEE = "enrollee"
    SESSION = "session"


@dataclass
class PendingOperation:
    """One independently applied step of a reconciliation run.

    Attributes:
        kind: Operation kind.
        slot: Slot for DETACH_SLOT/ATTACH_SLOT.
        link: Desired (LINK, SYNC_ATTENDANCE) or existing (UNLINK) link row.
        name: Normalized roster name for LINK operations.
        attendance: Target status for SYNC_ATTENDANCE, or the status a
            LINK operation resolved later should carry.
        status: Current outcome.
        link_writes: Link rows written or deleted.
        created_session_id: Session created while applying.
        reason: Why the operation was a no-op or skipped.
        error: Failure message.
    """

    kind: OperationKind
    slot: AssignedSlot | None = None
    link: Link | None = None
    name: str | None = None
    attendance: AttendanceStatus | None = None
    status: OperationStatus = OperationStatus.PENDING
    link_writes: int = 0
    created_session_id: UUID | None = None
    reason: str | None = None
    error: str | None = None

    @property
    def is_done(self) -> bool:
        return self.status in (
            OperationStatus.APPLIED,
            OperationStatus.NOOP,
            OperationStatus.SKIPPED,
        )

    @property
    def writes(self) -> int:
        return self.link_writes + (1 if self.created_session_id else 0)

    def describe(self) -> str:
        """Short label for logs."""
        if self.slot is not None:
            return f"{self.kind.value} {self.slot.date} {self.slot.start_time}-{self.slot.end_time}"
        if self.name is not None:
            return f"{self.kind.value} {self.name}"
        if self.link is not None:
            return f"{self.kind.value} {self.link.name_snapshot}"
        return self.kind.value

    def finish(self) -> None:
        """Mark as applied, or as a no-op when nothing was written."""
        self.status = OperationStatus.APPLIED if self.writes else OperationStatus.NOOP
        self.error = None

    def skip(self, reason: str) -> None:
        self.status = OperationStatus.SKIPPED
        self.reason = reason

    def fail(self, error: Exception | str) -> None:
        self.status = OperationStatus.FAILED
        self.error = str(error)

    def reset(self) -> None:
        """Prepare a failed operation to be applied again."""
        self.status = OperationStatus.PENDING
        self.error = None


@dataclass
class ReconciliationReport:
    """Everything a reconciliation run planned and what became of it.

    Attributes:
        trigger: Entry point that produced the report.
        subject_id: Enrollee or session id the run was about.
        enrollee: Enrollee context for slot operations.
        session: Session context for roster operations.
        operations: The arena, in application order.
        slot_writes: Rows written while persisting the enrollee's slot list.
        unresolved_names: Roster names that matched no single enrollee.
    """

    trigger: Trigger
    subject_id: UUID
    enrollee: Enrollee | None = None
    session: Session | None = None
    operations: list[PendingOperation] = field(default_factory=list)
    slot_writes: int = 0
    unresolved_names: list[str] = field(default_factory=list)

    @property
    def failed(self) -> list[PendingOperation]:
        return [op for op in self.operations if op.status is OperationStatus.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    @property
    def sessions_created(self) -> list[UUID]:
        return [op.created_session_id for op in self.operations if op.created_session_id]

    @property
    def links_deleted(self) -> int:
        return sum(
            op.link_writes
            for op in self.operations
            if op.kind in (OperationKind.DETACH_SLOT, OperationKind.UNLINK)
        )

    @property
    def links_upserted(self) -> int:
        return sum(
            op.link_writes
            for op in self.operations
            if op.kind not in (OperationKind.DETACH_SLOT, OperationKind.UNLINK)
        )

    @property
    def writes(self) -> int:
        """All store writes issued by the run."""
        return self.slot_writes + sum(op.writes for op in self.operations)

    def summary(self) -> dict[str, object]:
        """Counters for logging."""
        return {
            "trigger": self.trigger.value,
            "subject_id": str(self.subject_id),
            "operations": len(self.operations),
            "sessions_created": len(self.sessions_created),
            "links_upserted": self.links_upserted,
            "links_deleted": self.links_deleted,
            "unresolved_names": len(self.unresolved_names),
            "failed": len(self.failed),
        }
