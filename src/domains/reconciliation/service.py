# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment/session reconciliation engine.

This module provides the ReconciliationEngine, the only component that
decides which session and link rows to write when either side of
"who attends what, when" changes:
- an enrollee's assigned slots (reconcile_on_enrollee_change)
- a session's roster or attendance (reconcile_on_session_roster_change)

The store has no multi-row transactions. Each planned write is applied
on its own; a store failure on one item is logged and recorded in the
report while the remaining items still run. Every write is preceded by a
read of the current state, which makes re-running the same invocation
safe and lets callers retry until the report comes back clean.
"""

from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from src.core.config.settings import ReconciliationSettings
from src.domains.reconciliation.keys import (
    SessionMatcher,
    diff_slots,
    link_status_from_intent,
    normalize_display_name,
    normalize_name,
    unique_names,
)
from src.domains.reconciliation.operations import (
    OperationKind,
    PendingOperation,
    ReconciliationReport,
    Trigger,
)
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.stores import EnrollmentStore, LinkTable, SessionStore
from src.models.common import AttendanceStatus, SessionKind, SessionProvenance
from src.models.enrollee import AssignedSlot, Enrollee
from src.models.link import Link
from src.models.session import Session
from src.utils.logging import bind_context, clear_context, get_logger

logger = get_logger(__name__)

Directory = dict[str, list[Enrollee]]


class ReconciliationError(Exception):
    """Raised when a reconciliation invocation cannot proceed at all."""

    pass


class InvalidSlotError(ReconciliationError):
    """Raised when an assigned slot is malformed."""

    pass


class InvalidAttendanceError(ReconciliationError):
    """Raised when an attendance map carries an unknown status."""

    pass


class InvalidEnrolleeError(ReconciliationError):
    """Raised when an enrollee has no usable name."""

    pass


class ReconciliationEngine:
    """Keeps enrollee slots, sessions and link rows consistent.

    Attributes:
        matcher: Session matching rule shared by every lookup.
        default_kind: Kind given to derived sessions when the enrollee
            declares no preference.
    """

    def __init__(
        self,
        enrollments: EnrollmentStore,
        sessions: SessionStore,
        links: LinkTable,
        settings: ReconciliationSettings | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            enrollments: Enrollee and slot store.
            sessions: Session store.
            links: Link table.
            settings: Matching key and default kind; defaults when omitted.
        """
        settings = settings or ReconciliationSettings()
        self._enrollments = enrollments
        self._sessions = sessions
        self._links = links
        self.matcher = SessionMatcher(settings.session_match_key)
        self.default_kind = SessionKind(settings.default_session_kind)

    # =========================================================================
    # Entry points
    # =========================================================================

    async def reconcile_on_enrollee_change(
        self,
        enrollee: Enrollee,
        previous_slots: Sequence[AssignedSlot | Mapping[str, Any]] | None,
        next_slots: Sequence[AssignedSlot | Mapping[str, Any]],
    ) -> ReconciliationReport:
        """Apply an enrollee's slot-list change to sessions and links.

        Args:
            enrollee: The enrollee whose slots changed.
            previous_slots: Slot list before the change; None loads the
                stored list.
            next_slots: Slot list after the change.

        Returns:
            Report of every planned operation and its outcome.

        Raises:
            InvalidSlotError: If a slot is malformed. Nothing is written.
            InvalidEnrolleeError: If the enrollee's name is blank. Nothing
                is written.
            ReconciliationError: If the slot list itself cannot be stored.
                No session or link is touched in that case.
        """
        nxt = self._validate_slots(next_slots)
        previous = self._validate_slots(previous_slots) if previous_slots is not None else None
        self._validate_enrollee(enrollee)

        bind_context(enrollee_id=str(enrollee.id))
        try:
            try:
                if previous is None:
                    previous = await self._enrollments.load_slots(enrollee.id)
                slot_writes = await self._enrollments.replace_slots(enrollee.id, nxt)
            except DatabaseError as e:
                logger.error("enrollee_slots_not_persisted", error=str(e))
                raise ReconciliationError(
                    f"Could not store slots for enrollee {enrollee.id}"
                ) from e

            enrollee = enrollee.model_copy(update={"assigned_slots": list(nxt)})
            diff = diff_slots(previous, nxt)
            report = ReconciliationReport(
                trigger=Trigger.ENROLLEE,
                subject_id=enrollee.id,
                enrollee=enrollee,
                slot_writes=slot_writes,
            )
            # Slots sharing a session with a kept slot keep their link.
            kept = {self._match_key(slot) for slot in nxt}
            report.operations.extend(
                PendingOperation(kind=OperationKind.DETACH_SLOT, slot=slot)
                for slot in diff.removed
                if self._match_key(slot) not in kept
            )
            report.operations.extend(
                PendingOperation(kind=OperationKind.ATTACH_SLOT, slot=slot)
                for slot in (*diff.added, *diff.changed)
            )

            await self._run(report)
            logger.info("enrollee_reconciled", **report.summary())
            return report
        finally:
            clear_context()

    async def reconcile_on_session_roster_change(
        self,
        session: Session,
        desired_names: Sequence[str] | None,
        attendance: Mapping[str, AttendanceStatus | str] | None = None,
    ) -> ReconciliationReport:
        """Apply a roster or attendance edit made on a session.

        Args:
            session: The edited session.
            desired_names: Full roster after the edit. None leaves the
                membership alone and only syncs attendance; an empty list
                removes every member (the session itself stays).
            attendance: Name to status. Members missing from the map are
                reset to pending.

        Returns:
            Report of every planned operation and its outcome.

        Raises:
            InvalidAttendanceError: If the map holds an unknown status.
            ReconciliationError: If the session's links cannot be loaded.
        """
        statuses = self._validate_attendance(attendance)

        bind_context(session_id=str(session.id))
        try:
            try:
                existing = await self._links.for_session(session.id)
            except DatabaseError as e:
                logger.error("session_links_not_loaded", error=str(e))
                raise ReconciliationError(
                    f"Could not load the roster of session {session.id}"
                ) from e

            if session.is_holiday:
                desired_names = []

            report = ReconciliationReport(
                trigger=Trigger.SESSION,
                subject_id=session.id,
                session=session,
            )
            await self._plan_roster(report, existing, desired_names, statuses)
            await self._run(report)
            logger.info("session_roster_reconciled", **report.summary())
            return report
        finally:
            clear_context()

    async def refresh_name_snapshots(self, enrollee: Enrollee) -> ReconciliationReport:
        """Rewrite the name snapshot on every link of a renamed enrollee.

        Raises:
            InvalidEnrolleeError: If the new name is blank.
            ReconciliationError: If the enrollee's links cannot be loaded.
        """
        self._validate_enrollee(enrollee)
        try:
            links = await self._links.for_enrollee(enrollee.id)
        except DatabaseError as e:
            raise ReconciliationError(
                f"Could not load links of enrollee {enrollee.id}"
            ) from e

        snapshot = normalize_name(enrollee.first_name, enrollee.last_name)
        report = ReconciliationReport(
            trigger=Trigger.ENROLLEE,
            subject_id=enrollee.id,
            enrollee=enrollee,
        )
        report.operations.extend(
            PendingOperation(kind=OperationKind.LINK, link=link.with_name(snapshot))
            for link in links
            if link.name_snapshot != snapshot
        )
        await self._run(report)
        if report.operations:
            logger.info("name_snapshots_refreshed", **report.summary())
        return report

    async def resume(self, report: ReconciliationReport) -> ReconciliationReport:
        """Apply again the operations of a report that failed.

        Returns:
            The same report, updated in place.
        """
        for op in report.failed:
            op.reset()
        await self._run(report)
        logger.info("reconciliation_resumed", **report.summary())
        return report

    # =========================================================================
    # Planning
    # =========================================================================

    async def _plan_roster(
        self,
        report: ReconciliationReport,
        existing: list[Link],
        desired_names: Sequence[str] | None,
        statuses: dict[str, AttendanceStatus] | None,
    ) -> None:
        session = report.session
        assert session is not None

        def target_status(name: str, current: AttendanceStatus) -> AttendanceStatus:
            if statuses is None:
                return current
            return statuses.get(name, AttendanceStatus.PENDING)

        if desired_names is None:
            kept = {link.enrollee_id for link in existing}
            link_ops: list[PendingOperation] = []
        else:
            by_name = {normalize_display_name(link.name_snapshot): link for link in existing}
            by_id = {link.enrollee_id: link for link in existing}
            kept = set()
            unmatched = []
            for name in unique_names(desired_names):
                link = by_name.get(name)
                if link is not None:
                    kept.add(link.enrollee_id)
                else:
                    unmatched.append(name)

            link_ops = []
            directory: Directory | None = None
            if unmatched:
                try:
                    directory = await self._load_directory()
                except DatabaseError as e:
                    logger.warning("enrollee_directory_unavailable", error=str(e))
                    for name in unmatched:
                        op = PendingOperation(kind=OperationKind.LINK, name=name)
                        if statuses is not None:
                            op.attendance = statuses.get(name, AttendanceStatus.PENDING)
                        op.fail(e)
                        link_ops.append(op)

            for name in unmatched if directory is not None else ():
                op = PendingOperation(kind=OperationKind.LINK, name=name)
                link_ops.append(op)
                enrollee = self._resolve(directory, name)
                if enrollee is None:
                    report.unresolved_names.append(name)
                    op.skip("no single enrollee matches this name")
                    continue
                if enrollee.id in kept:
                    op.skip("enrollee already on the roster")
                    continue

                current = by_id.get(enrollee.id)
                kept.add(enrollee.id)
                op.link = Link(
                    session_id=session.id,
                    enrollee_id=enrollee.id,
                    name_snapshot=normalize_name(enrollee.first_name, enrollee.last_name),
                    attendance=target_status(
                        name,
                        current.attendance if current else AttendanceStatus.PENDING,
                    ),
                )

        report.operations.extend(
            PendingOperation(kind=OperationKind.UNLINK, link=link)
            for link in existing
            if link.enrollee_id not in kept
        )
        report.operations.extend(link_ops)

        if statuses is not None:
            linked_by_name = {op.link.enrollee_id for op in link_ops if op.link is not None}
            for link in existing:
                if link.enrollee_id not in kept or link.enrollee_id in linked_by_name:
                    continue
                status = target_status(normalize_display_name(link.name_snapshot), link.attendance)
                if status != link.attendance:
                    report.operations.append(
                        PendingOperation(
                            kind=OperationKind.SYNC_ATTENDANCE,
                            link=link.with_attendance(status),
                            attendance=status,
                        )
                    )

    async def _load_directory(self) -> Directory:
        directory: Directory = {}
        for enrollee in await self._enrollments.list_all():
            key = normalize_name(enrollee.first_name, enrollee.last_name)
            directory.setdefault(key, []).append(enrollee)
        return directory

    def _match_key(self, slot: AssignedSlot) -> tuple:
        return tuple(sorted(self.matcher.slot_filters(slot).items()))

    def _resolve(self, directory: Directory, name: str) -> Enrollee | None:
        candidates = directory.get(name, [])
        if len(candidates) > 1:
            logger.warning("ambiguous_roster_name", name=name, matches=len(candidates))
            return None
        return candidates[0] if candidates else None

    # =========================================================================
    # Applying
    # =========================================================================

    async def _run(self, report: ReconciliationReport) -> None:
        """Apply every operation not yet done, one at a time."""
        for op in report.operations:
            if op.is_done:
                continue
            try:
                await self._apply(report, op)
            except DatabaseError as e:
                op.fail(e)
                logger.warning("reconciliation_step_failed", step=op.describe(), error=str(e))

    async def _apply(self, report: ReconciliationReport, op: PendingOperation) -> None:
        if op.kind is OperationKind.DETACH_SLOT:
            await self._detach_slot(report, op)
        elif op.kind is OperationKind.ATTACH_SLOT:
            await self._attach_slot(report, op)
        elif op.kind is OperationKind.UNLINK:
            assert op.link is not None
            op.link_writes += await self._links.delete(op.link.session_id, op.link.enrollee_id)
            op.finish()
        elif op.kind is OperationKind.LINK:
            await self._link(report, op)
        elif op.kind is OperationKind.SYNC_ATTENDANCE:
            await self._sync_attendance(op)

    async def _detach_slot(self, report: ReconciliationReport, op: PendingOperation) -> None:
        enrollee, slot = report.enrollee, op.slot
        assert enrollee is not None and slot is not None

        matches = await self._sessions.find_matching(self.matcher.slot_filters(slot))
        if not matches:
            logger.info("detach_without_session", step=op.describe())
            op.reason = "no matching session"
            op.finish()
            return

        for session in matches:
            if await self._links.get(session.id, enrollee.id) is not None:
                op.link_writes += await self._links.delete(session.id, enrollee.id)
        op.finish()

    async def _attach_slot(self, report: ReconciliationReport, op: PendingOperation) -> None:
        enrollee, slot = report.enrollee, op.slot
        assert enrollee is not None and slot is not None

        kind = enrollee.preferred_kind or self.default_kind
        session = await self._find_or_create_session(op, slot, kind)
        if session is None:
            return

        desired = Link(
            session_id=session.id,
            enrollee_id=enrollee.id,
            name_snapshot=normalize_name(enrollee.first_name, enrollee.last_name),
            attendance=link_status_from_intent(slot.attendance_intent),
        )
        op.link = desired
        op.link_writes += await self._upsert_if_changed(desired)
        op.finish()

    async def _find_or_create_session(
        self,
        op: PendingOperation,
        slot: AssignedSlot,
        kind: SessionKind,
    ) -> Session | None:
        if op.created_session_id is not None:
            session = await self._sessions.get(op.created_session_id)
            if session is not None:
                return session

        matches = await self._sessions.find_matching(self.matcher.slot_filters(slot, kind))
        open_sessions = [s for s in matches if not s.is_holiday]
        if open_sessions:
            return open_sessions[0]
        if matches:
            logger.info("attach_on_holiday_skipped", step=op.describe())
            op.skip("matching session is a holiday")
            return None

        session = await self._sessions.insert(
            {
                "date": slot.date,
                "start_time": slot.start_time,
                "end_time": slot.end_time,
                "kind": kind,
            },
            provenance=SessionProvenance.DERIVED,
        )
        op.created_session_id = session.id
        logger.info("derived_session_created", session_id=str(session.id), kind=kind.value)
        return session

    async def _link(self, report: ReconciliationReport, op: PendingOperation) -> None:
        if op.link is None:
            # Planned while the directory was unreachable; resolve now.
            session = report.session
            assert session is not None and op.name is not None
            enrollee = self._resolve(await self._load_directory(), op.name)
            if enrollee is None:
                report.unresolved_names.append(op.name)
                op.skip("no single enrollee matches this name")
                return
            current = await self._links.get(session.id, enrollee.id)
            status = op.attendance or (current.attendance if current else AttendanceStatus.PENDING)
            op.link = Link(
                session_id=session.id,
                enrollee_id=enrollee.id,
                name_snapshot=normalize_name(enrollee.first_name, enrollee.last_name),
                attendance=status,
            )

        op.link_writes += await self._upsert_if_changed(op.link)
        op.finish()

    async def _sync_attendance(self, op: PendingOperation) -> None:
        assert op.link is not None and op.attendance is not None
        current = await self._links.get(op.link.session_id, op.link.enrollee_id)
        if current is None:
            op.reason = "member left the session"
        elif current.attendance != op.attendance:
            op.link_writes += await self._links.upsert([current.with_attendance(op.attendance)])
        op.finish()

    async def _upsert_if_changed(self, desired: Link) -> int:
        current = await self._links.get(desired.session_id, desired.enrollee_id)
        if current == desired:
            return 0
        return await self._links.upsert([desired])

    # =========================================================================
    # Validation
    # =========================================================================

    @staticmethod
    def _validate_slots(
        slots: Sequence[AssignedSlot | Mapping[str, Any]],
    ) -> list[AssignedSlot]:
        validated = []
        for index, slot in enumerate(slots):
            if isinstance(slot, AssignedSlot):
                validated.append(slot)
                continue
            try:
                validated.append(AssignedSlot.model_validate(slot))
            except ValidationError as e:
                raise InvalidSlotError(f"Slot #{index} is malformed: {e}") from e
        return validated

    @staticmethod
    def _validate_enrollee(enrollee: Enrollee) -> None:
        if not normalize_name(enrollee.first_name or "", enrollee.last_name):
            raise InvalidEnrolleeError(f"Enrollee {enrollee.id} has a blank name")

    @staticmethod
    def _validate_attendance(
        attendance: Mapping[str, AttendanceStatus | str] | None,
    ) -> dict[str, AttendanceStatus] | None:
        if attendance is None:
            return None
        statuses = {}
        for name, status in attendance.items():
            try:
                statuses[normalize_display_name(name)] = AttendanceStatus(status)
            except ValueError as e:
                raise InvalidAttendanceError(
                    f"Unknown attendance status {status!r} for {name!r}"
                ) from e
        return statuses

