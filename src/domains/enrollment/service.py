# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Enrollment service for managing enrollees and their slots.

This module provides the EnrollmentService class for:
- Enrollee creation, update and deletion
- Routing every slot-list change through the reconciliation engine
"""

import logging
from uuid import UUID

from src.domains.reconciliation.operations import ReconciliationReport
from src.domains.reconciliation.service import ReconciliationEngine
from src.infrastructure.database.connection import DatabaseError
from src.infrastructure.database.stores import EnrollmentStore, LinkTable
from src.models.enrollee import Enrollee, EnrolleeCreateRequest, EnrolleeUpdateRequest

logger = logging.getLogger(__name__)


class EnrollmentServiceError(Exception):
    """Base exception for enrollment service errors."""

    pass


class EnrolleeNotFoundError(EnrollmentServiceError):
    """Raised when enrollee is not found."""

    pass


class EnrollmentService:
    """Service for managing enrollees.

    Enrollee rows are written here; sessions and link rows only ever
    change through the reconciliation engine.

    Attributes:
        enrollments: Enrollee and slot store.
        links: Link table.
        engine: Reconciliation engine.
    """

    def __init__(
        self,
        enrollments: EnrollmentStore,
        links: LinkTable,
        engine: ReconciliationEngine,
    ) -> None:
        """Initialize enrollment service.

        Args:
            enrollments: Enrollee and slot store.
            links: Link table.
            engine: Reconciliation engine.
        """
        self.enrollments = enrollments
        self.links = links
        self.engine = engine

    async def create_enrollee(
        self,
        request: EnrolleeCreateRequest,
    ) -> tuple[Enrollee, ReconciliationReport]:
        """Create an enrollee and place them on the sessions of their slots.

        Args:
            request: Enrollee data.

        Returns:
            Tuple of (created enrollee, reconciliation report).

        Raises:
            EnrollmentServiceError: If the enrollee row cannot be stored.
            ReconciliationError: If the slot list cannot be stored.
        """
        try:
            enrollee = await self.enrollments.insert(
                request.first_name,
                request.last_name,
                request.preferred_kind,
            )
        except DatabaseError as e:
            raise EnrollmentServiceError("Could not create enrollee") from e

        report = await self.engine.reconcile_on_enrollee_change(
            enrollee, [], request.assigned_slots
        )

        logger.info(
            "Created enrollee: id=%s, slots=%d, failed_steps=%d",
            enrollee.id,
            len(request.assigned_slots),
            len(report.failed),
        )

        return report.enrollee or enrollee, report

    async def update_enrollee(
        self,
        enrollee_id: UUID,
        request: EnrolleeUpdateRequest,
    ) -> tuple[Enrollee, list[ReconciliationReport]]:
        """Update an enrollee.

        A name change refreshes the name snapshot on the enrollee's link
        rows. A supplied slot list is reconciled against the stored one.

        Args:
            enrollee_id: Enrollee identifier.
            request: Fields to change.

        Returns:
            Tuple of (updated enrollee, reports of the runs triggered).

        Raises:
            EnrolleeNotFoundError: If enrollee not found.
            EnrollmentServiceError: If the enrollee row cannot be stored.
        """
        current = await self._get_enrollee(enrollee_id)

        patch = request.profile_patch()
        if patch.get("first_name", "") is None:
            raise EnrollmentServiceError("first_name cannot be cleared")
        if patch:
            try:
                await self.enrollments.update(enrollee_id, patch)
            except DatabaseError as e:
                raise EnrollmentServiceError(f"Could not update enrollee {enrollee_id}") from e

        updated = Enrollee.model_validate({**current.model_dump(), **patch})

        reports = []
        if (updated.first_name, updated.last_name) != (current.first_name, current.last_name):
            reports.append(await self.engine.refresh_name_snapshots(updated))

        if request.assigned_slots is not None:
            report = await self.engine.reconcile_on_enrollee_change(
                updated, current.assigned_slots, request.assigned_slots
            )
            reports.append(report)
            updated = report.enrollee or updated

        logger.info(
            "Updated enrollee: id=%s, fields=%s, runs=%d",
            enrollee_id,
            sorted(patch),
            len(reports),
        )

        return updated, reports

    async def delete_enrollee(self, enrollee_id: UUID) -> ReconciliationReport:
        """Delete an enrollee after detaching them from every session.

        Sessions themselves are kept, even when left without members.

        Args:
            enrollee_id: Enrollee identifier.

        Returns:
            Report of the detach run.

        Raises:
            EnrolleeNotFoundError: If enrollee not found.
            EnrollmentServiceError: If a step fails; the enrollee is kept
                so the deletion can be retried.
        """
        enrollee = await self._get_enrollee(enrollee_id)

        report = await self.engine.reconcile_on_enrollee_change(
            enrollee, enrollee.assigned_slots, []
        )
        if not report.succeeded:
            raise EnrollmentServiceError(
                f"Could not detach enrollee {enrollee_id} from "
                f"{len(report.failed)} session(s)"
            )

        try:
            # Links on sessions that no longer match any slot.
            await self.links.delete_for_enrollee(enrollee_id)
            await self.enrollments.delete(enrollee_id)
        except DatabaseError as e:
            raise EnrollmentServiceError(f"Could not delete enrollee {enrollee_id}") from e

        logger.info("Deleted enrollee: id=%s", enrollee_id)

        return report

    async def get_enrollee(self, enrollee_id: UUID) -> Enrollee:
        """Get enrollee by ID.

        Raises:
            EnrolleeNotFoundError: If enrollee not found.
        """
        return await self._get_enrollee(enrollee_id)

    async def list_enrollees(self) -> list[Enrollee]:
        """List all enrollees with their slots, ordered by name."""
        try:
            return await self.enrollments.list_all()
        except DatabaseError as e:
            raise EnrollmentServiceError("Could not list enrollees") from e

    async def _get_enrollee(self, enrollee_id: UUID) -> Enrollee:
        try:
            enrollee = await self.enrollments.get(enrollee_id)
        except DatabaseError as e:
            raise EnrollmentServiceError(f"Could not load enrollee {enrollee_id}") from e

        if not enrollee:
            raise EnrolleeNotFoundError(f"Enrollee {enrollee_id} not found")

        return enrollee
