# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Service wiring for the workshop scheduler.

Builds the stores, the reconciliation engine and the services on top of
one database engine, and tears them down again.

Example:
    async with open_services() as services:
        enrollee, report = await services.enrollment.create_enrollee(request)
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine

from src.core.config import Settings, get_settings
from src.domains.attendance import AttendanceController
from src.domains.calendar import CalendarService
from src.domains.enrollment import EnrollmentService
from src.domains.reconciliation import ReconciliationEngine
from src.infrastructure.database import (
    EnrollmentStore,
    LinkTable,
    SessionStore,
    SQLAlchemyRepository,
    close_database,
    init_database,
    tables,
)
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Everything a caller needs to drive the scheduler.

    Attributes:
        engine: Reconciliation engine.
        attendance: Attendance controller.
        enrollment: Enrollee service.
        calendar: Session service.
        database: Underlying async database engine.
    """

    engine: ReconciliationEngine
    attendance: AttendanceController
    enrollment: EnrollmentService
    calendar: CalendarService
    database: AsyncEngine


def build_services(database: AsyncEngine, settings: Settings) -> Services:
    """Wire stores and services over an initialized database engine."""
    timeout = settings.database.statement_timeout

    def repository(table):
        return SQLAlchemyRepository(database, table, timeout=timeout)

    enrollments = EnrollmentStore(
        repository(tables.enrollees),
        repository(tables.enrollee_slots),
    )
    sessions = SessionStore(repository(tables.sessions))
    links = LinkTable(repository(tables.session_enrollees))

    engine = ReconciliationEngine(enrollments, sessions, links, settings.reconciliation)
    return Services(
        engine=engine,
        attendance=AttendanceController(sessions, links),
        enrollment=EnrollmentService(enrollments, links, engine),
        calendar=CalendarService(enrollments, sessions, links, engine),
        database=database,
    )


@asynccontextmanager
async def open_services(
    settings: Settings | None = None,
    create_schema: bool = False,
) -> AsyncIterator[Services]:
    """Configure logging, open the database and yield wired services.

    Args:
        settings: Settings to use; the cached singleton when omitted.
        create_schema: Create missing tables on startup.

    Yields:
        Wired services, valid until the context exits.
    """
    settings = settings or get_settings()
    setup_logging(settings)

    database = await init_database(settings, create_schema=create_schema)
    logger.info(
        "Workshop scheduler started: environment=%s, match_key=%s",
        settings.environment,
        settings.reconciliation.session_match_key,
    )

    try:
        yield build_services(database, settings)
    finally:
        await close_database()
        logger.info("Workshop scheduler stopped")
