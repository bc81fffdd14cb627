# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the scheduling store.

This package provides:
- Async engine lifecycle (PostgreSQL via asyncpg, SQLite via aiosqlite)
- Table definitions
- The Repository protocol and its SQLAlchemy implementation
- Enrollment store, session store and link table

Example:
    from src.infrastructure.database import (
        SQLAlchemyRepository,
        LinkTable,
        init_database,
        tables,
    )

    engine = await init_database(settings)
    links = LinkTable(SQLAlchemyRepository(engine, tables.session_enrollees))
"""

from src.infrastructure.database import tables
from src.infrastructure.database.connection import (
    DatabaseError,
    check_database_connection,
    close_database,
    get_engine,
    init_database,
)
from src.infrastructure.database.repository import Repository, SQLAlchemyRepository
from src.infrastructure.database.stores import (
    EnrollmentStore,
    LinkTable,
    SessionStore,
    compose_session,
)

__all__ = [
    "tables",
    # Connection
    "DatabaseError",
    "check_database_connection",
    "close_database",
    "get_engine",
    "init_database",
    # Repositories
    "Repository",
    "SQLAlchemyRepository",
    # Stores
    "EnrollmentStore",
    "LinkTable",
    "SessionStore",
    "compose_session",
]
