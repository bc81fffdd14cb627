# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

This module owns the process-wide async engine for the scheduling store.
Uses SQLAlchemy 2.0 async API with the asyncpg driver in deployments and
aiosqlite in tests.

Example:
    from src.infrastructure.database.connection import (
        init_database,
        get_engine,
    )

    # Initialize at application startup
    await init_database(settings)

    engine = get_engine()
"""

from typing import TYPE_CHECKING, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from src.infrastructure.database.tables import metadata

if TYPE_CHECKING:
    from src.core.config.settings import Settings

# Module-level state for the database connection
_engine: Optional[AsyncEngine] = None


class DatabaseError(Exception):
    """Base exception for database operations.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying SQLAlchemy or database error.
    """

    def __init__(self, message: str, original_error: Optional[Exception] = None) -> None:
        """Initialize the database error.

        Args:
            message: Human-readable error description.
            original_error: The underlying exception that caused this error.
        """
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


def create_engine(settings: "Settings") -> AsyncEngine:
    """Create an async engine for the configured database.

    SQLite engines get no pool sizing since aiosqlite uses a static pool.

    Args:
        settings: Application settings containing database configuration.

    Returns:
        A new SQLAlchemy async engine.
    """
    if settings.database.is_sqlite:
        return create_async_engine(settings.database.url, echo=False)

    return create_async_engine(
        settings.database.url,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        echo=False,
    )


async def init_database(settings: "Settings", create_schema: bool = False) -> AsyncEngine:
    """Initialize the database engine.

    This should be called once at application startup.

    Args:
        settings: Application settings containing database configuration.
        create_schema: Create missing tables (used for SQLite and tests).

    Returns:
        The initialized engine.

    Raises:
        DatabaseError: If engine creation or schema creation fails.
    """
    global _engine

    try:
        _engine = create_engine(settings)
        if create_schema:
            async with _engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
    except SQLAlchemyError as e:
        raise DatabaseError("Failed to initialize database connection", e) from e

    return _engine


async def close_database() -> None:
    """Dispose of the database engine and its connection pool."""
    global _engine

    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_engine() -> AsyncEngine:
    """Get the database async engine.

    Returns:
        The SQLAlchemy async engine.

    Raises:
        DatabaseError: If the database has not been initialized.
    """
    if _engine is None:
        raise DatabaseError("Database not initialized. Call init_database() first.")
    return _engine


async def check_database_connection() -> bool:
    """Check if the database is reachable.

    Returns:
        True if the database is reachable, False otherwise.
    """
    if _engine is None:
        return False

    try:
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        return False
