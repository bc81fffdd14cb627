# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Provides a file-backed SQLite database per test, reached through
aiosqlite, with the schema created.
"""

from pathlib import Path

import pytest
import pytest_asyncio

from src.core.config.settings import DatabaseSettings, Settings
from src.infrastructure.database.connection import close_database, init_database


@pytest.fixture
def sqlite_settings(tmp_path: Path) -> Settings:
    """Settings pointing at a fresh SQLite file."""
    return Settings(
        environment="development",
        database=DatabaseSettings(
            **{"DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'workshop.db'}"}
        ),
    )


@pytest_asyncio.fixture(scope="function")
async def db_engine(sqlite_settings: Settings):
    """Create the schema and yield the async engine."""
    engine = await init_database(sqlite_settings, create_schema=True)

    yield engine

    await close_database()
