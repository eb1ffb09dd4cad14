"""Pytest fixtures for integration tests.

This module provides fixtures that run the election service against a real
PostgreSQL (the docker-compose database, or any server reachable through the
POSTGRES_* environment variables). Tests are skipped when it is unreachable.
"""

import os
from typing import AsyncGenerator

import asyncpg
import pytest

from voting_services.election_api.database import Database
from voting_services.election_api.service import ElectionService


def postgres_dsn() -> str:
    return "postgresql://{user}:{password}@{host}:{port}/{db}".format(
        user=os.getenv("POSTGRES_USER", "voting_user"),
        password=os.getenv("POSTGRES_PASSWORD", "voting_pass"),
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=os.getenv("POSTGRES_PORT", "5432"),
        db=os.getenv("POSTGRES_DB", "voting_system")
    )


@pytest.fixture
async def pg_database() -> AsyncGenerator[Database, None]:
    """Connected Database with empty tables.

    Creates the schema on first use and truncates every table before the
    test, so each test starts from an empty election.
    """
    database = Database(postgres_dsn())
    try:
        await database.initialize()
    except (OSError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        pytest.skip(f"PostgreSQL not available: {e}")

    async with database.pool.acquire() as conn:
        await conn.execute("TRUNCATE votes, candidates, settings RESTART IDENTITY CASCADE")

    yield database

    await database.close()


@pytest.fixture
async def pg_service(pg_database: Database) -> ElectionService:
    """Election service seeded with the four default candidates."""
    service = ElectionService(pg_database)
    await service.initialize_defaults(["Alice Johnson", "Bob Smith", "Carol Wilson", "David Brown"])
    return service
