"""PostgreSQL database connection and queries."""
import asyncpg
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional
import logging

from voting_services.election_api.config import settings
from voting_services.election_api.errors import InternalError
from voting_services.shared.models import Candidate, Vote, CandidateTally, VoterRecord

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS candidates (
    id SERIAL PRIMARY KEY,
    name TEXT NOT NULL,
    position INTEGER NOT NULL CHECK (position > 0),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT candidates_position_key UNIQUE (position) DEFERRABLE INITIALLY DEFERRED
);

CREATE TABLE IF NOT EXISTS votes (
    id SERIAL PRIMARY KEY,
    voter_name TEXT NOT NULL,
    candidate_id INTEGER NOT NULL REFERENCES candidates (id),
    timestamp TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS votes_voter_name_key ON votes (LOWER(voter_name));

CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""

VOTER_NAME_CONSTRAINT = "votes_voter_name_key"

# Largest value a SERIAL (int4) id column can hold
MAX_SERIAL_ID = 2**31 - 1


class DatabaseError(InternalError):
    """Storage failure (connection, query or constraint not handled upstream)."""
    pass


class DuplicateVoterError(Exception):
    """A vote already exists for this (case-insensitive) voter name."""
    pass


class CandidateInUseError(Exception):
    """Candidate is still referenced by at least one vote."""
    pass


class ElectionRepository:
    """Queries bound to a single connection inside one transaction."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    # Candidates

    async def lock_candidates(self) -> None:
        """Serialize position changes against concurrent add/remove."""
        await self.conn.execute("LOCK TABLE candidates IN SHARE ROW EXCLUSIVE MODE")

    async def list_candidates(self) -> List[Candidate]:
        rows = await self.conn.fetch(
            "SELECT id, name, position FROM candidates ORDER BY position"
        )
        return [Candidate(id=row["id"], name=row["name"], position=row["position"]) for row in rows]

    async def count_candidates(self) -> int:
        return await self.conn.fetchval("SELECT COUNT(*) FROM candidates")

    async def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        row = await self.conn.fetchrow(
            "SELECT id, name, position FROM candidates WHERE id = $1",
            candidate_id
        )
        if row:
            return Candidate(id=row["id"], name=row["name"], position=row["position"])
        return None

    async def max_position(self) -> int:
        return await self.conn.fetchval("SELECT COALESCE(MAX(position), 0) FROM candidates")

    async def insert_candidate(self, name: str, position: int) -> Candidate:
        row = await self.conn.fetchrow(
            """
                INSERT INTO candidates (name, position)
                VALUES ($1, $2)
                RETURNING id, name, position
            """,
            name, position
        )
        return Candidate(id=row["id"], name=row["name"], position=row["position"])

    async def rename_candidate(self, candidate_id: int, name: str) -> bool:
        status = await self.conn.execute(
            "UPDATE candidates SET name = $1 WHERE id = $2",
            name, candidate_id
        )
        return _affected_rows(status) > 0

    async def count_votes_for(self, candidate_id: int) -> int:
        return await self.conn.fetchval(
            "SELECT COUNT(*) FROM votes WHERE candidate_id = $1",
            candidate_id
        )

    async def delete_candidate(self, candidate_id: int) -> bool:
        """
        Delete a candidate row.

        Raises:
            CandidateInUseError: If a vote still references the candidate.
        """
        try:
            status = await self.conn.execute(
                "DELETE FROM candidates WHERE id = $1",
                candidate_id
            )
        except asyncpg.ForeignKeyViolationError as e:
            raise CandidateInUseError(str(e)) from e
        return _affected_rows(status) > 0

    async def shift_positions_after(self, position: int) -> int:
        """Close the gap left at `position`. Returns number of candidates moved."""
        status = await self.conn.execute(
            "UPDATE candidates SET position = position - 1 WHERE position > $1",
            position
        )
        return _affected_rows(status)

    # Votes

    async def find_vote(self, voter_name: str) -> Optional[int]:
        """Id of the vote cast under voter_name (case-insensitive), if any."""
        return await self.conn.fetchval(
            "SELECT id FROM votes WHERE LOWER(voter_name) = LOWER($1)",
            voter_name
        )

    async def insert_vote(self, voter_name: str, candidate_id: int) -> Vote:
        """
        Insert a vote.

        Raises:
            DuplicateVoterError: If the voter name unique index rejects the row.
        """
        try:
            row = await self.conn.fetchrow(
                """
                    INSERT INTO votes (voter_name, candidate_id, timestamp)
                    VALUES ($1, $2, NOW())
                    RETURNING id, voter_name, candidate_id, timestamp
                """,
                voter_name, candidate_id
            )
        except asyncpg.UniqueViolationError as e:
            if e.constraint_name == VOTER_NAME_CONSTRAINT:
                raise DuplicateVoterError(voter_name) from e
            raise
        return Vote(
            id=row["id"],
            voter_name=row["voter_name"],
            candidate_id=row["candidate_id"],
            timestamp=row["timestamp"]
        )

    async def tally_rows(self) -> List[CandidateTally]:
        """Vote count per candidate (zero included), ordered by position."""
        rows = await self.conn.fetch(
            """
                SELECT
                    c.id,
                    c.name,
                    c.position,
                    COUNT(v.id) AS vote_count
                FROM candidates c
                LEFT JOIN votes v ON c.id = v.candidate_id
                GROUP BY c.id, c.name, c.position
                ORDER BY c.position
            """
        )
        return [
            CandidateTally(
                id=row["id"],
                name=row["name"],
                position=row["position"],
                vote_count=row["vote_count"]
            )
            for row in rows
        ]

    async def voter_rows(self) -> List[VoterRecord]:
        rows = await self.conn.fetch(
            """
                SELECT
                    v.voter_name,
                    c.name AS candidate_name,
                    v.timestamp
                FROM votes v
                JOIN candidates c ON v.candidate_id = c.id
                ORDER BY v.timestamp DESC, v.id DESC
            """
        )
        return [
            VoterRecord(
                voter_name=row["voter_name"],
                candidate_name=row["candidate_name"],
                timestamp=row["timestamp"]
            )
            for row in rows
        ]

    async def delete_all_votes(self) -> int:
        status = await self.conn.execute("DELETE FROM votes")
        return _affected_rows(status)

    # Settings

    async def get_settings(self) -> Dict[str, str]:
        rows = await self.conn.fetch("SELECT key, value FROM settings")
        return {row["key"]: row["value"] for row in rows}

    async def set_setting(self, key: str, value: str) -> None:
        await self.conn.execute(
            """
                INSERT INTO settings (key, value, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (key)
                DO UPDATE SET
                    value = EXCLUDED.value,
                    updated_at = NOW()
            """,
            key, value
        )

    async def ensure_setting(self, key: str, default: str) -> None:
        await self.conn.execute(
            """
                INSERT INTO settings (key, value, updated_at)
                VALUES ($1, $2, NOW())
                ON CONFLICT (key) DO NOTHING
            """,
            key, default
        )


def _affected_rows(status: str) -> int:
    """Parse the row count out of a command tag such as 'DELETE 7'."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


class Database:
    """Async PostgreSQL database manager."""

    def __init__(self, dsn: Optional[str] = None):
        self.dsn = dsn or settings.postgres_dsn
        self.pool: Optional[asyncpg.Pool] = None

    async def initialize(self):
        """Initialize the connection pool and create the schema."""
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=settings.POSTGRES_POOL_MIN_SIZE,
                max_size=settings.POSTGRES_POOL_MAX_SIZE,
                command_timeout=60
            )
            logger.info("PostgreSQL connection pool initialized successfully")

            async with self.pool.acquire() as conn:
                await conn.execute(SCHEMA_SQL)
                logger.info("PostgreSQL schema verified")

        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL connection pool: {e}")
            raise

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ElectionRepository]:
        """
        Open one unit of work.

        Yields:
            ElectionRepository bound to a pooled connection inside a
            transaction; committed on clean exit, rolled back otherwise.

        Raises:
            DatabaseError: On connection or query failure.
        """
        if self.pool is None:
            raise DatabaseError("Database pool is not initialized")

        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    yield ElectionRepository(conn)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Database error: {e}")
            raise DatabaseError(str(e)) from e

    async def check_health(self) -> bool:
        """Check database connection health."""
        try:
            if not self.pool:
                return False
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
                return True
        except Exception as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return False

    async def close(self):
        """Close database connection pool."""
        try:
            if self.pool:
                await self.pool.close()
                self.pool = None
                logger.info("PostgreSQL connection pool closed successfully")
        except Exception as e:
            logger.error(f"Error closing PostgreSQL connection pool: {e}")


# Global database instance
database = Database()
