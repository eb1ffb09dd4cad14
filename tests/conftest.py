"""Pytest fixtures shared by the unit, API and UI tests.

The election service, API and UI run against InMemoryDatabase, a test double
implementing the same transaction/repository contract as the PostgreSQL store
(including the voter-name unique index and the candidate foreign key).
Tests against a real PostgreSQL live in tests/integration.
"""

import copy
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from voting_services.election_api.auth import create_access_token
from voting_services.election_api.database import (
    CandidateInUseError,
    DatabaseError,
    DuplicateVoterError,
    MAX_SERIAL_ID,
)
from voting_services.election_api.main import app as api_app, get_service, limiter
from voting_services.election_api.service import ElectionService
from voting_services.shared.models import Candidate, CandidateTally, Vote, VoterRecord
from voting_ui.api_client import ElectionApiClient
from voting_ui.app import create_app

DEFAULT_CANDIDATES = ["Alice Johnson", "Bob Smith", "Carol Wilson", "David Brown"]


def int4(value: int) -> int:
    """Reject ids the int4 id columns cannot hold, as asyncpg does when encoding."""
    if not -MAX_SERIAL_ID - 1 <= value <= MAX_SERIAL_ID:
        raise DatabaseError(f"invalid input for query argument: {value} (value out of int32 range)")
    return value


class InMemoryDatabase:
    """In-memory store with transaction rollback and commit-time constraints."""

    def __init__(self):
        self.candidates: Dict[int, Candidate] = {}
        self.votes: List[Vote] = []
        self.settings: Dict[str, str] = {}
        self._next_candidate_id = 1
        self._next_vote_id = 1
        self._clock = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)

    # Database contract

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def check_health(self) -> bool:
        return True

    @asynccontextmanager
    async def transaction(self):
        snapshot = copy.deepcopy(
            (self.candidates, self.votes, self.settings, self._next_candidate_id, self._next_vote_id)
        )
        try:
            yield self
            self._check_constraints()
        except BaseException:
            (self.candidates, self.votes, self.settings,
             self._next_candidate_id, self._next_vote_id) = snapshot
            raise

    def _check_constraints(self):
        positions = [c.position for c in self.candidates.values()]
        if len(positions) != len(set(positions)) or any(p <= 0 for p in positions):
            raise DatabaseError(f"candidates_position_key violated: {sorted(positions)}")

    # Candidates

    async def lock_candidates(self) -> None:
        pass

    async def list_candidates(self) -> List[Candidate]:
        return [copy.copy(c) for c in sorted(self.candidates.values(), key=lambda c: c.position)]

    async def count_candidates(self) -> int:
        return len(self.candidates)

    async def get_candidate(self, candidate_id: int) -> Optional[Candidate]:
        candidate = self.candidates.get(int4(candidate_id))
        return copy.copy(candidate) if candidate else None

    async def max_position(self) -> int:
        return max((c.position for c in self.candidates.values()), default=0)

    async def insert_candidate(self, name: str, position: int) -> Candidate:
        return copy.copy(self.add_candidate_row(name, position))

    async def rename_candidate(self, candidate_id: int, name: str) -> bool:
        int4(candidate_id)
        if candidate_id not in self.candidates:
            return False
        self.candidates[candidate_id].name = name
        return True

    async def count_votes_for(self, candidate_id: int) -> int:
        int4(candidate_id)
        return sum(1 for v in self.votes if v.candidate_id == candidate_id)

    async def delete_candidate(self, candidate_id: int) -> bool:
        int4(candidate_id)
        if any(v.candidate_id == candidate_id for v in self.votes):
            raise CandidateInUseError(f"votes reference candidate {candidate_id}")
        return self.candidates.pop(candidate_id, None) is not None

    async def shift_positions_after(self, position: int) -> int:
        moved = 0
        for candidate in self.candidates.values():
            if candidate.position > position:
                candidate.position -= 1
                moved += 1
        return moved

    # Votes

    async def find_vote(self, voter_name: str) -> Optional[int]:
        for vote in self.votes:
            if vote.voter_name.lower() == voter_name.lower():
                return vote.id
        return None

    async def insert_vote(self, voter_name: str, candidate_id: int) -> Vote:
        int4(candidate_id)
        if any(v.voter_name.lower() == voter_name.lower() for v in self.votes):
            raise DuplicateVoterError(voter_name)
        if candidate_id not in self.candidates:
            raise DatabaseError(f"votes_candidate_id_fkey violated: {candidate_id}")
        return copy.copy(self.add_vote_row(voter_name, candidate_id))

    async def tally_rows(self) -> List[CandidateTally]:
        return [
            CandidateTally(
                id=c.id,
                name=c.name,
                position=c.position,
                vote_count=sum(1 for v in self.votes if v.candidate_id == c.id)
            )
            for c in sorted(self.candidates.values(), key=lambda c: c.position)
        ]

    async def voter_rows(self) -> List[VoterRecord]:
        ordered = sorted(self.votes, key=lambda v: (v.timestamp, v.id), reverse=True)
        return [
            VoterRecord(
                voter_name=v.voter_name,
                candidate_name=self.candidates[v.candidate_id].name,
                timestamp=v.timestamp
            )
            for v in ordered
        ]

    async def delete_all_votes(self) -> int:
        deleted = len(self.votes)
        self.votes = []
        return deleted

    # Settings

    async def get_settings(self) -> Dict[str, str]:
        return dict(self.settings)

    async def set_setting(self, key: str, value: str) -> None:
        self.settings[key] = value

    async def ensure_setting(self, key: str, default: str) -> None:
        self.settings.setdefault(key, default)

    # Synchronous helpers for arranging test data

    def add_candidate_row(self, name: str, position: int) -> Candidate:
        candidate = Candidate(id=self._next_candidate_id, name=name, position=position)
        self.candidates[candidate.id] = candidate
        self._next_candidate_id += 1
        return candidate

    def add_vote_row(self, voter_name: str, candidate_id: int) -> Vote:
        self._clock += timedelta(seconds=1)
        vote = Vote(
            id=self._next_vote_id,
            voter_name=voter_name,
            candidate_id=candidate_id,
            timestamp=self._clock
        )
        self.votes.append(vote)
        self._next_vote_id += 1
        return vote

    def seed(self, names=DEFAULT_CANDIDATES) -> List[Candidate]:
        self.settings.setdefault("results_published", "false")
        self.settings.setdefault("winner_announced", "false")
        return [self.add_candidate_row(name, position) for position, name in enumerate(names, start=1)]


class ApiSessionAdapter:
    """Lets ElectionApiClient talk to the API app through Starlette's TestClient."""

    def __init__(self, client: TestClient):
        self.client = client

    def request(self, method, url, json=None, headers=None, timeout=None):
        return self.client.request(method, url, json=json, headers=headers)


@pytest.fixture
def db() -> InMemoryDatabase:
    """Empty in-memory store."""
    return InMemoryDatabase()


@pytest.fixture
def seeded_db(db: InMemoryDatabase) -> InMemoryDatabase:
    """Store holding the four default candidates at positions 1-4."""
    db.seed()
    return db


@pytest.fixture
def service(db: InMemoryDatabase) -> ElectionService:
    return ElectionService(db)


@pytest.fixture
def api(seeded_db: InMemoryDatabase):
    """Election API app wired to the seeded in-memory store."""
    api_app.dependency_overrides[get_service] = lambda: ElectionService(seeded_db)
    limiter.reset()
    yield api_app
    api_app.dependency_overrides.clear()


@pytest.fixture
async def api_client(api) -> httpx.AsyncClient:
    """HTTP client for making API requests."""
    transport = httpx.ASGITransport(app=api)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def admin_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token('admin')}"}


@pytest.fixture
def ui_app(api):
    """Voting UI wired to the in-process election API."""
    election_api = ElectionApiClient(
        base_url="http://testserver/api",
        session=ApiSessionAdapter(TestClient(api))
    )
    ui = create_app(api_client=election_api)
    ui.config['TESTING'] = True
    return ui


@pytest.fixture
def ui_client(ui_app):
    return ui_app.test_client()
