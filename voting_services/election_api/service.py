"""
Election service: voting rules on top of the store.

Every public operation runs in exactly one store transaction. Derived values
(tallies, percentages, winner, tie) are computed here and never persisted.
"""
import logging
from typing import Any, Iterable, List, Optional

from voting_services.election_api.database import (
    Database,
    MAX_SERIAL_ID,
    DuplicateVoterError,
    CandidateInUseError,
)
from voting_services.election_api.errors import (
    ValidationError,
    NotFoundError,
    ConflictError,
)
from voting_services.shared.models import (
    Candidate,
    Vote,
    TallyResult,
    VoterRecord,
    ElectionSettings,
    SettingKey,
    DEFAULT_SETTINGS,
    coerce_bool,
    normalize_voter_name,
    round_percentage,
)

logger = logging.getLogger(__name__)

CANDIDATE_NAME_REQUIRED = "Candidate name is required"
CANDIDATE_NOT_FOUND = "Candidate not found"
CANDIDATE_HAS_VOTES = "Cannot delete candidate with existing votes. Reset votes first."
VOTE_FIELDS_REQUIRED = "Voter name and candidate ID are required"
ALREADY_VOTED = "You have already voted!"


def _clean_name(name: Optional[str], message: str) -> str:
    if name is None or not str(name).strip():
        raise ValidationError(message)
    return str(name).strip()


def _storable_id(candidate_id: int) -> bool:
    """Ids outside the id column range cannot name an existing candidate."""
    return 1 <= candidate_id <= MAX_SERIAL_ID


class ElectionService:
    """Single source of truth for the election rules."""

    def __init__(self, db: Database):
        self._db = db

    async def initialize_defaults(self, candidate_names: Iterable[str]) -> int:
        """
        Seed default candidates and settings on first start.

        Candidates are only seeded when none exist; settings rows are only
        inserted when missing.

        Returns:
            Number of candidates seeded
        """
        seeded = 0
        async with self._db.transaction() as repo:
            await repo.lock_candidates()
            if await repo.count_candidates() == 0:
                for position, name in enumerate(candidate_names, start=1):
                    await repo.insert_candidate(name.strip(), position)
                    seeded += 1
            for key, default in DEFAULT_SETTINGS.items():
                await repo.ensure_setting(key.value, default)

        if seeded:
            logger.info(f"Seeded {seeded} default candidates")
        return seeded

    # Candidates

    async def list_candidates(self) -> List[Candidate]:
        async with self._db.transaction() as repo:
            return await repo.list_candidates()

    async def add_candidate(self, name: Optional[str]) -> Candidate:
        """Append a candidate after the current last position."""
        name = _clean_name(name, CANDIDATE_NAME_REQUIRED)

        async with self._db.transaction() as repo:
            await repo.lock_candidates()
            position = await repo.max_position() + 1
            candidate = await repo.insert_candidate(name, position)

        logger.info(f"Candidate added: id={candidate.id}, name={candidate.name}, position={position}")
        return candidate

    async def update_candidate_name(self, candidate_id: int, name: Optional[str]) -> Candidate:
        name = _clean_name(name, CANDIDATE_NAME_REQUIRED)
        if not _storable_id(candidate_id):
            raise NotFoundError(CANDIDATE_NOT_FOUND)

        async with self._db.transaction() as repo:
            if not await repo.rename_candidate(candidate_id, name):
                raise NotFoundError(CANDIDATE_NOT_FOUND)
            candidate = await repo.get_candidate(candidate_id)

        logger.info(f"Candidate renamed: id={candidate_id}, name={name}")
        return candidate

    async def remove_candidate(self, candidate_id: int) -> Candidate:
        """
        Delete a candidate that has no votes and re-pack positions.

        Every candidate positioned after the removed one moves up by one, so
        positions stay 1..N without gaps.

        Raises:
            NotFoundError: Candidate does not exist.
            ConflictError: Candidate has recorded votes.
        """
        if not _storable_id(candidate_id):
            raise NotFoundError(CANDIDATE_NOT_FOUND)

        try:
            async with self._db.transaction() as repo:
                await repo.lock_candidates()
                candidate = await repo.get_candidate(candidate_id)
                if candidate is None:
                    raise NotFoundError(CANDIDATE_NOT_FOUND)

                if await repo.count_votes_for(candidate_id) > 0:
                    raise ConflictError(CANDIDATE_HAS_VOTES)

                await repo.delete_candidate(candidate_id)
                moved = await repo.shift_positions_after(candidate.position)
        except CandidateInUseError:
            raise ConflictError(CANDIDATE_HAS_VOTES)

        logger.info(
            f"Candidate removed: id={candidate_id}, position={candidate.position}, "
            f"{moved} candidates re-packed"
        )
        return candidate

    # Votes

    async def has_voted(self, voter_name: Optional[str]) -> bool:
        voter_name = normalize_voter_name(voter_name)
        if not voter_name:
            return False
        async with self._db.transaction() as repo:
            return await repo.find_vote(voter_name) is not None

    async def cast_vote(self, voter_name: Optional[str], candidate_id: Any) -> Vote:
        """
        Record one vote for candidate_id under voter_name.

        The already-voted check, candidate lookup and insert share one
        transaction; the unique index on the lowercased voter name rejects a
        concurrent duplicate, which is reported like the pre-check.

        Raises:
            ValidationError: Voter name or candidate id missing.
            ConflictError: This voter name (case-insensitive) already voted.
            NotFoundError: Candidate does not exist.
        """
        if voter_name is None or not str(voter_name).strip() or candidate_id in (None, ""):
            raise ValidationError(VOTE_FIELDS_REQUIRED)
        voter_name = str(voter_name).strip()

        try:
            candidate_id = int(candidate_id)
        except (TypeError, ValueError):
            raise ValidationError(VOTE_FIELDS_REQUIRED)

        try:
            async with self._db.transaction() as repo:
                if await repo.find_vote(voter_name) is not None:
                    raise ConflictError(ALREADY_VOTED)

                if not _storable_id(candidate_id) or await repo.get_candidate(candidate_id) is None:
                    raise NotFoundError(CANDIDATE_NOT_FOUND)

                vote = await repo.insert_vote(voter_name, candidate_id)
        except DuplicateVoterError:
            logger.warning(f"Concurrent duplicate vote rejected for voter={voter_name}")
            raise ConflictError(ALREADY_VOTED)

        logger.info(f"Vote cast: id={vote.id}, candidate_id={candidate_id}")
        return vote

    async def reset_votes(self) -> int:
        """Delete every vote and unpublish results. Returns deleted count."""
        async with self._db.transaction() as repo:
            deleted = await repo.delete_all_votes()
            await repo.set_setting(SettingKey.RESULTS_PUBLISHED.value, "false")

        logger.info(f"All votes reset: {deleted} deleted, results unpublished")
        return deleted

    # Results

    async def tally(self) -> TallyResult:
        """
        Compute counts, percentages and the winner for every candidate.

        A winner exists only when exactly one candidate holds a non-zero
        maximum; two or more candidates sharing it is a tie.
        """
        async with self._db.transaction() as repo:
            results = await repo.tally_rows()

        total_votes = sum(r.vote_count for r in results)
        for r in results:
            r.percentage = round_percentage(r.vote_count, total_votes)

        max_votes = max((r.vote_count for r in results), default=0)
        leaders = [r for r in results if max_votes > 0 and r.vote_count == max_votes]

        return TallyResult(
            results=results,
            total_votes=total_votes,
            winner=leaders[0] if len(leaders) == 1 else None,
            tie=len(leaders) > 1
        )

    async def list_voters(self) -> List[VoterRecord]:
        async with self._db.transaction() as repo:
            return await repo.voter_rows()

    # Settings

    async def get_settings(self) -> ElectionSettings:
        async with self._db.transaction() as repo:
            stored = await repo.get_settings()

        return ElectionSettings(
            results_published=coerce_bool(stored.get(SettingKey.RESULTS_PUBLISHED.value)),
            winner_announced=coerce_bool(stored.get(SettingKey.WINNER_ANNOUNCED.value))
        )

    async def set_results_published(self, publish: Any) -> bool:
        published = coerce_bool(publish)
        async with self._db.transaction() as repo:
            await repo.set_setting(
                SettingKey.RESULTS_PUBLISHED.value,
                "true" if published else "false"
            )

        logger.info(f"Results {'published' if published else 'unpublished'}")
        return published
