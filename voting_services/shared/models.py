"""
Shared data models and utilities for the voting system.

This module contains:
- Domain records returned by the election service (candidates, votes, tallies)
- The SettingKey enum for the persisted settings table
- Voter name normalization and value coercion helpers
"""

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, Dict, List, Optional


class SettingKey(str, Enum):
    """Keys of the settings table."""
    RESULTS_PUBLISHED = "results_published"
    WINNER_ANNOUNCED = "winner_announced"


DEFAULT_SETTINGS = {
    SettingKey.RESULTS_PUBLISHED: "false",
    SettingKey.WINNER_ANNOUNCED: "false",
}


@dataclass
class Candidate:
    """
    A candidate standing in the election.

    Attributes:
        id: Unique candidate identifier
        name: Display name
        position: Dense 1-based display order, unique across candidates
    """
    id: int
    name: str
    position: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)


@dataclass
class Vote:
    """A single cast vote."""
    id: int
    voter_name: str
    candidate_id: int
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class CandidateTally:
    """Vote count and share of the total for one candidate."""
    id: int
    name: str
    position: int
    vote_count: int
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TallyResult:
    """
    Computed election results.

    Attributes:
        results: One entry per candidate, ordered by position
        total_votes: Number of votes cast
        winner: The sole candidate holding the maximum count, if any
        tie: True when two or more candidates share a non-zero maximum
    """
    results: List[CandidateTally] = field(default_factory=list)
    total_votes: int = 0
    winner: Optional[CandidateTally] = None
    tie: bool = False


@dataclass
class VoterRecord:
    """Who voted for whom, and when."""
    voter_name: str
    candidate_name: str
    timestamp: datetime

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ElectionSettings:
    """Boolean view of the settings table."""
    results_published: bool = False
    winner_announced: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_voter_name(voter_name: Optional[str]) -> str:
    """
    Normalize a voter name for uniqueness comparison.

    Two names identify the same voter when they are equal after trimming
    surrounding whitespace and lowercasing.

    Args:
        voter_name: Raw voter name as submitted

    Returns:
        Trimmed, lowercased name ('' for None)
    """
    if voter_name is None:
        return ""
    return voter_name.strip().lower()


def coerce_bool(value: Any) -> bool:
    """
    Coerce a stored or submitted setting value to bool.

    Settings are persisted as the strings 'true'/'false'; request bodies may
    carry real booleans, numbers or strings.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).strip().lower() in ("true", "1", "yes", "on")


def round_percentage(count: int, total: int) -> float:
    """
    Share of total as a percentage rounded half-up to one decimal place.

    Returns 0.0 when total is 0.
    """
    if total <= 0:
        return 0.0
    share = Decimal(count) * 100 / Decimal(total)
    return float(share.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def get_current_timestamp() -> datetime:
    """Get the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)
