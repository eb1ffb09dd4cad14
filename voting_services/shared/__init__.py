"""
Shared utilities and models for the voting system.

This package contains the domain code shared by the election API modules:
- Domain records (Candidate, Vote, CandidateTally, TallyResult, ...)
- The SettingKey enum and its defaults
- Voter name normalization and value coercion helpers
"""

from .models import (
    Candidate,
    Vote,
    CandidateTally,
    TallyResult,
    VoterRecord,
    ElectionSettings,
    SettingKey,
    DEFAULT_SETTINGS,
    normalize_voter_name,
    coerce_bool,
    round_percentage,
    get_current_timestamp,
)

__all__ = [
    'Candidate',
    'Vote',
    'CandidateTally',
    'TallyResult',
    'VoterRecord',
    'ElectionSettings',
    'SettingKey',
    'DEFAULT_SETTINGS',
    'normalize_voter_name',
    'coerce_bool',
    'round_percentage',
    'get_current_timestamp',
]

__version__ = '1.0.0'
