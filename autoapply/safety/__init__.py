"""Candidate safety policies applied before any application is submitted."""

from .gate import (
    DEFAULT_MAX_APPLICATIONS_PER_DAY,
    DEFAULT_MIN_MATCH_THRESHOLD,
    CandidatePolicy,
    SafetyGate,
    SkipReason,
    SkipTally,
    is_eligible,
    remaining_slots,
)

__all__ = [
    "DEFAULT_MAX_APPLICATIONS_PER_DAY",
    "DEFAULT_MIN_MATCH_THRESHOLD",
    "CandidatePolicy",
    "SafetyGate",
    "SkipReason",
    "SkipTally",
    "is_eligible",
    "remaining_slots",
]
