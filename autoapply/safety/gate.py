"""Per-candidate safety policy: match threshold, daily cap and skip accounting."""

from collections import Counter
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from autoapply.domain.models import CandidatePreferences
from autoapply.matching.models import Match

DEFAULT_MIN_MATCH_THRESHOLD = 70
DEFAULT_MAX_APPLICATIONS_PER_DAY = 5


class SkipReason(str, Enum):
    """Why a match did not become an Application."""

    BELOW_THRESHOLD = "below_threshold"
    DUPLICATE = "duplicate"
    CAP_REACHED = "cap_reached"
    DEADLINE = "deadline"


def remaining_slots(max_per_day: int, today_count: int) -> int:
    """Submissions still allowed today; never negative.

    Examples:
        >>> remaining_slots(5, 2)
        3
        >>> remaining_slots(5, 7)
        0
    """
    return max(0, max_per_day - today_count)


def is_eligible(match: Match, min_threshold: int) -> bool:
    """True when the match's hybrid score reaches the candidate's threshold."""
    return match.score >= min_threshold


@dataclass(frozen=True)
class CandidatePolicy:
    """Resolved safety policy for one candidate."""

    candidate_id: str
    min_match_threshold: int
    max_applications_per_day: int


class SafetyGate:
    """Resolves candidate policies against configured defaults.

    A preference left unset (None) falls back to the default. An explicit
    zero is honoured: a cap of 0 means the candidate is never submitted.
    """

    def __init__(
        self,
        default_min_match_threshold: int = DEFAULT_MIN_MATCH_THRESHOLD,
        default_max_applications_per_day: int = DEFAULT_MAX_APPLICATIONS_PER_DAY,
    ):
        self.default_min_match_threshold = default_min_match_threshold
        self.default_max_applications_per_day = default_max_applications_per_day

    @classmethod
    def from_config(cls, safety_config) -> "SafetyGate":
        return cls(
            default_min_match_threshold=safety_config.default_min_match_threshold,
            default_max_applications_per_day=safety_config.default_max_applications_per_day,
        )

    def resolve_policy(
        self, candidate_id: str, preferences: Optional[CandidatePreferences]
    ) -> CandidatePolicy:
        threshold = None
        cap = None
        if preferences is not None:
            threshold = preferences.min_match_threshold
            cap = preferences.max_applications_per_day

        return CandidatePolicy(
            candidate_id=candidate_id,
            min_match_threshold=(
                threshold if threshold is not None else self.default_min_match_threshold
            ),
            max_applications_per_day=(
                cap if cap is not None else self.default_max_applications_per_day
            ),
        )

    @staticmethod
    def remaining_slots(policy: CandidatePolicy, today_count: int) -> int:
        return remaining_slots(policy.max_applications_per_day, today_count)

    @staticmethod
    def is_eligible(match: Match, policy: CandidatePolicy) -> bool:
        return is_eligible(match, policy.min_match_threshold)


class SkipTally:
    """Counts skipped matches by reason."""

    def __init__(self):
        self._counts: Counter = Counter()

    def add(self, reason: SkipReason, count: int = 1) -> None:
        if count > 0:
            self._counts[reason] += count

    def merge(self, other: "SkipTally") -> None:
        self._counts.update(other._counts)

    def __getitem__(self, reason: SkipReason) -> int:
        return self._counts[reason]

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def as_dict(self) -> Dict[str, int]:
        """Reason value -> count, every reason present."""
        return {reason.value: self._counts[reason] for reason in SkipReason}
