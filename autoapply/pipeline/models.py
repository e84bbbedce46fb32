"""Data models for batch run tracking and reporting."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from autoapply.domain.models import RunStatus
from autoapply.safety.gate import SkipReason, SkipTally

SKIP_NO_EMBEDDING = "no_embedding"


@dataclass
class CandidateRunStats:
    """
    Outcome of evaluating one candidate within a run.

    Attributes:
        candidate_id: Candidate that was processed
        evaluated: Whether the candidate had an embedding and was matched
        matches_found: Matches above the similarity floor
        applications_submitted: Applications inserted for this candidate
        applications_failed: Insert attempts that failed with a store error
        skips: Matches not submitted, by reason
        skip_reason: Why the whole candidate was skipped, if it was
        deadline_reached: Whether the run deadline interrupted this candidate
        duration_seconds: Time spent on this candidate
    """

    candidate_id: str
    evaluated: bool = False
    matches_found: int = 0
    applications_submitted: int = 0
    applications_failed: int = 0
    skips: SkipTally = field(default_factory=SkipTally)
    skip_reason: Optional[str] = None
    deadline_reached: bool = False
    duration_seconds: float = 0.0

    @property
    def applications_skipped(self) -> int:
        return self.skips.total


@dataclass
class RunCounts:
    """Counters written to the run record."""

    candidates_evaluated: int = 0
    matches_found: int = 0
    applications_submitted: int = 0
    applications_skipped: int = 0
    applications_failed: int = 0

    @classmethod
    def from_stats(cls, stats: Iterable[CandidateRunStats]) -> "RunCounts":
        counts = cls()
        for s in stats:
            counts.candidates_evaluated += 1 if s.evaluated else 0
            counts.matches_found += s.matches_found
            counts.applications_submitted += s.applications_submitted
            counts.applications_skipped += s.applications_skipped
            counts.applications_failed += s.applications_failed
        return counts


@dataclass
class PipelineRunResult:
    """
    Aggregate results of one batch run.

    Attributes:
        run_id: Id of the AutoApplicationRun record (None when skipped)
        status: Final run status (None when skipped)
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run ended
        total_duration_seconds: Wall time of the run
        candidates_loaded: Candidates in the loaded page
        jobs_loaded: Open jobs in the loaded catalog page
        candidate_stats: Per-candidate outcomes
        counts: Run counters, aggregated from candidate_stats
        skip_reasons: Skipped matches by reason
        skipped: Whether the run was skipped because another run held the lock
    """

    run_id: Optional[str]
    status: Optional[RunStatus]
    run_started_at: datetime
    run_finished_at: datetime
    total_duration_seconds: float = 0.0
    candidates_loaded: int = 0
    jobs_loaded: int = 0
    candidate_stats: List[CandidateRunStats] = field(default_factory=list)
    counts: RunCounts = field(default_factory=RunCounts)
    skip_reasons: Dict[str, int] = field(default_factory=dict)
    skipped: bool = False

    def __post_init__(self):
        """Aggregate counters from candidate stats and compute the duration."""
        if self.candidate_stats and self.counts == RunCounts():
            self.counts = RunCounts.from_stats(self.candidate_stats)

        if not self.skip_reasons:
            tally = SkipTally()
            for s in self.candidate_stats:
                tally.merge(s.skips)
            self.skip_reasons = tally.as_dict()

        if self.total_duration_seconds == 0.0:
            delta = self.run_finished_at - self.run_started_at
            self.total_duration_seconds = delta.total_seconds()

    @property
    def deadline_skips(self) -> int:
        return self.skip_reasons.get(SkipReason.DEADLINE.value, 0)
