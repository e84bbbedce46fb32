"""Finds the open job postings that semantically match a candidate.

The finder applies only the fixed similarity floor. Candidate thresholds,
daily caps and duplicate checks belong to the safety gate and the
orchestrator.
"""

from typing import Iterable, Optional

from autoapply.domain.models import CandidateEmbedding, JobEmbedding
from autoapply.logging import get_logger

from .models import Match, MatchSet
from .scoring import HybridScorer
from .similarity import cosine_similarity

logger = get_logger(__name__, component="matching")

DEFAULT_SIMILARITY_FLOOR = 0.7


class MatchFinder:
    """Scores a candidate embedding against a catalog of job embeddings."""

    def __init__(
        self,
        hybrid_scorer: Optional[HybridScorer] = None,
        similarity_floor: float = DEFAULT_SIMILARITY_FLOOR,
    ):
        self.hybrid_scorer = hybrid_scorer or HybridScorer()
        self.similarity_floor = similarity_floor

    def find_matches(
        self, candidate: CandidateEmbedding, jobs: Iterable[JobEmbedding]
    ) -> MatchSet:
        """
        Compare the candidate with every open job in the catalog.

        Args:
            candidate: Candidate id and embedding
            jobs: Job catalog; postings whose status is not open are ignored

        Returns:
            MatchSet with one Match per job whose similarity is at least the
            floor, in catalog order
        """
        match_set = MatchSet(candidate_id=candidate.candidate_id)

        for job in jobs:
            if not job.is_open:
                continue
            match_set.jobs_compared += 1

            similarity = cosine_similarity(candidate.embedding, job.embedding)
            if similarity < self.similarity_floor:
                continue

            match_set.matches.append(
                Match(
                    candidate_id=candidate.candidate_id,
                    job_posting_id=job.job_posting_id,
                    similarity=similarity,
                    score=self.hybrid_scorer.score(similarity, candidate, job),
                )
            )

        logger.debug(
            f"Found {match_set.count} matches for candidate {candidate.candidate_id}",
            extra={
                "event": "matching.candidate.scored",
                "candidate_id": candidate.candidate_id,
                "jobs_compared": match_set.jobs_compared,
                "match_count": match_set.count,
                "similarity_floor": self.similarity_floor,
            },
        )
        return match_set
