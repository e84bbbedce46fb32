"""Data models for the matching engine."""

from dataclasses import dataclass, field
from typing import List

SKILLS_REASON = "Required skills present"


@dataclass(frozen=True)
class Match:
    """A candidate/job pair that cleared the similarity floor.

    Transient: a Match either becomes exactly one Application or is skipped
    for an explicit reason; it is never persisted itself.

    Attributes:
        candidate_id: Candidate the match belongs to
        job_posting_id: Matched job posting
        similarity: Raw cosine similarity
        score: Hybrid score (integer, not clamped)
    """

    candidate_id: str
    job_posting_id: str
    similarity: float
    score: int

    @property
    def similarity_percent(self) -> str:
        """Similarity as a percentage with one decimal, e.g. "87.5"."""
        return f"{self.similarity * 100:.1f}"

    def reasons(self) -> List[str]:
        """Templated reasons stored on the Application."""
        return [f"Semantic match: {self.similarity_percent}%", SKILLS_REASON]


@dataclass
class MatchSet:
    """Matches found for one candidate, plus how many jobs were compared."""

    candidate_id: str
    matches: List[Match] = field(default_factory=list)
    jobs_compared: int = 0

    @property
    def count(self) -> int:
        return len(self.matches)

    def ranked(self) -> List[Match]:
        """Matches by score, highest first; equal scores keep catalog order."""
        return sorted(self.matches, key=lambda m: m.score, reverse=True)
