"""Hybrid scoring: embedding similarity blended with a rule-based score.

    score = round_half_up(similarity * similarity_weight + rule_score * rule_weight)

With the default weights (70 and 0.3) and the constant rule score of 70 this
is ``round(similarity * 70 + 21)``. The rule score is a pluggable strategy so
richer rules (skills overlap, experience) can replace the constant without
touching the blend.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional

from autoapply.domain.models import CandidateEmbedding, JobEmbedding

DEFAULT_SIMILARITY_WEIGHT = 70.0
DEFAULT_RULE_WEIGHT = 0.3
DEFAULT_RULE_SCORE = 70


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity.

    Python's round() rounds halves to even; scores use the conventional
    half-up rule so 73.5 becomes 74 and 72.5 becomes 73.
    """
    return int(math.floor(value + 0.5))


class RuleScorer(ABC):
    """Strategy that scores a candidate/job pair from explicit rules (0-100)."""

    @abstractmethod
    def score(self, candidate: CandidateEmbedding, job: JobEmbedding) -> float:
        """Return the rule-based component for this pair."""


class ConstantRuleScorer(RuleScorer):
    """Gives every pair the same rule score."""

    def __init__(self, value: float = DEFAULT_RULE_SCORE):
        self.value = value

    def score(self, candidate: CandidateEmbedding, job: JobEmbedding) -> float:
        return self.value

    def __repr__(self) -> str:
        return f"ConstantRuleScorer({self.value})"


class HybridScorer:
    """Combines cosine similarity with a RuleScorer into one integer score.

    Scores are not clamped; with non-default weights they can leave 0-100.
    Non-decreasing in similarity for a fixed rule score.
    """

    def __init__(
        self,
        rule_scorer: Optional[RuleScorer] = None,
        similarity_weight: float = DEFAULT_SIMILARITY_WEIGHT,
        rule_weight: float = DEFAULT_RULE_WEIGHT,
    ):
        self.rule_scorer = rule_scorer or ConstantRuleScorer()
        self.similarity_weight = similarity_weight
        self.rule_weight = rule_weight

    @classmethod
    def from_config(cls, matching_config, rule_scorer: Optional[RuleScorer] = None) -> "HybridScorer":
        """Build a scorer from MatchingConfig, defaulting to the constant rule scorer."""
        return cls(
            rule_scorer=rule_scorer or ConstantRuleScorer(matching_config.rule_score),
            similarity_weight=matching_config.similarity_weight,
            rule_weight=matching_config.rule_weight,
        )

    def combine(self, similarity: float, rule_score: float) -> int:
        return round_half_up(similarity * self.similarity_weight + rule_score * self.rule_weight)

    def score(self, similarity: float, candidate: CandidateEmbedding, job: JobEmbedding) -> int:
        return self.combine(similarity, self.rule_scorer.score(candidate, job))


def hybrid_score(similarity: float, rule_score: float = DEFAULT_RULE_SCORE) -> int:
    """Score with the default weights, e.g. ``hybrid_score(1.0) == 91``."""
    return round_half_up(similarity * DEFAULT_SIMILARITY_WEIGHT + rule_score * DEFAULT_RULE_WEIGHT)
