"""Semantic matching of candidates to job postings.

This module provides:
- cosine_similarity: bounded similarity of two embedding vectors
- HybridScorer / RuleScorer: blend similarity with a pluggable rule score
- MatchFinder: scan a job catalog for one candidate
- Match / MatchSet: transient match records
"""

from .finder import DEFAULT_SIMILARITY_FLOOR, MatchFinder
from .models import Match, MatchSet
from .scoring import ConstantRuleScorer, HybridScorer, RuleScorer, hybrid_score, round_half_up
from .similarity import cosine_similarity

__all__ = [
    "DEFAULT_SIMILARITY_FLOOR",
    "MatchFinder",
    "Match",
    "MatchSet",
    "RuleScorer",
    "ConstantRuleScorer",
    "HybridScorer",
    "hybrid_score",
    "round_half_up",
    "cosine_similarity",
]
