"""Batch pipeline: orchestration, run ledger and trigger responses."""

from .ledger import RunLedger
from .models import CandidateRunStats, PipelineRunResult, RunCounts
from .response import error_response, success_response
from .runner import AutoApplyPipeline

__all__ = [
    "AutoApplyPipeline",
    "RunLedger",
    "CandidateRunStats",
    "PipelineRunResult",
    "RunCounts",
    "success_response",
    "error_response",
]
