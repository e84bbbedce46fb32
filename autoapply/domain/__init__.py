"""Domain models for the auto-apply engine."""

from .models import (
    JOB_STATUS_OPEN,
    Application,
    AutoApplicationRun,
    AutoApplyCandidate,
    CandidateEmbedding,
    CandidatePreferences,
    HiringStatus,
    JobEmbedding,
    RunStatus,
)

__all__ = [
    "JOB_STATUS_OPEN",
    "Application",
    "AutoApplicationRun",
    "AutoApplyCandidate",
    "CandidateEmbedding",
    "CandidatePreferences",
    "HiringStatus",
    "JobEmbedding",
    "RunStatus",
]
