"""Core domain models for candidates, job postings, applications and runs.

This module defines the data structures exchanged between the repositories
and the batch engine:
- CandidateEmbedding / JobEmbedding: read-only vectors from the embedding pipeline
- CandidatePreferences: per-candidate auto-apply policy
- AutoApplyCandidate: a roster entry (preferences plus optional embedding)
- Application: a submitted job application
- AutoApplicationRun: the audit record of one batch execution
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from autoapply.utils.timestamps import ensure_utc

JOB_STATUS_OPEN = "open"


class HiringStatus(str, Enum):
    """Recruiter-side status of an application. Auto-applied rows start as potential_fit."""

    POTENTIAL_FIT = "potential_fit"
    SHORTLISTED = "shortlisted"
    INTERVIEWING = "interviewing"
    REJECTED = "rejected"
    HIRED = "hired"


class RunStatus(str, Enum):
    """Lifecycle of an AutoApplicationRun."""

    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


class CandidateEmbedding(BaseModel):
    """Embedding vector for a candidate profile."""

    candidate_id: str = Field(..., min_length=1)
    embedding: List[float] = Field(default_factory=list)


class JobEmbedding(BaseModel):
    """Embedding vector for a job posting with its denormalized status."""

    job_posting_id: str = Field(..., min_length=1)
    embedding: List[float] = Field(default_factory=list)
    job_status: str = Field(JOB_STATUS_OPEN)

    @property
    def is_open(self) -> bool:
        return self.job_status == JOB_STATUS_OPEN


class CandidatePreferences(BaseModel):
    """Auto-apply policy as stored for a candidate.

    Threshold and cap are optional here; unset values fall back to the
    configured defaults when the safety policy is resolved.
    """

    candidate_id: str = Field(..., min_length=1)
    auto_apply_enabled: bool = Field(False)
    min_match_threshold: Optional[int] = Field(None, ge=0, le=100)
    max_applications_per_day: Optional[int] = Field(None, ge=0)


class AutoApplyCandidate(BaseModel):
    """A roster entry: the candidate's preferences and first stored embedding, if any."""

    preferences: CandidatePreferences
    embedding: Optional[CandidateEmbedding] = None

    @property
    def candidate_id(self) -> str:
        return self.preferences.candidate_id

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


class Application(BaseModel):
    """A job application linking one candidate to one job posting.

    At most one Application exists per (candidate_id, job_posting_id).
    """

    id: Optional[int] = None
    candidate_id: str = Field(..., min_length=1)
    job_posting_id: str = Field(..., min_length=1)
    auto_applied: bool = Field(False)
    match_score: Optional[int] = None
    match_reasons: List[str] = Field(default_factory=list)
    hiring_status: HiringStatus = Field(HiringStatus.POTENTIAL_FIT)
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    model_config = {"json_schema_extra": {"example": {
        "candidate_id": "cand-42",
        "job_posting_id": "job-1337",
        "auto_applied": True,
        "match_score": 91,
        "match_reasons": ["Semantic match: 100.0%", "Required skills present"],
        "hiring_status": "potential_fit",
        "created_at": "2025-11-04T10:30:00Z",
    }}}


class AutoApplicationRun(BaseModel):
    """Audit record of one batch execution.

    Written once when the run opens and once when it finishes; the counters
    are accumulated in memory in between. The cursors mark where the next
    run's candidate and job pages start.
    """

    id: str = Field(..., min_length=1)
    status: RunStatus = Field(RunStatus.IN_PROGRESS)
    started_at: datetime
    completed_at: Optional[datetime] = None
    candidates_evaluated: int = Field(0, ge=0)
    matches_found: int = Field(0, ge=0)
    applications_submitted: int = Field(0, ge=0)
    applications_skipped: int = Field(0, ge=0)
    applications_failed: int = Field(0, ge=0)
    error_summary: Optional[str] = None
    candidate_cursor: Optional[str] = None
    job_cursor: Optional[str] = None

    @field_validator("started_at", "completed_at")
    @classmethod
    def timestamps_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(v)
