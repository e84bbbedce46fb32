"""Database schema and ORM models.

Each ORM model converts to and from its domain model. Timestamps are stored
as fixed-width UTC strings (see autoapply.utils.timestamps), so range
filters on them are plain string comparisons.
"""

from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base

from autoapply.domain.models import (
    JOB_STATUS_OPEN,
    Application,
    AutoApplicationRun,
    CandidateEmbedding,
    CandidatePreferences,
    HiringStatus,
    JobEmbedding,
    RunStatus,
)
from autoapply.logging import get_logger
from autoapply.utils.timestamps import format_timestamp, parse_timestamp

logger = get_logger(__name__, component="database")

Base = declarative_base()


class CandidatePreferencesModel(Base):
    """ORM model for candidate_preferences. Read-only to the batch engine."""

    __tablename__ = "candidate_preferences"

    candidate_id = Column(String(64), primary_key=True, nullable=False)
    auto_apply_enabled = Column(Boolean, nullable=False, default=False)
    min_match_threshold = Column(Integer, nullable=True)
    max_applications_per_day = Column(Integer, nullable=True)

    __table_args__ = (
        Index("idx_candidate_preferences_auto_apply", "auto_apply_enabled", "candidate_id"),
    )

    def to_domain(self) -> CandidatePreferences:
        """Out-of-range stored values become None so the configured defaults apply."""
        return CandidatePreferences(
            candidate_id=self.candidate_id,
            auto_apply_enabled=bool(self.auto_apply_enabled),
            min_match_threshold=self._bounded("min_match_threshold", 0, 100),
            max_applications_per_day=self._bounded("max_applications_per_day", 0, None),
        )

    def _bounded(self, field: str, low: int, high: Optional[int]) -> Optional[int]:
        value = getattr(self, field)
        if value is None:
            return None
        if value < low or (high is not None and value > high):
            logger.warning(
                f"Ignoring out-of-range {field}={value} for candidate {self.candidate_id}",
                extra={
                    "event": "candidate.preferences.invalid",
                    "candidate_id": self.candidate_id,
                    "field": field,
                    "value": value,
                },
            )
            return None
        return value

    @classmethod
    def from_domain(cls, preferences: CandidatePreferences) -> "CandidatePreferencesModel":
        return cls(
            candidate_id=preferences.candidate_id,
            auto_apply_enabled=preferences.auto_apply_enabled,
            min_match_threshold=preferences.min_match_threshold,
            max_applications_per_day=preferences.max_applications_per_day,
        )


class CandidateEmbeddingModel(Base):
    """ORM model for candidate_embeddings.

    A candidate may have several rows; the one with the lowest id is the
    active vector.
    """

    __tablename__ = "candidate_embeddings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String(64), nullable=False)
    embedding = Column(JSON, nullable=False)

    __table_args__ = (Index("idx_candidate_embeddings_candidate", "candidate_id", "id"),)

    def to_domain(self) -> CandidateEmbedding:
        return CandidateEmbedding(
            candidate_id=self.candidate_id,
            embedding=list(self.embedding or []),
        )

    @classmethod
    def from_domain(cls, embedding: CandidateEmbedding) -> "CandidateEmbeddingModel":
        return cls(candidate_id=embedding.candidate_id, embedding=list(embedding.embedding))


class JobEmbeddingModel(Base):
    """ORM model for job_posting_embeddings, with the posting's status denormalized."""

    __tablename__ = "job_posting_embeddings"

    job_posting_id = Column(String(64), primary_key=True, nullable=False)
    embedding = Column(JSON, nullable=False)
    job_status = Column(String(32), nullable=False, default=JOB_STATUS_OPEN)

    __table_args__ = (Index("idx_job_embeddings_status", "job_status", "job_posting_id"),)

    def to_domain(self) -> JobEmbedding:
        return JobEmbedding(
            job_posting_id=self.job_posting_id,
            embedding=list(self.embedding or []),
            job_status=self.job_status,
        )

    @classmethod
    def from_domain(cls, job: JobEmbedding) -> "JobEmbeddingModel":
        return cls(
            job_posting_id=job.job_posting_id,
            embedding=list(job.embedding),
            job_status=job.job_status,
        )


class ApplicationModel(Base):
    """ORM model for applications.

    Shared with the single-job application flow; the unique constraint keeps
    both producers from creating a second row for the same pair.
    """

    __tablename__ = "applications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    candidate_id = Column(String(64), nullable=False)
    job_posting_id = Column(String(64), nullable=False)
    auto_applied = Column(Boolean, nullable=False, default=False)
    match_score = Column(Integer, nullable=True)
    match_reasons = Column(JSON, nullable=False, default=list)
    hiring_status = Column(String(32), nullable=False, default=HiringStatus.POTENTIAL_FIT.value)
    created_at = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("candidate_id", "job_posting_id", name="uq_applications_candidate_job"),
        Index("idx_applications_daily_count", "candidate_id", "auto_applied", "created_at"),
    )

    def to_domain(self) -> Application:
        return Application(
            id=self.id,
            candidate_id=self.candidate_id,
            job_posting_id=self.job_posting_id,
            auto_applied=bool(self.auto_applied),
            match_score=self.match_score,
            match_reasons=list(self.match_reasons or []),
            hiring_status=HiringStatus(self.hiring_status),
            created_at=parse_timestamp(self.created_at),
        )

    @classmethod
    def from_domain(cls, application: Application) -> "ApplicationModel":
        return cls(
            candidate_id=application.candidate_id,
            job_posting_id=application.job_posting_id,
            auto_applied=application.auto_applied,
            match_score=application.match_score,
            match_reasons=list(application.match_reasons),
            hiring_status=application.hiring_status.value,
            created_at=format_timestamp(application.created_at),
        )


class AutoApplicationRunModel(Base):
    """ORM model for auto_application_runs, one row per batch execution."""

    __tablename__ = "auto_application_runs"

    id = Column(String(36), primary_key=True, nullable=False)
    status = Column(String(20), nullable=False, default=RunStatus.IN_PROGRESS.value)
    started_at = Column(String(50), nullable=False)
    completed_at = Column(String(50), nullable=True)

    candidates_evaluated = Column(Integer, nullable=False, default=0)
    matches_found = Column(Integer, nullable=False, default=0)
    applications_submitted = Column(Integer, nullable=False, default=0)
    applications_skipped = Column(Integer, nullable=False, default=0)
    applications_failed = Column(Integer, nullable=False, default=0)
    error_summary = Column(Text, nullable=True)

    candidate_cursor = Column(String(64), nullable=True)
    job_cursor = Column(String(64), nullable=True)

    __table_args__ = (Index("idx_runs_status_started", "status", "started_at"),)

    def to_domain(self) -> AutoApplicationRun:
        return AutoApplicationRun(
            id=self.id,
            status=RunStatus(self.status),
            started_at=parse_timestamp(self.started_at),
            completed_at=parse_timestamp(self.completed_at),
            candidates_evaluated=self.candidates_evaluated or 0,
            matches_found=self.matches_found or 0,
            applications_submitted=self.applications_submitted or 0,
            applications_skipped=self.applications_skipped or 0,
            applications_failed=self.applications_failed or 0,
            error_summary=self.error_summary,
            candidate_cursor=self.candidate_cursor,
            job_cursor=self.job_cursor,
        )

    @classmethod
    def from_domain(cls, run: AutoApplicationRun) -> "AutoApplicationRunModel":
        model = cls(id=run.id)
        model.apply(run)
        return model

    def apply(self, run: AutoApplicationRun) -> None:
        """Copy every mutable field of the domain run onto this row."""
        self.status = run.status.value
        self.started_at = format_timestamp(run.started_at)
        self.completed_at = format_timestamp(run.completed_at)
        self.candidates_evaluated = run.candidates_evaluated
        self.matches_found = run.matches_found
        self.applications_submitted = run.applications_submitted
        self.applications_skipped = run.applications_skipped
        self.applications_failed = run.applications_failed
        self.error_summary = run.error_summary
        self.candidate_cursor = run.candidate_cursor
        self.job_cursor = run.job_cursor


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes that do not exist yet (idempotent)."""
    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(
            f"Database schema ready. Tables: {', '.join(tables)}",
            extra={"event": "database.schema.ready", "tables": tables},
        )
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
