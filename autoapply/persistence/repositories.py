"""Data access layer (repositories).

Repositories wrap a caller-owned session, return domain models and translate
SQLAlchemy errors into PersistenceError subclasses. They never commit; the
get_session() context manager owns the transaction.
"""

from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from autoapply.domain.models import (
    JOB_STATUS_OPEN,
    Application,
    AutoApplicationRun,
    AutoApplyCandidate,
    CandidateEmbedding,
    JobEmbedding,
    RunStatus,
)
from autoapply.logging import get_logger
from autoapply.utils.timestamps import format_timestamp

from .exceptions import (
    DataIntegrityError,
    DuplicateApplicationError,
    PersistenceError,
    RecordNotFoundError,
)
from .schema import (
    ApplicationModel,
    AutoApplicationRunModel,
    CandidateEmbeddingModel,
    CandidatePreferencesModel,
    JobEmbeddingModel,
)

logger = get_logger(__name__, component="repository")

PAIR_CONSTRAINT = "uq_applications_candidate_job"


def _is_pair_violation(error: IntegrityError) -> bool:
    """True if the error comes from the (candidate_id, job_posting_id) unique constraint.

    PostgreSQL and MySQL name the constraint; SQLite lists its columns instead.
    """
    message = str(error.orig)
    if PAIR_CONSTRAINT in message:
        return True
    return (
        "UNIQUE constraint failed" in message
        and "applications.candidate_id" in message
        and "applications.job_posting_id" in message
    )


class CandidateRepository:
    """Reads the auto-apply roster and candidate embeddings."""

    def __init__(self, session: Session):
        self.session = session

    def list_auto_apply_candidates(
        self, limit: int, after: Optional[str] = None
    ) -> List[AutoApplyCandidate]:
        """Return one page of candidates with auto-apply enabled.

        Args:
            limit: Maximum number of candidates
            after: Only candidates whose id sorts after this cursor

        Returns:
            Candidates ordered by id, each with its first stored embedding
            (None when the candidate has no embedding yet)

        Raises:
            PersistenceError: If a database error occurs
        """
        try:
            stmt = select(CandidatePreferencesModel).where(
                CandidatePreferencesModel.auto_apply_enabled.is_(True)
            )
            if after is not None:
                stmt = stmt.where(CandidatePreferencesModel.candidate_id > after)
            stmt = stmt.order_by(CandidatePreferencesModel.candidate_id).limit(limit)

            preferences = [row.to_domain() for row in self.session.execute(stmt).scalars()]
            embeddings = self._first_embeddings([p.candidate_id for p in preferences])

            return [
                AutoApplyCandidate(
                    preferences=prefs,
                    embedding=embeddings.get(prefs.candidate_id),
                )
                for prefs in preferences
            ]

        except SQLAlchemyError as e:
            logger.error(f"Error loading auto-apply candidates: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load auto-apply candidates: {e}") from e

    def _first_embeddings(self, candidate_ids: List[str]) -> Dict[str, CandidateEmbedding]:
        if not candidate_ids:
            return {}

        stmt = (
            select(CandidateEmbeddingModel)
            .where(CandidateEmbeddingModel.candidate_id.in_(candidate_ids))
            .order_by(CandidateEmbeddingModel.candidate_id, CandidateEmbeddingModel.id)
        )
        first = {}
        for row in self.session.execute(stmt).scalars():
            # Lowest row id wins
            if row.candidate_id not in first:
                first[row.candidate_id] = row.to_domain()
        return first


class JobEmbeddingRepository:
    """Reads the open-job catalog."""

    def __init__(self, session: Session):
        self.session = session

    def list_open(self, limit: int, after: Optional[str] = None) -> List[JobEmbedding]:
        """Return one page of open job embeddings ordered by job_posting_id.

        Raises:
            PersistenceError: If a database error occurs
        """
        try:
            stmt = select(JobEmbeddingModel).where(JobEmbeddingModel.job_status == JOB_STATUS_OPEN)
            if after is not None:
                stmt = stmt.where(JobEmbeddingModel.job_posting_id > after)
            stmt = stmt.order_by(JobEmbeddingModel.job_posting_id).limit(limit)

            return [row.to_domain() for row in self.session.execute(stmt).scalars()]

        except SQLAlchemyError as e:
            logger.error(f"Error loading open job embeddings: {e}", exc_info=True)
            raise PersistenceError(f"Failed to load job embeddings: {e}") from e


class ApplicationRepository:
    """Duplicate checks, daily counts and inserts on the shared applications table."""

    def __init__(self, session: Session):
        self.session = session

    def exists(self, candidate_id: str, job_posting_id: str) -> bool:
        """True if any Application (auto-applied or not) exists for the pair."""
        try:
            stmt = (
                select(ApplicationModel.id)
                .where(
                    ApplicationModel.candidate_id == candidate_id,
                    ApplicationModel.job_posting_id == job_posting_id,
                )
                .limit(1)
            )
            return self.session.execute(stmt).first() is not None

        except SQLAlchemyError as e:
            logger.error(
                f"Error checking application {candidate_id}/{job_posting_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to check existing application: {e}") from e

    def count_auto_applied_since(self, candidate_id: str, since: datetime) -> int:
        """Count the candidate's auto-applied Applications created at or after ``since``."""
        try:
            stmt = select(func.count(ApplicationModel.id)).where(
                ApplicationModel.candidate_id == candidate_id,
                ApplicationModel.auto_applied.is_(True),
                ApplicationModel.created_at >= format_timestamp(since),
            )
            return int(self.session.execute(stmt).scalar_one())

        except SQLAlchemyError as e:
            logger.error(
                f"Error counting applications for candidate {candidate_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to count applications: {e}") from e

    def create(self, application: Application) -> Application:
        """Insert an Application.

        Raises:
            DuplicateApplicationError: If the pair already has an Application
            DataIntegrityError: If another constraint is violated
            PersistenceError: If any other database error occurs
        """
        model = ApplicationModel.from_domain(application)
        try:
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            self.session.rollback()
            if _is_pair_violation(e):
                raise DuplicateApplicationError(
                    application.candidate_id, application.job_posting_id
                ) from e
            logger.error(
                f"Constraint violation inserting application {application.candidate_id}/"
                f"{application.job_posting_id}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(f"Failed to insert application: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error inserting application {application.candidate_id}/"
                f"{application.job_posting_id}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to insert application: {e}") from e

    def list_for_candidate(self, candidate_id: str) -> List[Application]:
        """All of a candidate's Applications, oldest first."""
        try:
            stmt = (
                select(ApplicationModel)
                .where(ApplicationModel.candidate_id == candidate_id)
                .order_by(ApplicationModel.created_at, ApplicationModel.id)
            )
            return [row.to_domain() for row in self.session.execute(stmt).scalars()]

        except SQLAlchemyError as e:
            logger.error(
                f"Error listing applications for candidate {candidate_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to list applications: {e}") from e


class RunRepository:
    """Reads and writes AutoApplicationRun records."""

    def __init__(self, session: Session):
        self.session = session

    def create(self, run: AutoApplicationRun) -> AutoApplicationRun:
        """Insert a new run record.

        Raises:
            DataIntegrityError: If a run with the same id exists
            PersistenceError: If any other database error occurs
        """
        try:
            model = AutoApplicationRunModel.from_domain(run)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(f"Integrity error creating run {run.id}: {e}", exc_info=True)
            raise DataIntegrityError(f"Failed to create run due to constraint violation: {e}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error creating run {run.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to create run: {e}") from e

    def get(self, run_id: str) -> Optional[AutoApplicationRun]:
        try:
            model = self.session.get(AutoApplicationRunModel, run_id)
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving run {run_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve run: {e}") from e

    def save(self, run: AutoApplicationRun) -> AutoApplicationRun:
        """Overwrite an existing run record with the given state.

        Raises:
            RecordNotFoundError: If the run does not exist
            PersistenceError: If a database error occurs
        """
        try:
            model = self.session.get(AutoApplicationRunModel, run.id)
            if model is None:
                raise RecordNotFoundError(f"Run {run.id} not found")

            model.apply(run)
            self.session.flush()
            return model.to_domain()

        except RecordNotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Error updating run {run.id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update run: {e}") from e

    def latest_closed(self) -> Optional[AutoApplicationRun]:
        """Most recently started run that finished completed or partial."""
        try:
            stmt = (
                select(AutoApplicationRunModel)
                .where(
                    AutoApplicationRunModel.status.in_(
                        [RunStatus.COMPLETED.value, RunStatus.PARTIAL.value]
                    )
                )
                .order_by(AutoApplicationRunModel.started_at.desc())
                .limit(1)
            )
            model = self.session.execute(stmt).scalar_one_or_none()
            return model.to_domain() if model is not None else None

        except SQLAlchemyError as e:
            logger.error(f"Error retrieving latest closed run: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve latest run: {e}") from e

    def fail_stale(self, started_before: datetime, completed_at: datetime, error_summary: str) -> int:
        """Mark in-progress runs started before the cutoff as failed.

        Returns:
            Number of runs updated
        """
        try:
            stmt = (
                update(AutoApplicationRunModel)
                .where(
                    AutoApplicationRunModel.status == RunStatus.IN_PROGRESS.value,
                    AutoApplicationRunModel.started_at < format_timestamp(started_before),
                )
                .values(
                    status=RunStatus.FAILED.value,
                    completed_at=format_timestamp(completed_at),
                    error_summary=error_summary,
                )
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount or 0

        except SQLAlchemyError as e:
            logger.error(f"Error reconciling stale runs: {e}", exc_info=True)
            raise PersistenceError(f"Failed to reconcile stale runs: {e}") from e
