"""Run ledger: the audit trail of batch executions.

A run is written exactly twice: once when it opens (in_progress) and once
when it closes (completed, partial or failed). Counters live in memory in
between.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple
from uuid import uuid4

from autoapply.domain.models import AutoApplicationRun, RunStatus
from autoapply.logging import get_logger
from autoapply.persistence.database import get_session
from autoapply.persistence.repositories import RunRepository
from autoapply.utils.timestamps import utc_now

from .models import RunCounts

logger = get_logger(__name__, component="ledger")

DEFAULT_STALE_RUN_AFTER_SECONDS = 6 * 3600

MAX_ERROR_SUMMARY_LENGTH = 2000


class RunLedger:
    """Opens, closes and reconciles AutoApplicationRun records."""

    def __init__(
        self,
        stale_after_seconds: int = DEFAULT_STALE_RUN_AFTER_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.stale_after_seconds = stale_after_seconds
        self.clock = clock

    def open(self, started_at: Optional[datetime] = None) -> AutoApplicationRun:
        """Create an in_progress run with zeroed counters.

        Raises:
            PersistenceError: If the record cannot be written
        """
        run = AutoApplicationRun(
            id=str(uuid4()),
            status=RunStatus.IN_PROGRESS,
            started_at=started_at or self.clock(),
        )
        with get_session() as session:
            run = RunRepository(session).create(run)

        logger.info(
            "Run opened",
            extra={"event": "ledger.run.opened", "run_id": run.id},
        )
        return run

    def close(
        self,
        run: AutoApplicationRun,
        status: RunStatus,
        counts: RunCounts,
        candidate_cursor: Optional[str] = None,
        job_cursor: Optional[str] = None,
    ) -> AutoApplicationRun:
        """Finalize a run as completed or partial with its counters and cursors.

        Raises:
            ValueError: If status is not a closing status
            PersistenceError: If the record cannot be written
        """
        if status not in (RunStatus.COMPLETED, RunStatus.PARTIAL):
            raise ValueError(f"Cannot close a run with status {status.value}")

        closed = self._finish(
            run,
            status=status,
            counts=counts,
            candidate_cursor=candidate_cursor,
            job_cursor=job_cursor,
        )
        logger.info(
            f"Run closed as {status.value}",
            extra={
                "event": "ledger.run.closed",
                "run_id": run.id,
                "status": status.value,
                "candidates_evaluated": counts.candidates_evaluated,
                "matches_found": counts.matches_found,
                "applications_submitted": counts.applications_submitted,
            },
        )
        return closed

    def fail(
        self,
        run: AutoApplicationRun,
        error: str,
        counts: Optional[RunCounts] = None,
    ) -> AutoApplicationRun:
        """Mark a run failed, keeping whatever counters were accumulated.

        Cursors are not advanced, so the next run retries the same page.

        Raises:
            PersistenceError: If the record cannot be written
        """
        failed = self._finish(
            run,
            status=RunStatus.FAILED,
            counts=counts or RunCounts(),
            candidate_cursor=None,
            job_cursor=None,
            error_summary=error[:MAX_ERROR_SUMMARY_LENGTH],
        )
        logger.warning(
            "Run marked failed",
            extra={"event": "ledger.run.failed", "run_id": run.id, "error": error},
        )
        return failed

    def _finish(
        self,
        run: AutoApplicationRun,
        status: RunStatus,
        counts: RunCounts,
        candidate_cursor: Optional[str],
        job_cursor: Optional[str],
        error_summary: Optional[str] = None,
    ) -> AutoApplicationRun:
        finished = run.model_copy(
            update={
                "status": status,
                "completed_at": self.clock(),
                "candidates_evaluated": counts.candidates_evaluated,
                "matches_found": counts.matches_found,
                "applications_submitted": counts.applications_submitted,
                "applications_skipped": counts.applications_skipped,
                "applications_failed": counts.applications_failed,
                "error_summary": error_summary,
                "candidate_cursor": candidate_cursor,
                "job_cursor": job_cursor,
            }
        )
        with get_session() as session:
            return RunRepository(session).save(finished)

    def reconcile_stale(self, now: Optional[datetime] = None) -> int:
        """Fail in_progress runs that started more than stale_after_seconds ago.

        Such runs belong to a process that died before closing them.

        Returns:
            Number of runs marked failed
        """
        now = now or self.clock()
        cutoff = now - timedelta(seconds=self.stale_after_seconds)
        summary = (
            f"Run abandoned: still in progress after {self.stale_after_seconds} seconds; "
            f"marked failed at reconciliation"
        )

        with get_session() as session:
            count = RunRepository(session).fail_stale(
                started_before=cutoff, completed_at=now, error_summary=summary
            )

        if count:
            logger.warning(
                f"Marked {count} stale run(s) as failed",
                extra={"event": "ledger.stale_runs.reconciled", "stale_count": count},
            )
        return count

    def last_cursors(self) -> Tuple[Optional[str], Optional[str]]:
        """(candidate_cursor, job_cursor) of the most recent completed or partial run."""
        with get_session() as session:
            latest = RunRepository(session).latest_closed()

        if latest is None:
            return None, None
        return latest.candidate_cursor, latest.job_cursor

    def get(self, run_id: str) -> Optional[AutoApplicationRun]:
        with get_session() as session:
            return RunRepository(session).get(run_id)
