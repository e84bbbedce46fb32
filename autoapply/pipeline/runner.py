"""Batch orchestration: match candidates to open jobs and submit applications."""

import threading
import time
from typing import List, Optional, Tuple

from autoapply.config.models import AppConfig
from autoapply.domain.models import (
    Application,
    AutoApplicationRun,
    AutoApplyCandidate,
    HiringStatus,
    JobEmbedding,
    RunStatus,
)
from autoapply.logging import get_logger
from autoapply.logging.context import log_context
from autoapply.matching.finder import MatchFinder
from autoapply.matching.models import Match
from autoapply.matching.scoring import HybridScorer, RuleScorer
from autoapply.persistence.database import get_session
from autoapply.persistence.exceptions import DuplicateApplicationError, PersistenceError
from autoapply.persistence.repositories import (
    ApplicationRepository,
    CandidateRepository,
    JobEmbeddingRepository,
)
from autoapply.safety.gate import CandidatePolicy, SafetyGate, SkipReason
from autoapply.utils.timestamps import local_day_start, resolve_timezone, utc_now

from .ledger import RunLedger
from .models import SKIP_NO_EMBEDDING, CandidateRunStats, PipelineRunResult, RunCounts

logger = get_logger(__name__, component="pipeline")


class AutoApplyPipeline:
    """
    Runs one auto-apply batch at a time.

    A run opens a ledger record, loads a page of auto-apply candidates and a
    page of open jobs, evaluates candidates one by one, submits the accepted
    matches in descending score order and closes the ledger record with the
    aggregated counters.
    """

    def __init__(
        self,
        app_config: AppConfig,
        match_finder: Optional[MatchFinder] = None,
        safety_gate: Optional[SafetyGate] = None,
        ledger: Optional[RunLedger] = None,
        rule_scorer: Optional[RuleScorer] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            app_config: Application configuration
            match_finder: Match finder; built from the matching config when omitted
            safety_gate: Safety gate; built from the safety config when omitted
            ledger: Run ledger; built from the batch config when omitted
            rule_scorer: Rule scorer for the default match finder
        """
        self.app_config = app_config
        self.batch_config = app_config.batch

        self.match_finder = match_finder or MatchFinder(
            hybrid_scorer=HybridScorer.from_config(app_config.matching, rule_scorer=rule_scorer),
            similarity_floor=app_config.matching.similarity_floor,
        )
        self.safety_gate = safety_gate or SafetyGate.from_config(app_config.safety)
        self.ledger = ledger or RunLedger(
            stale_after_seconds=self.batch_config.stale_run_after_seconds
        )
        self.day_boundary_tz = resolve_timezone(app_config.safety.day_boundary_timezone)
        self._lock = threading.Lock()

    def run_once(self) -> PipelineRunResult:
        """
        Execute one batch.

        Returns:
            PipelineRunResult; ``skipped`` is set when another run holds the lock

        Raises:
            PersistenceError: If the store fails outside a single application
                insert. The run is marked failed first when possible.
        """
        run_started_at = utc_now()

        if not self._lock.acquire(blocking=False):
            logger.warning(
                "Run skipped: previous run still in progress",
                extra={"event": "pipeline.run.skipped", "reason": "lock_held"},
            )
            return PipelineRunResult(
                run_id=None,
                status=None,
                run_started_at=run_started_at,
                run_finished_at=utc_now(),
                skipped=True,
            )

        try:
            return self._execute(run_started_at)
        finally:
            self._lock.release()

    def _execute(self, run_started_at) -> PipelineRunResult:
        self.ledger.reconcile_stale(run_started_at)

        candidate_after, job_after = (None, None)
        if self.batch_config.paginate:
            candidate_after, job_after = self.ledger.last_cursors()

        run = self.ledger.open(run_started_at)
        candidate_stats: List[CandidateRunStats] = []

        with log_context(run_id=run.id):
            try:
                return self._process_run(
                    run, run_started_at, candidate_after, job_after, candidate_stats
                )
            except Exception as e:
                logger.error(
                    f"Run failed: {e}",
                    exc_info=True,
                    extra={"event": "pipeline.run.failed", "error_type": type(e).__name__},
                )
                self._mark_failed(run, e, RunCounts.from_stats(candidate_stats))
                raise

    def _process_run(
        self,
        run: AutoApplicationRun,
        run_started_at,
        candidate_after: Optional[str],
        job_after: Optional[str],
        candidate_stats: List[CandidateRunStats],
    ) -> PipelineRunResult:
        deadline = None
        if self.batch_config.run_deadline_seconds:
            deadline = time.monotonic() + self.batch_config.run_deadline_seconds

        # "Today" is fixed once per run
        day_start = local_day_start(run_started_at, self.day_boundary_tz)

        candidates, candidate_after, more_candidates = self._load_candidates(candidate_after)
        jobs, job_after, more_jobs = self._load_jobs(job_after)

        logger.info(
            "Run started",
            extra={
                "event": "pipeline.run.started",
                "candidates_loaded": len(candidates),
                "jobs_loaded": len(jobs),
                "candidate_cursor": candidate_after,
                "job_cursor": job_after,
                "day_start": day_start.isoformat(),
            },
        )

        stopped_early = False
        last_processed: Optional[str] = None

        for candidate in candidates:
            if _expired(deadline):
                stopped_early = True
                break

            stats = self._process_candidate(candidate, jobs, day_start, deadline)
            candidate_stats.append(stats)

            if stats.deadline_reached:
                # Not finished: the next run starts with this candidate again
                stopped_early = True
                break

            last_processed = candidate.candidate_id

        if stopped_early:
            logger.warning(
                "Run deadline reached; finalizing with partial counts",
                extra={
                    "event": "pipeline.run.deadline_reached",
                    "candidates_processed": len(candidate_stats),
                    "candidates_loaded": len(candidates),
                },
            )

        next_candidate, next_job = self._next_cursors(
            candidates,
            jobs,
            candidate_after,
            job_after,
            more_candidates,
            more_jobs,
            stopped_early,
            last_processed,
        )
        status = RunStatus.PARTIAL if stopped_early else RunStatus.COMPLETED
        counts = RunCounts.from_stats(candidate_stats)

        self.ledger.close(
            run,
            status=status,
            counts=counts,
            candidate_cursor=next_candidate,
            job_cursor=next_job,
        )

        result = PipelineRunResult(
            run_id=run.id,
            status=status,
            run_started_at=run_started_at,
            run_finished_at=utc_now(),
            candidates_loaded=len(candidates),
            jobs_loaded=len(jobs),
            candidate_stats=candidate_stats,
            counts=counts,
        )

        logger.info(
            "Run completed",
            extra={
                "event": "pipeline.run.completed",
                "status": status.value,
                "duration_ms": int(result.total_duration_seconds * 1000),
                "candidates_evaluated": counts.candidates_evaluated,
                "matches_found": counts.matches_found,
                "applications_submitted": counts.applications_submitted,
                "applications_skipped": counts.applications_skipped,
                "applications_failed": counts.applications_failed,
                "skip_reasons": result.skip_reasons,
            },
        )
        return result

    def _load_candidates(
        self, after: Optional[str]
    ) -> Tuple[List[AutoApplyCandidate], Optional[str], bool]:
        """
        Load a candidate page, wrapping to the first page when the cursor is exhausted.

        Returns:
            (candidates, effective cursor, whether more candidates follow the page)
        """
        limit = self.batch_config.candidate_batch_size
        with get_session() as session:
            repo = CandidateRepository(session)
            # One extra row tells whether the roster continues past this page
            candidates = repo.list_auto_apply_candidates(limit=limit + 1, after=after)
            if not candidates and after is not None:
                logger.info(
                    "Candidate roster exhausted; wrapping to the first page",
                    extra={"event": "pipeline.candidates.wrapped", "cursor": after},
                )
                after = None
                candidates = repo.list_auto_apply_candidates(limit=limit + 1)
        return candidates[:limit], after, len(candidates) > limit

    def _load_jobs(
        self, after: Optional[str]
    ) -> Tuple[List[JobEmbedding], Optional[str], bool]:
        """Load the open-job catalog page, wrapping like _load_candidates."""
        limit = self.batch_config.job_catalog_size
        with get_session() as session:
            repo = JobEmbeddingRepository(session)
            jobs = repo.list_open(limit=limit + 1, after=after)
            if not jobs and after is not None:
                logger.info(
                    "Job catalog exhausted; wrapping to the first page",
                    extra={"event": "pipeline.jobs.wrapped", "cursor": after},
                )
                after = None
                jobs = repo.list_open(limit=limit + 1)
        return jobs[:limit], after, len(jobs) > limit

    def _next_cursors(
        self,
        candidates: List[AutoApplyCandidate],
        jobs: List[JobEmbedding],
        candidate_after: Optional[str],
        job_after: Optional[str],
        more_candidates: bool,
        more_jobs: bool,
        stopped_early: bool,
        last_processed: Optional[str],
    ) -> Tuple[Optional[str], Optional[str]]:
        """
        Cursors for the next run.

        Candidates advance every run; the job page advances once the page just
        processed was the end of the roster, so every candidate page meets
        every job page. A partial run resumes after the last candidate it
        finished and keeps the same job page.
        """
        if stopped_early:
            return (last_processed or candidate_after), job_after

        if more_candidates and candidates:
            return candidates[-1].candidate_id, job_after

        next_job = jobs[-1].job_posting_id if more_jobs and jobs else None
        return None, next_job

    def _process_candidate(
        self,
        candidate: AutoApplyCandidate,
        jobs: List[JobEmbedding],
        day_start,
        deadline: Optional[float],
    ) -> CandidateRunStats:
        """Evaluate one candidate and submit its accepted matches."""
        started = time.monotonic()
        stats = CandidateRunStats(candidate_id=candidate.candidate_id)

        with log_context(candidate_id=candidate.candidate_id):
            if not candidate.has_embedding:
                stats.skip_reason = SKIP_NO_EMBEDDING
                logger.debug(
                    "Candidate skipped: no embedding",
                    extra={"event": "candidate.skipped", "reason": SKIP_NO_EMBEDDING},
                )
                return stats

            stats.evaluated = True
            match_set = self.match_finder.find_matches(candidate.embedding, jobs)
            stats.matches_found = match_set.count

            policy = self.safety_gate.resolve_policy(
                candidate.candidate_id, candidate.preferences
            )
            with get_session() as session:
                today_count = ApplicationRepository(session).count_auto_applied_since(
                    candidate.candidate_id, day_start
                )
            remaining = self.safety_gate.remaining_slots(policy, today_count)

            if remaining <= 0:
                stats.skip_reason = SkipReason.CAP_REACHED.value
                stats.skips.add(SkipReason.CAP_REACHED, match_set.count)
                logger.info(
                    "Candidate skipped: daily limit reached",
                    extra={
                        "event": "candidate.skipped",
                        "reason": SkipReason.CAP_REACHED.value,
                        "today_count": today_count,
                        "max_applications_per_day": policy.max_applications_per_day,
                        "matches_found": match_set.count,
                    },
                )
                return stats

            self._submit_matches(match_set.ranked(), policy, remaining, stats, deadline)

            stats.duration_seconds = time.monotonic() - started
            logger.info(
                f"Candidate evaluated: {stats.applications_submitted} submitted",
                extra={
                    "event": "candidate.evaluated",
                    "matches_found": stats.matches_found,
                    "applications_submitted": stats.applications_submitted,
                    "applications_skipped": stats.applications_skipped,
                    "applications_failed": stats.applications_failed,
                    "remaining_slots": remaining,
                    "min_match_threshold": policy.min_match_threshold,
                    "duration_ms": int(stats.duration_seconds * 1000),
                },
            )
        return stats

    def _submit_matches(
        self,
        ranked: List[Match],
        policy: CandidatePolicy,
        remaining: int,
        stats: CandidateRunStats,
        deadline: Optional[float],
    ) -> None:
        """Walk ranked matches, submitting until the remaining slots are used."""
        for index, match in enumerate(ranked):
            unattempted = len(ranked) - index

            if stats.applications_submitted >= remaining:
                stats.skips.add(SkipReason.CAP_REACHED, unattempted)
                break

            if _expired(deadline):
                stats.skips.add(SkipReason.DEADLINE, unattempted)
                stats.deadline_reached = True
                break

            if not self.safety_gate.is_eligible(match, policy):
                stats.skips.add(SkipReason.BELOW_THRESHOLD)
                continue

            with get_session() as session:
                already_applied = ApplicationRepository(session).exists(
                    match.candidate_id, match.job_posting_id
                )
            if already_applied:
                stats.skips.add(SkipReason.DUPLICATE)
                logger.debug(
                    "Match skipped: already applied",
                    extra={
                        "event": "application.skipped",
                        "reason": SkipReason.DUPLICATE.value,
                        "job_posting_id": match.job_posting_id,
                    },
                )
                continue

            try:
                self._submit(match, stats)
            finally:
                time.sleep(self.batch_config.submission_delay_seconds)

    def _submit(self, match: Match, stats: CandidateRunStats) -> None:
        """Insert one Application in its own transaction."""
        application = Application(
            candidate_id=match.candidate_id,
            job_posting_id=match.job_posting_id,
            auto_applied=True,
            match_score=match.score,
            match_reasons=match.reasons(),
            hiring_status=HiringStatus.POTENTIAL_FIT,
            created_at=utc_now(),
        )

        try:
            with get_session() as session:
                ApplicationRepository(session).create(application)
        except DuplicateApplicationError:
            # Lost a race with another producer
            stats.skips.add(SkipReason.DUPLICATE)
            logger.info(
                "Match skipped: application created concurrently",
                extra={
                    "event": "application.skipped",
                    "reason": SkipReason.DUPLICATE.value,
                    "job_posting_id": match.job_posting_id,
                },
            )
            return
        except PersistenceError as e:
            stats.applications_failed += 1
            logger.error(
                f"Failed to submit application: {e}",
                extra={
                    "event": "application.failed",
                    "job_posting_id": match.job_posting_id,
                    "match_score": match.score,
                    "error_type": type(e).__name__,
                },
            )
            return

        stats.applications_submitted += 1
        logger.info(
            "Application submitted",
            extra={
                "event": "application.submitted",
                "job_posting_id": match.job_posting_id,
                "match_score": match.score,
                "similarity": round(match.similarity, 4),
            },
        )

    def _mark_failed(self, run: AutoApplicationRun, error: Exception, counts: RunCounts) -> None:
        """Best-effort: record the failure on the run; leave it in_progress if that fails too."""
        try:
            self.ledger.fail(run, f"{type(error).__name__}: {error}", counts)
        except Exception as ledger_error:
            logger.error(
                f"Could not mark run as failed: {ledger_error}",
                exc_info=True,
                extra={"event": "pipeline.run.fail_record_failed"},
            )


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() >= deadline
