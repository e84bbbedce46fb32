"""Unit tests for the persistence layer."""

import logging
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from autoapply.domain.models import Application, AutoApplicationRun, HiringStatus, RunStatus
from autoapply.persistence import (
    ApplicationRepository,
    CandidateRepository,
    DatabaseConnectionError,
    DuplicateApplicationError,
    JobEmbeddingRepository,
    PersistenceError,
    RecordNotFoundError,
    RunRepository,
    close_database,
    get_engine,
    get_session,
    init_database,
)
from autoapply.persistence.database import _redact_url
from autoapply.persistence.schema import CandidatePreferencesModel
from autoapply.utils.timestamps import utc_now
from tests.helpers import seed_application, seed_candidate, seed_job, seed_run


@pytest.fixture
def temp_database(tmp_path):
    """File-backed SQLite database in a temporary directory."""
    init_database(f"sqlite:///{tmp_path / 'test.db'}")
    yield
    close_database()


def make_application(candidate_id="cand-1", job_posting_id="job-1", **overrides):
    fields = dict(
        candidate_id=candidate_id,
        job_posting_id=job_posting_id,
        auto_applied=True,
        match_score=91,
        match_reasons=["Semantic match: 100.0%", "Required skills present"],
        hiring_status=HiringStatus.POTENTIAL_FIT,
        created_at=utc_now(),
    )
    fields.update(overrides)
    return Application(**fields)


class TestDatabaseInitialization:
    """Tests for database initialization."""

    def test_init_creates_file_and_tables(self, tmp_path):
        db_file = tmp_path / "nested" / "dir" / "test.db"

        init_database(f"sqlite:///{db_file}")
        try:
            assert db_file.exists()
            tables = set(inspect(get_engine()).get_table_names())
            assert {
                "candidate_preferences",
                "candidate_embeddings",
                "job_posting_embeddings",
                "applications",
                "auto_application_runs",
            } <= tables
        finally:
            close_database()

    def test_init_is_idempotent(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'test.db'}"
        init_database(url)
        close_database()
        init_database(url)
        close_database()

    def test_in_memory_database_is_shared_across_sessions(self):
        init_database("sqlite:///:memory:")
        try:
            seed_job("job-1", [1.0, 0.0])
            with get_session() as session:
                assert len(JobEmbeddingRepository(session).list_open(limit=10)) == 1
        finally:
            close_database()

    def test_empty_url(self):
        with pytest.raises(DatabaseConnectionError):
            init_database("")

    def test_session_before_init(self):
        close_database()
        with pytest.raises(DatabaseConnectionError, match="not initialized"):
            with get_session():
                pass

    def test_redact_url(self):
        assert _redact_url("postgresql://app:secret@db:5432/jobs") == "postgresql://app:***@db:5432/jobs"
        assert _redact_url("sqlite:///./data/autoapply.db") == "sqlite:///./data/autoapply.db"
        assert _redact_url("postgresql://db/jobs") == "postgresql://db/jobs"


class TestCandidateRepository:
    """Tests for the auto-apply roster."""

    def test_only_enabled_candidates_in_id_order(self, temp_database):
        seed_candidate("cand-b", [1.0, 0.0])
        seed_candidate("cand-a", [0.0, 1.0])
        seed_candidate("cand-off", [1.0, 0.0], auto_apply_enabled=False)

        with get_session() as session:
            roster = CandidateRepository(session).list_auto_apply_candidates(limit=50)

        assert [c.candidate_id for c in roster] == ["cand-a", "cand-b"]

    def test_first_embedding_wins(self, temp_database):
        seed_candidate("cand-1", [0.0, 1.0], extra_embeddings=[[1.0, 0.0]])

        with get_session() as session:
            (candidate,) = CandidateRepository(session).list_auto_apply_candidates(limit=50)

        assert candidate.embedding.embedding == [0.0, 1.0]

    def test_candidate_without_embedding(self, temp_database):
        seed_candidate("cand-1")

        with get_session() as session:
            (candidate,) = CandidateRepository(session).list_auto_apply_candidates(limit=50)

        assert candidate.has_embedding is False

    def test_preferences_nulls_are_preserved(self, temp_database):
        seed_candidate("cand-1", [1.0], min_match_threshold=None, max_applications_per_day=0)

        with get_session() as session:
            (candidate,) = CandidateRepository(session).list_auto_apply_candidates(limit=50)

        assert candidate.preferences.min_match_threshold is None
        assert candidate.preferences.max_applications_per_day == 0

    def test_out_of_range_preferences_read_as_unset(self, temp_database, caplog):
        seed_candidate("cand-1", [1.0], min_match_threshold=80, max_applications_per_day=5)
        # Written by another producer without the domain model's bounds
        with get_session() as session:
            session.add(
                CandidatePreferencesModel(
                    candidate_id="cand-2",
                    auto_apply_enabled=True,
                    min_match_threshold=150,
                    max_applications_per_day=-1,
                )
            )

        with caplog.at_level(logging.WARNING), get_session() as session:
            good, bad = CandidateRepository(session).list_auto_apply_candidates(limit=50)

        assert good.preferences.min_match_threshold == 80
        assert good.preferences.max_applications_per_day == 5
        assert bad.candidate_id == "cand-2"
        assert bad.preferences.min_match_threshold is None
        assert bad.preferences.max_applications_per_day is None
        assert "out-of-range min_match_threshold=150" in caplog.text
        assert "out-of-range max_applications_per_day=-1" in caplog.text

    def test_limit_and_cursor(self, temp_database):
        for i in range(5):
            seed_candidate(f"cand-{i}", [1.0])

        with get_session() as session:
            repo = CandidateRepository(session)
            first = repo.list_auto_apply_candidates(limit=2)
            second = repo.list_auto_apply_candidates(limit=2, after=first[-1].candidate_id)

        assert [c.candidate_id for c in first] == ["cand-0", "cand-1"]
        assert [c.candidate_id for c in second] == ["cand-2", "cand-3"]


class TestJobEmbeddingRepository:
    """Tests for the open-job catalog."""

    def test_only_open_jobs(self, temp_database):
        seed_job("job-1", [1.0, 0.0])
        seed_job("job-2", [1.0, 0.0], job_status="closed")
        seed_job("job-3", [0.0, 1.0])

        with get_session() as session:
            jobs = JobEmbeddingRepository(session).list_open(limit=100)

        assert [j.job_posting_id for j in jobs] == ["job-1", "job-3"]
        assert jobs[0].embedding == [1.0, 0.0]

    def test_cursor(self, temp_database):
        for i in range(4):
            seed_job(f"job-{i}", [1.0])

        with get_session() as session:
            jobs = JobEmbeddingRepository(session).list_open(limit=10, after="job-1")

        assert [j.job_posting_id for j in jobs] == ["job-2", "job-3"]


class TestApplicationRepository:
    """Tests for duplicate checks, daily counts and inserts."""

    def test_create_and_exists(self, temp_database):
        with get_session() as session:
            created = ApplicationRepository(session).create(make_application())

        assert created.id is not None
        assert created.match_reasons == ["Semantic match: 100.0%", "Required skills present"]
        assert created.hiring_status == HiringStatus.POTENTIAL_FIT

        with get_session() as session:
            repo = ApplicationRepository(session)
            assert repo.exists("cand-1", "job-1") is True
            assert repo.exists("cand-1", "job-2") is False

    def test_unique_pair_raises_duplicate(self, temp_database):
        seed_application("cand-1", "job-1", auto_applied=False)

        with pytest.raises(DuplicateApplicationError) as exc_info:
            with get_session() as session:
                ApplicationRepository(session).create(make_application())

        assert exc_info.value.candidate_id == "cand-1"
        assert exc_info.value.job_posting_id == "job-1"

        with get_session() as session:
            assert len(ApplicationRepository(session).list_for_candidate("cand-1")) == 1

    def test_other_constraint_is_not_a_duplicate(self, temp_database):
        error = IntegrityError(
            "INSERT INTO applications", {}, Exception("NOT NULL constraint failed: applications.created_at")
        )

        with pytest.raises(PersistenceError) as exc_info:
            with get_session() as session:
                with patch.object(session, "flush", side_effect=error):
                    ApplicationRepository(session).create(make_application())

        assert not isinstance(exc_info.value, DuplicateApplicationError)
        assert "NOT NULL constraint failed" in str(exc_info.value)

    def test_named_pair_constraint_is_a_duplicate(self, temp_database):
        error = IntegrityError(
            "INSERT INTO applications",
            {},
            Exception('duplicate key value violates unique constraint "uq_applications_candidate_job"'),
        )

        with pytest.raises(DuplicateApplicationError):
            with get_session() as session:
                with patch.object(session, "flush", side_effect=error):
                    ApplicationRepository(session).create(make_application())

    def test_count_auto_applied_since(self, temp_database):
        day_start = datetime(2025, 11, 4, 0, 0, tzinfo=timezone.utc)
        seed_application("cand-1", "job-1", created_at=day_start + timedelta(hours=1))
        seed_application("cand-1", "job-2", created_at=day_start)
        seed_application("cand-1", "job-3", created_at=day_start - timedelta(microseconds=1))
        seed_application("cand-1", "job-4", created_at=day_start + timedelta(hours=2), auto_applied=False)
        seed_application("cand-2", "job-1", created_at=day_start + timedelta(hours=1))

        with get_session() as session:
            count = ApplicationRepository(session).count_auto_applied_since("cand-1", day_start)

        assert count == 2


class TestRunRepository:
    """Tests for run records."""

    def test_create_get_save(self, temp_database):
        started = datetime(2025, 11, 4, 6, 0, tzinfo=timezone.utc)
        run = AutoApplicationRun(id="run-1", started_at=started)

        with get_session() as session:
            RunRepository(session).create(run)

        finished = run.model_copy(
            update={
                "status": RunStatus.COMPLETED,
                "completed_at": started + timedelta(minutes=1),
                "candidates_evaluated": 3,
                "matches_found": 4,
                "applications_submitted": 2,
                "applications_skipped": 2,
                "candidate_cursor": "cand-3",
            }
        )
        with get_session() as session:
            RunRepository(session).save(finished)

        with get_session() as session:
            stored = RunRepository(session).get("run-1")

        assert stored.status == RunStatus.COMPLETED
        assert stored.started_at == started
        assert stored.completed_at == started + timedelta(minutes=1)
        assert stored.applications_submitted == 2
        assert stored.candidate_cursor == "cand-3"
        assert stored.job_cursor is None

    def test_save_missing_run(self, temp_database):
        run = AutoApplicationRun(id="ghost", started_at=utc_now())

        with pytest.raises(RecordNotFoundError):
            with get_session() as session:
                RunRepository(session).save(run)

    def test_latest_closed_ignores_failed_and_in_progress(self, temp_database):
        base = datetime(2025, 11, 4, 6, 0, tzinfo=timezone.utc)
        seed_run("run-old", RunStatus.COMPLETED, base, candidate_cursor="cand-1")
        seed_run("run-partial", RunStatus.PARTIAL, base + timedelta(hours=1), candidate_cursor="cand-2")
        seed_run("run-failed", RunStatus.FAILED, base + timedelta(hours=2))
        seed_run("run-open", RunStatus.IN_PROGRESS, base + timedelta(hours=3))

        with get_session() as session:
            latest = RunRepository(session).latest_closed()

        assert latest.id == "run-partial"
        assert latest.candidate_cursor == "cand-2"

    def test_fail_stale(self, temp_database):
        now = datetime(2025, 11, 4, 12, 0, tzinfo=timezone.utc)
        seed_run("stale", RunStatus.IN_PROGRESS, now - timedelta(hours=7))
        seed_run("fresh", RunStatus.IN_PROGRESS, now - timedelta(hours=1))
        seed_run("done", RunStatus.COMPLETED, now - timedelta(hours=8))

        with get_session() as session:
            count = RunRepository(session).fail_stale(
                started_before=now - timedelta(hours=6),
                completed_at=now,
                error_summary="abandoned",
            )

        assert count == 1
        with get_session() as session:
            repo = RunRepository(session)
            assert repo.get("stale").status == RunStatus.FAILED
            assert repo.get("stale").error_summary == "abandoned"
            assert repo.get("fresh").status == RunStatus.IN_PROGRESS
            assert repo.get("done").status == RunStatus.COMPLETED
