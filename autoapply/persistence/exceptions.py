"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError, so callers that
only care about "the store failed" can catch a single class.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when the database cannot be initialized or reached.

    Examples:
    - Invalid database URL
    - Database file not accessible
    - get_session() called before init_database()
    """

    pass


class RecordNotFoundError(PersistenceError):
    """Raised when an update targets a record that does not exist.

    Lookups that may legitimately miss return None instead.
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a write violates a database constraint."""

    pass


class DuplicateApplicationError(DataIntegrityError):
    """Raised when an Application already exists for the candidate/job pair.

    The unique constraint on applications(candidate_id, job_posting_id) is the
    last line of duplicate prevention; the batch engine treats this as an
    "already applied" skip, not as a failure.
    """

    def __init__(self, candidate_id: str, job_posting_id: str):
        self.candidate_id = candidate_id
        self.job_posting_id = job_posting_id
        super().__init__(
            f"Application already exists for candidate {candidate_id} "
            f"and job posting {job_posting_id}"
        )
