"""Persistence layer: SQLAlchemy engine, ORM schema and repositories.

Public API:
    - init_database(database_url) / get_session() / close_database() / get_engine()
    - CandidateRepository: auto-apply roster with embeddings
    - JobEmbeddingRepository: open-job catalog
    - ApplicationRepository: duplicate check, daily count, insert
    - RunRepository: run records, cursors, stale run reconciliation

Example:
    >>> from autoapply.persistence import init_database, get_session, ApplicationRepository
    >>> init_database("sqlite:///./data/autoapply.db")
    >>> with get_session() as session:
    ...     ApplicationRepository(session).exists("cand-1", "job-1")
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    DuplicateApplicationError,
    PersistenceError,
    RecordNotFoundError,
)
from .repositories import (
    ApplicationRepository,
    CandidateRepository,
    JobEmbeddingRepository,
    RunRepository,
)

__all__ = [
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    "CandidateRepository",
    "JobEmbeddingRepository",
    "ApplicationRepository",
    "RunRepository",
    "PersistenceError",
    "DatabaseConnectionError",
    "RecordNotFoundError",
    "DataIntegrityError",
    "DuplicateApplicationError",
]
