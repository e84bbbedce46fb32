"""Test helper utilities for auto-apply engine tests."""

from .seed import (
    seed_application,
    seed_candidate,
    seed_job,
    seed_run,
)

__all__ = ["seed_application", "seed_candidate", "seed_job", "seed_run"]
