"""Scheduling for periodic execution of the auto-apply batch."""

from .service import SchedulerService

__all__ = [
    "SchedulerService",
]
