"""Auto-apply engine: matches candidates to open jobs and submits applications in batches."""

__version__ = "0.1.0"
