"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from apscheduler.triggers.cron import CronTrigger
from pydantic import BaseModel, Field, field_validator, model_validator

from autoapply.matching.scoring import round_half_up
from autoapply.utils.timestamps import resolve_timezone

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _parse_bounded(value: str, label: str, min_seconds: int, max_seconds: int) -> int:
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, min_seconds, max_seconds, label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return seconds


class MatchingConfig(BaseModel):
    """Similarity floor and hybrid score weights."""

    similarity_floor: float = Field(
        0.7,
        ge=-1.0,
        le=1.0,
        description="Minimum cosine similarity for a job to be scored at all",
    )
    similarity_weight: float = Field(
        70.0, ge=0, description="Points contributed by a similarity of 1.0"
    )
    rule_weight: float = Field(
        0.3, ge=0, description="Multiplier applied to the rule-based score"
    )
    rule_score: int = Field(
        70, ge=0, le=100, description="Score returned by the constant rule scorer"
    )

    @property
    def min_reachable_score(self) -> int:
        """Lowest hybrid score a match above the floor can receive."""
        return round_half_up(
            max(self.similarity_floor, 0.0) * self.similarity_weight
            + self.rule_score * self.rule_weight
        )

    @property
    def max_reachable_score(self) -> int:
        """Hybrid score of a perfect (similarity 1.0) match."""
        return round_half_up(self.similarity_weight + self.rule_score * self.rule_weight)


class SafetyConfig(BaseModel):
    """Defaults for candidate safety policies."""

    default_min_match_threshold: int = Field(
        70, ge=0, le=100, description="Threshold used when a candidate has none set"
    )
    default_max_applications_per_day: int = Field(
        5, ge=0, description="Daily cap used when a candidate has none set"
    )
    day_boundary_timezone: Optional[str] = Field(
        None, description="IANA zone whose midnight starts the daily window (default: host)"
    )

    @field_validator("day_boundary_timezone")
    @classmethod
    def validate_timezone(cls, v: Optional[str]) -> Optional[str]:
        """Reject unknown zone names at load time."""
        if v is None:
            return None
        stripped = v.strip()
        if not stripped:
            return None
        resolve_timezone(stripped)
        return stripped


class BatchConfig(BaseModel):
    """Bounds and pacing for a single batch run."""

    candidate_batch_size: int = Field(
        50, ge=1, le=10000, description="Candidates loaded per run"
    )
    job_catalog_size: int = Field(
        100, ge=1, le=100000, description="Open job postings compared per run"
    )
    submission_delay_ms: int = Field(
        100, ge=100, le=60000, description="Pause after every application insert attempt"
    )
    run_deadline: Optional[str] = Field(
        None, description="Stop submitting after this long and finalize as partial"
    )
    stale_run_after: str = Field(
        "6h", description="In-progress runs older than this are marked failed"
    )
    paginate: bool = Field(
        True, description="Continue from the previous run's cursors instead of page one"
    )

    # Computed fields
    run_deadline_seconds: Optional[int] = None
    stale_run_after_seconds: Optional[int] = None

    @field_validator("run_deadline")
    @classmethod
    def validate_run_deadline(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not str(v).strip():
            return None
        _parse_bounded(v, "run_deadline", 1, 86400)
        return v

    @field_validator("stale_run_after")
    @classmethod
    def validate_stale_run_after(cls, v: str) -> str:
        _parse_bounded(v, "stale_run_after", 60, 30 * 86400)
        return v

    @model_validator(mode="after")
    def compute_seconds(self):
        """Store parsed durations alongside their source strings."""
        self.run_deadline_seconds = parse_duration(self.run_deadline) if self.run_deadline else None
        self.stale_run_after_seconds = parse_duration(self.stale_run_after)
        return self

    @property
    def submission_delay_seconds(self) -> float:
        return self.submission_delay_ms / 1000.0


class ScheduleConfig(BaseModel):
    """When the batch runs in daemon mode."""

    run_interval: str = Field("24h", description="Interval between runs")
    cron: Optional[str] = Field(
        None, description="Crontab expression; takes precedence over run_interval"
    )

    run_interval_seconds: Optional[int] = None

    @field_validator("run_interval")
    @classmethod
    def validate_run_interval(cls, v: str) -> str:
        _parse_bounded(v, "run_interval", 300, 7 * 86400)
        return v

    @field_validator("cron")
    @classmethod
    def validate_cron(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        try:
            CronTrigger.from_crontab(v.strip())
        except ValueError as e:
            raise ValueError(f"Invalid cron expression '{v}': {e}") from e
        return v.strip()

    @model_validator(mode="after")
    def compute_interval(self):
        self.run_interval_seconds = parse_duration(self.run_interval)
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the auto-apply engine."""

    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    safety: SafetyConfig = Field(default_factory=SafetyConfig)
    batch: BatchConfig = Field(default_factory=BatchConfig)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}
