"""Non-fatal configuration checks emitted as warnings."""

import warnings
from typing import List

from .models import AppConfig


def check_for_warnings(app_config: AppConfig) -> List[str]:
    """
    Inspect a validated configuration for settings that are legal but suspicious.

    The similarity floor and the default match threshold are configured
    independently; these checks spell out how they interact.

    Args:
        app_config: Validated configuration

    Returns:
        List of warning messages (empty when nothing looks off)
    """
    messages = []
    matching = app_config.matching
    safety = app_config.safety
    batch = app_config.batch

    floor_score = matching.min_reachable_score
    ceiling_score = matching.max_reachable_score
    threshold = safety.default_min_match_threshold

    if threshold < floor_score:
        messages.append(
            f"default_min_match_threshold ({threshold}) is below the lowest score a match "
            f"above similarity_floor ({matching.similarity_floor}) can get ({floor_score}); "
            "the similarity floor alone decides eligibility for candidates without their own threshold"
        )
    elif threshold > ceiling_score:
        messages.append(
            f"default_min_match_threshold ({threshold}) exceeds the highest reachable score "
            f"({ceiling_score}); candidates without their own threshold will never be submitted"
        )

    if safety.default_max_applications_per_day == 0:
        messages.append(
            "default_max_applications_per_day is 0; candidates without their own cap are never submitted"
        )

    if matching.similarity_floor <= 0:
        messages.append(
            f"similarity_floor ({matching.similarity_floor}) admits orthogonal or opposed embeddings"
        )

    if batch.run_deadline_seconds is not None:
        # Worst case: every candidate uses its full cap, each insert followed by the delay.
        worst_case = (
            batch.candidate_batch_size
            * safety.default_max_applications_per_day
            * batch.submission_delay_seconds
        )
        if worst_case > batch.run_deadline_seconds:
            messages.append(
                f"run_deadline ({batch.run_deadline}) is shorter than the worst-case submission "
                f"delay budget ({worst_case:.0f}s); runs may finish as partial"
            )

    return messages


def emit_warnings(messages: List[str]) -> None:
    """Emit each message through the warnings module."""
    for message in messages:
        warnings.warn(message, UserWarning, stacklevel=2)
