"""JSON bodies returned by the batch trigger."""

from typing import Any, Dict, Tuple

from .models import PipelineRunResult

HTTP_OK = 200
HTTP_CONFLICT = 409
HTTP_SERVER_ERROR = 500

RUN_IN_PROGRESS_MESSAGE = "A run is already in progress"


def success_response(result: PipelineRunResult) -> Tuple[int, Dict[str, Any]]:
    """
    Build the response for a finished run.

    Example:
        >>> status, body = success_response(result)
        >>> body["results"]
        {'candidatesEvaluated': 1, 'matchesFound': 1, 'applicationsSubmitted': 1}
    """
    if result.skipped:
        return HTTP_CONFLICT, {"success": False, "error": RUN_IN_PROGRESS_MESSAGE}

    return HTTP_OK, {
        "success": True,
        "runId": result.run_id,
        "status": result.status.value if result.status else None,
        "results": {
            "candidatesEvaluated": result.counts.candidates_evaluated,
            "matchesFound": result.counts.matches_found,
            "applicationsSubmitted": result.counts.applications_submitted,
        },
    }


def error_response(error: BaseException) -> Tuple[int, Dict[str, Any]]:
    """Build the failure response; the body carries only the error message."""
    message = str(error) or type(error).__name__
    return HTTP_SERVER_ERROR, {"success": False, "error": message}
