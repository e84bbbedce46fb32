"""Main entry point for the auto-apply engine."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import json
import signal
import sys
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from autoapply.config.environment import EnvironmentConfig
from autoapply.config.exceptions import ConfigurationError
from autoapply.config.loader import load_config
from autoapply.config.models import AppConfig
from autoapply.logging import get_logger
from autoapply.logging.config import configure_logging
from autoapply.persistence.database import close_database, init_database
from autoapply.pipeline import AutoApplyPipeline
from autoapply.pipeline.response import error_response, success_response
from autoapply.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str] = None
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def run_trigger(
    pipeline: Optional[AutoApplyPipeline] = None,
    config_path: Optional[Path] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Run one batch and build the trigger response.

    Without a pipeline, configuration is loaded and the database opened for
    the duration of the call.

    Returns:
        (status_code, body): 200 with run results, 409 when a run is already
        in progress, 500 with an error message on any failure
    """
    owns_database = False
    try:
        if pipeline is None:
            app_config, env_config = load_runtime_config(config_path)
            init_database(env_config.database_url)
            owns_database = True
            pipeline = AutoApplyPipeline(app_config)

        result = pipeline.run_once()

    except Exception as e:
        logger.error(
            f"Batch trigger failed: {e}",
            extra={"event": "trigger.failed", "error_type": type(e).__name__},
        )
        return error_response(e)
    finally:
        if owns_database:
            close_database()

    return success_response(result)


def main() -> int:
    """
    Main entry point.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Auto-apply engine - match candidates to open jobs and submit applications"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml or config/config.yaml)",
    )
    parser.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single batch, print the JSON result and exit",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )

    args = parser.parse_args()

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=env_config.environment,
            # Keep stdout for the JSON body in manual mode
            stream=sys.stderr if args.manual_run else None,
        )

        logger.info(
            "Auto-apply engine starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "log_level": env_config.log_level,
                "manual_run": args.manual_run,
            },
        )

        init_database(env_config.database_url)

        logger.info(
            "Configuration loaded",
            extra={
                "event": "config.loaded",
                "similarity_floor": app_config.matching.similarity_floor,
                "default_min_match_threshold": app_config.safety.default_min_match_threshold,
                "default_max_applications_per_day": app_config.safety.default_max_applications_per_day,
                "candidate_batch_size": app_config.batch.candidate_batch_size,
                "job_catalog_size": app_config.batch.job_catalog_size,
                "run_interval_seconds": app_config.schedule.run_interval_seconds,
                "cron": app_config.schedule.cron,
            },
        )

        pipeline = AutoApplyPipeline(app_config)

        if args.manual_run:
            status_code, body = run_trigger(pipeline)
            print(json.dumps(body, indent=2))

            close_database()
            logger.info(
                "Auto-apply engine stopped",
                extra={
                    "event": "service.stopping",
                    "uptime_seconds": round(time.time() - start_time, 2),
                    "status_code": status_code,
                },
            )
            return 0 if body.get("success") else 1

        shutdown_event = threading.Event()
        scheduler_service = SchedulerService(
            batch_callable=lambda: run_trigger(pipeline),
            interval_seconds=app_config.schedule.run_interval_seconds,
            cron=app_config.schedule.cron,
            shutdown_event=shutdown_event,
        )

        def signal_handler(signum, frame):
            logger.info(
                f"Received signal {signum}, shutting down",
                extra={"event": "service.signal_received", "signal": signum},
            )
            scheduler_service.shutdown(wait=False)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        scheduler_service.start()
        logger.info(
            "Scheduler started. Press Ctrl+C to stop",
            extra={"event": "service.daemon_mode.started"},
        )

        try:
            shutdown_event.wait()
        except KeyboardInterrupt:
            scheduler_service.shutdown(wait=False)

        close_database()
        logger.info(
            "Auto-apply engine stopped",
            extra={
                "event": "service.stopping",
                "uptime_seconds": round(time.time() - start_time, 2),
            },
        )
        return 0

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        if args.manual_run:
            print(json.dumps(error_response(e)[1], indent=2))
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        if args.manual_run:
            print(json.dumps(error_response(e)[1], indent=2))
        logger.critical(
            "Fatal error during startup",
            exc_info=True,
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
                "error": str(e),
            },
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
