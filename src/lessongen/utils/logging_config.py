"""Logging configuration with optional structured JSON output.

Stage timing for the lesson pipeline goes through ``pipeline_stage_logger`` so
every stage logs a started/completed/failed record with its duration.
"""

import json
import logging
import sys
import time
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Union

from lessongen import constants

# Attributes every LogRecord carries; anything else came in through `extra`
STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "taskName",
    "exc_info",
    "exc_text",
    "stack_info",
}

# Third-party loggers that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "anthropic", "instructor")


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured log records.

    Output keys: timestamp (ISO 8601 UTC), level, logger, message, plus
    ``exception`` when exc_info is set and ``extra`` for any context fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in STANDARD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


def configure_logging(
    level: Union[str, int, None] = None,
    log_file: Optional[Union[str, Path]] = None,
    json_format: Optional[bool] = None,
    console_output: bool = True,
) -> None:
    """Configure root logging for CLI runs.

    Args:
        level: Logging level (default: LOG_LEVEL env var)
        log_file: Optional file path for log output (default: None = console only)
        json_format: Use the JSON formatter (default: LOG_FORMAT env var == "json")
        console_output: If True, log to stderr (default: True)

    Example:
        >>> configure_logging(level="DEBUG", log_file="output/lessongen.log")
    """
    if level is None:
        level = constants.LOG_LEVEL
    if json_format is None:
        json_format = constants.LOG_FORMAT == "json"

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if json_format:
        formatter: logging.Formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(
        f"Logging configured: level={logging.getLevelName(root_logger.level)}, json_format={json_format}"
    )


@contextmanager
def pipeline_stage_logger(stage_name: str, **context: Any) -> Iterator[logging.Logger]:
    """Log entry, exit and duration of a pipeline stage.

    Failures are logged with the traceback and re-raised unchanged.

    Args:
        stage_name: Name of the pipeline stage
        **context: Additional context fields to include in logs

    Yields:
        Logger instance for the stage

    Example:
        >>> with pipeline_stage_logger("topic_breakdown", user_level="beginner") as log:
        ...     log.info("Breaking topic into sections")
    """
    logger = logging.getLogger(f"lessongen.stage.{stage_name}")

    start = time.perf_counter()
    logger.debug(
        f"Starting pipeline stage: {stage_name}",
        extra={"stage": stage_name, "status": "started", **context},
    )

    try:
        yield logger
    except Exception as e:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.error(
            f"Failed pipeline stage: {stage_name}",
            extra={
                "stage": stage_name,
                "status": "failed",
                "duration_ms": round(duration_ms, 2),
                "error": str(e)[:200],
                **context,
            },
            exc_info=True,
        )
        raise

    duration_ms = (time.perf_counter() - start) * 1000
    logger.info(
        f"Completed pipeline stage: {stage_name} in {duration_ms:.0f}ms",
        extra={
            "stage": stage_name,
            "status": "completed",
            "duration_ms": round(duration_ms, 2),
            **context,
        },
    )
