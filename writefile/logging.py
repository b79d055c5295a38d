from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

LOG_DIR_ENV = "WRITEFILE_LOG_DIR"


def default_log_dir() -> Path | None:
    """Return the file-sink directory from the environment, if configured."""
    value = os.environ.get(LOG_DIR_ENV)
    return Path(value) if value else None


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup console logging plus optional file sinks.

    Logging Tiers:
    - CRITICAL/ERROR: Stage failures that abort the run
    - SUCCESS/INFO: Stage start/finish, created directories, written file
    - DEBUG: Commands executed, URLs tried, DHCP packet details
    - TRACE: Namespace switches and other per-syscall noise

    Log Files (only when log_dir is given):
    - operations.log: INFO+ events
    - structured.jsonl: Structured JSON logs for analysis

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging (very verbose)
        log_dir: Directory for file sinks; console only when None
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    if trace:
        console_level = "TRACE"
    elif debug:
        console_level = "DEBUG"
    else:
        console_level = "INFO"

    # SINK 1: Console (stderr)
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        colorize=True,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[source]: <10}</cyan> | "
            "<blue>{extra[job_id]: <18}</blue> | "
            "{message}"
        ),
    )

    if log_dir is None:
        return logger

    log_dir.mkdir(parents=True, exist_ok=True)

    # SINK 2: Operations Log (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <10} | "
            "{extra[job_id]: <18} | "
            "{message}"
        ),
    )

    # SINK 3: Structured JSON Log (INFO+)
    logger.add(
        log_dir / "structured.jsonl",
        level="INFO",
        rotation="10 MB",
        retention="7 days",
        serialize=True,
        format="{message}",
    )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["mount", "storage"])
        source: Source component (e.g., "storage", "network")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for a pipeline stage with automatic timing.

    Logs stage start, completion, and failure with duration tracking.

    Args:
        operation: Stage name (e.g., "mount", "directories", "content")
        **details: Stage-specific details to log

    Yields:
        Logger bound with job_id and operation context

    Example:
        with operation_context("mount", device="/dev/sda1") as log:
            log.debug("Creating mountpoint")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started")

        try:
            yield log
            duration = time.time() - start_time
            log.success(
                f"{operation.capitalize()} completed",
                duration_seconds=round(duration, 2),
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.

    Each factory method returns a logger pre-configured with appropriate
    source and tags for the domain.
    """

    @staticmethod
    def for_storage() -> Logger:
        """Logger for mount, directory and file operations."""
        return logger.bind(source="storage", tags=["storage"])

    @staticmethod
    def for_network(job_id: str | None = None) -> Logger:
        """Logger for namespace switching and DHCP exchanges."""
        if job_id is None:
            job_id = f"dhcp-{uuid.uuid4().hex[:8]}"
        return logger.bind(job_id=job_id, source="network", tags=["network", "dhcp"])

    @staticmethod
    def for_content() -> Logger:
        """Logger for content resolution (metadata, netplan, bootconfig)."""
        return logger.bind(source="content", tags=["content"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for startup, configuration and shutdown."""
        return logger.bind(source="system", tags=["system"])
