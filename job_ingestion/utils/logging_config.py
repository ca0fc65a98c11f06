"""Logging for ingestion runs: a rotating run log, a separate problems log and stderr."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOG_FILE = "job_ingestion.log"
ERROR_LOG_FILE = "job_ingestion.errors.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 3

# Sources are fetched on worker threads named source_N
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(threadName)s): %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("urllib3", "apscheduler", "openai", "httpx")


def _rotating(path: Path, level: int, formatter: logging.Formatter, max_bytes: int, backups: int):
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_dir: str = "logs",
    level: int = logging.INFO,
    max_bytes: int = MAX_LOG_BYTES,
    backups: int = LOG_BACKUPS,
) -> logging.Logger:
    """Configure the ``job_ingestion`` logger tree.

    Everything at ``level`` goes to the run log and to stderr, so report
    output on stdout stays clean. Warnings and errors (failed sources,
    skipped items) are also written to a smaller problems log. Calling
    this again replaces the handlers.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("job_ingestion")
    logger.setLevel(level)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    logger.addHandler(_rotating(log_path / LOG_FILE, level, formatter, max_bytes, backups))
    logger.addHandler(
        _rotating(log_path / ERROR_LOG_FILE, max(level, logging.WARNING), formatter, max_bytes, backups)
    )

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(level)
    console.setFormatter(formatter)
    logger.addHandler(console)

    quiet = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet)

    return logger
