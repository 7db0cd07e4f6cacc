"""
Structured logging utilities.
"""

import sys
from pathlib import Path
from loguru import logger
from typing import Any, Mapping, Optional


def setup_logger(
    log_level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "30 days",
    format_string: Optional[str] = None,
) -> None:
    """
    Configure loguru logger with console and file handlers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Path to log file (None = console only)
        rotation: Log rotation policy (e.g., "10 MB", "1 day")
        retention: Log retention policy (e.g., "30 days", "1 week")
        format_string: Custom format string
    """
    logger.remove()

    if format_string is None:
        format_string = (
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
            "<level>{message}</level>"
        )

    logger.add(
        sys.stderr,
        format=format_string,
        level=log_level,
        colorize=True,
    )

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            format=format_string,
            level=log_level,
            rotation=rotation,
            retention=retention,
            compression="zip",
        )
        logger.info(f"Logging to file: {log_file}")


def _log_block(title: str, heading: str, entries: Mapping[str, Any]) -> None:
    logger.info("=" * 80)
    logger.info(title)
    logger.info("=" * 80)
    logger.info(heading)
    for key, value in entries.items():
        logger.info(f"  {key}: {value}")
    logger.info("=" * 80)


def log_experiment_start(experiment_name: str, config: Mapping[str, Any]) -> None:
    """
    Log experiment start with configuration.

    Args:
        experiment_name: Name of experiment
        config: Configuration dictionary
    """
    _log_block(f"Starting evaluation: {experiment_name}", "Configuration:", config)


def log_experiment_end(experiment_name: str, results: Mapping[str, Any]) -> None:
    """
    Log experiment end with results.

    Args:
        experiment_name: Name of experiment
        results: Results dictionary
    """
    _log_block(f"Evaluation completed: {experiment_name}", "Results:", results)
