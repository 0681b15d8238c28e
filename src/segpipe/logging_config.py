"""Logging configuration for the segpipe package."""

import logging
import sys
from typing import Callable, Optional


PROGRESS_LOGGER_NAME = "segpipe.progress"


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    segpipe_level: Optional[int] = None,
    show_progress: bool = True
) -> None:
    """
    Setup logging for applications driving a segmentation pipeline.

    Args:
        level: Root logging level applied to all handlers
        log_file: Optional path to log file. If None, logs to console only.
        format_string: Optional custom format string for log messages.
        segpipe_level: Optional level for the ``segpipe`` loggers only, e.g.
            logging.DEBUG to trace every collaborator update while keeping
            other libraries at ``level``
        show_progress: If false, update progress messages are suppressed
    """
    if format_string is None:
        format_string = '%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format=format_string,
        handlers=handlers,
        force=True
    )

    if segpipe_level is not None:
        logging.getLogger("segpipe").setLevel(segpipe_level)

    progress_logger = logging.getLogger(PROGRESS_LOGGER_NAME)
    progress_logger.disabled = not show_progress

    # Worker thread bookkeeping of the parallel feature fan-out
    logging.getLogger("concurrent.futures").setLevel(logging.WARNING)


def create_progress_logger(level: int = logging.INFO) -> Callable[[float], None]:
    """
    Create a progress observer that reports update progress through logging.

    Args:
        level: Level the progress messages are emitted at

    Returns:
        Callable accepting the completed fraction of an update cycle
    """
    progress_logger = logging.getLogger(PROGRESS_LOGGER_NAME)

    def log_progress(fraction: float) -> None:
        progress_logger.log(level, f"Segmentation update {fraction:.0%} complete")

    return log_progress
