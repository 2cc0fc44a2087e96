"""
Logging setup for bcclust runs.

Library modules log through logging.getLogger(__name__) and never print.
Handlers and levels are chosen once, by whoever runs the pipeline.
"""

import logging
from typing import Sequence

from bcclust.io.records import TraceFailure


FORMATS = {
    "default": "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
    "minimal": "%(levelname)s | %(message)s",
}


def setup_logging(level: str = "INFO", format_style: str = "default") -> None:
    """
    Configure the root logger for a clustering run.

    Args:
        level: Level name, case-insensitive (e.g. "debug", "INFO")
        format_style: "default" adds time and module name, "minimal" keeps
            only level and message (handy in notebooks)

    Example:
        >>> from bcclust.utils.logging import setup_logging
        >>> setup_logging(level="DEBUG", format_style="minimal")
    """
    if format_style not in FORMATS:
        raise ValueError(f"format_style must be one of {sorted(FORMATS)}, got {format_style}")

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=FORMATS[format_style],
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def get_logger(name: str) -> logging.Logger:
    """Logger for a bcclust module (pass __name__)."""
    return logging.getLogger(name)


def log_failure_summary(logger: logging.Logger, failures: Sequence[TraceFailure]) -> None:
    """
    Log excluded traces grouped by stage and error class.

    One warning line per (stage, error) group, listing the trace IDs.
    """
    if not failures:
        logger.info("No traces excluded")
        return

    groups = {}
    for failure in failures:
        groups.setdefault((failure.stage, failure.error), []).append(failure.trace_id)

    for (stage, error), trace_ids in groups.items():
        logger.warning(f"Excluded at {stage} ({error}): {len(trace_ids)} traces, IDs {trace_ids}")
