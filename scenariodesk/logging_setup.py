"""Logging configuration for applications embedding scenariodesk."""

import logging
import sys


__all__ = ["FILTER_LOGGER", "configure_logging"]


# Per-filter debug lines; one per filter per evaluation
FILTER_LOGGER = "scenariodesk.scenarios.filters"


def configure_logging(level: str = "INFO", force: bool = False, filter_detail: bool = False) -> None:
    """
    Send scenariodesk logs to stdout.

    Leaves an already configured root logger alone unless *force* is set.
    Per-filter results are only logged at DEBUG when *filter_detail* is set;
    otherwise the filter logger is held at INFO so a DEBUG run over a large
    catalog still shows one line per scenario.

    Args:
        level: Root logging level (DEBUG, INFO, WARNING, ERROR)
        force: Replace existing root handlers
        filter_detail: Keep per-filter DEBUG lines
    """
    logging.getLogger(FILTER_LOGGER).setLevel(logging.NOTSET if filter_detail else logging.INFO)

    root = logging.getLogger()
    if root.hasHandlers() and not force:
        return

    if force:
        root.handlers.clear()
    root.setLevel(level.upper())

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root.addHandler(handler)
