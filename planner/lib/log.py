"""Logging setup. Records go to stderr; stdout carries the JSON-RPC stream."""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "WARNING") -> logging.Logger:
    """Attach a single stderr handler to the package logger."""
    logger = logging.getLogger("planner")
    for handler in list(logger.handlers):
        if getattr(handler, "_planner_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._planner_handler = True
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.upper(), logging.WARNING))
    return logger
