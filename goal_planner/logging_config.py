"""
Logging setup for applications embedding the planner.
Library modules only create loggers; handlers are installed here on request.
"""

import logging
from typing import Optional

LOGGER_NAME = "goal_planner"
DEFAULT_FORMAT = "[%(name)s] %(message)s"


def setup_logging(level: int = logging.INFO, fmt: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Calling it again replaces the handler instead of adding a second one.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if getattr(handler, "_goal_planner_handler", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt or DEFAULT_FORMAT))
    handler._goal_planner_handler = True
    logger.addHandler(handler)

    return logger
